"""Shared fixtures for search provider tests.

Providers receive an ``httpx.AsyncClient`` backed by ``httpx.MockTransport``
so no request leaves the process.
"""

import json

import httpx
import pytest


class RecordingTransport:
    """Mock transport handler replaying scripted responses in order."""

    def __init__(self, responses):
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        item = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(item, Exception):
            raise item
        return item

    def json_body(self, index: int = -1) -> dict:
        return json.loads(self.requests[index].content)


@pytest.fixture
def mock_client():
    """Factory returning ``(client, transport)`` for scripted responses."""
    clients = []

    def _make(*responses):
        transport = RecordingTransport(responses)
        client = httpx.AsyncClient(transport=httpx.MockTransport(transport))
        clients.append(client)
        return client, transport

    yield _make


@pytest.fixture
def no_sleep(monkeypatch):
    """Skip retry backoff delays."""
    delays: list[float] = []

    async def _sleep(delay):
        delays.append(delay)

    monkeypatch.setattr("chat_research.core.research.providers.shared.asyncio.sleep", _sleep)
    return delays
