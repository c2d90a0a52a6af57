"""Tests for the Firecrawl search provider."""

from __future__ import annotations

import httpx
import pytest

from chat_research.core.errors.search import SearchProviderError
from chat_research.core.research.providers.firecrawl import FirecrawlSearchProvider


class TestFirecrawlSearchProvider:
    """Request shape and parsing of scraped results."""

    @pytest.mark.asyncio
    async def test_search_request_and_parsing(self, mock_client):
        client, transport = mock_client(
            httpx.Response(
                200,
                json={
                    "success": True,
                    "data": [
                        {"url": "https://a.example", "title": "A", "markdown": "# A\nbody"},
                        {
                            "metadata": {"sourceURL": "https://b.example", "title": "B"},
                            "description": "desc only",
                        },
                        {"title": "missing url"},
                    ],
                },
            )
        )
        provider = FirecrawlSearchProvider(api_key="fc-test", client=client)

        results = await provider.search("wind turbines", max_results=3)

        request = transport.requests[0]
        assert str(request.url) == "https://api.firecrawl.dev/v1/search"
        assert request.headers["Authorization"] == "Bearer fc-test"
        assert transport.json_body() == {
            "query": "wind turbines",
            "limit": 3,
            "scrapeOptions": {"formats": ["markdown"]},
        }
        assert [(r.title, r.url, r.content) for r in results] == [
            ("A", "https://a.example", "# A\nbody"),
            ("B", "https://b.example", "desc only"),
        ]

    @pytest.mark.asyncio
    async def test_long_content_is_truncated(self, mock_client):
        client, _ = mock_client(
            httpx.Response(200, json={"success": True, "data": [{"url": "https://a.example", "markdown": "x" * 50_000}]})
        )
        provider = FirecrawlSearchProvider(api_key="fc-test", client=client)

        results = await provider.search("q")
        assert len(results[0].content) == 20_000
        assert results[0].title == "Untitled"

    @pytest.mark.asyncio
    async def test_unsuccessful_payload_raises(self, mock_client):
        client, _ = mock_client(httpx.Response(200, json={"success": False, "error": "quota exceeded"}))
        provider = FirecrawlSearchProvider(api_key="fc-test", client=client)

        with pytest.raises(SearchProviderError, match="quota exceeded"):
            await provider.search("q")

    @pytest.mark.asyncio
    async def test_malformed_hit_is_wrapped(self, mock_client):
        client, _ = mock_client(httpx.Response(200, json={"success": True, "data": ["not-an-object"]}))
        provider = FirecrawlSearchProvider(api_key="fc-test", client=client)

        with pytest.raises(SearchProviderError, match="Malformed response payload"):
            await provider.search("q")
