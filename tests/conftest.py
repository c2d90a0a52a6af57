"""Shared fixtures for chat-research tests."""

from __future__ import annotations

import dataclasses
from typing import Any, Callable

import pytest

from chat_research.config.research import RuntimeConfig, SearchAPI
from chat_research.core.credits import CostAccumulator
from chat_research.core.documents import InMemoryDocumentStore
from chat_research.core.observability import get_metrics
from chat_research.core.observability.metrics import Metric
from chat_research.core.research.models.deep_research import ConversationTurn, DeepResearchInput
from chat_research.core.research.models.updates import StartedUpdate
from chat_research.core.research.workflows.deep_research import (
    AbortSignal,
    AgentOptions,
    ResearchUpdateStream,
)
from tests.fakes import ScriptedLLMProvider


@pytest.fixture
def runtime_config() -> RuntimeConfig:
    """Runtime config with search disabled and a single retry."""
    return RuntimeConfig(max_structured_output_retries=1, search_api=SearchAPI.NONE)


@pytest.fixture
def research_input() -> DeepResearchInput:
    return DeepResearchInput(
        message_id="msg-1",
        request_id="req-1",
        tool_call_id="call-1",
        messages=[ConversationTurn(role="user", content="How do solar and wind energy costs compare?")],
    )


@pytest.fixture
def make_options(runtime_config) -> Callable[..., AgentOptions]:
    """Factory for run contexts; keyword arguments override config fields."""

    def _make(*, stream: ResearchUpdateStream | None = None, **config_overrides: Any) -> AgentOptions:
        config = dataclasses.replace(runtime_config, **config_overrides) if config_overrides else runtime_config
        return AgentOptions(
            request_id="req-1",
            message_id="msg-1",
            tool_call_id="call-1",
            abort_signal=AbortSignal(),
            stream=stream or ResearchUpdateStream(),
            cost_accumulator=CostAccumulator(),
            config=config,
        )

    return _make


@pytest.fixture
def started_options(make_options):
    """Factory for run contexts whose stream already carries ``started``."""

    def _make(**kwargs: Any) -> AgentOptions:
        options = make_options(**kwargs)
        options.stream.write(StartedUpdate(tool_call_id=options.tool_call_id, title="Starting research"))
        return options

    return _make


@pytest.fixture
def llm() -> ScriptedLLMProvider:
    return ScriptedLLMProvider()


@pytest.fixture
def document_store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def recorded_metrics():
    """Capture metrics emitted through the global collector."""
    metrics: list[Metric] = []
    collector = get_metrics()
    collector.add_sink(metrics.append)
    yield metrics
    collector.remove_sink(metrics.append)
