"""Shared fixtures for deep research workflow tests."""

from __future__ import annotations

import pytest

from chat_research.core.research.workflows.deep_research import DeepResearchWorkflow


@pytest.fixture
def make_workflow(llm, document_store):
    """Factory for workflows wired to the scripted LLM and in-memory store."""

    def _make(**kwargs) -> DeepResearchWorkflow:
        kwargs.setdefault("documents", document_store)
        return DeepResearchWorkflow(kwargs.pop("llm", llm), **kwargs)

    return _make
