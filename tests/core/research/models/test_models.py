"""Tests for research data models and progress updates."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from chat_research.core.research.models.deep_research import (
    ClarifyingQuestionResult,
    ConversationTurn,
    DecompositionPlan,
    DeepResearchInput,
    DocumentToolError,
    DocumentToolSuccess,
    ProblemResult,
    ReportResult,
    ResearchUnit,
    UnitStatus,
    WebSearchTool,
    messages_to_string,
)
from chat_research.core.research.models.updates import (
    CompletedUpdate,
    ProblemUpdate,
    StartedUpdate,
    WebUpdate,
    WritingUpdate,
    is_terminal,
    research_update_adapter,
)

# =========================================================================
# Input
# =========================================================================


class TestDeepResearchInput:
    def test_requires_messages(self):
        with pytest.raises(ValidationError):
            DeepResearchInput(message_id="m", request_id="r", tool_call_id="t", messages=[])

    def test_requires_ids(self):
        with pytest.raises(ValidationError):
            DeepResearchInput(
                message_id="",
                request_id="r",
                tool_call_id="t",
                messages=[ConversationTurn(role="user", content="hi")],
            )

    def test_messages_to_string_renders_parts(self):
        turns = [
            ConversationTurn(role="user", content="Compare EV batteries"),
            ConversationTurn(role="assistant", content=[{"type": "text", "text": "Which chemistries?"}]),
        ]
        rendered = messages_to_string(turns)
        assert rendered.splitlines()[0] == "user: Compare EV batteries"
        assert rendered.splitlines()[1].startswith('assistant: [{"type": "text"')


# =========================================================================
# Stage schemas
# =========================================================================


class TestDecompositionPlan:
    def test_deduplicates_and_strips(self):
        plan = DecompositionPlan(sub_questions=[" Solar ", "solar", "", "Wind"])
        assert plan.sub_questions == ["Solar", "Wind"]

    def test_rejects_all_blank(self):
        with pytest.raises(ValidationError):
            DecompositionPlan(sub_questions=["  "])


class TestWebSearchTool:
    def test_single_query_normalized(self):
        assert WebSearchTool(query=" solar ").queries == ["solar"]

    def test_merges_query_and_queries(self):
        assert WebSearchTool(query="a", queries=["b", "a"]).queries == ["b", "a"]

    def test_requires_a_query(self):
        with pytest.raises(ValidationError):
            WebSearchTool(queries=["", "  "])


# =========================================================================
# Research units
# =========================================================================


class TestResearchUnit:
    def test_completed_unit_block(self):
        unit = ResearchUnit(index=0, question="Solar", status=UnitStatus.COMPLETED, compressed_findings="Fell 12% [1]")
        assert unit.is_placeholder is False
        assert unit.findings_block() == "## Research topic 1: Solar\nFell 12% [1]"

    def test_failed_unit_is_flagged_placeholder(self):
        unit = ResearchUnit(index=2, question="Wind", status=UnitStatus.FAILED, error="invalid output")
        block = unit.findings_block()
        assert unit.is_placeholder is True
        assert block.startswith("## Research topic 3: Wind\n[NO FINDINGS:")
        assert "invalid output" in block

    def test_completed_but_empty_is_placeholder(self):
        unit = ResearchUnit(index=0, question="Q", status=UnitStatus.COMPLETED, compressed_findings="  ")
        assert unit.is_placeholder is True


# =========================================================================
# Results
# =========================================================================


class TestResults:
    def test_clarifying_question_output(self):
        result = ClarifyingQuestionResult(data="Which region?")
        assert result.to_tool_output() == {"format": "clarifying_questions", "answer": "Which region?"}

    def test_report_output(self):
        document = DocumentToolSuccess(document_id="doc-1", result="created", date="2026-01-01T00:00:00+00:00")
        output = ReportResult(data=document).to_tool_output()
        assert output["format"] == "report"
        assert output["answer"]["status"] == "success"
        assert output["answer"]["document_id"] == "doc-1"

    def test_report_with_document_error(self):
        output = ReportResult(data=DocumentToolError(error="disk full")).to_tool_output()
        assert output["answer"] == {"status": "error", "error": "disk full"}

    def test_problem_output(self):
        assert ProblemResult(data="boom").to_tool_output() == {"format": "problem", "answer": "boom"}


# =========================================================================
# Updates
# =========================================================================


class TestUpdates:
    def test_terminal_types(self):
        assert is_terminal(CompletedUpdate(tool_call_id="c", title="done"))
        assert is_terminal(ProblemUpdate(tool_call_id="c", title="failed", error="x"))
        assert not is_terminal(StartedUpdate(tool_call_id="c", title="go"))
        assert not is_terminal(WritingUpdate(tool_call_id="c", title="w"))

    def test_defaults(self):
        update = WebUpdate(tool_call_id="c", title='Searching for "x"', queries=["x"])
        assert update.status == "running"
        assert update.results == []
        assert update.unit_index is None
        assert len(update.id) == 32
        assert update.timestamp > 0

    def test_discriminated_round_trip(self):
        update = ProblemUpdate(tool_call_id="c", title="Research failed", error="boom")
        parsed = research_update_adapter.validate_json(update.model_dump_json())
        assert parsed == update

    def test_frozen(self):
        update = StartedUpdate(tool_call_id="c", title="go")
        with pytest.raises(ValidationError):
            update.title = "changed"
