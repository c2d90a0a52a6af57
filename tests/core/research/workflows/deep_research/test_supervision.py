"""Tests for decomposition and bounded-concurrency unit scheduling."""

from __future__ import annotations

import asyncio
import re

import pytest

from chat_research.core.errors.research import AllUnitsFailedError, ResearchCancelledError
from chat_research.core.research.models.deep_research import ResearchBrief, UnitStatus
from chat_research.core.research.workflows.deep_research import DirectDecomposition, LLMDecomposition
from tests.fakes import DEFAULT_BRIEF, RESEARCH_COMPLETE, ScriptedLLMProvider

BRIEF = ResearchBrief(**DEFAULT_BRIEF)
TOPICS = [f"Topic {n}" for n in range(1, 6)]


class FixedDecomposition:
    """Decomposition strategy returning a preset list of sub-questions."""

    def __init__(self, questions):
        self.questions = list(questions)

    async def decompose(self, workflow, options, brief):
        return list(self.questions)


class StaggeredLLM(ScriptedLLMProvider):
    """Researcher calls for later topics finish sooner."""

    async def _enter(self, request):
        await super()._enter(request)
        if request.metadata.get("function_id") == "researcher":
            match = re.search(r"Topic (\d)", request.messages[-1].content)
            number = int(match.group(1)) if match else 1
            await asyncio.sleep(0.01 * (6 - number))


def _fails_for(topic: str, default=RESEARCH_COMPLETE):
    def _respond(request):
        if topic in request.messages[-1].content:
            return "this is not json"
        return default

    return _respond


# =========================================================================
# Decomposition strategies
# =========================================================================


class TestDecomposition:
    @pytest.mark.asyncio
    async def test_direct(self, make_workflow, started_options):
        questions = await DirectDecomposition().decompose(make_workflow(), started_options(), BRIEF)
        assert questions == [BRIEF.research_brief]

    @pytest.mark.asyncio
    async def test_llm_single_slot_skips_model(self, make_workflow, started_options, llm):
        options = started_options(max_concurrent_research_units=1)
        questions = await LLMDecomposition().decompose(make_workflow(), options, BRIEF)
        assert questions == [BRIEF.research_brief]
        assert llm.calls("supervisor") == []

    @pytest.mark.asyncio
    async def test_llm_plan_truncated_to_limit(self, make_workflow, started_options):
        llm = ScriptedLLMProvider({"supervisor": [{"sub_questions": ["A", "B", "C", "D"]}]})
        options = started_options(max_concurrent_research_units=3)
        questions = await LLMDecomposition().decompose(make_workflow(llm=llm), options, BRIEF)
        assert questions == ["A", "B", "C"]
        assert "between 1 and 3 topics" in llm.calls("supervisor")[0].messages[0].content

    @pytest.mark.asyncio
    async def test_explicit_limit(self, make_workflow, started_options):
        llm = ScriptedLLMProvider({"supervisor": [{"sub_questions": TOPICS}]})
        questions = await LLMDecomposition(max_sub_questions=5).decompose(make_workflow(llm=llm), started_options(), BRIEF)
        assert questions == TOPICS

    @pytest.mark.asyncio
    async def test_invalid_plan_falls_back_to_brief(self, make_workflow, started_options):
        llm = ScriptedLLMProvider({"supervisor": ['{"sub_questions": []}']})
        options = started_options(max_structured_output_retries=1)
        questions = await LLMDecomposition().decompose(make_workflow(llm=llm), options, BRIEF)
        assert questions == [BRIEF.research_brief]
        assert len(llm.calls("supervisor")) == 2

    def test_rejects_non_positive_limit(self):
        with pytest.raises(ValueError):
            LLMDecomposition(max_sub_questions=0)


# =========================================================================
# Scheduling
# =========================================================================


class TestSupervisionPhase:
    @pytest.mark.asyncio
    async def test_concurrency_ceiling_and_order(self, make_workflow, started_options):
        llm = StaggeredLLM(delay=0.01)
        options = started_options(max_concurrent_research_units=2)
        workflow = make_workflow(llm=llm, decomposition=FixedDecomposition(TOPICS))

        units = await workflow._execute_supervision_async(options, BRIEF)

        assert llm.max_in_flight == 2
        assert [u.question for u in units] == TOPICS
        assert [u.index for u in units] == [0, 1, 2, 3, 4]
        assert all(u.status is UnitStatus.COMPLETED for u in units)
        assert len(llm.calls("researcher")) == 5

    @pytest.mark.asyncio
    async def test_single_slot_runs_units_one_at_a_time(self, make_workflow, started_options):
        llm = ScriptedLLMProvider(delay=0.005)
        options = started_options(max_concurrent_research_units=1)
        workflow = make_workflow(llm=llm, decomposition=FixedDecomposition(TOPICS[:3]))

        await workflow._execute_supervision_async(options, BRIEF)
        assert llm.max_in_flight == 1

    @pytest.mark.asyncio
    async def test_failed_unit_becomes_placeholder(self, make_workflow, started_options, recorded_metrics):
        llm = ScriptedLLMProvider({"researcher": [_fails_for("Topic 2")]})
        options = started_options(max_concurrent_research_units=3)
        workflow = make_workflow(llm=llm, decomposition=FixedDecomposition(TOPICS[:3]))

        units = await workflow._execute_supervision_async(options, BRIEF)

        assert [u.status for u in units] == [UnitStatus.COMPLETED, UnitStatus.FAILED, UnitStatus.COMPLETED]
        assert units[1].is_placeholder
        statuses = sorted(m.labels["status"] for m in recorded_metrics if m.name == "research_units_total")
        assert statuses == ["completed", "completed", "failed"]
        summary = options.stream.events[-1]
        assert summary.title == "Research tasks completed"
        assert summary.message == "Researched: Topic 1, Topic 3"

    @pytest.mark.asyncio
    async def test_unexpected_unit_error_contained(self, make_workflow, started_options):
        def explode_for_topic_1(request):
            if "Topic 1" in request.messages[-1].content:
                raise RuntimeError("unexpected bug")
            return RESEARCH_COMPLETE

        llm = ScriptedLLMProvider({"researcher": [explode_for_topic_1]})
        workflow = make_workflow(llm=llm, decomposition=FixedDecomposition(TOPICS[:2]))

        units = await workflow._execute_supervision_async(started_options(), BRIEF)

        assert units[0].status is UnitStatus.FAILED
        assert units[0].error == "unexpected bug"
        assert units[1].status is UnitStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_all_units_failed(self, make_workflow, started_options):
        llm = ScriptedLLMProvider({"researcher": ["never json"]})
        options = started_options(max_structured_output_retries=1)
        workflow = make_workflow(llm=llm, decomposition=FixedDecomposition(TOPICS[:2]))

        with pytest.raises(AllUnitsFailedError) as exc_info:
            await workflow._execute_supervision_async(options, BRIEF)
        assert [question for question, _ in exc_info.value.unit_errors] == TOPICS[:2]

    @pytest.mark.asyncio
    async def test_empty_decomposition_researches_brief(self, make_workflow, started_options):
        workflow = make_workflow(decomposition=FixedDecomposition([]))
        units = await workflow._execute_supervision_async(started_options(), BRIEF)
        assert [u.question for u in units] == [BRIEF.research_brief]

    @pytest.mark.asyncio
    async def test_abort_stops_pending_units(self, make_workflow, started_options):
        options = started_options(max_concurrent_research_units=1)

        def abort_on_first(request):
            options.abort_signal.abort("stop")
            return RESEARCH_COMPLETE

        llm = ScriptedLLMProvider({"researcher": [abort_on_first]})
        workflow = make_workflow(llm=llm, decomposition=FixedDecomposition(TOPICS[:3]))

        with pytest.raises(ResearchCancelledError):
            await workflow._execute_supervision_async(options, BRIEF)
        assert len(llm.calls("researcher")) == 1
        assert llm.calls("compressResearch") == []
