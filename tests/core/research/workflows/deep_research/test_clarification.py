"""Tests for the clarification gate."""

from __future__ import annotations

import pytest

from chat_research.core.errors.research import StructuredOutputExhaustedError
from tests.fakes import ScriptedLLMProvider


class TestClarificationPhase:
    @pytest.mark.asyncio
    async def test_disabled_skips_model_call(self, make_workflow, started_options, research_input, llm):
        options = started_options(allow_clarification=False)
        decision = await make_workflow()._execute_clarification_async(options, research_input.messages)
        assert decision.need_clarification is False
        assert llm.requests == []

    @pytest.mark.asyncio
    async def test_uses_status_update_model(self, make_workflow, started_options, research_input, llm):
        options = started_options(status_update_model="openai/gpt-4o-mini")
        await make_workflow()._execute_clarification_async(options, research_input.messages)
        request = llm.calls("clarifyWithUser")[0]
        assert request.model == "openai/gpt-4o-mini"
        assert "user: How do solar and wind energy costs compare?" in request.messages[-1].content

    @pytest.mark.asyncio
    async def test_question_returned(self, make_workflow, started_options, research_input):
        llm = ScriptedLLMProvider(
            {"clarifyWithUser": [{"need_clarification": True, "question": "Which countries?", "verification": ""}]}
        )
        options = started_options()
        decision = await make_workflow(llm=llm)._execute_clarification_async(options, research_input.messages)
        assert decision.need_clarification is True
        assert decision.question == "Which countries?"

    @pytest.mark.asyncio
    async def test_missing_flag_is_retried_then_fatal(self, make_workflow, started_options, research_input):
        llm = ScriptedLLMProvider({"clarifyWithUser": [{"question": "no flag"}]})
        options = started_options(max_structured_output_retries=2)
        with pytest.raises(StructuredOutputExhaustedError) as exc_info:
            await make_workflow(llm=llm)._execute_clarification_async(options, research_input.messages)
        assert exc_info.value.phase == "clarification"
        assert exc_info.value.attempts == 3
        assert len(llm.calls("clarifyWithUser")) == 3
