"""Brief phase mixin for DeepResearchWorkflow.

Turns the (possibly clarified) conversation into a single research brief
plus the title of the final report. The brief drives decomposition,
research and synthesis.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any, Sequence

from chat_research.core.errors.research import StructuredOutputExhaustedError
from chat_research.core.research.models.deep_research import (
    ConversationTurn,
    ResearchBrief,
    messages_to_string,
)
from chat_research.core.research.models.updates import ResearchUpdate, WritingUpdate, new_update_id
from chat_research.core.research.workflows.deep_research.context import AgentOptions
from chat_research.core.research.workflows.deep_research.phases._lifecycle import (
    execute_structured_llm_call,
    finalize_phase,
)
from chat_research.core.research.workflows.deep_research.prompts import (
    brief_system_prompt,
    brief_user_prompt,
    get_today_str,
)

if TYPE_CHECKING:
    from chat_research.core.llm_provider import LLMProvider

logger = logging.getLogger(__name__)

BRIEF_UPDATE_TITLE = "Writing research brief"


class BriefPhaseMixin:
    """Brief phase methods. Mixed into DeepResearchWorkflow."""

    llm: LLMProvider

    if TYPE_CHECKING:

        def _write_audit_event(
            self, options: AgentOptions, event_name: str, *, data: dict[str, Any] | None = ..., level: str = ...
        ) -> None: ...
        def _check_cancellation(self, options: AgentOptions) -> None: ...
        def _emit(self, options: AgentOptions, update: ResearchUpdate) -> bool: ...

    async def _execute_brief_async(
        self,
        options: AgentOptions,
        messages: Sequence[ConversationTurn],
    ) -> ResearchBrief:
        """Generate the research brief.

        Emits a ``writing`` update while the brief is produced and completes
        the same update with the brief text.

        Raises:
            StructuredOutputExhaustedError: If every attempt returned invalid
                output (run-fatal)
            ResearchCancelledError: If the run was aborted
        """
        config = options.config
        self._check_cancellation(options)
        phase_start_time = time.perf_counter()

        update_id = new_update_id()
        self._emit(
            options,
            WritingUpdate(id=update_id, tool_call_id=options.tool_call_id, title=BRIEF_UPDATE_TITLE),
        )

        call = await execute_structured_llm_call(
            self,
            options,
            phase_name="brief",
            function_id="writeResearchBrief",
            cost_label="deep-research-brief",
            model=config.research_model,
            max_tokens=config.research_model_max_tokens,
            system_prompt=brief_system_prompt(),
            user_prompt=brief_user_prompt(messages_to_string(list(messages)), get_today_str()),
            schema=ResearchBrief,
        )

        if call.parsed is None:
            finalize_phase(self, options, "brief", phase_start_time, status="failed")
            raise StructuredOutputExhaustedError("brief", call.attempts, call.last_error)

        brief: ResearchBrief = call.parsed
        self._emit(
            options,
            WritingUpdate(
                id=update_id,
                tool_call_id=options.tool_call_id,
                title=BRIEF_UPDATE_TITLE,
                status="completed",
                message=brief.research_brief,
            ),
        )
        logger.info("Research brief ready for request %s: %s", options.request_id, brief.title)
        finalize_phase(self, options, "brief", phase_start_time)
        return brief
