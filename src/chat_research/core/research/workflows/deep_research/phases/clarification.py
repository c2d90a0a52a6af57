"""Clarification phase mixin for DeepResearchWorkflow.

Decides, with one structured-output call, whether the conversation is
specific enough to research or whether the user must first answer a
clarifying question. This is the only stage that can end a run
successfully before any research starts.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any, Sequence

from chat_research.core.errors.research import StructuredOutputExhaustedError
from chat_research.core.research.models.deep_research import (
    ClarificationDecision,
    ConversationTurn,
    messages_to_string,
)
from chat_research.core.research.workflows.deep_research.context import AgentOptions
from chat_research.core.research.workflows.deep_research.phases._lifecycle import (
    execute_structured_llm_call,
    finalize_phase,
)
from chat_research.core.research.workflows.deep_research.prompts import (
    clarification_system_prompt,
    clarification_user_prompt,
    get_today_str,
)

if TYPE_CHECKING:
    from chat_research.core.llm_provider import LLMProvider

logger = logging.getLogger(__name__)


class ClarificationPhaseMixin:
    """Clarification phase methods. Mixed into DeepResearchWorkflow.

    At runtime, ``self`` is a DeepResearchWorkflow instance providing
    ``llm`` and the cross-cutting ``_write_audit_event()`` and
    ``_check_cancellation()`` methods.
    """

    llm: LLMProvider

    # Stubs for type checkers; implemented on DeepResearchWorkflow
    if TYPE_CHECKING:

        def _write_audit_event(
            self, options: AgentOptions, event_name: str, *, data: dict[str, Any] | None = ..., level: str = ...
        ) -> None: ...
        def _check_cancellation(self, options: AgentOptions) -> None: ...

    async def _execute_clarification_async(
        self,
        options: AgentOptions,
        messages: Sequence[ConversationTurn],
    ) -> ClarificationDecision:
        """Run the clarification gate.

        When ``allow_clarification`` is off the gate is skipped without a
        model call and research proceeds.

        Raises:
            StructuredOutputExhaustedError: If every attempt returned invalid
                output (run-fatal)
            ResearchCancelledError: If the run was aborted
        """
        config = options.config
        if not config.allow_clarification:
            logger.info("Clarification disabled; skipping gate for request %s", options.request_id)
            return ClarificationDecision(need_clarification=False)

        self._check_cancellation(options)
        phase_start_time = time.perf_counter()

        call = await execute_structured_llm_call(
            self,
            options,
            phase_name="clarification",
            function_id="clarifyWithUser",
            cost_label="deep-research-clarify",
            model=config.status_update_model,
            max_tokens=config.status_update_model_max_tokens,
            system_prompt=clarification_system_prompt(),
            user_prompt=clarification_user_prompt(messages_to_string(list(messages)), get_today_str()),
            schema=ClarificationDecision,
        )

        if call.parsed is None:
            finalize_phase(self, options, "clarification", phase_start_time, status="failed")
            raise StructuredOutputExhaustedError("clarification", call.attempts, call.last_error)

        decision: ClarificationDecision = call.parsed
        self._write_audit_event(
            options,
            "clarification.decided",
            data={"need_clarification": decision.need_clarification, "attempts": call.attempts},
        )
        finalize_phase(self, options, "clarification", phase_start_time)
        return decision
