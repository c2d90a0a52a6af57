"""Supervision (research coordinator) mixin for DeepResearchWorkflow.

Splits the research brief into sub-questions through a pluggable
:class:`DecompositionStrategy`, then runs one research unit per
sub-question under a hard admission limit of
``max_concurrent_research_units``. Results are returned in sub-question
order regardless of completion order.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Any, Optional, Protocol, runtime_checkable

from chat_research.core.errors.research import AllUnitsFailedError, ResearchCancelledError
from chat_research.core.observability import get_metrics, safe_error_message
from chat_research.core.research.models.deep_research import (
    DecompositionPlan,
    ResearchBrief,
    ResearchUnit,
    UnitStatus,
)
from chat_research.core.research.models.updates import ResearchUpdate, ThoughtsUpdate
from chat_research.core.research.workflows.deep_research.context import AgentOptions
from chat_research.core.research.workflows.deep_research.phases._lifecycle import (
    execute_structured_llm_call,
    finalize_phase,
)
from chat_research.core.research.workflows.deep_research.prompts import (
    decomposition_system_prompt,
    decomposition_user_prompt,
    get_today_str,
)

if TYPE_CHECKING:
    from chat_research.core.llm_provider import LLMProvider

logger = logging.getLogger(__name__)


# =============================================================================
# Decomposition strategies
# =============================================================================


@runtime_checkable
class DecompositionStrategy(Protocol):
    """Turns a research brief into an ordered list of sub-questions."""

    async def decompose(self, workflow: Any, options: AgentOptions, brief: ResearchBrief) -> list[str]: ...


class DirectDecomposition:
    """One research unit for the whole brief."""

    async def decompose(self, workflow: Any, options: AgentOptions, brief: ResearchBrief) -> list[str]:
        return [brief.research_brief]


class LLMDecomposition:
    """Ask the research model for independent sub-questions.

    Args:
        max_sub_questions: Upper bound on sub-questions; defaults to the
            run's ``max_concurrent_research_units``

    If the model never returns a valid plan the brief is researched as a
    single unit instead of failing the run.
    """

    def __init__(self, max_sub_questions: Optional[int] = None):
        if max_sub_questions is not None and max_sub_questions < 1:
            raise ValueError(f"max_sub_questions must be positive, got {max_sub_questions}")
        self.max_sub_questions = max_sub_questions

    async def decompose(self, workflow: Any, options: AgentOptions, brief: ResearchBrief) -> list[str]:
        config = options.config
        limit = self.max_sub_questions or config.max_concurrent_research_units
        if limit == 1:
            return [brief.research_brief]

        call = await execute_structured_llm_call(
            workflow,
            options,
            phase_name="decomposition",
            function_id="supervisor",
            cost_label="deep-research-supervisor",
            model=config.research_model,
            max_tokens=config.research_model_max_tokens,
            system_prompt=decomposition_system_prompt(limit),
            user_prompt=decomposition_user_prompt(brief.research_brief, get_today_str()),
            schema=DecompositionPlan,
        )
        if call.parsed is None:
            logger.warning("Decomposition failed after %d attempts; researching the brief as one unit", call.attempts)
            return [brief.research_brief]

        plan: DecompositionPlan = call.parsed
        if len(plan.sub_questions) > limit:
            logger.info("Decomposition returned %d topics; keeping the first %d", len(plan.sub_questions), limit)
        return plan.sub_questions[:limit]


# =============================================================================
# Coordinator
# =============================================================================


class SupervisionPhaseMixin:
    """Research coordinator methods. Mixed into DeepResearchWorkflow."""

    llm: LLMProvider
    decomposition: DecompositionStrategy

    if TYPE_CHECKING:

        def _write_audit_event(
            self, options: AgentOptions, event_name: str, *, data: dict[str, Any] | None = ..., level: str = ...
        ) -> None: ...
        def _check_cancellation(self, options: AgentOptions) -> None: ...
        def _emit(self, options: AgentOptions, update: ResearchUpdate) -> bool: ...
        async def _execute_topic_research_async(self, options: AgentOptions, unit: ResearchUnit) -> ResearchUnit: ...

    async def _execute_supervision_async(
        self,
        options: AgentOptions,
        brief: ResearchBrief,
    ) -> list[ResearchUnit]:
        """Fan the brief out into research units and collect their findings.

        Units are admitted in sub-question order through a semaphore sized
        ``max_concurrent_research_units``; a unit starts only when a slot is
        free. Failed units stay in the result as placeholders.

        Returns:
            Every unit, in sub-question order

        Raises:
            AllUnitsFailedError: If no unit produced findings (run-fatal)
            ResearchCancelledError: If the run was aborted
        """
        self._check_cancellation(options)
        phase_start_time = time.perf_counter()
        max_concurrent = options.config.max_concurrent_research_units

        sub_questions = await self.decomposition.decompose(self, options, brief)
        if not sub_questions:
            sub_questions = [brief.research_brief]
        units = [ResearchUnit(index=i, question=q) for i, q in enumerate(sub_questions)]

        logger.info(
            "Executing %d research units (max_concurrent=%d) for request %s",
            len(units),
            max_concurrent,
            options.request_id,
        )
        self._write_audit_event(
            options,
            "supervision.start",
            data={"unit_count": len(units), "max_concurrent": max_concurrent, "sub_questions": sub_questions},
        )

        semaphore = asyncio.Semaphore(max_concurrent)

        async def run_unit(unit: ResearchUnit) -> ResearchUnit:
            async with semaphore:
                if options.abort_signal.aborted:
                    unit.status = UnitStatus.ABORTED
                    return unit
                try:
                    return await self._execute_topic_research_async(options, unit)
                except (ResearchCancelledError, asyncio.CancelledError):
                    raise
                except Exception as exc:
                    logger.exception("Research unit %d raised unexpectedly", unit.index)
                    unit.status = UnitStatus.FAILED
                    unit.error = safe_error_message(exc)
                    return unit

        gather_results = await asyncio.gather(*(run_unit(unit) for unit in units), return_exceptions=True)

        # Propagate cancellation if any unit was cancelled
        for result in gather_results:
            if isinstance(result, (ResearchCancelledError, asyncio.CancelledError)):
                raise result
        for unit, result in zip(units, gather_results):
            if isinstance(result, BaseException):
                unit.status = UnitStatus.FAILED
                unit.error = safe_error_message(result)

        self._check_cancellation(options)

        metrics = get_metrics()
        for unit in units:
            metrics.counter("research_units_total", labels={"status": unit.status.value})

        successful = [unit for unit in units if not unit.is_placeholder]
        logger.info("Research units complete: %d/%d successful", len(successful), len(units))
        self._write_audit_event(
            options,
            "supervision.complete",
            data={
                "successful": len(successful),
                "failed": len(units) - len(successful),
                "unit_errors": {unit.index: unit.error for unit in units if unit.is_placeholder},
            },
        )

        if not successful:
            finalize_phase(self, options, "supervision", phase_start_time, status="failed")
            raise AllUnitsFailedError([(unit.question, unit.error or "no findings") for unit in units])

        self._emit(
            options,
            ThoughtsUpdate(
                tool_call_id=options.tool_call_id,
                title="Research tasks completed",
                message="Researched: " + ", ".join(unit.question for unit in successful),
            ),
        )
        finalize_phase(self, options, "supervision", phase_start_time)
        return units
