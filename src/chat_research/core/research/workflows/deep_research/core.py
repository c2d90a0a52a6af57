"""Deep research workflow: clarification, brief, parallel research, report.

``DeepResearchWorkflow`` combines the phase mixins and owns the
cross-cutting concerns they share: update emission, cancellation checks
and audit events. :meth:`DeepResearchWorkflow.run` is the single entry
point; it always emits one ``started`` update first and exactly one
terminal update (``completed`` or ``problem``) last, and returns exactly
one result variant.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional, Union
from uuid import uuid4

from chat_research.config.research import RuntimeConfig
from chat_research.core.credits.cost_accumulator import CostAccumulator
from chat_research.core.documents import DocumentStore, InMemoryDocumentStore
from chat_research.core.errors.llm import LLMError
from chat_research.core.errors.research import ResearchCancelledError, ResearchError
from chat_research.core.llm_provider import LLMProvider
from chat_research.core.observability import get_metrics, redact_sensitive_data, safe_error_message
from chat_research.core.research.models.deep_research import (
    ClarifyingQuestionResult,
    DeepResearchInput,
    ProblemResult,
    ReportResult,
)
from chat_research.core.research.models.updates import (
    CompletedUpdate,
    ProblemUpdate,
    ResearchUpdate,
    StartedUpdate,
    is_terminal,
)
from chat_research.core.research.providers.base import SearchProvider
from chat_research.core.research.workflows.deep_research.context import (
    AbortSignal,
    AgentOptions,
    check_cancellation,
)
from chat_research.core.research.workflows.deep_research.phases import (
    BriefPhaseMixin,
    ClarificationPhaseMixin,
    CompressionMixin,
    DecompositionStrategy,
    LLMDecomposition,
    SupervisionPhaseMixin,
    SynthesisPhaseMixin,
    TopicResearchMixin,
)
from chat_research.core.research.workflows.deep_research.stream import ResearchUpdateStream

logger = logging.getLogger(__name__)
audit_logger = logging.getLogger("chat_research.audit")

DeepResearchOutcome = Union[ClarifyingQuestionResult, ReportResult, ProblemResult]

_LOG_LEVELS = {"debug": logging.DEBUG, "info": logging.INFO, "warning": logging.WARNING, "error": logging.ERROR}


class DeepResearchWorkflow(
    ClarificationPhaseMixin,
    BriefPhaseMixin,
    SupervisionPhaseMixin,
    TopicResearchMixin,
    CompressionMixin,
    SynthesisPhaseMixin,
):
    """Multi-stage deep research pipeline.

    Args:
        llm: Language model provider used by every stage
        search: Web search provider; ignored when the run's ``search_api``
            is ``none``
        documents: Store for the final report (in-memory by default)
        decomposition: Sub-question strategy (LLM decomposition by default)
        search_max_results: Results requested per search query
        search_cost_cents: Flat cost recorded per successful search query
        audit_dir: Directory for per-request JSONL audit files; audit events
            are only logged when omitted
    """

    def __init__(
        self,
        llm: LLMProvider,
        *,
        search: Optional[SearchProvider] = None,
        documents: Optional[DocumentStore] = None,
        decomposition: Optional[DecompositionStrategy] = None,
        search_max_results: int = 5,
        search_cost_cents: int = 1,
        audit_dir: Optional[Path] = None,
    ):
        self.llm = llm
        self.search = search
        self.documents = documents if documents is not None else InMemoryDocumentStore()
        self.decomposition = decomposition if decomposition is not None else LLMDecomposition()
        self.search_max_results = search_max_results
        self.search_cost_cents = search_cost_cents
        self.audit_dir = audit_dir

    # =========================================================================
    # Cross-cutting helpers used by the phase mixins
    # =========================================================================

    def _emit(self, options: AgentOptions, update: ResearchUpdate) -> bool:
        """Write an update to the run's stream.

        Once the run is aborted only the opening and terminal updates are
        written; anything else is dropped.
        """
        if options.abort_signal.aborted and update.type != "started" and not is_terminal(update):
            logger.debug("Run aborted; dropping %s update %r", update.type, update.title)
            return False
        return options.stream.write(update)

    def _check_cancellation(self, options: AgentOptions) -> None:
        """Raise ``ResearchCancelledError`` if the run's abort signal fired."""
        if options.abort_signal.aborted:
            logger.info("Cancellation detected for request %s", options.request_id)
        check_cancellation(options)

    def _search_available(self, options: AgentOptions) -> bool:
        if not options.config.search_enabled:
            return False
        if self.search is None:
            logger.warning(
                "search_api=%s but no search provider was supplied; web search disabled",
                options.config.search_api.value,
            )
            return False
        return True

    def _write_audit_event(
        self,
        options: Optional[AgentOptions],
        event_type: str,
        *,
        data: Optional[dict[str, Any]] = None,
        level: str = "info",
    ) -> None:
        """Record an audit event as a log record and, if configured, a JSONL line."""
        request_id = options.request_id if options else None
        payload = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "event_id": uuid4().hex,
            "event_type": event_type,
            "level": level,
            "request_id": request_id,
            "tool_call_id": options.tool_call_id if options else None,
            "data": redact_sensitive_data(data or {}),
        }
        audit_logger.log(_LOG_LEVELS.get(level, logging.INFO), "AUDIT: %s", event_type, extra={"audit": payload})

        if self.audit_dir is None or request_id is None:
            return
        try:
            path = self.audit_dir / f"{request_id}.jsonl"
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("a", encoding="utf-8") as handle:
                handle.write(json.dumps(payload, ensure_ascii=True, default=str))
                handle.write("\n")
        except OSError as exc:
            logger.error("Failed to write audit event %s: %s", event_type, exc)

    # =========================================================================
    # Entry point
    # =========================================================================

    async def run(self, input: DeepResearchInput, options: AgentOptions) -> DeepResearchOutcome:
        """Run the pipeline for one research request.

        Returns:
            ``ClarifyingQuestionResult`` if the user must answer a question
            first, ``ReportResult`` when a report was written, or
            ``ProblemResult`` when the run was cancelled or hit a run-fatal
            failure
        """
        start = time.perf_counter()
        self._emit(options, StartedUpdate(tool_call_id=options.tool_call_id, title="Starting research"))
        self._write_audit_event(
            options,
            "workflow.start",
            data={"message_id": options.message_id, "config": options.config.to_dict()},
        )

        try:
            decision = await self._execute_clarification_async(options, input.messages)
            if decision.need_clarification:
                self._emit(options, CompletedUpdate(tool_call_id=options.tool_call_id, title="Clarification needed"))
                return self._finish(options, ClarifyingQuestionResult(data=decision.question), start)

            brief = await self._execute_brief_async(options, input.messages)
            units = await self._execute_supervision_async(options, brief)
            result = await self._execute_synthesis_async(options, input.messages, brief, units)
        except ResearchCancelledError as exc:
            return self._finish_with_problem(options, exc.title, exc.reason, start, cancelled=True)
        except asyncio.CancelledError:
            options.abort_signal.abort("Research task was cancelled")
            self._finish_with_problem(options, "Research cancelled", "Research task was cancelled", start, cancelled=True)
            raise
        except ResearchError as exc:
            logger.warning("Research run %s failed: %s", options.request_id, exc)
            return self._finish_with_problem(options, exc.title, safe_error_message(exc), start)
        except LLMError as exc:
            logger.warning("Research run %s failed on a model call: %s", options.request_id, exc)
            return self._finish_with_problem(options, "Research failed", safe_error_message(exc), start)
        except Exception as exc:
            logger.exception("Unexpected error in research run %s", options.request_id)
            return self._finish_with_problem(options, "Research failed", safe_error_message(exc), start)

        self._emit(options, CompletedUpdate(tool_call_id=options.tool_call_id, title="Research complete"))
        return self._finish(options, result, start)

    def _finish_with_problem(
        self,
        options: AgentOptions,
        title: str,
        error: str,
        start: float,
        *,
        cancelled: bool = False,
    ) -> ProblemResult:
        self._emit(options, ProblemUpdate(tool_call_id=options.tool_call_id, title=title, error=error))
        return self._finish(options, ProblemResult(data=error, cancelled=cancelled), start)

    def _finish(self, options: AgentOptions, result: DeepResearchOutcome, start: float) -> DeepResearchOutcome:
        outcome = "cancelled" if isinstance(result, ProblemResult) and result.cancelled else result.type
        total_cents = options.cost_accumulator.get_total_cost()
        get_metrics().gauge("run_cost_cents", total_cents, labels={"outcome": outcome})
        self._write_audit_event(
            options,
            "workflow.complete",
            data={
                "outcome": outcome,
                "duration_ms": (time.perf_counter() - start) * 1000,
                "total_cost_cents": total_cents,
                "costs": options.cost_accumulator.breakdown(),
            },
        )
        logger.info(
            "Research run %s finished: outcome=%s cost=%d cents",
            options.request_id,
            outcome,
            total_cents,
        )
        return result


async def run_deep_research(
    input: DeepResearchInput,
    config: RuntimeConfig,
    stream: ResearchUpdateStream,
    *,
    llm: LLMProvider,
    search: Optional[SearchProvider] = None,
    documents: Optional[DocumentStore] = None,
    cost_accumulator: Optional[CostAccumulator] = None,
    abort_signal: Optional[AbortSignal] = None,
    decomposition: Optional[DecompositionStrategy] = None,
    search_max_results: int = 5,
    search_cost_cents: int = 1,
) -> DeepResearchOutcome:
    """Run one deep research request end to end.

    Builds the run context from ``input`` and delegates to
    :meth:`DeepResearchWorkflow.run`. Pass your own ``cost_accumulator``
    and ``abort_signal`` to read the run's cost or cancel it from outside.

    Example:
        stream = ResearchUpdateStream(sinks=[print])
        result = await run_deep_research(input, resolve_runtime_config(), stream, llm=provider)
    """
    options = AgentOptions(
        request_id=input.request_id,
        message_id=input.message_id,
        tool_call_id=input.tool_call_id,
        abort_signal=abort_signal or AbortSignal(),
        stream=stream,
        cost_accumulator=cost_accumulator or CostAccumulator(),
        config=config,
    )
    workflow = DeepResearchWorkflow(
        llm,
        search=search,
        documents=documents,
        decomposition=decomposition,
        search_max_results=search_max_results,
        search_cost_cents=search_cost_cents,
    )
    return await workflow.run(input, options)
