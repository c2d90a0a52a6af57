"""Synthesis phase mixin for DeepResearchWorkflow.

Streams the final report from the final-report model, forwarding every
text chunk as a ``writing`` update as it arrives, then persists the
report as a document.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Optional, Sequence

from chat_research.core.errors.llm import LLMError
from chat_research.core.errors.research import ResearchCancelledError, ResearchError
from chat_research.core.errors.storage import DocumentStoreError
from chat_research.core.llm_provider import TokenUsage
from chat_research.core.observability import create_telemetry, record_llm_call, safe_error_message
from chat_research.core.research.models.deep_research import (
    ConversationTurn,
    DocumentToolError,
    DocumentToolSuccess,
    ReportResult,
    ResearchBrief,
    ResearchUnit,
    messages_to_string,
)
from chat_research.core.research.models.updates import ResearchUpdate, WritingUpdate, new_update_id
from chat_research.core.research.workflows.deep_research._token_budget import (
    available_prompt_tokens,
    truncate_to_token_estimate,
)
from chat_research.core.research.workflows.deep_research.context import AgentOptions
from chat_research.core.research.workflows.deep_research.phases._lifecycle import (
    build_chat_request,
    finalize_phase,
)
from chat_research.core.research.workflows.deep_research.prompts import (
    final_report_system_prompt,
    final_report_user_prompt,
    get_today_str,
)

if TYPE_CHECKING:
    from chat_research.core.documents import DocumentStore
    from chat_research.core.llm_provider import LLMProvider

logger = logging.getLogger(__name__)

REPORT_UPDATE_TITLE = "Writing final report"
DOCUMENT_CREATED_MESSAGE = "A document was created and is now visible to the user."


class SynthesisPhaseMixin:
    """Report synthesis methods. Mixed into DeepResearchWorkflow."""

    llm: LLMProvider
    documents: DocumentStore

    if TYPE_CHECKING:

        def _write_audit_event(
            self, options: AgentOptions, event_name: str, *, data: dict[str, Any] | None = ..., level: str = ...
        ) -> None: ...
        def _check_cancellation(self, options: AgentOptions) -> None: ...
        def _emit(self, options: AgentOptions, update: ResearchUpdate) -> bool: ...

    async def _execute_synthesis_async(
        self,
        options: AgentOptions,
        messages: Sequence[ConversationTurn],
        brief: ResearchBrief,
        units: Sequence[ResearchUnit],
    ) -> ReportResult:
        """Write the final report and persist it.

        Failed units appear in the prompt only as flagged placeholder blocks.

        Raises:
            ResearchError: If the model returned an empty report (run-fatal)
            LLMError: If the streaming call fails (run-fatal)
            ResearchCancelledError: If the run was aborted
        """
        config = options.config
        model = config.final_report_model
        self._check_cancellation(options)
        phase_start_time = time.perf_counter()

        system_prompt = final_report_system_prompt(get_today_str())
        conversation = messages_to_string(list(messages))
        findings = "\n\n".join(unit.findings_block() for unit in units)
        findings_budget = available_prompt_tokens(
            model,
            system_prompt=system_prompt,
            max_output_tokens=config.final_report_model_max_tokens,
            fixed_text=final_report_user_prompt(
                research_brief=brief.research_brief,
                conversation=conversation,
                findings="",
            ),
        )
        trimmed = truncate_to_token_estimate(findings, findings_budget)
        if trimmed != findings:
            logger.warning("Findings exceed %s context window; trimmed to %d tokens", model, findings_budget)
            findings = trimmed
        telemetry = create_telemetry(
            "finalReportGeneration",
            message_id=options.message_id,
            request_id=options.request_id,
        )
        request = build_chat_request(
            model=model,
            system_prompt=system_prompt,
            user_prompt=final_report_user_prompt(
                research_brief=brief.research_brief,
                conversation=conversation,
                findings=findings,
            ),
            max_tokens=config.final_report_model_max_tokens,
            telemetry=telemetry,
        )

        update_id = new_update_id()
        self._emit(
            options,
            WritingUpdate(id=update_id, tool_call_id=options.tool_call_id, title=REPORT_UPDATE_TITLE),
        )

        chunks: list[str] = []
        usage: Optional[TokenUsage] = None

        async def consume_stream() -> None:
            nonlocal usage
            async for chunk in self.llm.stream_chat(request):
                if chunk.delta:
                    chunks.append(chunk.delta)
                    self._emit(
                        options,
                        WritingUpdate(
                            id=update_id,
                            tool_call_id=options.tool_call_id,
                            title=REPORT_UPDATE_TITLE,
                            message=chunk.delta,
                        ),
                    )
                if chunk.usage is not None:
                    usage = chunk.usage

        start = time.perf_counter()
        try:
            await options.abort_signal.run(consume_stream())
        except ResearchCancelledError:
            record_llm_call(telemetry, model=model, duration_ms=_elapsed_ms(start), status="cancelled")
            raise
        except LLMError:
            record_llm_call(telemetry, model=model, duration_ms=_elapsed_ms(start), status="error")
            finalize_phase(self, options, "synthesis", phase_start_time, status="failed")
            raise

        record_llm_call(
            telemetry,
            model=model,
            duration_ms=_elapsed_ms(start),
            status="success",
            usage=usage,
        )
        options.cost_accumulator.add_llm_cost(model, usage, "deep-research-final-report")

        report = "".join(chunks).strip()
        if not report:
            finalize_phase(self, options, "synthesis", phase_start_time, status="failed")
            raise ResearchError("The final report model returned no content")

        self._emit(
            options,
            WritingUpdate(
                id=update_id,
                tool_call_id=options.tool_call_id,
                title=REPORT_UPDATE_TITLE,
                status="completed",
            ),
        )

        document = await self._persist_report(options, brief.title, report)
        self._write_audit_event(
            options,
            "synthesis.complete",
            data={
                "report_chars": len(report),
                "placeholder_units": sum(1 for unit in units if unit.is_placeholder),
                "document_status": document.status,
            },
        )
        finalize_phase(self, options, "synthesis", phase_start_time)
        return ReportResult(data=document)

    async def _persist_report(
        self,
        options: AgentOptions,
        title: str,
        content: str,
    ) -> DocumentToolSuccess | DocumentToolError:
        """Store the report; a storage failure becomes an error document result."""
        self._check_cancellation(options)
        try:
            document_id = await options.abort_signal.run(
                self.documents.create_text_document(title, content, message_id=options.message_id)
            )
        except DocumentStoreError as exc:
            logger.warning("Failed to persist report for message %s: %s", options.message_id, exc)
            return DocumentToolError(error=f"Failed to create document: {safe_error_message(exc)}")

        return DocumentToolSuccess(
            document_id=document_id,
            result=DOCUMENT_CREATED_MESSAGE,
            date=datetime.now(timezone.utc).isoformat(),
        )


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000
