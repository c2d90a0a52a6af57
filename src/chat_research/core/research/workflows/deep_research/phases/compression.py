"""Compression mixin for DeepResearchWorkflow.

Condenses a research unit's raw transcript into the findings block the
report synthesizer reads. A free-text call: no schema, no structured
retry.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from chat_research.core.errors.llm import LLMError
from chat_research.core.observability import safe_error_message
from chat_research.core.research.models.deep_research import ResearchUnit, UnitStatus
from chat_research.core.research.workflows.deep_research._token_budget import fit_transcript
from chat_research.core.research.workflows.deep_research.context import AgentOptions
from chat_research.core.research.workflows.deep_research.phases._lifecycle import execute_llm_call
from chat_research.core.research.workflows.deep_research.prompts import (
    compression_system_prompt,
    compression_user_prompt,
    get_today_str,
)

if TYPE_CHECKING:
    from chat_research.core.llm_provider import LLMProvider

logger = logging.getLogger(__name__)


class CompressionMixin:
    """Compression methods. Mixed into DeepResearchWorkflow."""

    llm: LLMProvider

    if TYPE_CHECKING:

        def _write_audit_event(
            self, options: AgentOptions, event_name: str, *, data: dict[str, Any] | None = ..., level: str = ...
        ) -> None: ...

    async def _execute_compression_async(self, options: AgentOptions, unit: ResearchUnit) -> None:
        """Compress ``unit.transcript`` into ``unit.compressed_findings``.

        Sets the unit ``completed`` on success. A failed call or an empty
        result marks the unit ``failed``; it then contributes a placeholder
        block like any other failed unit.

        Raises:
            ResearchCancelledError: If the run was aborted
        """
        config = options.config
        system_prompt = compression_system_prompt(get_today_str())
        transcript = fit_transcript(
            config.compression_model,
            unit.transcript,
            system_prompt=system_prompt,
            max_output_tokens=config.compression_model_max_tokens,
            fixed_text=compression_user_prompt(unit.question, []),
        )
        try:
            result = await execute_llm_call(
                self,
                options,
                phase_name="compression",
                function_id="compressResearch",
                cost_label="deep-research-compress",
                model=config.compression_model,
                max_tokens=config.compression_model_max_tokens,
                system_prompt=system_prompt,
                user_prompt=compression_user_prompt(unit.question, transcript),
            )
        except LLMError as exc:
            logger.warning("Compression failed for unit %d: %s", unit.index, exc)
            unit.status = UnitStatus.FAILED
            unit.error = f"compression failed: {safe_error_message(exc)}"
            return

        findings = result.response.content.strip()
        if not findings:
            logger.warning("Compression returned no findings for unit %d", unit.index)
            unit.status = UnitStatus.FAILED
            unit.error = "compression produced no findings"
            return

        unit.compressed_findings = findings
        unit.status = UnitStatus.COMPLETED
