"""Model-call telemetry tags.

Every model call in a run is tagged with a function identifier (which
pipeline step issued it) plus the run's message and request ids, so traces
from concurrent units can be correlated. Telemetry is observational only;
nothing here can fail a call.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, Optional

from chat_research.core.observability.metrics import get_metrics

if TYPE_CHECKING:
    from chat_research.core.llm_provider import TokenUsage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TelemetryMetadata:
    """Trace tags attached to one model call.

    Attributes:
        function_id: Pipeline step, e.g. "clarifyWithUser", "researcher"
        message_id: Chat message the run belongs to
        request_id: Request id, used as the trace id
    """

    function_id: str
    message_id: str
    request_id: str
    is_enabled: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "function_id": self.function_id,
            "message_id": self.message_id,
            "trace_id": self.request_id,
        }


def create_telemetry(function_id: str, *, message_id: str, request_id: str) -> TelemetryMetadata:
    """Build telemetry tags for a model call issued by ``function_id``."""
    return TelemetryMetadata(function_id=function_id, message_id=message_id, request_id=request_id)


def record_llm_call(
    telemetry: TelemetryMetadata,
    *,
    model: str,
    duration_ms: float,
    status: str,
    usage: Optional["TokenUsage"] = None,
) -> None:
    """Log and meter a finished model call.

    Args:
        telemetry: Tags for the call
        model: Model identifier used
        duration_ms: Wall time of the call in milliseconds
        status: "success", "invalid_output", "error" or "cancelled"
        usage: Token usage reported by the provider, if any
    """
    if not telemetry.is_enabled:
        return
    logger.debug(
        "llm call function_id=%s model=%s status=%s duration_ms=%.1f input_tokens=%s output_tokens=%s "
        "message_id=%s request_id=%s",
        telemetry.function_id,
        model,
        status,
        duration_ms,
        usage.input_tokens if usage else None,
        usage.output_tokens if usage else None,
        telemetry.message_id,
        telemetry.request_id,
    )
    get_metrics().histogram(
        "llm_call_duration_seconds",
        duration_ms / 1000.0,
        labels={"function_id": telemetry.function_id, "model": model, "status": status},
    )
