"""
Observability utilities for chat-research.

Provides structured metric emission, model-call telemetry tags and
credential redaction for anything that leaves the pipeline.
"""

from chat_research.core.observability.metrics import (
    Metric,
    MetricsCollector,
    MetricType,
    get_metrics,
)
from chat_research.core.observability.redaction import (
    SENSITIVE_PATTERNS,
    redact_sensitive_data,
    safe_error_message,
)
from chat_research.core.observability.telemetry import (
    TelemetryMetadata,
    create_telemetry,
    record_llm_call,
)

__all__ = [
    "Metric",
    "MetricType",
    "MetricsCollector",
    "get_metrics",
    "SENSITIVE_PATTERNS",
    "redact_sensitive_data",
    "safe_error_message",
    "TelemetryMetadata",
    "create_telemetry",
    "record_llm_call",
]
