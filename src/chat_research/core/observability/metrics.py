"""Metrics collection for observability.

Provides structured metric emission to the standard logger. Each metric is
logged as ``METRIC: <prefix>.<name>`` with the metric dict attached under
``extra["metric"]`` so log aggregation can index it.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Union

logger = logging.getLogger(__name__)


class MetricType(Enum):
    """Types of metrics that can be emitted."""

    COUNTER = "counter"
    GAUGE = "gauge"
    HISTOGRAM = "histogram"


@dataclass
class Metric:
    """Structured metric data."""

    name: str
    value: Union[int, float]
    metric_type: MetricType
    labels: Dict[str, str] = field(default_factory=dict)
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "name": self.name,
            "value": self.value,
            "type": self.metric_type.value,
            "labels": self.labels,
            "timestamp": self.timestamp,
        }


class MetricsCollector:
    """
    Collects and emits metrics to the standard logger.

    Additional sinks (e.g. an in-process exporter or a test recorder) can be
    attached with :meth:`add_sink`; they receive every emitted Metric.
    """

    def __init__(self, prefix: str = "chat_research"):
        self.prefix = prefix
        self._logger = logging.getLogger(f"{__name__}.metrics")
        self._sinks: List[Callable[[Metric], None]] = []

    def add_sink(self, sink: Callable[[Metric], None]) -> None:
        self._sinks.append(sink)

    def remove_sink(self, sink: Callable[[Metric], None]) -> None:
        if sink in self._sinks:
            self._sinks.remove(sink)

    def emit(self, metric: Metric) -> None:
        """Emit a metric to the logger and any attached sinks."""
        self._logger.info("METRIC: %s.%s", self.prefix, metric.name, extra={"metric": metric.to_dict()})
        for sink in list(self._sinks):
            sink(metric)

    def counter(self, name: str, value: int = 1, labels: Optional[Dict[str, str]] = None) -> None:
        """Emit a counter metric."""
        self.emit(Metric(name=name, value=value, metric_type=MetricType.COUNTER, labels=labels or {}))

    def gauge(
        self,
        name: str,
        value: Union[int, float],
        labels: Optional[Dict[str, str]] = None,
    ) -> None:
        """Emit a gauge metric."""
        self.emit(Metric(name=name, value=value, metric_type=MetricType.GAUGE, labels=labels or {}))

    def histogram(
        self,
        name: str,
        value: Union[int, float],
        labels: Optional[Dict[str, str]] = None,
    ) -> None:
        """Emit a histogram metric for distribution tracking."""
        self.emit(Metric(name=name, value=value, metric_type=MetricType.HISTOGRAM, labels=labels or {}))


# Global metrics collector
_metrics = MetricsCollector()


def get_metrics() -> MetricsCollector:
    """Get the global metrics collector."""
    return _metrics
