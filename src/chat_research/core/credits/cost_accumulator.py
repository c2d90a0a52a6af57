"""Per-run cost accounting.

A ``CostAccumulator`` is created per research run and handed to every stage.
Stages append entries as they go (research units append concurrently);
the caller reads the total once the run ends. Entries are append-only.
"""

from __future__ import annotations

import logging
import math
import threading
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union

from chat_research.core.credits.pricing import PricingRegistry, get_default_registry
from chat_research.core.llm_provider import TokenUsage

logger = logging.getLogger(__name__)

#: API name recorded for each issued web search query.
WEB_SEARCH_API_NAME = "webSearch"


@dataclass(frozen=True)
class LLMCostEntry:
    """Token usage of one model call, priced lazily at total time."""

    model_id: str
    usage: TokenUsage
    label: str


@dataclass(frozen=True)
class APICostEntry:
    """Flat charge for an external API call, in cents."""

    api_name: str
    cost_cents: float


CostEntry = Union[LLMCostEntry, APICostEntry]


class CostAccumulator:
    """Thread-safe, append-only collection of run costs.

    Example:
        costs = CostAccumulator()
        costs.add_llm_cost("google/gemini-2.5-flash-lite", usage, "deep-research-brief")
        costs.add_api_cost(WEB_SEARCH_API_NAME, 1)
        total_cents = costs.get_total_cost()
    """

    def __init__(self, pricing: Optional[PricingRegistry] = None):
        self._pricing = pricing or get_default_registry()
        self._entries: List[CostEntry] = []
        self._lock = threading.Lock()

    def add_llm_cost(self, model_id: str, usage: Optional[TokenUsage], label: str) -> None:
        """Record the usage of one model call.

        Empty usage and models without pricing are not recorded, so
        ``has_entries`` only reflects billable activity.
        """
        if usage is None or usage.is_empty():
            return
        pricing = self._pricing.get(model_id)
        if pricing is None or not pricing.is_priced:
            logger.debug("No pricing for model %s; not recording %s usage", model_id, label)
            return
        with self._lock:
            self._entries.append(LLMCostEntry(model_id=model_id, usage=usage, label=label))

    def add_api_cost(self, api_name: str, cost_cents: float) -> None:
        """Record a flat API charge in cents; non-positive costs are ignored."""
        if cost_cents <= 0:
            return
        with self._lock:
            self._entries.append(APICostEntry(api_name=api_name, cost_cents=cost_cents))

    def get_entries(self) -> List[CostEntry]:
        """Snapshot of every entry in insertion order."""
        with self._lock:
            return list(self._entries)

    def has_entries(self) -> bool:
        with self._lock:
            return bool(self._entries)

    def get_total_cost(self) -> int:
        """Total cost in whole cents, rounded up.

        LLM entries are priced unrounded and summed with the API charges
        before a single ceiling.
        """
        total = Decimal(0)
        for entry in self.get_entries():
            if isinstance(entry, APICostEntry):
                total += Decimal(str(entry.cost_cents))
                continue
            pricing = self._pricing.get(entry.model_id)
            if pricing is None or not pricing.is_priced:
                logger.debug("No pricing for model %s; skipping %s usage", entry.model_id, entry.label)
                continue
            total += pricing.cost_cents(entry.usage.input_tokens, entry.usage.output_tokens)
        return math.ceil(total)

    def breakdown(self) -> Dict[str, Any]:
        """Aggregate token usage by label and charges by API name."""
        by_label: Dict[str, Dict[str, int]] = {}
        by_api: Dict[str, float] = {}
        for entry in self.get_entries():
            if isinstance(entry, LLMCostEntry):
                bucket = by_label.setdefault(entry.label, {"calls": 0, "input_tokens": 0, "output_tokens": 0})
                bucket["calls"] += 1
                bucket["input_tokens"] += entry.usage.input_tokens
                bucket["output_tokens"] += entry.usage.output_tokens
            else:
                by_api[entry.api_name] = by_api.get(entry.api_name, 0) + entry.cost_cents
        return {"llm": by_label, "api": by_api, "total_cents": self.get_total_cost()}
