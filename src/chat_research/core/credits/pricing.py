"""Per-model token pricing.

Prices are dollars per token, kept as ``Decimal`` so that summing many
small per-call costs does not drift. A built-in table covers the default
stage models; operators add or override entries through the
``[deep_research.model_pricing]`` TOML table.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Dict, Mapping, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModelPricing:
    """Dollar price per input and per output token."""

    input: Decimal
    output: Decimal

    @classmethod
    def from_strings(cls, input_price: str, output_price: str) -> "ModelPricing":
        """Build pricing from decimal strings such as ``"0.00000006"``.

        Raises:
            ValueError: If either price is not a non-negative decimal
        """
        try:
            parsed_in = Decimal(str(input_price))
            parsed_out = Decimal(str(output_price))
        except InvalidOperation as exc:
            raise ValueError(f"Invalid pricing ({input_price!r}, {output_price!r})") from exc
        if not (parsed_in.is_finite() and parsed_out.is_finite()) or parsed_in < 0 or parsed_out < 0:
            raise ValueError(f"Invalid pricing ({input_price!r}, {output_price!r}): must be finite and >= 0")
        return cls(input=parsed_in, output=parsed_out)

    @property
    def is_priced(self) -> bool:
        return self.input > 0 or self.output > 0

    def cost_cents(self, input_tokens: int, output_tokens: int) -> Decimal:
        """Unrounded cost of one call in cents."""
        dollars = Decimal(max(input_tokens, 0)) * self.input + Decimal(max(output_tokens, 0)) * self.output
        return dollars * 100


DEFAULT_MODEL_PRICING: Dict[str, ModelPricing] = {
    "google/gemini-2.5-flash-lite": ModelPricing.from_strings("0.0000001", "0.0000004"),
    "google/gemini-2.5-flash": ModelPricing.from_strings("0.0000003", "0.0000025"),
    "google/gemini-3-flash": ModelPricing.from_strings("0.0000005", "0.000003"),
    "openai/gpt-4o-mini": ModelPricing.from_strings("0.00000015", "0.0000006"),
    "anthropic/claude-sonnet-4": ModelPricing.from_strings("0.000003", "0.000015"),
}


class PricingRegistry:
    """Lookup of model id to pricing.

    Unknown models return None; callers skip their usage rather than guess.
    """

    def __init__(self, pricing: Optional[Mapping[str, ModelPricing]] = None):
        self._pricing: Dict[str, ModelPricing] = dict(DEFAULT_MODEL_PRICING if pricing is None else pricing)
        self._lock = threading.Lock()

    @classmethod
    def from_overrides(cls, overrides: Mapping[str, Mapping[str, str]]) -> "PricingRegistry":
        """Defaults plus ``{model: {"input": ..., "output": ...}}`` overrides.

        Malformed override entries are logged and ignored.
        """
        registry = cls()
        for model_id, entry in overrides.items():
            try:
                registry.register(model_id, ModelPricing.from_strings(entry["input"], entry["output"]))
            except (KeyError, ValueError) as exc:
                logger.warning("Ignoring pricing override for %s: %s", model_id, exc)
        return registry

    def register(self, model_id: str, pricing: ModelPricing) -> None:
        with self._lock:
            self._pricing[model_id] = pricing

    def get(self, model_id: str) -> Optional[ModelPricing]:
        with self._lock:
            return self._pricing.get(model_id)

    def __contains__(self, model_id: object) -> bool:
        with self._lock:
            return model_id in self._pricing


_default_registry: Optional[PricingRegistry] = None


def get_default_registry() -> PricingRegistry:
    """Get the process-wide registry holding the built-in table."""
    global _default_registry
    if _default_registry is None:
        _default_registry = PricingRegistry()
    return _default_registry
