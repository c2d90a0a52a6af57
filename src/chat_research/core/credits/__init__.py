"""Cost accounting for research runs."""

from chat_research.core.credits.cost_accumulator import (
    WEB_SEARCH_API_NAME,
    APICostEntry,
    CostAccumulator,
    CostEntry,
    LLMCostEntry,
)
from chat_research.core.credits.pricing import (
    DEFAULT_MODEL_PRICING,
    ModelPricing,
    PricingRegistry,
    get_default_registry,
)

__all__ = [
    "APICostEntry",
    "CostAccumulator",
    "CostEntry",
    "DEFAULT_MODEL_PRICING",
    "LLMCostEntry",
    "ModelPricing",
    "PricingRegistry",
    "WEB_SEARCH_API_NAME",
    "get_default_registry",
]
