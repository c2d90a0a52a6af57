"""Tests for per-run cost accounting and model pricing."""

from __future__ import annotations

import threading
from decimal import Decimal

import pytest

from chat_research.core.credits import (
    WEB_SEARCH_API_NAME,
    APICostEntry,
    CostAccumulator,
    LLMCostEntry,
    ModelPricing,
    PricingRegistry,
)
from chat_research.core.llm_provider import TokenUsage

# =========================================================================
# ModelPricing / PricingRegistry
# =========================================================================


class TestModelPricing:
    """Decimal per-token prices."""

    def test_cost_cents_is_exact(self):
        pricing = ModelPricing.from_strings("0.0000005", "0.000003")
        assert pricing.cost_cents(10_000, 10_000) == Decimal("3.5")

    @pytest.mark.parametrize("bad", ["abc", "-0.1", "NaN"])
    def test_rejects_invalid_prices(self, bad):
        with pytest.raises(ValueError):
            ModelPricing.from_strings(bad, "0.000001")

    def test_all_zero_prices_are_unpriced(self):
        assert ModelPricing.from_strings("0", "0").is_priced is False

    def test_free_input_with_paid_output_is_priced(self):
        assert ModelPricing.from_strings("0", "0.000002").is_priced is True


class TestPricingRegistry:
    """Default table plus overrides."""

    def test_defaults_cover_stage_models(self):
        registry = PricingRegistry()
        assert "google/gemini-2.5-flash-lite" in registry
        assert "google/gemini-3-flash" in registry

    def test_override_replaces_default(self):
        registry = PricingRegistry.from_overrides(
            {"google/gemini-3-flash": {"input": "0.000001", "output": "0.000002"}}
        )
        assert registry.get("google/gemini-3-flash") == ModelPricing(Decimal("0.000001"), Decimal("0.000002"))

    def test_malformed_override_is_ignored(self):
        registry = PricingRegistry.from_overrides({"acme/model": {"input": "0.1"}})
        assert registry.get("acme/model") is None

    def test_unknown_model_returns_none(self):
        assert PricingRegistry().get("acme/unknown") is None


# =========================================================================
# CostAccumulator
# =========================================================================


class TestCostAccumulator:
    """Append-only ledger and ceiling-rounded totals."""

    def test_empty_total_is_zero(self):
        costs = CostAccumulator()
        assert costs.get_total_cost() == 0
        assert costs.has_entries() is False

    def test_llm_and_search_costs_round_up_once(self):
        costs = CostAccumulator()
        costs.add_llm_cost("google/gemini-3-flash", TokenUsage(input_tokens=10_000, output_tokens=10_000), "report")
        costs.add_api_cost(WEB_SEARCH_API_NAME, 1)
        # 3.5 cents of tokens + 1 cent of search
        assert costs.get_total_cost() == 5

    def test_small_fractions_sum_before_ceiling(self):
        costs = CostAccumulator()
        usage = TokenUsage(input_tokens=1000, output_tokens=500)
        costs.add_llm_cost("anthropic/claude-sonnet-4", usage, "deep-research-researcher")
        for _ in range(9):
            costs.add_api_cost(WEB_SEARCH_API_NAME, 1)
        # 1.05 cents of tokens + 9 cents of search
        assert costs.get_total_cost() == 11

    def test_many_tiny_calls_do_not_drift(self):
        costs = CostAccumulator()
        usage = TokenUsage(input_tokens=1000, output_tokens=500)
        for _ in range(100):
            costs.add_llm_cost("google/gemini-2.5-flash-lite", usage, "deep-research-compress")
        # 100 * 0.03 cents = exactly 3 cents
        assert costs.get_total_cost() == 3

    def test_zero_usage_is_not_recorded(self):
        costs = CostAccumulator()
        costs.add_llm_cost("google/gemini-3-flash", TokenUsage(), "report")
        costs.add_llm_cost("google/gemini-3-flash", None, "report")
        assert costs.has_entries() is False

    def test_unpriced_model_is_not_recorded(self):
        costs = CostAccumulator()
        costs.add_llm_cost("acme/unknown", TokenUsage(input_tokens=10, output_tokens=10), "report")
        assert costs.get_entries() == []

    def test_free_input_model_charges_output(self):
        registry = PricingRegistry({"vendor/free-input": ModelPricing.from_strings("0", "0.000002")})
        costs = CostAccumulator(registry)
        costs.add_llm_cost(
            "vendor/free-input", TokenUsage(input_tokens=1000, output_tokens=1_000_000), "deep-research-researcher"
        )
        # 1M output tokens at $0.000002 = $2 = 200 cents; input is free
        assert costs.get_total_cost() == 200

    def test_non_positive_api_cost_is_not_recorded(self):
        costs = CostAccumulator()
        costs.add_api_cost(WEB_SEARCH_API_NAME, 0)
        costs.add_api_cost(WEB_SEARCH_API_NAME, -2)
        assert costs.has_entries() is False

    def test_entries_keep_insertion_order(self):
        costs = CostAccumulator()
        usage = TokenUsage(input_tokens=5, output_tokens=5)
        costs.add_llm_cost("google/gemini-3-flash", usage, "deep-research-brief")
        costs.add_api_cost(WEB_SEARCH_API_NAME, 1)
        entries = costs.get_entries()
        assert isinstance(entries[0], LLMCostEntry)
        assert entries[0].label == "deep-research-brief"
        assert entries[1] == APICostEntry(api_name=WEB_SEARCH_API_NAME, cost_cents=1)

    def test_get_entries_returns_copy(self):
        costs = CostAccumulator()
        costs.add_api_cost(WEB_SEARCH_API_NAME, 1)
        costs.get_entries().clear()
        assert len(costs.get_entries()) == 1

    def test_custom_registry(self):
        registry = PricingRegistry({"acme/model": ModelPricing.from_strings("0.01", "0.01")})
        costs = CostAccumulator(registry)
        costs.add_llm_cost("acme/model", TokenUsage(input_tokens=1, output_tokens=1), "x")
        assert costs.get_total_cost() == 2

    def test_breakdown(self):
        costs = CostAccumulator()
        usage = TokenUsage(input_tokens=100, output_tokens=50)
        costs.add_llm_cost("google/gemini-2.5-flash-lite", usage, "deep-research-researcher")
        costs.add_llm_cost("google/gemini-2.5-flash-lite", usage, "deep-research-researcher")
        costs.add_api_cost(WEB_SEARCH_API_NAME, 1)
        costs.add_api_cost(WEB_SEARCH_API_NAME, 1)
        breakdown = costs.breakdown()
        assert breakdown["llm"]["deep-research-researcher"] == {"calls": 2, "input_tokens": 200, "output_tokens": 100}
        assert breakdown["api"] == {WEB_SEARCH_API_NAME: 2}
        assert breakdown["total_cents"] == costs.get_total_cost()

    def test_concurrent_appends(self):
        costs = CostAccumulator()

        def add_many():
            for _ in range(200):
                costs.add_api_cost(WEB_SEARCH_API_NAME, 1)

        threads = [threading.Thread(target=add_many) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        assert len(costs.get_entries()) == 800
        assert costs.get_total_cost() == 800
