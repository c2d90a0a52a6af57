"""Tests for research settings, search resolution and runtime config."""

from __future__ import annotations

import dataclasses

import pytest

from chat_research.config.research import (
    DEFAULT_FINAL_REPORT_MODEL,
    DEFAULT_MODEL,
    ResearchSettings,
    RuntimeConfig,
    SearchAPI,
    resolve_runtime_config,
    resolve_search_api,
)

# =========================================================================
# Search API resolution
# =========================================================================


class TestResolveSearchApi:
    """Provider selection by preference and credential availability."""

    def test_no_credentials_resolves_to_none(self):
        assert resolve_search_api(ResearchSettings(), environ={}) is SearchAPI.NONE

    def test_tavily_wins_when_both_configured(self):
        env = {"TAVILY_API_KEY": "tvly-1", "FIRECRAWL_API_KEY": "fc-1"}
        assert resolve_search_api(ResearchSettings(), environ=env) is SearchAPI.TAVILY

    def test_firecrawl_when_only_firecrawl_configured(self):
        assert resolve_search_api(ResearchSettings(), environ={"FIRECRAWL_API_KEY": "fc-1"}) is SearchAPI.FIRECRAWL

    def test_explicit_preference_honoured_with_credential(self):
        env = {"TAVILY_API_KEY": "tvly-1", "FIRECRAWL_API_KEY": "fc-1"}
        settings = ResearchSettings(search_api="firecrawl")
        assert resolve_search_api(settings, environ=env) is SearchAPI.FIRECRAWL

    def test_preference_without_credential_falls_back(self):
        settings = ResearchSettings(search_api="firecrawl")
        assert resolve_search_api(settings, environ={"TAVILY_API_KEY": "tvly-1"}) is SearchAPI.TAVILY

    def test_explicit_none_disables_search(self):
        settings = ResearchSettings(search_api="none")
        assert resolve_search_api(settings, environ={"TAVILY_API_KEY": "tvly-1"}) is SearchAPI.NONE

    def test_blank_credential_counts_as_absent(self):
        assert resolve_search_api(ResearchSettings(), environ={"TAVILY_API_KEY": "   "}) is SearchAPI.NONE

    def test_settings_key_takes_priority_over_env(self):
        settings = ResearchSettings(tavily_api_key="tvly-settings")
        assert settings.get_search_api_key(SearchAPI.TAVILY, {"TAVILY_API_KEY": "tvly-env"}) == "tvly-settings"

    def test_unknown_preference_is_ignored(self):
        settings = ResearchSettings(search_api="bing")
        assert settings.search_api is None


# =========================================================================
# RuntimeConfig
# =========================================================================


class TestRuntimeConfig:
    """Validation and derivation of the per-run config."""

    def test_defaults(self):
        config = resolve_runtime_config(environ={})
        assert config.max_structured_output_retries == 3
        assert config.allow_clarification is True
        assert config.max_concurrent_research_units == 2
        assert config.search_api is SearchAPI.NONE
        assert config.search_enabled is False
        assert config.research_model == DEFAULT_MODEL
        assert config.final_report_model == DEFAULT_FINAL_REPORT_MODEL

    def test_default_model_seeds_unset_stage_models(self):
        settings = ResearchSettings(default_model="openai/gpt-4o-mini", compression_model="google/gemini-2.5-flash")
        config = resolve_runtime_config(settings, environ={})
        assert config.research_model == "openai/gpt-4o-mini"
        assert config.status_update_model == "openai/gpt-4o-mini"
        assert config.compression_model == "google/gemini-2.5-flash"

    def test_frozen(self):
        config = RuntimeConfig()
        with pytest.raises(dataclasses.FrozenInstanceError):
            config.max_concurrent_research_units = 5  # type: ignore[misc]

    @pytest.mark.parametrize(
        "field_name",
        ["max_concurrent_research_units", "max_researcher_iterations", "search_api_max_queries"],
    )
    def test_rejects_non_positive_limits(self, field_name):
        with pytest.raises(ValueError, match=field_name):
            RuntimeConfig(**{field_name: 0})

    def test_rejects_empty_model(self):
        with pytest.raises(ValueError, match="research_model"):
            RuntimeConfig(research_model="  ")

    def test_accepts_search_api_string(self):
        assert RuntimeConfig(search_api="tavily").search_api is SearchAPI.TAVILY

    def test_to_dict_serializes_search_api(self):
        data = RuntimeConfig(search_api=SearchAPI.FIRECRAWL).to_dict()
        assert data["search_api"] == "firecrawl"
        assert data["max_concurrent_research_units"] == 2


# =========================================================================
# ResearchSettings
# =========================================================================


class TestResearchSettings:
    """TOML parsing and limit validation."""

    def test_from_toml_dict_parses_strings(self):
        settings = ResearchSettings.from_toml_dict(
            {
                "allow_clarification": "false",
                "max_concurrent_research_units": "4",
                "search_api_max_queries": 3,
            }
        )
        assert settings.allow_clarification is False
        assert settings.max_concurrent_research_units == 4
        assert settings.search_api_max_queries == 3

    @pytest.mark.parametrize("raw", ["yes please", "maybe", ""])
    def test_invalid_allow_clarification_raises(self, raw):
        with pytest.raises(ValueError, match="allow_clarification"):
            ResearchSettings.from_toml_dict({"allow_clarification": raw})

    def test_concurrency_above_ceiling_is_clamped(self):
        with pytest.warns(UserWarning, match="clamping"):
            settings = ResearchSettings(max_concurrent_research_units=50)
        assert settings.max_concurrent_research_units == 20

    def test_invalid_retry_count_raises(self):
        with pytest.raises(ValueError, match="max_structured_output_retries"):
            ResearchSettings(max_structured_output_retries="many")  # type: ignore[arg-type]

    def test_negative_search_cost_raises(self):
        with pytest.raises(ValueError, match="search_cost_cents"):
            ResearchSettings(search_cost_cents=-1)

    def test_deprecated_field_warns(self):
        with pytest.warns(DeprecationWarning, match="max_search_queries"):
            ResearchSettings.from_toml_dict({"max_search_queries": 5})

    def test_model_pricing_table_is_kept(self):
        settings = ResearchSettings.from_toml_dict(
            {"model_pricing": {"acme/model": {"input": "0.000001", "output": "0.000002"}}}
        )
        assert settings.model_pricing == {"acme/model": {"input": "0.000001", "output": "0.000002"}}
