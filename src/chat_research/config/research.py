"""Deep research configuration.

Contains ``ResearchSettings`` (the static, operator-editable settings loaded
from TOML and the environment) and ``RuntimeConfig`` (the immutable,
fully-resolved configuration a single pipeline run consumes), plus the
pure ``resolve_runtime_config`` function that turns the former into the
latter given which search credentials are available.
"""

from __future__ import annotations

import logging
import os
import warnings
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, Mapping, Optional

from chat_research.config.parsing import (
    _normalize_search_api,
    _parse_bool,
    _parse_positive_int,
)

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "google/gemini-2.5-flash-lite"
DEFAULT_FINAL_REPORT_MODEL = "google/gemini-3-flash"
DEFAULT_STAGE_MAX_TOKENS = 4000
DEFAULT_FINAL_REPORT_MAX_TOKENS = 6000


class SearchAPI(str, Enum):
    """Search capability available to research units.

    NONE means the web-search tool is disabled: it is never described to
    the model and never invoked.
    """

    FIRECRAWL = "firecrawl"
    TAVILY = "tavily"
    NONE = "none"


#: Resolution order when several providers are configured (first wins).
SEARCH_API_PRECEDENCE: tuple[SearchAPI, ...] = (SearchAPI.TAVILY, SearchAPI.FIRECRAWL)

#: Environment variables holding each provider's credential.
SEARCH_API_KEY_ENV_VARS: Dict[SearchAPI, str] = {
    SearchAPI.TAVILY: "TAVILY_API_KEY",
    SearchAPI.FIRECRAWL: "FIRECRAWL_API_KEY",
}

_MODEL_FIELDS: tuple[str, ...] = (
    "summarization_model",
    "research_model",
    "compression_model",
    "final_report_model",
    "status_update_model",
)

_POSITIVE_INT_FIELDS: tuple[str, ...] = (
    "max_structured_output_retries",
    "max_concurrent_research_units",
    "max_researcher_iterations",
    "search_api_max_queries",
    "summarization_model_max_tokens",
    "research_model_max_tokens",
    "compression_model_max_tokens",
    "final_report_model_max_tokens",
    "status_update_model_max_tokens",
)


@dataclass(frozen=True)
class RuntimeConfig:
    """Immutable configuration for one deep research run.

    Constructed once per run by :func:`resolve_runtime_config` and passed by
    reference to every stage.

    Attributes:
        max_structured_output_retries: Extra attempts allowed after a
            structured-output parse failure (so at most ``1 + n`` calls)
        allow_clarification: When False the clarification gate is skipped
            without calling the model
        max_concurrent_research_units: Admission limit on research units
            with in-flight external calls
        search_api: Search capability available to research units
        search_api_max_queries: Maximum queries a unit may issue per round
        max_researcher_iterations: Maximum tool-calling iterations per unit
        summarization_model / research_model / compression_model /
        final_report_model / status_update_model: Per-stage model ids
        *_max_tokens: Per-stage output token budgets
        mcp_prompt: Extra instructions appended to the researcher prompt
    """

    max_structured_output_retries: int = 3
    allow_clarification: bool = True
    max_concurrent_research_units: int = 2
    search_api: SearchAPI = SearchAPI.NONE
    search_api_max_queries: int = 2
    max_researcher_iterations: int = 1
    summarization_model: str = DEFAULT_MODEL
    summarization_model_max_tokens: int = DEFAULT_STAGE_MAX_TOKENS
    research_model: str = DEFAULT_MODEL
    research_model_max_tokens: int = DEFAULT_STAGE_MAX_TOKENS
    compression_model: str = DEFAULT_MODEL
    compression_model_max_tokens: int = DEFAULT_STAGE_MAX_TOKENS
    final_report_model: str = DEFAULT_FINAL_REPORT_MODEL
    final_report_model_max_tokens: int = DEFAULT_FINAL_REPORT_MAX_TOKENS
    status_update_model: str = DEFAULT_MODEL
    status_update_model_max_tokens: int = DEFAULT_STAGE_MAX_TOKENS
    mcp_prompt: str = ""

    def __post_init__(self) -> None:
        """Validate model identifiers and numeric limits."""
        for name in _MODEL_FIELDS:
            value = getattr(self, name)
            if not isinstance(value, str) or not value.strip():
                raise ValueError(f"Invalid {name}: {value!r}. Model identifier must be non-empty.")
        for name in _POSITIVE_INT_FIELDS:
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise ValueError(f"Invalid {name}: {value!r}. Must be a positive integer.")
        if not isinstance(self.search_api, SearchAPI):
            # Accept plain strings; frozen dataclass needs object.__setattr__
            object.__setattr__(self, "search_api", SearchAPI(self.search_api))

    @property
    def search_enabled(self) -> bool:
        return self.search_api is not SearchAPI.NONE

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["search_api"] = self.search_api.value
        return data


@dataclass
class ResearchSettings:
    """Static deep research settings (the ``[deep_research]`` TOML table).

    Every ``RuntimeConfig`` field can be overridden here. ``default_model``
    seeds every stage model that is not set explicitly; the final report
    has its own default.

    Attributes:
        search_api: Preferred search provider ("tavily", "firecrawl", "none")
            or None for automatic selection by credential availability
        tavily_api_key: Tavily key (falls back to TAVILY_API_KEY)
        firecrawl_api_key: Firecrawl key (falls back to FIRECRAWL_API_KEY)
        search_max_results: Results requested per query
        search_cost_cents: Flat cost recorded per issued search query
        model_pricing: Per-model pricing overrides, ``{model: {input, output}}``
            in dollars per token
    """

    allow_clarification: bool = True
    max_structured_output_retries: int = 3
    max_concurrent_research_units: int = 2
    max_researcher_iterations: int = 1
    search_api_max_queries: int = 2
    search_api: Optional[str] = None
    default_model: str = DEFAULT_MODEL
    summarization_model: Optional[str] = None
    research_model: Optional[str] = None
    compression_model: Optional[str] = None
    final_report_model: str = DEFAULT_FINAL_REPORT_MODEL
    status_update_model: Optional[str] = None
    summarization_model_max_tokens: int = DEFAULT_STAGE_MAX_TOKENS
    research_model_max_tokens: int = DEFAULT_STAGE_MAX_TOKENS
    compression_model_max_tokens: int = DEFAULT_STAGE_MAX_TOKENS
    final_report_model_max_tokens: int = DEFAULT_FINAL_REPORT_MAX_TOKENS
    status_update_model_max_tokens: int = DEFAULT_STAGE_MAX_TOKENS
    mcp_prompt: str = ""
    tavily_api_key: Optional[str] = None
    firecrawl_api_key: Optional[str] = None
    search_max_results: int = 5
    search_cost_cents: int = 1
    model_pricing: Dict[str, Dict[str, str]] = field(default_factory=dict)

    # Hard ceilings; values above are clamped with a warning.
    _MAX_CONCURRENT_RESEARCH_UNITS: ClassVar[int] = 20
    _MAX_RESEARCHER_ITERATIONS: ClassVar[int] = 20
    _MAX_SEARCH_QUERIES: ClassVar[int] = 10

    # Removed config keys and a hint about their replacement.
    _DEPRECATED_FIELDS: ClassVar[Dict[str, str]] = {
        "max_search_queries": "Use 'search_api_max_queries' instead.",
        "mcp_config": "MCP tool servers are configured by the host application.",
    }

    def __post_init__(self) -> None:
        self._validate_limits()
        self.search_api = _normalize_search_api(self.search_api)

    def _validate_limits(self) -> None:
        """Validate numeric limits, clamping the concurrency/iteration/query caps."""
        for name in (
            "max_structured_output_retries",
            "max_concurrent_research_units",
            "max_researcher_iterations",
            "search_api_max_queries",
            "search_max_results",
        ):
            setattr(self, name, _parse_positive_int(getattr(self, name), field_name=name))

        for name, ceiling in (
            ("max_concurrent_research_units", self._MAX_CONCURRENT_RESEARCH_UNITS),
            ("max_researcher_iterations", self._MAX_RESEARCHER_ITERATIONS),
            ("search_api_max_queries", self._MAX_SEARCH_QUERIES),
        ):
            value = getattr(self, name)
            if value > ceiling:
                warnings.warn(
                    f"{name}={value} exceeds maximum ({ceiling}); clamping to {ceiling}.",
                    stacklevel=3,
                )
                setattr(self, name, ceiling)

        if self.search_cost_cents < 0:
            raise ValueError(f"Invalid search_cost_cents: {self.search_cost_cents!r}. Must be >= 0.")

    @classmethod
    def from_toml_dict(cls, data: Dict[str, Any]) -> "ResearchSettings":
        """Create settings from a TOML dict (typically the [deep_research] table).

        Args:
            data: Dict from TOML parsing

        Returns:
            ResearchSettings instance
        """
        for field_name, hint in cls._DEPRECATED_FIELDS.items():
            if field_name in data:
                warnings.warn(
                    f"Config field '{field_name}' has been removed and will be ignored. {hint}",
                    DeprecationWarning,
                    stacklevel=2,
                )

        pricing = data.get("model_pricing", {})
        if not isinstance(pricing, dict):
            logger.warning("Ignoring model_pricing: expected table, got %s", type(pricing).__name__)
            pricing = {}

        defaults = cls()
        return cls(
            allow_clarification=_parse_bool(
                data.get("allow_clarification", True), field_name="allow_clarification"
            ),
            max_structured_output_retries=data.get(
                "max_structured_output_retries", defaults.max_structured_output_retries
            ),
            max_concurrent_research_units=data.get(
                "max_concurrent_research_units", defaults.max_concurrent_research_units
            ),
            max_researcher_iterations=data.get("max_researcher_iterations", defaults.max_researcher_iterations),
            search_api_max_queries=data.get("search_api_max_queries", defaults.search_api_max_queries),
            search_api=data.get("search_api"),
            default_model=str(data.get("default_model", DEFAULT_MODEL)),
            summarization_model=data.get("summarization_model"),
            research_model=data.get("research_model"),
            compression_model=data.get("compression_model"),
            final_report_model=str(data.get("final_report_model", DEFAULT_FINAL_REPORT_MODEL)),
            status_update_model=data.get("status_update_model"),
            summarization_model_max_tokens=int(
                data.get("summarization_model_max_tokens", DEFAULT_STAGE_MAX_TOKENS)
            ),
            research_model_max_tokens=int(data.get("research_model_max_tokens", DEFAULT_STAGE_MAX_TOKENS)),
            compression_model_max_tokens=int(data.get("compression_model_max_tokens", DEFAULT_STAGE_MAX_TOKENS)),
            final_report_model_max_tokens=int(
                data.get("final_report_model_max_tokens", DEFAULT_FINAL_REPORT_MAX_TOKENS)
            ),
            status_update_model_max_tokens=int(
                data.get("status_update_model_max_tokens", DEFAULT_STAGE_MAX_TOKENS)
            ),
            mcp_prompt=str(data.get("mcp_prompt", "")),
            tavily_api_key=data.get("tavily_api_key"),
            firecrawl_api_key=data.get("firecrawl_api_key"),
            search_max_results=data.get("search_max_results", defaults.search_max_results),
            search_cost_cents=int(data.get("search_cost_cents", defaults.search_cost_cents)),
            model_pricing={str(k): dict(v) for k, v in pricing.items() if isinstance(v, dict)},
        )

    def get_search_api_key(
        self,
        search_api: SearchAPI,
        environ: Optional[Mapping[str, str]] = None,
    ) -> Optional[str]:
        """Get the credential for a search provider.

        Checks the settings value first, then the provider's environment
        variable. Blank values count as absent.
        """
        if search_api is SearchAPI.NONE:
            return None
        env = os.environ if environ is None else environ
        configured = self.tavily_api_key if search_api is SearchAPI.TAVILY else self.firecrawl_api_key
        key = configured or env.get(SEARCH_API_KEY_ENV_VARS[search_api])
        if key is None or not str(key).strip():
            return None
        return str(key).strip()


def resolve_search_api(
    settings: ResearchSettings,
    environ: Optional[Mapping[str, str]] = None,
) -> SearchAPI:
    """Pick the search capability for a run.

    An explicit preference is honoured only when its credential is present;
    otherwise the precedence chain (Tavily, then Firecrawl) applies, ending
    at ``SearchAPI.NONE``. Never selects a provider without a credential.
    """
    preferred = settings.search_api
    if preferred == SearchAPI.NONE.value:
        return SearchAPI.NONE
    if preferred is not None:
        preferred_api = SearchAPI(preferred)
        if settings.get_search_api_key(preferred_api, environ):
            return preferred_api
        logger.warning(
            "Preferred search_api '%s' has no credential configured; falling back to automatic selection",
            preferred,
        )

    for candidate in SEARCH_API_PRECEDENCE:
        if settings.get_search_api_key(candidate, environ):
            return candidate
    return SearchAPI.NONE


def resolve_runtime_config(
    settings: Optional[ResearchSettings] = None,
    *,
    environ: Optional[Mapping[str, str]] = None,
) -> RuntimeConfig:
    """Resolve static settings plus credential availability into a RuntimeConfig.

    Pure apart from reading ``environ`` (``os.environ`` when omitted). The
    only degraded outcome is ``search_api = none``, which callers treat as
    "web search disabled" rather than an error.

    Args:
        settings: Static settings (defaults when omitted)
        environ: Environment mapping used for credential lookup

    Returns:
        A validated, immutable RuntimeConfig
    """
    settings = settings or ResearchSettings()
    default_model = settings.default_model

    return RuntimeConfig(
        max_structured_output_retries=settings.max_structured_output_retries,
        allow_clarification=settings.allow_clarification,
        max_concurrent_research_units=settings.max_concurrent_research_units,
        search_api=resolve_search_api(settings, environ),
        search_api_max_queries=settings.search_api_max_queries,
        max_researcher_iterations=settings.max_researcher_iterations,
        summarization_model=settings.summarization_model or default_model,
        summarization_model_max_tokens=settings.summarization_model_max_tokens,
        research_model=settings.research_model or default_model,
        research_model_max_tokens=settings.research_model_max_tokens,
        compression_model=settings.compression_model or default_model,
        compression_model_max_tokens=settings.compression_model_max_tokens,
        final_report_model=settings.final_report_model,
        final_report_model_max_tokens=settings.final_report_model_max_tokens,
        status_update_model=settings.status_update_model or default_model,
        status_update_model_max_tokens=settings.status_update_model_max_tokens,
        mcp_prompt=settings.mcp_prompt,
    )
