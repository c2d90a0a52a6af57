"""Configuration package for chat-research.

Sub-modules:
    parsing  – Boolean/integer/search-API parsing helpers
    research – ResearchSettings, RuntimeConfig, resolve_runtime_config
    loader   – AppConfig layered TOML + environment loading
"""

from chat_research.config.loader import AppConfig, LLMGatewayConfig
from chat_research.config.research import (
    SEARCH_API_PRECEDENCE,
    ResearchSettings,
    RuntimeConfig,
    SearchAPI,
    resolve_runtime_config,
    resolve_search_api,
)

__all__ = [
    "AppConfig",
    "LLMGatewayConfig",
    "ResearchSettings",
    "RuntimeConfig",
    "SEARCH_API_PRECEDENCE",
    "SearchAPI",
    "resolve_runtime_config",
    "resolve_search_api",
]
