"""Layered configuration loading.

``AppConfig.from_env`` merges, lowest to highest priority:

1. Default values
2. XDG config (``~/.config/chat-research/config.toml``)
3. Project config (``./chat-research.toml`` or ``./.chat-research.toml``)
4. Explicit file (``config_file`` argument or ``CHAT_RESEARCH_CONFIG_FILE``),
   which replaces 2 and 3
5. Environment variables (``CHAT_RESEARCH_*``)
"""

from __future__ import annotations

import logging
import os
import tomllib
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from chat_research.config.research import ResearchSettings

logger = logging.getLogger(__name__)

ENV_PREFIX = "CHAT_RESEARCH_"
CONFIG_FILE_ENV_VAR = "CHAT_RESEARCH_CONFIG_FILE"

#: ResearchSettings fields that cannot be set from a single env var.
_NON_ENV_FIELDS = {"model_pricing"}


@dataclass
class LLMGatewayConfig:
    """Connection settings for the OpenAI-compatible model gateway.

    Attributes:
        base_url: Gateway root, e.g. ``https://openrouter.ai/api/v1``
        api_key: Bearer token (falls back to CHAT_RESEARCH_LLM_API_KEY)
        timeout: Per-request timeout in seconds, enforced by the gateway client
    """

    base_url: str = "https://openrouter.ai/api/v1"
    api_key: Optional[str] = None
    timeout: float = 120.0

    @classmethod
    def from_toml_dict(cls, data: Dict[str, Any]) -> "LLMGatewayConfig":
        return cls(
            base_url=str(data.get("base_url", cls.base_url)),
            api_key=data.get("api_key"),
            timeout=float(data.get("timeout", cls.timeout)),
        )


@dataclass
class AppConfig:
    """Top-level configuration for the CLI and embedding applications."""

    research: ResearchSettings = field(default_factory=ResearchSettings)
    llm: LLMGatewayConfig = field(default_factory=LLMGatewayConfig)
    log_level: str = "WARNING"

    @classmethod
    def from_env(
        cls,
        config_file: Optional[str] = None,
        *,
        environ: Optional[Mapping[str, str]] = None,
    ) -> "AppConfig":
        """Create configuration from TOML files and environment variables.

        Args:
            config_file: Explicit TOML path; disables the layered lookup
            environ: Environment mapping (``os.environ`` when omitted)

        Returns:
            AppConfig with validated research settings
        """
        env = os.environ if environ is None else environ
        data: Dict[str, Any] = {}

        toml_path = config_file or env.get(CONFIG_FILE_ENV_VAR)
        if toml_path:
            _merge_toml(data, _load_toml(Path(toml_path)))
        else:
            xdg_config_home = env.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
            xdg_config = Path(xdg_config_home) / "chat-research" / "config.toml"
            if xdg_config.exists():
                _merge_toml(data, _load_toml(xdg_config))
                logger.debug("Loaded XDG config from %s", xdg_config)

            for candidate in (Path("chat-research.toml"), Path(".chat-research.toml")):
                if candidate.exists():
                    _merge_toml(data, _load_toml(candidate))
                    logger.debug("Loaded project config from %s", candidate)
                    break

        research_data = dict(data.get("deep_research", {}))
        research_data.update(_research_env_overrides(env))

        llm_data = dict(data.get("llm", {}))
        if base_url := env.get(f"{ENV_PREFIX}LLM_BASE_URL"):
            llm_data["base_url"] = base_url
        if api_key := env.get(f"{ENV_PREFIX}LLM_API_KEY"):
            llm_data["api_key"] = api_key
        if timeout := env.get(f"{ENV_PREFIX}LLM_TIMEOUT"):
            llm_data["timeout"] = timeout

        log_level = str(data.get("logging", {}).get("level", "WARNING"))
        if level := env.get(f"{ENV_PREFIX}LOG_LEVEL"):
            log_level = level

        return cls(
            research=ResearchSettings.from_toml_dict(research_data),
            llm=LLMGatewayConfig.from_toml_dict(llm_data),
            log_level=log_level.upper(),
        )


def _load_toml(path: Path) -> Dict[str, Any]:
    """Read a TOML file, returning an empty dict when it is missing."""
    if not path.exists():
        logger.warning("Config file not found: %s", path)
        return {}
    with open(path, "rb") as f:
        return tomllib.load(f)


def _merge_toml(target: Dict[str, Any], source: Dict[str, Any]) -> None:
    """Merge ``source`` into ``target`` one table deep."""
    for key, value in source.items():
        if isinstance(value, dict) and isinstance(target.get(key), dict):
            target[key].update(value)
        elif isinstance(value, dict):
            target[key] = dict(value)
        else:
            target[key] = value


def _research_env_overrides(env: Mapping[str, str]) -> Dict[str, Any]:
    """Collect ``CHAT_RESEARCH_<FIELD>`` overrides for ResearchSettings.

    Search credentials use their conventional names (``TAVILY_API_KEY``,
    ``FIRECRAWL_API_KEY``) and are read at resolution time, not here.
    """
    overrides: Dict[str, Any] = {}
    for settings_field in fields(ResearchSettings):
        if settings_field.name in _NON_ENV_FIELDS:
            continue
        raw = env.get(f"{ENV_PREFIX}{settings_field.name.upper()}")
        if raw is not None and raw.strip():
            overrides[settings_field.name] = raw.strip()
    return overrides
