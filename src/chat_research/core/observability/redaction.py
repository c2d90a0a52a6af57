"""Credential redaction for error text that leaves the pipeline.

Error strings from model gateways and search providers can echo request
details. Anything surfaced in a ``problem`` update, a tool transcript or a
log line goes through :func:`redact_sensitive_data` first.
"""

import re
from typing import Any, Final, List, Optional, Tuple

SENSITIVE_PATTERNS: Final[List[Tuple[str, str]]] = [
    (r"(?i)(api[_-]?key|apikey)\s*[:=]\s*['\"]?([a-zA-Z0-9_\-]{16,})['\"]?", "API_KEY"),
    (r"(?i)bearer\s+([a-zA-Z0-9_\-\.]+)", "BEARER_TOKEN"),
    (r"\btvly-[a-zA-Z0-9_\-]{16,}", "TAVILY_KEY"),
    (r"\bfc-[a-zA-Z0-9]{16,}", "FIRECRAWL_KEY"),
    (r"\bsk-(?:or-|proj-)?[a-zA-Z0-9_\-]{20,}", "LLM_KEY"),
]
"""``(regex, label)`` pairs for credentials known to appear in provider errors."""

_SENSITIVE_KEYS: Final[frozenset[str]] = frozenset(
    {"api_key", "apikey", "authorization", "token", "access_token", "secret"}
)


def redact_sensitive_data(
    data: Any,
    *,
    patterns: Optional[List[Tuple[str, str]]] = None,
    redaction_format: str = "[REDACTED:{label}]",
    max_depth: int = 10,
) -> Any:
    """Recursively redact credentials from strings, dicts and lists.

    Dict values under well-known credential keys are replaced wholesale;
    strings are scanned against ``patterns`` (default ``SENSITIVE_PATTERNS``).
    Other values are returned unchanged.

    Example:
        >>> redact_sensitive_data("401 for api_key=tvly-abcdefghijklmnopqrst")
        '401 for [REDACTED:API_KEY]'
    """
    if max_depth <= 0:
        return "[MAX_DEPTH_EXCEEDED]"

    check_patterns = patterns if patterns is not None else SENSITIVE_PATTERNS

    if isinstance(data, str):
        result = data
        for pattern, label in check_patterns:
            result = re.sub(pattern, redaction_format.format(label=label), result)
        return result

    if isinstance(data, dict):
        redacted = {}
        for key, value in data.items():
            key_lower = str(key).lower().replace("-", "_")
            if key_lower in _SENSITIVE_KEYS:
                redacted[key] = redaction_format.format(label=key_lower.upper())
            else:
                redacted[key] = redact_sensitive_data(
                    value,
                    patterns=check_patterns,
                    redaction_format=redaction_format,
                    max_depth=max_depth - 1,
                )
        return redacted

    if isinstance(data, (list, tuple)):
        items = [
            redact_sensitive_data(
                item,
                patterns=check_patterns,
                redaction_format=redaction_format,
                max_depth=max_depth - 1,
            )
            for item in data
        ]
        return type(data)(items) if isinstance(data, tuple) else items

    return data


def safe_error_message(exc: BaseException, limit: int = 500) -> str:
    """Render an exception as a short, credential-free message."""
    text = str(exc) or type(exc).__name__
    return redact_sensitive_data(text)[:limit]
