"""Parsing and normalization helpers for configuration values.

Provides boolean, positive-integer and search-API parsing used by the
settings loader and ``ResearchSettings.from_toml_dict``.
"""

import logging
from typing import Any, Optional

logger = logging.getLogger(__name__)

_TRUE_VALUES = {"true", "1", "yes", "on"}
_FALSE_VALUES = {"false", "0", "no", "off"}


def _try_parse_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    normalized = str(value).strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    return None


def _parse_bool(value: Any, *, field_name: str) -> bool:
    """Parse a boolean from a bool or a true/false-style string.

    Raises:
        ValueError: If the value is not a recognized boolean
    """
    parsed = _try_parse_bool(value)
    if parsed is None:
        raise ValueError(
            f"Invalid {field_name}: {value!r}. Must be one of: "
            f"{', '.join(sorted(_TRUE_VALUES | _FALSE_VALUES))}."
        )
    return parsed


def _parse_positive_int(value: Any, *, field_name: str) -> int:
    """Parse a strictly positive integer.

    Accepts ints and integer-looking strings (env vars arrive as strings).
    Booleans are rejected even though ``bool`` subclasses ``int``.

    Raises:
        ValueError: If the value is not an integer or is < 1
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid {field_name}: {value!r}. Must be a positive integer.")
    try:
        parsed = int(str(value).strip()) if not isinstance(value, int) else value
    except ValueError:
        raise ValueError(f"Invalid {field_name}: {value!r}. Must be a positive integer.") from None
    if parsed < 1:
        raise ValueError(f"Invalid {field_name}: {value!r}. Must be >= 1.")
    return parsed


def _normalize_search_api(value: Any) -> Optional[str]:
    """Normalize a preferred search API name.

    Returns ``None`` for empty or unknown values (with a warning for the
    latter) so resolution falls through to the provider precedence chain.
    """
    if value is None:
        return None
    normalized = str(value).strip().lower()
    if not normalized or normalized == "auto":
        return None
    if normalized not in {"tavily", "firecrawl", "none"}:
        logger.warning(
            "Unknown search_api '%s'; falling back to automatic selection. Valid options: tavily, firecrawl, none",
            value,
        )
        return None
    return normalized
