"""Structured-output extraction and validation.

Models asked for JSON often wrap it in markdown fences or surround it with
prose. :func:`extract_json` recovers the outermost object;
:func:`validate_structured_output` validates it against a pydantic schema
and raises :class:`InvalidStructuredOutputError` on any mismatch, which is
the signal the retry combinator acts on.
"""

from __future__ import annotations

import json
import re
from typing import TYPE_CHECKING, Any, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from chat_research.core.errors.llm import InvalidStructuredOutputError

if TYPE_CHECKING:
    from chat_research.core.llm_provider import ChatResponse

T = TypeVar("T", bound=BaseModel)

_CODE_BLOCK_PATTERN = re.compile(r"```(?:json)?\s*([\s\S]*?)```")


def extract_json(content: str) -> Optional[str]:
    """Extract a JSON object from content that may contain other text.

    Handles cases where JSON is wrapped in markdown code blocks
    or mixed with explanatory text.

    Args:
        content: Raw content that may contain JSON

    Returns:
        Extracted JSON string or None if not found
    """
    for match in _CODE_BLOCK_PATTERN.findall(content):
        match = match.strip()
        if match.startswith("{"):
            return match

    brace_start = content.find("{")
    if brace_start == -1:
        return None

    # Find the matching closing brace, skipping braces inside JSON strings.
    depth = 0
    in_string = False
    escape = False
    for i, char in enumerate(content[brace_start:], brace_start):
        if escape:
            escape = False
            continue
        if char == "\\":
            if in_string:
                escape = True
            continue
        if char == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return content[brace_start : i + 1]

    return None


def validate_structured_output(
    content: str,
    schema: Type[T],
    *,
    response: Optional["ChatResponse"] = None,
    provider: Optional[str] = None,
) -> T:
    """Parse ``content`` as JSON and validate it against ``schema``.

    Raises:
        InvalidStructuredOutputError: If no JSON object is present, the JSON
            is malformed, or it does not satisfy the schema
    """
    json_str = extract_json(content or "")
    if json_str is None:
        raise InvalidStructuredOutputError(
            f"No JSON object found in response for {schema.__name__}",
            raw_content=content,
            response=response,
            provider=provider,
        )
    try:
        data: Any = json.loads(json_str)
    except json.JSONDecodeError as exc:
        raise InvalidStructuredOutputError(
            f"Malformed JSON for {schema.__name__}: {exc.msg}",
            raw_content=content,
            response=response,
            provider=provider,
        ) from exc
    try:
        return schema.model_validate(data)
    except ValidationError as exc:
        raise InvalidStructuredOutputError(
            f"Response does not match {schema.__name__}: {exc.error_count()} validation error(s)",
            raw_content=content,
            response=response,
            provider=provider,
        ) from exc
