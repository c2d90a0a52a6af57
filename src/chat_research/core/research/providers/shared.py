"""Shared HTTP helpers for search providers.

Status-code classification, ``Retry-After`` parsing, error-message
extraction and a bounded retry loop for transient failures.
"""

import asyncio
import logging
import random
from typing import Any, Awaitable, Callable, Optional, TypeVar

import httpx

from chat_research.core.errors.search import (
    AuthenticationError,
    RateLimitError,
    SearchProviderError,
)
from chat_research.core.observability.redaction import redact_sensitive_data

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TIMEOUT = 30.0
DEFAULT_MAX_RETRIES = 2
_BASE_DELAY = 1.0
_MAX_DELAY = 10.0


def parse_retry_after(response: httpx.Response) -> Optional[float]:
    """Parse a numeric ``Retry-After`` header; date values return None."""
    retry_after = response.headers.get("Retry-After")
    if retry_after:
        try:
            return float(retry_after)
        except ValueError:
            pass
    return None


def extract_error_message(response: httpx.Response) -> str:
    """Extract a redacted error message from an HTTP error response.

    Tries the common ``{"error": ...}`` / ``{"message": ...}`` JSON shapes
    before falling back to the first 200 characters of the body.
    """
    try:
        data = response.json()
    except ValueError:
        return redact_sensitive_data(response.text[:200] if response.text else "Unknown error")

    if isinstance(data, dict):
        error_field = data.get("error")
        if isinstance(error_field, dict):
            message: Any = error_field.get("message", str(error_field))
        elif isinstance(error_field, str):
            message = error_field
        else:
            message = data.get("message") or data.get("detail") or response.text[:200]
    else:
        message = response.text[:200]
    return redact_sensitive_data(str(message))


def raise_for_search_status(response: httpx.Response, provider: str) -> None:
    """Map an HTTP error status to the search error hierarchy.

    Raises:
        AuthenticationError: 401/403
        RateLimitError: 429
        SearchProviderError: other 4xx (not retryable) and 5xx (retryable)
    """
    status = response.status_code
    if status < 400:
        return
    if status in (401, 403):
        raise AuthenticationError(provider=provider)
    if status == 429:
        raise RateLimitError(provider=provider, retry_after=parse_retry_after(response))
    raise SearchProviderError(
        provider=provider,
        message=f"API error {status}: {extract_error_message(response)}",
        retryable=status >= 500,
    )


async def execute_with_retry(
    provider: str,
    request_fn: Callable[[], Awaitable[T]],
    *,
    max_retries: int = DEFAULT_MAX_RETRIES,
) -> T:
    """Run ``request_fn`` retrying retryable failures with jittered backoff.

    Transport errors and timeouts are wrapped in ``SearchProviderError``.
    Non-retryable errors propagate on the first failure.
    """
    attempt = 0
    while True:
        try:
            return await request_fn()
        except SearchProviderError as exc:
            error: SearchProviderError = exc
        except httpx.TimeoutException as exc:
            error = SearchProviderError(provider, f"Request timed out: {exc}", retryable=True, original_error=exc)
        except httpx.RequestError as exc:
            error = SearchProviderError(provider, f"Request failed: {exc}", retryable=True, original_error=exc)

        if not error.retryable or attempt >= max_retries:
            raise error

        attempt += 1
        if isinstance(error, RateLimitError) and error.retry_after:
            delay = min(error.retry_after, _MAX_DELAY)
        else:
            delay = min(_BASE_DELAY * (2 ** (attempt - 1)), _MAX_DELAY) * (0.5 + random.random() / 2)
        logger.warning(
            "%s search failed (attempt %d/%d), retrying in %.1fs: %s",
            provider,
            attempt,
            max_retries + 1,
            delay,
            error.message,
        )
        await asyncio.sleep(delay)


def parse_search_payload(
    provider: str,
    data: Any,
    parse_fn: Callable[[dict[str, Any]], T],
) -> T:
    """Apply ``parse_fn`` to a decoded response body.

    Raises:
        SearchProviderError: If the body is not a JSON object or its
            contents do not have the expected shape
    """
    if not isinstance(data, dict):
        raise SearchProviderError(provider, f"Unexpected response payload type: {type(data).__name__}")
    try:
        return parse_fn(data)
    except (AttributeError, KeyError, TypeError, ValueError) as exc:
        raise SearchProviderError(provider, f"Malformed response payload: {exc}", original_error=exc) from exc
