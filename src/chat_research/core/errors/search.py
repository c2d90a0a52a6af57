"""Search provider error classes."""

from typing import Optional


class SearchProviderError(Exception):
    """Base exception for search provider errors.

    Search errors are always contained inside the research unit that issued
    the query; they never abort sibling units or the run.

    Attributes:
        provider: Name of the provider that raised the error
        message: Human-readable error description
        retryable: Whether the error is potentially transient
        original_error: The underlying exception if available
    """

    def __init__(
        self,
        provider: str,
        message: str,
        retryable: bool = False,
        original_error: Optional[Exception] = None,
    ):
        self.provider = provider
        self.message = message
        self.retryable = retryable
        self.original_error = original_error
        super().__init__(f"[{provider}] {message}")


class RateLimitError(SearchProviderError):
    """Raised when a provider's rate limit is exceeded.

    The retry_after field indicates how long to wait before retrying
    (if provided by the API).
    """

    def __init__(
        self,
        provider: str,
        retry_after: Optional[float] = None,
        original_error: Optional[Exception] = None,
    ):
        self.retry_after = retry_after
        message = "Rate limit exceeded"
        if retry_after:
            message += f" (retry after {retry_after}s)"
        super().__init__(provider, message, retryable=True, original_error=original_error)


class AuthenticationError(SearchProviderError):
    """Raised when the provider rejects the configured API key."""

    def __init__(
        self,
        provider: str,
        message: str = "Invalid API key",
        original_error: Optional[Exception] = None,
    ):
        super().__init__(provider, message, retryable=False, original_error=original_error)
