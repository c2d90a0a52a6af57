"""Language-model call error classes.

Raised by ``LLMProvider`` implementations and by the structured-output
validation helper in ``chat_research.core.llm_provider``.
"""

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from chat_research.core.llm_provider import ChatResponse


class LLMError(Exception):
    """Base exception for LLM operations.

    Attributes:
        message: Human-readable error description
        provider: Name of the provider that raised the error
        retryable: Whether the operation can be retried
        status_code: HTTP status code if applicable
    """

    def __init__(
        self,
        message: str,
        *,
        provider: Optional[str] = None,
        retryable: bool = False,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.provider = provider
        self.retryable = retryable
        self.status_code = status_code


class RateLimitError(LLMError):
    """Rate limit exceeded error.

    Attributes:
        retry_after: Seconds to wait before retrying
    """

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        *,
        provider: Optional[str] = None,
        retry_after: Optional[float] = None,
    ):
        super().__init__(message, provider=provider, retryable=True, status_code=429)
        self.retry_after = retry_after


class AuthenticationError(LLMError):
    """Authentication failed error."""

    def __init__(
        self,
        message: str = "Authentication failed",
        *,
        provider: Optional[str] = None,
    ):
        super().__init__(message, provider=provider, retryable=False, status_code=401)


class InvalidRequestError(LLMError):
    """Invalid request error (bad parameters, unknown model, etc.)."""

    def __init__(
        self,
        message: str,
        *,
        provider: Optional[str] = None,
        status_code: int = 400,
    ):
        super().__init__(message, provider=provider, retryable=False, status_code=status_code)


class InvalidStructuredOutputError(LLMError):
    """The model answered, but the answer does not match the requested schema.

    This is the condition that drives structured-output retries. The
    response is kept so callers can still account for its token usage.

    Attributes:
        raw_content: The unparseable model output
        response: The full ChatResponse, when available
    """

    def __init__(
        self,
        message: str,
        *,
        raw_content: str = "",
        response: Optional["ChatResponse"] = None,
        provider: Optional[str] = None,
    ):
        super().__init__(message, provider=provider, retryable=True)
        self.raw_content = raw_content
        self.response = response
