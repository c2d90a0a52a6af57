"""
LLM provider abstraction for chat-research.

The pipeline consumes language models only through :class:`LLMProvider`:
whole-response chat, streamed chat, and schema-validated structured output.
Concrete gateways live in ``chat_research.core.providers``; tests use
scripted fakes.

Example:
    from chat_research.core.llm_provider import ChatMessage, ChatRequest, ChatRole

    request = ChatRequest(
        model="google/gemini-2.5-flash-lite",
        messages=[ChatMessage(role=ChatRole.USER, content="Hello")],
    )
    response = await provider.chat(request)
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple, Type, TypeVar

from pydantic import BaseModel

from chat_research.core.structured_output import validate_structured_output

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


# =============================================================================
# Enums
# =============================================================================


class ChatRole(str, Enum):
    """Role of a message in a chat conversation."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class FinishReason(str, Enum):
    """Reason why the model stopped generating.

    STOP: Natural completion (hit stop sequence or end)
    LENGTH: Hit max_tokens limit
    CONTENT_FILTER: Filtered due to content policy
    ERROR: Generation error occurred
    """

    STOP = "stop"
    LENGTH = "length"
    CONTENT_FILTER = "content_filter"
    ERROR = "error"


# =============================================================================
# Data Classes
# =============================================================================


@dataclass
class ChatMessage:
    """A message in a chat conversation."""

    role: ChatRole
    content: str

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for API calls."""
        return {"role": self.role.value, "content": self.content}


@dataclass
class ChatRequest:
    """Request for chat completion.

    Attributes:
        model: Model identifier
        messages: The conversation messages
        max_tokens: Maximum tokens to generate
        temperature: Sampling temperature (0-2)
        json_mode: Ask the provider for a JSON object response, when supported
        metadata: Telemetry tags for tracing (never sent as prompt content)
    """

    model: str
    messages: List[ChatMessage]
    max_tokens: int = 4000
    temperature: float = 0.3
    json_mode: bool = False
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class TokenUsage:
    """Token usage statistics.

    Attributes:
        input_tokens: Tokens in the prompt (cached tokens included)
        output_tokens: Tokens generated
        cached_tokens: Prompt tokens served from the provider's cache
    """

    input_tokens: int = 0
    output_tokens: int = 0
    cached_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    def is_empty(self) -> bool:
        return self.input_tokens <= 0 and self.output_tokens <= 0


@dataclass
class ChatResponse:
    """Response from chat completion.

    Attributes:
        content: The assistant's text
        usage: Token usage statistics
        model: Model that generated the response
        finish_reason: Why generation stopped
        raw_response: Original API response (for debugging)
    """

    content: str
    usage: TokenUsage = field(default_factory=TokenUsage)
    model: Optional[str] = None
    finish_reason: FinishReason = FinishReason.STOP
    raw_response: Optional[Dict[str, Any]] = None


@dataclass
class StreamChunk:
    """One increment of a streamed chat completion.

    Text chunks carry ``delta``; the final chunk usually carries ``usage``
    and ``finish_reason`` with an empty delta.
    """

    delta: str = ""
    usage: Optional[TokenUsage] = None
    finish_reason: Optional[FinishReason] = None


# =============================================================================
# Abstract Base Class
# =============================================================================


class LLMProvider(ABC):
    """Abstract base class for LLM providers.

    Implementations raise ``LLMError`` subclasses for transport and API
    failures. Timeouts are the provider's concern; the pipeline adds none.

    Attributes:
        name: Provider name used in errors and logs
    """

    name: str = "base"

    @abstractmethod
    async def chat(self, request: ChatRequest) -> ChatResponse:
        """Generate a whole chat completion.

        Raises:
            LLMError: On API or generation errors
            RateLimitError: If rate limited
            AuthenticationError: If authentication fails
        """

    async def stream_chat(self, request: ChatRequest) -> AsyncIterator[StreamChunk]:
        """Generate a chat completion incrementally.

        The default implementation issues a whole ``chat`` call and yields
        it as a single chunk; providers with native streaming override it.
        """
        response = await self.chat(request)
        if response.content:
            yield StreamChunk(delta=response.content)
        yield StreamChunk(usage=response.usage, finish_reason=response.finish_reason)

    async def generate_structured(
        self,
        request: ChatRequest,
        schema: Type[T],
    ) -> Tuple[T, ChatResponse]:
        """Generate a completion and validate it against a pydantic schema.

        Returns:
            ``(parsed, response)``

        Raises:
            InvalidStructuredOutputError: If the response does not match
                ``schema``; the error carries the response for cost accounting
            LLMError: On API or generation errors
        """
        if not request.json_mode:
            request = ChatRequest(
                model=request.model,
                messages=request.messages,
                max_tokens=request.max_tokens,
                temperature=request.temperature,
                json_mode=True,
                metadata=request.metadata,
            )
        response = await self.chat(request)
        parsed = validate_structured_output(response.content, schema, response=response, provider=self.name)
        return parsed, response

    async def close(self) -> None:
        """Release any pooled connections. Default: no-op."""
