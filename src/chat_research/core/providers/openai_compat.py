"""OpenAI-compatible chat completions provider.

Talks to any gateway exposing ``POST {base_url}/chat/completions`` in the
OpenAI wire format (OpenRouter, vLLM, LiteLLM, OpenAI itself). Supports
whole-response and server-sent-event streaming; streamed requests ask for
a trailing usage chunk so cost accounting sees real token counts.

Example:
    provider = OpenAICompatibleProvider(
        base_url="https://openrouter.ai/api/v1",
        api_key=os.environ["OPENROUTER_API_KEY"],
    )
    response = await provider.chat(request)
"""

import json
import logging
from typing import Any, AsyncIterator, Dict, Optional

import httpx

from chat_research.core.errors.llm import (
    AuthenticationError,
    InvalidRequestError,
    LLMError,
    RateLimitError,
)
from chat_research.core.llm_provider import (
    ChatRequest,
    ChatResponse,
    FinishReason,
    LLMProvider,
    StreamChunk,
    TokenUsage,
)
from chat_research.core.observability.redaction import redact_sensitive_data

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_TIMEOUT = 120.0

_FINISH_REASONS: Dict[str, FinishReason] = {
    "stop": FinishReason.STOP,
    "length": FinishReason.LENGTH,
    "content_filter": FinishReason.CONTENT_FILTER,
    "error": FinishReason.ERROR,
}


def _parse_finish_reason(value: Optional[str]) -> FinishReason:
    if value is None:
        return FinishReason.STOP
    return _FINISH_REASONS.get(value, FinishReason.STOP)


def _parse_usage(data: Optional[Dict[str, Any]]) -> TokenUsage:
    if not data:
        return TokenUsage()
    details = data.get("prompt_tokens_details") or {}
    return TokenUsage(
        input_tokens=int(data.get("prompt_tokens") or 0),
        output_tokens=int(data.get("completion_tokens") or 0),
        cached_tokens=int(details.get("cached_tokens") or 0),
    )


class OpenAICompatibleProvider(LLMProvider):
    """Chat provider for OpenAI-compatible HTTP gateways.

    Attributes:
        base_url: Gateway base URL (``/chat/completions`` is appended)
        timeout: Per-request timeout in seconds
    """

    name = "openai-compatible"

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        api_key: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._api_key = api_key
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def _payload(self, request: ChatRequest, *, stream: bool) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": request.model,
            "messages": [m.to_dict() for m in request.messages],
            "max_tokens": request.max_tokens,
            "temperature": request.temperature,
        }
        if request.json_mode:
            payload["response_format"] = {"type": "json_object"}
        if stream:
            payload["stream"] = True
            payload["stream_options"] = {"include_usage": True}
        return payload

    def _raise_for_status(self, status: int, body: str, headers: httpx.Headers) -> None:
        if status < 400:
            return
        message = self._error_message(body)
        if status in (401, 403):
            raise AuthenticationError(message, provider=self.name)
        if status == 429:
            retry_after: Optional[float] = None
            try:
                retry_after = float(headers.get("Retry-After", ""))
            except ValueError:
                pass
            raise RateLimitError(message, provider=self.name, retry_after=retry_after)
        if status in (400, 404, 422):
            raise InvalidRequestError(message, provider=self.name, status_code=status)
        raise LLMError(message, provider=self.name, retryable=status >= 500, status_code=status)

    @staticmethod
    def _error_message(body: str) -> str:
        try:
            data = json.loads(body)
        except ValueError:
            return redact_sensitive_data(body[:200] or "Unknown error")
        error = data.get("error") if isinstance(data, dict) else None
        if isinstance(error, dict):
            return redact_sensitive_data(str(error.get("message") or error))
        if isinstance(error, str):
            return redact_sensitive_data(error)
        return redact_sensitive_data(body[:200])

    async def chat(self, request: ChatRequest) -> ChatResponse:
        url = f"{self.base_url}/chat/completions"
        try:
            response = await self._client.post(
                url,
                json=self._payload(request, stream=False),
                headers=self._headers(),
                timeout=self.timeout,
            )
        except httpx.TimeoutException as exc:
            raise LLMError(f"Request timed out: {exc}", provider=self.name, retryable=True) from exc
        except httpx.RequestError as exc:
            raise LLMError(f"Request failed: {exc}", provider=self.name, retryable=True) from exc

        self._raise_for_status(response.status_code, response.text, response.headers)
        try:
            data = response.json()
        except ValueError as exc:
            raise LLMError("Invalid JSON in response", provider=self.name, retryable=True) from exc

        choices = data.get("choices") or []
        if not choices:
            raise LLMError("Response contained no choices", provider=self.name, retryable=True)
        choice = choices[0]
        content = (choice.get("message") or {}).get("content") or ""
        return ChatResponse(
            content=content,
            usage=_parse_usage(data.get("usage")),
            model=data.get("model") or request.model,
            finish_reason=_parse_finish_reason(choice.get("finish_reason")),
            raw_response=data,
        )

    async def stream_chat(self, request: ChatRequest) -> AsyncIterator[StreamChunk]:
        """Stream a completion over server-sent events.

        Yields one chunk per content delta, then a final chunk carrying
        usage when the gateway reports it.
        """
        url = f"{self.base_url}/chat/completions"
        usage: Optional[TokenUsage] = None
        finish_reason: Optional[FinishReason] = None
        try:
            async with self._client.stream(
                "POST",
                url,
                json=self._payload(request, stream=True),
                headers=self._headers(),
                timeout=self.timeout,
            ) as response:
                if response.status_code >= 400:
                    body = (await response.aread()).decode("utf-8", errors="replace")
                    self._raise_for_status(response.status_code, body, response.headers)

                async for line in response.aiter_lines():
                    if not line.startswith("data:"):
                        continue
                    data = line[len("data:") :].strip()
                    if data == "[DONE]":
                        break
                    try:
                        event = json.loads(data)
                    except ValueError:
                        logger.debug("Skipping malformed stream event: %s", data[:100])
                        continue
                    if event.get("usage"):
                        usage = _parse_usage(event["usage"])
                    for choice in event.get("choices") or []:
                        delta = (choice.get("delta") or {}).get("content")
                        if choice.get("finish_reason"):
                            finish_reason = _parse_finish_reason(choice["finish_reason"])
                        if delta:
                            yield StreamChunk(delta=delta)
        except httpx.TimeoutException as exc:
            raise LLMError(f"Stream timed out: {exc}", provider=self.name, retryable=True) from exc
        except httpx.RequestError as exc:
            raise LLMError(f"Stream failed: {exc}", provider=self.name, retryable=True) from exc

        yield StreamChunk(usage=usage or TokenUsage(), finish_reason=finish_reason or FinishReason.STOP)

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()
