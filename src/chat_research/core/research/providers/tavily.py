"""Tavily search provider for web search.

Wraps the Tavily Search API to give research units web search.

Tavily API documentation: https://docs.tavily.com/

Error Handling:
    - 401/403: Not retryable
    - 429: Retryable, honours ``Retry-After``
    - 5xx and timeouts: Retryable

Example usage:
    provider = TavilySearchProvider(api_key="tvly-...")
    results = await provider.search("machine learning trends", max_results=5)
"""

import logging
import os
from typing import Any, Optional

import httpx

from chat_research.core.errors.search import SearchProviderError
from chat_research.core.research.models.updates import WebSearchResult
from chat_research.core.research.providers.base import SearchProvider
from chat_research.core.research.providers.shared import (
    DEFAULT_MAX_RETRIES,
    DEFAULT_TIMEOUT,
    execute_with_retry,
    parse_search_payload,
    raise_for_search_status,
)

logger = logging.getLogger(__name__)

TAVILY_API_BASE_URL = "https://api.tavily.com"
TAVILY_SEARCH_ENDPOINT = "/search"
TAVILY_MAX_RESULTS = 20


class TavilySearchProvider(SearchProvider):
    """Tavily Search API provider.

    Attributes:
        api_key: Tavily API key (required)
        base_url: API base URL (default: https://api.tavily.com)
        timeout: Request timeout in seconds (default: 30.0)
        max_retries: Retries for transient failures (default: 2)
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: str = TAVILY_API_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int = DEFAULT_MAX_RETRIES,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize the Tavily provider.

        Args:
            api_key: Tavily API key. If not provided, reads from TAVILY_API_KEY
            base_url: API base URL
            timeout: Request timeout in seconds
            max_retries: Retries for transient failures
            client: Shared HTTP client; a short-lived one is used per request
                when omitted

        Raises:
            ValueError: If no API key is provided or found in environment
        """
        self._api_key = api_key or os.environ.get("TAVILY_API_KEY")
        if not self._api_key:
            raise ValueError(
                "Tavily API key required. Provide via api_key parameter "
                "or TAVILY_API_KEY environment variable."
            )
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._max_retries = max_retries
        self._client = client

    def get_provider_name(self) -> str:
        return "tavily"

    async def search(self, query: str, max_results: int = 5) -> list[WebSearchResult]:
        """Execute a web search via the Tavily API.

        Args:
            query: The search query string
            max_results: Maximum number of results (clamped to 20)

        Returns:
            List of WebSearchResult in Tavily's ranking order

        Raises:
            AuthenticationError: If the API key is invalid
            RateLimitError: If rate limited after all retries
            SearchProviderError: For other API errors
        """
        payload: dict[str, Any] = {
            "api_key": self._api_key,
            "query": query,
            "max_results": min(max_results, TAVILY_MAX_RESULTS),
            "search_depth": "basic",
            "include_answer": False,
        }
        data = await execute_with_retry(
            "tavily",
            lambda: self._post(payload),
            max_retries=self._max_retries,
        )
        results = parse_search_payload("tavily", data, self._parse_response)
        logger.debug("Tavily returned %d results for query %r", len(results), query)
        return results

    async def _post(self, payload: dict[str, Any]) -> dict[str, Any]:
        url = f"{self._base_url}{TAVILY_SEARCH_ENDPOINT}"
        if self._client is not None:
            response = await self._client.post(url, json=payload, timeout=self._timeout)
        else:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(url, json=payload)
        raise_for_search_status(response, "tavily")
        try:
            return response.json()
        except ValueError as exc:
            raise SearchProviderError("tavily", "Invalid JSON in response", original_error=exc) from exc

    def _parse_response(self, data: dict[str, Any]) -> list[WebSearchResult]:
        results: list[WebSearchResult] = []
        for item in data.get("results") or []:
            url = item.get("url")
            if not url:
                continue
            results.append(
                WebSearchResult(
                    title=item.get("title") or "Untitled",
                    url=url,
                    # Tavily uses "content" for the snippet
                    content=item.get("content") or "",
                )
            )
        return results
