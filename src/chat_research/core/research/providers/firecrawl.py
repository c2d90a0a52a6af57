"""Firecrawl search provider for web search.

Firecrawl's search endpoint returns each hit already scraped to markdown,
so results carry full page content instead of a snippet.

Example usage:
    provider = FirecrawlSearchProvider(api_key="fc-...")
    results = await provider.search("rust async runtimes", max_results=5)
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

FIRECRAWL_API_BASE_URL = "https://api.firecrawl.dev"
FIRECRAWL_SEARCH_ENDPOINT = "/v1/search"
FIRECRAWL_MAX_CONTENT_CHARS = 20_000


class FirecrawlSearchProvider(SearchProvider):
    """Firecrawl search API provider."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: str = FIRECRAWL_API_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int = DEFAULT_MAX_RETRIES,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._api_key = api_key or os.environ.get("FIRECRAWL_API_KEY")
        if not self._api_key:
            raise ValueError(
                "Firecrawl API key required. Provide via api_key parameter "
                "or FIRECRAWL_API_KEY environment variable."
            )
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._max_retries = max_retries
        self._client = client

    def get_provider_name(self) -> str:
        return "firecrawl"

    async def search(self, query: str, max_results: int = 5) -> list[WebSearchResult]:
        """Execute a search via Firecrawl, scraping each hit to markdown.

        Raises:
            AuthenticationError: If the API key is invalid
            RateLimitError: If rate limited after all retries
            SearchProviderError: For other API errors or ``success: false``
        """
        payload: dict[str, Any] = {
            "query": query,
            "limit": max_results,
            "scrapeOptions": {"formats": ["markdown"]},
        }
        data = await execute_with_retry(
            "firecrawl",
            lambda: self._post(payload),
            max_retries=self._max_retries,
        )
        results = parse_search_payload("firecrawl", data, self._parse_response)
        logger.debug("Firecrawl returned %d results for query %r", len(results), query)
        return results

    async def _post(self, payload: dict[str, Any]) -> dict[str, Any]:
        url = f"{self._base_url}{FIRECRAWL_SEARCH_ENDPOINT}"
        headers = {"Authorization": f"Bearer {self._api_key}"}
        if self._client is not None:
            response = await self._client.post(url, json=payload, headers=headers, timeout=self._timeout)
        else:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(url, json=payload, headers=headers)
        raise_for_search_status(response, "firecrawl")
        try:
            return response.json()
        except ValueError as exc:
            raise SearchProviderError("firecrawl", "Invalid JSON in response", original_error=exc) from exc

    def _parse_response(self, data: dict[str, Any]) -> list[WebSearchResult]:
        if data.get("success") is False:
            raise SearchProviderError("firecrawl", str(data.get("error") or "Search failed"))
        results: list[WebSearchResult] = []
        for item in data.get("data") or []:
            url = item.get("url") or (item.get("metadata") or {}).get("sourceURL")
            if not url:
                continue
            content = item.get("markdown") or item.get("description") or ""
            results.append(
                WebSearchResult(
                    title=item.get("title") or (item.get("metadata") or {}).get("title") or "Untitled",
                    url=url,
                    content=content[:FIRECRAWL_MAX_CONTENT_CHARS],
                )
            )
        return results
