"""Abstract base class for search providers.

This module defines the SearchProvider interface that concrete web search
providers implement. Research units depend only on this interface, which
keeps provider choice a configuration concern and makes mocking trivial.

Example usage:
    class TavilySearchProvider(SearchProvider):
        def get_provider_name(self) -> str:
            return "tavily"

        async def search(self, query: str, max_results: int = 5) -> list[WebSearchResult]:
            ...
"""

from abc import ABC, abstractmethod

from chat_research.core.research.models.updates import WebSearchResult


class SearchProvider(ABC):
    """Abstract base class for search providers.

    Implementations raise ``SearchProviderError`` (or a subclass) for every
    failure, so the unit executor can contain it.
    """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return the provider identifier (e.g. "tavily")."""

    @abstractmethod
    async def search(self, query: str, max_results: int = 5) -> list[WebSearchResult]:
        """Execute one search query.

        Args:
            query: The search query string
            max_results: Maximum number of results to return

        Returns:
            Results in provider ranking order

        Raises:
            SearchProviderError: On any provider failure
        """
