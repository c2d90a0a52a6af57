"""Web search providers for research units.

Use :func:`create_search_provider` to build the provider selected by a
resolved ``RuntimeConfig``.
"""

from __future__ import annotations

from typing import Mapping, Optional

from chat_research.config.research import ResearchSettings, SearchAPI
from chat_research.core.research.providers.base import SearchProvider
from chat_research.core.research.providers.firecrawl import FirecrawlSearchProvider
from chat_research.core.research.providers.tavily import TavilySearchProvider


def create_search_provider(
    search_api: SearchAPI,
    settings: ResearchSettings,
    *,
    environ: Optional[Mapping[str, str]] = None,
) -> Optional[SearchProvider]:
    """Build the provider for ``search_api``.

    Returns None for ``SearchAPI.NONE``, or when the credential has since
    disappeared, so callers treat it as "search disabled".
    """
    if search_api is SearchAPI.NONE:
        return None
    api_key = settings.get_search_api_key(search_api, environ)
    if not api_key:
        return None
    if search_api is SearchAPI.TAVILY:
        return TavilySearchProvider(api_key=api_key)
    return FirecrawlSearchProvider(api_key=api_key)


__all__ = [
    "FirecrawlSearchProvider",
    "SearchProvider",
    "TavilySearchProvider",
    "create_search_provider",
]
