"""Multi-provider web search."""

import logging

from ..config import SearchSettings
from .base import SearchClient, SearchManager, SearchProvider, SearchResult
from .brave import BraveSearchProvider
from .serper import SerperSearchProvider
from .tavily import TavilySearchProvider

logger = logging.getLogger(__name__)

PROVIDER_CLASSES = {
    "tavily": TavilySearchProvider,
    "brave": BraveSearchProvider,
    "serper": SerperSearchProvider,
}


def build_search_manager(settings: SearchSettings) -> SearchManager:
    """
    Build a SearchManager from configuration.

    Providers without an API key in the environment are skipped with a
    warning; a manager with no providers returns empty results.
    """
    api_keys = settings.get_api_keys()
    providers: list[SearchProvider] = []

    for provider in sorted(settings.providers, key=lambda p: p.priority):
        if not provider.enabled:
            continue

        api_key = api_keys.get(provider.name)
        if not api_key:
            logger.warning(
                f"Search provider {provider.name} skipped: {provider.api_key_env} not set"
            )
            continue

        providers.append(PROVIDER_CLASSES[provider.name](api_key=api_key))

    return SearchManager(providers, fallback_enabled=settings.fallback_enabled)


__all__ = [
    "BraveSearchProvider",
    "SearchClient",
    "SearchManager",
    "SearchProvider",
    "SearchResult",
    "SerperSearchProvider",
    "TavilySearchProvider",
    "build_search_manager",
]
