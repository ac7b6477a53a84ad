"""
Search client protocol and multi-provider manager.

The research node only depends on SearchClient; SearchManager implements it
on top of an ordered list of providers with automatic fallback.
"""

import logging
from dataclasses import asdict, dataclass
from typing import Any, Protocol, runtime_checkable

from ..errors import SearchError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SearchResult:
    """Single ranked search result."""

    title: str
    url: str
    snippet: str
    score: float = 0.0
    published_date: str | None = None
    source: str | None = None  # Which provider returned this

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@runtime_checkable
class SearchClient(Protocol):
    """Anything that turns a query into a ranked list of results."""

    async def search(self, query: str, max_results: int = 10) -> list[SearchResult]:
        ...


class SearchProvider(Protocol):
    """Protocol for a single search backend."""

    @property
    def name(self) -> str:
        """Provider name (tavily, brave, serper)."""
        ...

    async def search(self, query: str, max_results: int = 10) -> list[SearchResult]:
        ...


class SearchManager:
    """Runs providers in priority order, falling back on failure or empty results."""

    def __init__(
        self,
        providers: list[SearchProvider],
        fallback_enabled: bool = True,
    ):
        """
        Initialize search manager.

        Args:
            providers: Search providers, highest priority first
            fallback_enabled: Try the next provider when one fails
        """
        self.providers = providers
        self.fallback_enabled = fallback_enabled

    async def search(self, query: str, max_results: int = 10) -> list[SearchResult]:
        """
        Search using providers with automatic fallback.

        Returns an empty list when no providers are configured or none
        returned anything.

        Raises:
            SearchError: If every provider raised
        """
        if not self.providers:
            logger.warning("No search providers configured, returning no results")
            return []

        last_error: Exception | None = None

        for provider in self.providers:
            try:
                logger.debug(f"Trying search provider: {provider.name}")
                results = await provider.search(query, max_results)

                if results:
                    logger.info(
                        f"Search via {provider.name}: {len(results)} results for '{query[:50]}'"
                    )
                    return results[:max_results]

                logger.warning(f"No results from {provider.name}")

            except Exception as e:
                logger.warning(f"Search failed for {provider.name}: {e}")
                last_error = e

                if not self.fallback_enabled:
                    raise SearchError(f"Search via {provider.name} failed: {e}") from e

        if last_error:
            raise SearchError(
                f"All search providers failed. Last error: {last_error}"
            ) from last_error

        return []
