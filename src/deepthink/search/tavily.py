"""Tavily search provider."""

import asyncio
import logging

from tavily import TavilyClient

from .base import SearchResult

logger = logging.getLogger(__name__)


class TavilySearchProvider:
    """Tavily search provider (best for research)."""

    def __init__(self, api_key: str, search_depth: str = "basic"):
        self.client = TavilyClient(api_key=api_key)
        self.search_depth = search_depth

    @property
    def name(self) -> str:
        return "tavily"

    async def search(self, query: str, max_results: int = 10) -> list[SearchResult]:
        # TavilyClient is synchronous; keep the event loop free while it runs
        response = await asyncio.to_thread(
            self.client.search,
            query=query,
            max_results=max_results,
            search_depth=self.search_depth,
        )

        return [
            SearchResult(
                title=r.get("title", ""),
                url=r.get("url", ""),
                snippet=r.get("content", ""),
                score=r.get("score", 0.0),
                published_date=r.get("published_date"),
                source=self.name,
            )
            for r in response.get("results", [])
        ]
