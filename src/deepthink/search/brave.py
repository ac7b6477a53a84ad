"""Brave search provider."""

import logging

import httpx

from .base import SearchResult

logger = logging.getLogger(__name__)


class BraveSearchProvider:
    """Brave search provider (privacy-focused)."""

    url = "https://api.search.brave.com/res/v1/web/search"

    def __init__(self, api_key: str, timeout: float = 30.0):
        self.api_key = api_key
        self.timeout = timeout

    @property
    def name(self) -> str:
        return "brave"

    async def search(self, query: str, max_results: int = 10) -> list[SearchResult]:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.get(
                self.url,
                headers={"X-Subscription-Token": self.api_key},
                params={"q": query, "count": max_results},
            )
            response.raise_for_status()
            data = response.json()

        return [
            SearchResult(
                title=r.get("title", ""),
                url=r.get("url", ""),
                snippet=r.get("description", ""),
                published_date=r.get("age"),
                source=self.name,
            )
            for r in data.get("web", {}).get("results", [])
        ]
