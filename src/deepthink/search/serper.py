"""Serper search provider (Google results)."""

import logging

import httpx

from .base import SearchResult

logger = logging.getLogger(__name__)


class SerperSearchProvider:
    """Serper.dev search provider."""

    url = "https://google.serper.dev/search"

    def __init__(self, api_key: str, timeout: float = 30.0):
        self.api_key = api_key
        self.timeout = timeout

    @property
    def name(self) -> str:
        return "serper"

    async def search(self, query: str, max_results: int = 10) -> list[SearchResult]:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(
                self.url,
                headers={"X-API-KEY": self.api_key},
                json={"q": query, "num": max_results},
            )
            response.raise_for_status()
            data = response.json()

        # Serper has no relevance score; derive one from rank
        organic = data.get("organic", [])
        return [
            SearchResult(
                title=r.get("title", ""),
                url=r.get("link", ""),
                snippet=r.get("snippet", ""),
                score=round(1.0 - i / max(len(organic), 1), 3),
                published_date=r.get("date"),
                source=self.name,
            )
            for i, r in enumerate(organic)
        ]
