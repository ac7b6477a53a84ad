"""Scriptable stand-ins for model and search clients."""

import asyncio
import json
import re

from deepthink.errors import ModelClientError, SearchError
from deepthink.llm.factory import ClientCache
from deepthink.llm.protocol import Completion
from deepthink.search.base import SearchResult

_EXPERT_NAME = re.compile(r"^You are (.+?), one of several independent experts")


def synthesis_reply(answer: str, final: bool = True, follow_up_query: str | None = None) -> str:
    return json.dumps({"answer": answer, "final": final, "follow_up_query": follow_up_query})


class FakeModelClient:
    """
    Mock model client.

    Experts are recognised by the name in their system prompt. Each expert can
    be given a latency, made to fail, or made to hang until cancelled.
    Synthesis replies are consumed in order; the last one repeats.
    """

    def __init__(
        self,
        name: str = "fake:model",
        latency: dict[str, float] | None = None,
        failing: set[str] | None = None,
        hanging: set[str] | None = None,
        synthesis_replies: list[str] | None = None,
        synthesis_error: Exception | None = None,
        synthesis_hangs: bool = False,
    ):
        self._name = name
        self.latency = latency or {}
        self.failing = failing or set()
        self.hanging = hanging or set()
        self.synthesis_replies = synthesis_replies or [synthesis_reply("The answer is 4.")]
        self.synthesis_error = synthesis_error
        self.synthesis_hangs = synthesis_hangs

        self.expert_calls: list[str] = []
        self.synthesis_prompts: list[str] = []
        self.cancelled: list[str] = []
        self.closed = False

    @property
    def name(self) -> str:
        return self._name

    async def complete(self, system_prompt, user_prompt, *, model=None, temperature=None):
        match = _EXPERT_NAME.match(system_prompt)
        if match:
            return await self._expert(match.group(1), model)
        return await self._synthesis(user_prompt, model)

    async def _expert(self, expert_name: str, model: str | None) -> Completion:
        self.expert_calls.append(expert_name)
        try:
            if expert_name in self.hanging:
                await asyncio.Event().wait()
            await asyncio.sleep(self.latency.get(expert_name, 0))
        except asyncio.CancelledError:
            self.cancelled.append(expert_name)
            raise

        if expert_name in self.failing:
            raise ModelClientError(f"{expert_name} is down")

        return Completion(content=f"{expert_name} says 4", model=model or "fake-model")

    async def _synthesis(self, user_prompt: str, model: str | None) -> Completion:
        self.synthesis_prompts.append(user_prompt)
        try:
            if self.synthesis_hangs:
                await asyncio.Event().wait()
            await asyncio.sleep(0)
        except asyncio.CancelledError:
            self.cancelled.append("synthesis")
            raise

        if self.synthesis_error is not None:
            raise self.synthesis_error

        index = min(len(self.synthesis_prompts), len(self.synthesis_replies)) - 1
        return Completion(content=self.synthesis_replies[index], model=model or "fake-model")

    async def aclose(self) -> None:
        self.closed = True


class FakeSearchClient:
    """Mock search client that records queries."""

    def __init__(self, results: list[SearchResult] | None = None, error: Exception | None = None):
        self.results = results if results is not None else [
            SearchResult(
                title="Arithmetic basics",
                url="https://example.com/math",
                snippet="Two plus two equals four.",
                score=0.9,
                source="fake",
            )
        ]
        self.error = error
        self.queries: list[str] = []

    async def search(self, query: str, max_results: int = 10) -> list[SearchResult]:
        self.queries.append(query)
        await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        return self.results[:max_results]


def failing_search() -> FakeSearchClient:
    return FakeSearchClient(error=SearchError("All search providers failed. Last error: boom"))


def cache_for(client) -> ClientCache:
    """ClientCache whose builder always hands out ``client``."""
    return ClientCache(builder=lambda settings, api_key: client)
