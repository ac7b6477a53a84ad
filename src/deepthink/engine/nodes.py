"""
Pipeline nodes.

Every node reads a RunSnapshot, awaits exactly one external call through the
run's CancellationToken, and returns a StatePatch. Nodes never mutate state
and never emit events; the RoundController does both.
"""

import logging
import time
from typing import Protocol

from ..config import ExpertConfig
from ..errors import ModelClientError
from ..llm.base import extract_json_from_text
from ..llm.protocol import ModelClient
from ..search.base import SearchClient
from .cancellation import CancellationToken
from .prompts import generate_expert_prompt, generate_synthesis_prompt
from .state import ExpertResult, Output, RunSnapshot, StatePatch

logger = logging.getLogger(__name__)


class Node(Protocol):
    """A pipeline stage with its own identity."""

    name: str

    async def run(self, snapshot: RunSnapshot, token: CancellationToken) -> StatePatch:
        ...


class ResearchNode:
    """Runs one web search for the round."""

    name = "search"

    def __init__(self, search_client: SearchClient, max_results: int = 5):
        self.search_client = search_client
        self.max_results = max_results

    def research_query(self, snapshot: RunSnapshot) -> str:
        """Later rounds search the previous draft's follow-up query when it has one."""
        if snapshot.draft is not None and snapshot.draft.follow_up_query:
            return snapshot.draft.follow_up_query
        return snapshot.query

    async def run(self, snapshot: RunSnapshot, token: CancellationToken) -> StatePatch:
        query = self.research_query(snapshot)
        results = await token.guard(self.search_client.search(query, self.max_results))
        return StatePatch(search_results=list(results))


class ExpertNode:
    """One independently configured model invocation inside the fan-out."""

    name = "experts"

    def __init__(
        self,
        config: ExpertConfig,
        client: ModelClient,
        model: str,
        temperature: float | None = None,
    ):
        self.config = config
        self.client = client
        self.model = model
        self.temperature = config.temperature if config.temperature is not None else temperature

    @property
    def expert_id(self) -> str:
        return self.config.id

    async def run(self, snapshot: RunSnapshot, token: CancellationToken) -> StatePatch:
        system_prompt, user_prompt = generate_expert_prompt(self.config, snapshot)

        start_time = time.monotonic()
        completion = await token.guard(
            self.client.complete(
                system_prompt,
                user_prompt,
                model=self.model,
                temperature=self.temperature,
            )
        )

        content = completion.content.strip()
        if not content:
            raise ModelClientError(f"{self.model} returned an empty response")

        return StatePatch(
            expert_result=ExpertResult(
                expert_id=self.config.id,
                name=self.config.name,
                model=completion.model or self.model,
                content=content,
                status="success",
                round=snapshot.round,
                duration_seconds=time.monotonic() - start_time,
            )
        )

    def failed_result(self, snapshot: RunSnapshot, error: BaseException, duration: float) -> ExpertResult:
        """Placeholder entry recorded in place of a failed expert's answer."""
        return ExpertResult(
            expert_id=self.config.id,
            name=self.config.name,
            model=self.model,
            content="",
            status="error",
            round=snapshot.round,
            duration_seconds=duration,
            error=str(error) or type(error).__name__,
        )


class SynthesisNode:
    """Merges expert answers into a draft or final output."""

    name = "synthesis"

    def __init__(self, client: ModelClient, model: str, temperature: float | None = None):
        self.client = client
        self.model = model
        self.temperature = temperature

    async def run(self, snapshot: RunSnapshot, token: CancellationToken) -> StatePatch:
        force_final = snapshot.is_last_round
        system_prompt, user_prompt = generate_synthesis_prompt(snapshot, force_final)

        completion = await token.guard(
            self.client.complete(
                system_prompt,
                user_prompt,
                model=self.model,
                temperature=self.temperature,
            )
        )

        output = parse_synthesis(completion.content, snapshot.round, completion.model or self.model)
        if force_final and not output.is_final:
            output = Output(
                content=output.content,
                is_final=True,
                round=output.round,
                model=output.model,
            )
        return StatePatch(draft=output)


def parse_synthesis(text: str, round_number: int, model: str) -> Output:
    """
    Parse the synthesis model's JSON reply.

    Output that is not the expected JSON object is taken as a final answer
    verbatim.

    Raises:
        ModelClientError: If the reply contains no answer text at all
    """
    data = extract_json_from_text(text)
    answer = data.get("answer") if data else None

    if not isinstance(answer, str) or not answer.strip():
        content = text.strip()
        if not content:
            raise ModelClientError("synthesis returned an empty answer")
        if data is not None:
            logger.warning("Synthesis JSON had no usable 'answer', using raw text")
        return Output(content=content, is_final=True, round=round_number, model=model)

    follow_up = data.get("follow_up_query")
    if not isinstance(follow_up, str) or not follow_up.strip():
        follow_up = None

    return Output(
        content=answer.strip(),
        is_final=data.get("final") is not False,
        round=round_number,
        model=model,
        follow_up_query=follow_up.strip() if follow_up else None,
    )
