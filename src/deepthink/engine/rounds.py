"""
Round execution.

A round runs Research, then the expert fan-out, then Synthesis, emitting
NodeStart/NodeComplete around each stage:

    NodeStart(search) → NodeComplete(search)
    → NodeStart(experts) → ExpertComplete* → NodeComplete(experts)
    → NodeStart(synthesis) → NodeComplete(synthesis)

The token is checked between stages, and every node checks it again at its
own network boundary.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import aclosing
from dataclasses import dataclass
from typing import Literal

from ..errors import EngineCancelled, NodeFailure
from .cancellation import CancellationToken
from .events import (
    EngineEvent,
    ExpertCompleteEvent,
    NodeCompleteEvent,
    NodeStartEvent,
)
from .fanout import ExpertFanout
from .nodes import Node, ResearchNode
from .state import Output, RunState

logger = logging.getLogger(__name__)

ResearchFailurePolicy = Literal["degrade", "fail"]


@dataclass(frozen=True)
class RoundOutcome:
    """What a finished round decided."""

    round: int
    output: Output

    @property
    def should_continue(self) -> bool:
        return not self.output.is_final


class RoundController:
    """Drives one Research → Fan-out → Synthesis pass."""

    def __init__(
        self,
        research: ResearchNode,
        fanout: ExpertFanout,
        synthesis: Node,
        research_failure_policy: ResearchFailurePolicy = "degrade",
    ):
        """
        Initialize the controller.

        Args:
            research: Search node
            fanout: Expert fan-out coordinator
            synthesis: Node whose patch carries the round's draft
            research_failure_policy: "degrade" proceeds without search results
                when research fails; "fail" ends the run
        """
        self.research = research
        self.fanout = fanout
        self.synthesis = synthesis
        self.research_failure_policy = research_failure_policy
        self.outcome: RoundOutcome | None = None

    async def run(
        self,
        state: RunState,
        token: CancellationToken,
        round_number: int,
    ) -> AsyncIterator[EngineEvent]:
        """
        Execute one round, yielding events as stages progress.

        On normal completion ``self.outcome`` holds the round's decision.

        Raises:
            EngineCancelled: If the token fires at any checkpoint
            NodeFailure: If research (under the "fail" policy), every expert,
                or synthesis fails
        """
        self.outcome = None
        token.raise_if_cancelled()
        state.begin_round(round_number)

        # Research
        snapshot = state.snapshot()
        yield NodeStartEvent(
            node="search",
            data={
                "round": round_number,
                "maxRounds": state.max_rounds,
                "query": self.research.research_query(snapshot),
            },
        )

        try:
            state.apply(await self.research.run(snapshot, token))
        except EngineCancelled:
            raise
        except Exception as e:
            if self.research_failure_policy == "fail":
                raise NodeFailure("search", e) from e
            logger.warning(f"Research failed in round {round_number}, continuing without results: {e}")
            state.clear_search_results()

        yield NodeCompleteEvent(node="search", search_results=state.search_results_wire())
        token.raise_if_cancelled()

        # Expert fan-out
        yield NodeStartEvent(
            node="experts",
            data={"round": round_number, "experts": self.fanout.expert_ids},
        )

        async with aclosing(self.fanout.run(state.snapshot(), token)) as results:
            async for result in results:
                state.record_expert(result)
                yield ExpertCompleteEvent(data=result.to_dict())

        yield NodeCompleteEvent(node="experts")
        token.raise_if_cancelled()

        # Synthesis
        snapshot = state.snapshot()
        yield NodeStartEvent(
            node=self.synthesis.name,
            data={"round": round_number, "finalRound": snapshot.is_last_round},
        )

        try:
            patch = await self.synthesis.run(snapshot, token)
        except EngineCancelled:
            raise
        except Exception as e:
            raise NodeFailure(self.synthesis.name, e) from e

        if patch.draft is None:
            raise NodeFailure(self.synthesis.name, "produced no draft")

        state.apply(patch)
        yield NodeCompleteEvent(node=self.synthesis.name)

        self.outcome = RoundOutcome(round=round_number, output=patch.draft)
        logger.info(
            f"Round {round_number}/{state.max_rounds} complete: "
            f"{'final' if patch.draft.is_final else 'provisional'} answer"
        )
