"""
Expert fan-out coordinator.

Launches every expert of a round concurrently and yields each ExpertResult
as soon as that expert settles, in completion order rather than launch
order. A failing expert becomes a placeholder result and never disturbs the
others; only when every expert fails does the fan-out raise.
"""

import asyncio
import logging
import time
from collections.abc import AsyncIterator

from ..errors import AllExpertsFailedError, EngineCancelled
from .cancellation import CancellationToken
from .nodes import ExpertNode
from .state import ExpertResult, RunSnapshot

logger = logging.getLogger(__name__)


class ExpertFanout:
    """Runs a fixed set of experts in parallel for one round."""

    name = "experts"

    def __init__(self, experts: list[ExpertNode]):
        """
        Initialize the coordinator.

        Args:
            experts: Expert nodes, one per configured expert strategy
        """
        if not experts:
            raise ValueError("At least one expert required")

        ids = [expert.expert_id for expert in experts]
        if len(set(ids)) != len(ids):
            raise ValueError(f"Expert ids must be unique: {ids}")

        self.experts = experts

    @property
    def expert_ids(self) -> list[str]:
        return [expert.expert_id for expert in self.experts]

    async def _run_expert(
        self,
        expert: ExpertNode,
        snapshot: RunSnapshot,
        token: CancellationToken,
        settled: asyncio.Queue,
    ) -> None:
        start_time = time.monotonic()
        try:
            patch = await expert.run(snapshot, token)
            result = patch.expert_result
        except EngineCancelled:
            return
        except Exception as e:
            logger.warning(f"Expert {expert.expert_id} failed: {e}")
            result = expert.failed_result(snapshot, e, time.monotonic() - start_time)

        await settled.put(result)

    async def run(
        self,
        snapshot: RunSnapshot,
        token: CancellationToken,
    ) -> AsyncIterator[ExpertResult]:
        """
        Yield expert results in the order they settle.

        Every launched task is cancelled and awaited on the way out, whether
        the fan-out finished, was cancelled, or the consumer stopped early.

        Raises:
            EngineCancelled: If the token fires while experts are pending
            AllExpertsFailedError: After all experts settled with errors
        """
        token.raise_if_cancelled()

        logger.info(f"Dispatching {len(self.experts)} experts in parallel")

        settled: asyncio.Queue[ExpertResult] = asyncio.Queue()
        tasks = [
            asyncio.create_task(
                self._run_expert(expert, snapshot, token, settled),
                name=f"expert:{expert.expert_id}",
            )
            for expert in self.experts
        ]

        errors: dict[str, str] = {}
        try:
            for _ in range(len(tasks)):
                result = await token.guard(settled.get())
                if not result.ok:
                    errors[result.expert_id] = result.error or "unknown error"
                yield result
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

        if len(errors) == len(self.experts):
            raise AllExpertsFailedError(errors)
