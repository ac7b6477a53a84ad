"""
DeepThink reasoning engine.

The engine owns one run: its RunState, its CancellationToken and the
outward event stream. ``stream()`` is an async generator, so the consumer
sets the pace: the engine only advances when the next event is requested.

State machine:

    INIT → ROUND_RUNNING → (ROUND_RUNNING | FINALIZING) → COMPLETED | ABORTED | FAILED

COMPLETED ends with exactly one CompleteEvent; FAILED ends with exactly one
ErrorEvent; ABORTED ends silently.
"""

import logging
import uuid
from collections.abc import AsyncIterator
from contextlib import aclosing
from enum import Enum

from ..config import DeepThinkConfig, RunConfig
from ..errors import EngineCancelled, ModelConfigurationError, NodeFailure
from ..llm.factory import ClientCache
from ..llm.protocol import ModelClient
from ..search.base import SearchClient
from ..utils.logging import RunLogger
from .cancellation import CancellationToken
from .events import CompleteEvent, EngineEvent, ErrorEvent
from .fanout import ExpertFanout
from .nodes import ExpertNode, ResearchNode, SynthesisNode
from .rounds import RoundController
from .state import RunState

logger = logging.getLogger(__name__)


class EngineStatus(str, Enum):
    INIT = "init"
    ROUND_RUNNING = "round_running"
    FINALIZING = "finalizing"
    COMPLETED = "completed"
    ABORTED = "aborted"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (EngineStatus.COMPLETED, EngineStatus.ABORTED, EngineStatus.FAILED)


class DeepThinkEngine:
    """
    Multi-round reasoning engine for a single run.

    Create one engine per query; an engine cannot be restarted.

    Example:
        engine = DeepThinkEngine(config, client_cache, search_manager)
        async for event in engine.stream("What is 2+2?", RunConfig(maxRounds=2)):
            print(event.to_wire())
    """

    def __init__(
        self,
        config: DeepThinkConfig,
        client_cache: ClientCache,
        search_client: SearchClient,
        run_id: str | None = None,
    ):
        """
        Initialize the engine.

        Args:
            config: Process-wide configuration
            client_cache: Shared model client cache owned by the process
            search_client: Search backend for the research node
            run_id: Identifier used in logs (random when omitted)
        """
        self.config = config
        self.client_cache = client_cache
        self.search_client = search_client
        self.run_id = run_id or uuid.uuid4().hex[:8]

        self.state: RunState | None = None
        self.rounds_completed = 0
        self._status = EngineStatus.INIT
        self._token: CancellationToken | None = None
        self._leased: list[ModelClient] = []
        self._log = RunLogger(__name__, run=self.run_id)

    @property
    def status(self) -> EngineStatus:
        return self._status

    def abort(self) -> None:
        """
        Cancel the active run.

        Safe to call at any time and any number of times; before the run
        starts or after it ends this does nothing.
        """
        if self._token is None or self._status.is_terminal:
            return
        if not self._token.cancelled:
            self._log.info("Abort requested")
        self._token.cancel("aborted by client")

    def _build_controller(self, run_config: RunConfig) -> RoundController:
        """
        Resolve clients for this run and wire up the nodes.

        Raises:
            ModelConfigurationError: If a model client cannot be built
        """
        llm = run_config.apply_to(self.config.llm)

        def client_for(model: str) -> ModelClient:
            settings = llm if model == llm.model else llm.model_copy(update={"model": model})
            client = self.client_cache.acquire(settings)
            self._leased.append(client)
            return client

        experts = [
            ExpertNode(
                config=expert,
                client=client_for(expert.model or llm.model),
                model=expert.model or llm.model,
            )
            for expert in self.config.experts
        ]

        synthesis_model = self.config.synthesis.model or llm.model
        synthesis = SynthesisNode(
            client=client_for(synthesis_model),
            model=synthesis_model,
            temperature=self.config.synthesis.temperature,
        )

        return RoundController(
            research=ResearchNode(self.search_client, self.config.search.max_results),
            fanout=ExpertFanout(experts),
            synthesis=synthesis,
            research_failure_policy=self.config.engine.research_failure_policy,
        )

    async def _release_clients(self) -> None:
        leased, self._leased = self._leased, []
        for client in leased:
            await self.client_cache.release(client)

    def _fail(self, message: str) -> ErrorEvent:
        self._status = EngineStatus.FAILED
        self._log.error(f"Run failed: {message}")
        return ErrorEvent(message=message)

    async def stream(
        self,
        query: str,
        run_config: RunConfig | None = None,
    ) -> AsyncIterator[EngineEvent]:
        """
        Run the reasoning pipeline, yielding events as work completes.

        Args:
            query: User query (surrounding whitespace is ignored)
            run_config: Per-run overrides; defaults to a single round

        Yields:
            Engine events, ending with one CompleteEvent or ErrorEvent,
            or with nothing further if the run was aborted

        Raises:
            RuntimeError: If this engine has already been used
        """
        if self._status is not EngineStatus.INIT:
            raise RuntimeError("DeepThinkEngine runs once; create a new engine per query")

        run_config = run_config or RunConfig()
        query = (query or "").strip()
        if not query:
            yield self._fail("Empty query")
            return

        max_rounds = run_config.max_rounds
        limit = self.config.engine.max_rounds_limit
        if max_rounds > limit:
            self._log.warning(f"Requested {max_rounds} rounds, clamped to {limit}")
            max_rounds = limit

        token = CancellationToken()
        self._token = token
        self._status = EngineStatus.ROUND_RUNNING

        try:
            controller = self._build_controller(run_config)
        except (ModelConfigurationError, ValueError) as e:
            await self._release_clients()
            yield self._fail(str(e))
            return

        state = RunState(
            query=query,
            max_rounds=max_rounds,
            file_context=run_config.file_context_text(self.config.engine.file_context_char_limit),
        )
        self.state = state
        self._log.info(f"Starting run: {max_rounds} round(s), query='{query[:80]}'")

        try:
            outcome = None
            for round_number in range(1, max_rounds + 1):
                self._status = EngineStatus.ROUND_RUNNING
                log = self._log.bind(round=round_number)
                log.debug("Round started")

                async with aclosing(controller.run(state, token, round_number)) as events:
                    async for event in events:
                        yield event

                outcome = controller.outcome
                self.rounds_completed = round_number
                token.raise_if_cancelled()

                if not outcome.should_continue:
                    log.info("Synthesis reported a final answer")
                    break

            self._status = EngineStatus.FINALIZING
            token.raise_if_cancelled()

            state.finalize(outcome.output)
            complete = CompleteEvent(
                final_output=outcome.output.content,
                experts=state.experts_wire(),
                search_results=state.search_results_wire(),
            )
            self._status = EngineStatus.COMPLETED
            self._log.info(f"Run complete after {self.rounds_completed} round(s)")
            yield complete

        except EngineCancelled:
            self._status = EngineStatus.ABORTED
            self._log.info(f"Run aborted after {self.rounds_completed} round(s)")

        except NodeFailure as e:
            if token.cancelled:
                self._status = EngineStatus.ABORTED
                self._log.info(f"Run aborted while {e.node} was failing")
            else:
                yield self._fail(str(e))

        except Exception as e:
            if token.cancelled:
                self._status = EngineStatus.ABORTED
            else:
                self._log.exception("Unexpected engine error")
                yield self._fail(str(e) or type(e).__name__)

        finally:
            if not self._status.is_terminal:
                # Consumer stopped iterating (aclose) or the task was cancelled
                self._status = EngineStatus.ABORTED
                token.cancel("stream closed")
                self._log.info("Event stream closed before the run finished")
            await self._release_clients()
