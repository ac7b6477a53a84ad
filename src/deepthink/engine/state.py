"""
Run state for the reasoning engine.

RunState is the single mutable accumulator of a run and is only touched by
the engine and its RoundController. Nodes receive a frozen RunSnapshot and
hand their results back as a StatePatch, so two concurrently running experts
can never write to shared state.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Literal, Mapping

from ..search.base import SearchResult


@dataclass(frozen=True)
class ExpertResult:
    """Outcome of one expert invocation. Failures become placeholder entries."""

    expert_id: str
    name: str
    model: str
    content: str
    status: Literal["success", "error"]
    round: int
    duration_seconds: float = 0.0
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == "success"

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.expert_id,
            "name": self.name,
            "model": self.model,
            "content": self.content,
            "status": self.status,
            "round": self.round,
            "durationSeconds": round(self.duration_seconds, 3),
        }
        if self.error is not None:
            data["error"] = self.error
        return data


@dataclass(frozen=True)
class Output:
    """A synthesis result. Provisional drafts feed the next round."""

    content: str
    is_final: bool
    round: int
    model: str
    follow_up_query: str | None = None


@dataclass(frozen=True)
class RunSnapshot:
    """Read-only view of RunState handed to nodes."""

    query: str
    round: int
    max_rounds: int
    search_results: tuple[SearchResult, ...] | None
    experts_output: Mapping[str, ExpertResult]
    draft: Output | None
    file_context: str | None

    @property
    def is_last_round(self) -> bool:
        return self.round >= self.max_rounds


@dataclass(frozen=True)
class StatePatch:
    """Changes a node asks the controller to apply."""

    search_results: list[SearchResult] | None = None
    expert_result: ExpertResult | None = None
    draft: Output | None = None


@dataclass
class RunState:
    """Mutable accumulator for one run."""

    query: str
    max_rounds: int
    file_context: str | None = None
    round: int = 0
    search_results: list[SearchResult] | None = None
    experts_output: dict[str, ExpertResult] = field(default_factory=dict)
    draft: Output | None = None
    _final_output: Output | None = field(default=None, init=False, repr=False)

    @property
    def final_output(self) -> Output | None:
        return self._final_output

    def begin_round(self, round_number: int) -> None:
        """Start a new round; the previous round's expert tally does not carry over."""
        self.round = round_number
        self.experts_output = {}

    def apply(self, patch: StatePatch) -> None:
        if patch.search_results is not None:
            self.search_results = list(patch.search_results)
        if patch.expert_result is not None:
            self.record_expert(patch.expert_result)
        if patch.draft is not None:
            self.draft = patch.draft

    def clear_search_results(self) -> None:
        self.search_results = None

    def record_expert(self, result: ExpertResult) -> None:
        """Append an expert result. Insertion order is completion order."""
        if result.expert_id in self.experts_output:
            raise RuntimeError(
                f"Expert {result.expert_id} already reported in round {self.round}"
            )
        self.experts_output[result.expert_id] = result

    def finalize(self, output: Output) -> None:
        """Assign the final output. May happen only once per run."""
        if self._final_output is not None:
            raise RuntimeError("final output already assigned for this run")
        self._final_output = output

    def snapshot(self) -> RunSnapshot:
        return RunSnapshot(
            query=self.query,
            round=self.round,
            max_rounds=self.max_rounds,
            search_results=(
                tuple(self.search_results) if self.search_results is not None else None
            ),
            experts_output=MappingProxyType(dict(self.experts_output)),
            draft=self.draft,
            file_context=self.file_context,
        )

    def search_results_wire(self) -> list[dict[str, Any]] | None:
        if self.search_results is None:
            return None
        return [r.to_dict() for r in self.search_results]

    def experts_wire(self) -> list[dict[str, Any]]:
        return [r.to_dict() for r in self.experts_output.values()]
