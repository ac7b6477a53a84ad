"""
Engine event models.

Events are the only way a run's progress becomes observable. Each model is
frozen and renders its client wire shape through ``to_wire()``:

- NodeStartEvent:     {type: "state_update", node, status: "started", data}
- NodeCompleteEvent:  {type: "state_update", node, status: "completed", searchResults?}
- ExpertCompleteEvent:{type: "expert_complete", data}
- CompleteEvent:      {type: "complete", data: {final_output, experts, searchResults}}
- ErrorEvent:         {type: "error", message}
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

NodeName = Literal["search", "experts", "synthesis"]


class _Event(BaseModel):
    model_config = ConfigDict(frozen=True)

    def to_wire(self) -> dict[str, Any]:
        raise NotImplementedError


class NodeStartEvent(_Event):
    """A pipeline node has started."""

    kind: Literal["node_start"] = "node_start"
    node: NodeName
    data: dict[str, Any] = Field(default_factory=dict)

    def to_wire(self) -> dict[str, Any]:
        return {
            "type": "state_update",
            "node": self.node,
            "status": "started",
            "data": dict(self.data),
        }


class NodeCompleteEvent(_Event):
    """A pipeline node has completed. Only ``search`` carries results."""

    kind: Literal["node_complete"] = "node_complete"
    node: NodeName
    search_results: list[dict[str, Any]] | None = None

    def to_wire(self) -> dict[str, Any]:
        wire: dict[str, Any] = {
            "type": "state_update",
            "node": self.node,
            "status": "completed",
        }
        if self.search_results is not None:
            wire["searchResults"] = list(self.search_results)
        return wire


class ExpertCompleteEvent(_Event):
    """One expert in the fan-out has settled (successfully or not)."""

    kind: Literal["expert_complete"] = "expert_complete"
    data: dict[str, Any]

    def to_wire(self) -> dict[str, Any]:
        return {"type": "expert_complete", "data": dict(self.data)}


class CompleteEvent(_Event):
    """Terminal success event, emitted exactly once per completed run."""

    kind: Literal["complete"] = "complete"
    final_output: str
    experts: list[dict[str, Any]] = Field(default_factory=list)
    search_results: list[dict[str, Any]] | None = None

    def to_wire(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "final_output": self.final_output,
            "experts": list(self.experts),
        }
        # Unset values are left out, as an absent key rather than null
        if self.search_results is not None:
            data["searchResults"] = list(self.search_results)
        return {"type": "complete", "data": data}


class ErrorEvent(_Event):
    """Terminal failure event."""

    kind: Literal["error"] = "error"
    message: str

    def to_wire(self) -> dict[str, Any]:
        return {"type": "error", "message": self.message}


EngineEvent = (
    NodeStartEvent
    | NodeCompleteEvent
    | ExpertCompleteEvent
    | CompleteEvent
    | ErrorEvent
)
