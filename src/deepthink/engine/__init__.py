"""Reasoning orchestration engine."""

from .cancellation import CancellationToken
from .core import DeepThinkEngine, EngineStatus
from .events import (
    CompleteEvent,
    EngineEvent,
    ErrorEvent,
    ExpertCompleteEvent,
    NodeCompleteEvent,
    NodeStartEvent,
)
from .fanout import ExpertFanout
from .nodes import ExpertNode, ResearchNode, SynthesisNode
from .rounds import RoundController, RoundOutcome
from .state import ExpertResult, Output, RunSnapshot, RunState, StatePatch

__all__ = [
    "CancellationToken",
    "CompleteEvent",
    "DeepThinkEngine",
    "EngineEvent",
    "EngineStatus",
    "ErrorEvent",
    "ExpertCompleteEvent",
    "ExpertFanout",
    "ExpertNode",
    "ExpertResult",
    "NodeCompleteEvent",
    "NodeStartEvent",
    "Output",
    "ResearchNode",
    "RoundController",
    "RoundOutcome",
    "RunSnapshot",
    "RunState",
    "StatePatch",
    "SynthesisNode",
]
