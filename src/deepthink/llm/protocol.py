"""
Protocol definitions for model clients.

The engine only depends on this interface; concrete clients live in
openai_compat.py and anthropic.py and are built by the ClientCache.
"""

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass
class Completion:
    """Result of one model completion call."""

    content: str
    model: str
    input_tokens: int = 0
    output_tokens: int = 0
    duration_seconds: float = 0.0


@runtime_checkable
class ModelClient(Protocol):
    """
    Protocol for model clients.

    Timeouts and transient-failure retries are the client's responsibility;
    the engine treats any exception raised here as a failure of the calling node.
    """

    @property
    def name(self) -> str:
        """Human-readable client name (e.g. 'openai:gpt-4o-mini')."""
        ...

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        model: str | None = None,
        temperature: float | None = None,
    ) -> Completion:
        """
        Run a single completion.

        Args:
            system_prompt: System-level instructions
            user_prompt: User message
            model: Model override for this call (defaults to the client's model)
            temperature: Sampling temperature override

        Returns:
            Completion with the generated text and usage
        """
        ...

    async def aclose(self) -> None:
        """Release network resources."""
        ...
