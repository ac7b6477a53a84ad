"""
Cooperative cancellation for a single run.

The engine creates one CancellationToken per run and passes it to every
node. Nodes check it before starting work and wrap each awaited network
call in ``token.guard()``, which races the call against the token: if the
token fires first, the in-flight call is cancelled and its result discarded.
"""

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

from ..errors import EngineCancelled

T = TypeVar("T")


class CancellationToken:
    """Single-writer, many-reader flag. Once set it is never reset."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "aborted") -> None:
        """Set the token. Calling it again keeps the first reason."""
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise EngineCancelled(self.reason or "aborted")

    async def wait(self) -> None:
        await self._event.wait()

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """
        Await ``awaitable`` unless the token fires first.

        Raises:
            EngineCancelled: If the token is already set, or becomes set
                while the call is pending (the call is then cancelled)
        """
        if self._event.is_set():
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise EngineCancelled(self.reason or "aborted")

        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            waiter.cancel()

        if self._event.is_set():
            if not task.done():
                task.cancel()
            elif not task.cancelled():
                # Retrieve a discarded failure so asyncio does not report it
                task.exception()
            raise EngineCancelled(self.reason or "aborted")

        return task.result()
