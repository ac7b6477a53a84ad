"""
Tests for CancellationToken.

These tests verify:
- The flag is sticky and keeps the first reason
- guard() returns results and propagates failures
- guard() cancels the in-flight call when the token fires
"""

import asyncio

import pytest

from deepthink.engine.cancellation import CancellationToken
from deepthink.errors import EngineCancelled


def test_cancel_is_sticky_and_keeps_first_reason():
    token = CancellationToken()
    assert not token.cancelled

    token.cancel("client cancel")
    token.cancel("stream closed")

    assert token.cancelled
    assert token.reason == "client cancel"


def test_raise_if_cancelled():
    token = CancellationToken()
    token.raise_if_cancelled()

    token.cancel()
    with pytest.raises(EngineCancelled):
        token.raise_if_cancelled()


@pytest.mark.asyncio
async def test_guard_returns_result():
    token = CancellationToken()

    async def work():
        await asyncio.sleep(0)
        return 42

    assert await token.guard(work()) == 42


@pytest.mark.asyncio
async def test_guard_propagates_errors():
    token = CancellationToken()

    async def broken():
        raise ValueError("boom")

    with pytest.raises(ValueError, match="boom"):
        await token.guard(broken())


@pytest.mark.asyncio
async def test_guard_refuses_when_already_cancelled():
    token = CancellationToken()
    token.cancel()
    started = False

    async def work():
        nonlocal started
        started = True

    with pytest.raises(EngineCancelled):
        await token.guard(work())

    assert started is False


@pytest.mark.asyncio
async def test_guard_cancels_in_flight_call():
    token = CancellationToken()
    call_cancelled = asyncio.Event()

    async def slow_call():
        try:
            await asyncio.sleep(10)
        except asyncio.CancelledError:
            call_cancelled.set()
            raise

    guarded = asyncio.create_task(token.guard(slow_call()))
    await asyncio.sleep(0.01)
    token.cancel("aborted by client")

    with pytest.raises(EngineCancelled, match="aborted by client"):
        await guarded

    await asyncio.wait_for(call_cancelled.wait(), timeout=1)


@pytest.mark.asyncio
async def test_task_cancellation_reaches_guarded_call():
    token = CancellationToken()
    call_cancelled = asyncio.Event()

    async def slow_call():
        try:
            await asyncio.sleep(10)
        except asyncio.CancelledError:
            call_cancelled.set()
            raise

    guarded = asyncio.create_task(token.guard(slow_call()))
    await asyncio.sleep(0.01)
    guarded.cancel()

    with pytest.raises(asyncio.CancelledError):
        await guarded

    await asyncio.wait_for(call_cancelled.wait(), timeout=1)
