"""
Tests for ExpertFanout.

These tests verify:
- Results are yielded in completion order, not launch order
- One failing expert never disturbs the others
- The fan-out fails only when every expert fails
- Cancellation stops pending experts
"""

import asyncio

import pytest

from deepthink.config import ExpertConfig
from deepthink.engine.cancellation import CancellationToken
from deepthink.engine.fanout import ExpertFanout
from deepthink.engine.nodes import ExpertNode
from deepthink.engine.state import RunState
from deepthink.errors import AllExpertsFailedError, EngineCancelled

from tests.fakes import FakeModelClient


def _fanout(client, count: int = 3) -> ExpertFanout:
    experts = [
        ExpertNode(
            config=ExpertConfig(id=f"e{i}", name=f"E{i}", instructions=f"Strategy {i}"),
            client=client,
            model="fake-model",
        )
        for i in range(1, count + 1)
    ]
    return ExpertFanout(experts)


def _snapshot():
    state = RunState(query="What is 2+2?", max_rounds=1)
    state.begin_round(1)
    return state.snapshot()


async def _collect(fanout, token):
    return [result async for result in fanout.run(_snapshot(), token)]


def test_rejects_empty_and_duplicate_experts():
    with pytest.raises(ValueError):
        ExpertFanout([])

    client = FakeModelClient()
    node = ExpertNode(ExpertConfig(id="same", name="A", instructions="x"), client, "m")
    with pytest.raises(ValueError, match="unique"):
        ExpertFanout([node, node])


@pytest.mark.asyncio
async def test_results_arrive_in_completion_order():
    client = FakeModelClient(latency={"E1": 0.2, "E2": 0.3, "E3": 0.05})

    results = await _collect(_fanout(client), CancellationToken())

    assert [r.expert_id for r in results] == ["e3", "e1", "e2"]
    assert all(r.ok for r in results)
    assert results[0].content == "E3 says 4"


@pytest.mark.asyncio
async def test_failing_expert_is_isolated():
    client = FakeModelClient(failing={"E2"})

    results = await _collect(_fanout(client), CancellationToken())

    by_id = {r.expert_id: r for r in results}
    assert len(results) == 3
    assert by_id["e2"].status == "error"
    assert by_id["e2"].error == "E2 is down"
    assert by_id["e2"].content == ""
    assert by_id["e1"].ok and by_id["e3"].ok


@pytest.mark.asyncio
async def test_all_experts_failing_raises_after_all_settle():
    client = FakeModelClient(failing={"E1", "E2", "E3"})
    seen = []

    with pytest.raises(AllExpertsFailedError) as exc_info:
        async for result in _fanout(client).run(_snapshot(), CancellationToken()):
            seen.append(result)

    assert len(seen) == 3
    assert exc_info.value.node == "experts"
    assert set(exc_info.value.errors) == {"e1", "e2", "e3"}


@pytest.mark.asyncio
async def test_cancel_stops_pending_experts():
    client = FakeModelClient(hanging={"E1", "E2"})
    token = CancellationToken()
    results = _fanout(client).run(_snapshot(), token)

    first = await results.__anext__()
    assert first.expert_id == "e3"

    token.cancel()
    with pytest.raises(EngineCancelled):
        await results.__anext__()

    await asyncio.sleep(0.01)
    assert sorted(client.cancelled) == ["E1", "E2"]


@pytest.mark.asyncio
async def test_closing_early_cancels_pending_experts():
    client = FakeModelClient(hanging={"E1", "E2"})
    results = _fanout(client).run(_snapshot(), CancellationToken())

    await results.__anext__()
    await results.aclose()

    await asyncio.sleep(0.01)
    assert sorted(client.cancelled) == ["E1", "E2"]
