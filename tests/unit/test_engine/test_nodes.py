"""Tests for pipeline nodes, synthesis parsing and event wire shapes."""

import pytest

from deepthink.config import ExpertConfig
from deepthink.engine.cancellation import CancellationToken
from deepthink.engine.events import (
    CompleteEvent,
    ErrorEvent,
    ExpertCompleteEvent,
    NodeCompleteEvent,
    NodeStartEvent,
)
from deepthink.engine.nodes import ExpertNode, SynthesisNode, parse_synthesis
from deepthink.engine.prompts import format_search_results
from deepthink.engine.state import RunState
from deepthink.errors import ModelClientError
from deepthink.llm.protocol import Completion
from deepthink.search.base import SearchResult

from tests.fakes import FakeModelClient, synthesis_reply


class _StaticClient:
    def __init__(self, content: str):
        self.content = content

    @property
    def name(self) -> str:
        return "static"

    async def complete(self, system_prompt, user_prompt, *, model=None, temperature=None):
        return Completion(content=self.content, model="static-model")

    async def aclose(self):
        pass


def _snapshot(max_rounds: int = 1):
    state = RunState(query="What is 2+2?", max_rounds=max_rounds)
    state.begin_round(1)
    return state.snapshot()


def test_parse_synthesis_json():
    output = parse_synthesis(
        synthesis_reply("It is 4.", final=False, follow_up_query="peano arithmetic"),
        round_number=1,
        model="m",
    )

    assert output.content == "It is 4."
    assert output.is_final is False
    assert output.follow_up_query == "peano arithmetic"


def test_parse_synthesis_json_in_code_block():
    text = '```json\n{"answer": "4", "final": true}\n```'

    output = parse_synthesis(text, round_number=2, model="m")

    assert output.content == "4"
    assert output.is_final is True
    assert output.round == 2
    assert output.follow_up_query is None


def test_parse_synthesis_missing_final_means_final():
    output = parse_synthesis('{"answer": "4"}', round_number=1, model="m")
    assert output.is_final is True


def test_parse_synthesis_plain_text_is_final_answer():
    output = parse_synthesis("  The answer is 4.  ", round_number=1, model="m")

    assert output.content == "The answer is 4."
    assert output.is_final is True


def test_parse_synthesis_empty_raises():
    with pytest.raises(ModelClientError):
        parse_synthesis("   ", round_number=1, model="m")


@pytest.mark.asyncio
async def test_synthesis_forced_final_on_last_round():
    client = FakeModelClient(synthesis_replies=[synthesis_reply("maybe 4", final=False)])
    node = SynthesisNode(client, model="m")

    patch = await node.run(_snapshot(max_rounds=1), CancellationToken())

    assert patch.draft.is_final is True
    assert patch.draft.content == "maybe 4"
    assert "This is the last round." in client.synthesis_prompts[0]


@pytest.mark.asyncio
async def test_synthesis_may_continue_before_last_round():
    client = FakeModelClient(synthesis_replies=[synthesis_reply("maybe 4", final=False)])
    node = SynthesisNode(client, model="m")

    patch = await node.run(_snapshot(max_rounds=3), CancellationToken())

    assert patch.draft.is_final is False


@pytest.mark.asyncio
async def test_expert_empty_response_raises():
    node = ExpertNode(ExpertConfig(id="a", name="A", instructions="x"), _StaticClient("  "), "m")

    with pytest.raises(ModelClientError, match="empty response"):
        await node.run(_snapshot(), CancellationToken())


@pytest.mark.asyncio
async def test_expert_result_carries_identity_and_round():
    node = ExpertNode(ExpertConfig(id="a", name="A", instructions="x"), _StaticClient("4"), "m")

    patch = await node.run(_snapshot(), CancellationToken())

    result = patch.expert_result
    assert (result.expert_id, result.name, result.model) == ("a", "A", "static-model")
    assert result.round == 1
    assert result.ok


def test_format_search_results():
    assert "unavailable" in format_search_results(None)
    assert "No search results" in format_search_results([])

    text = format_search_results(
        [SearchResult(title="Math", url="https://example.com", snippet="2+2=4\nalways")]
    )
    assert text == "[1] Math\n    https://example.com\n    2+2=4 always"


def test_event_wire_shapes():
    assert NodeStartEvent(node="experts", data={"round": 1}).to_wire() == {
        "type": "state_update",
        "node": "experts",
        "status": "started",
        "data": {"round": 1},
    }
    assert NodeCompleteEvent(node="synthesis").to_wire() == {
        "type": "state_update",
        "node": "synthesis",
        "status": "completed",
    }
    assert NodeCompleteEvent(node="search", search_results=[]).to_wire()["searchResults"] == []
    assert ExpertCompleteEvent(data={"id": "a"}).to_wire() == {
        "type": "expert_complete",
        "data": {"id": "a"},
    }
    assert CompleteEvent(final_output="4").to_wire() == {
        "type": "complete",
        "data": {"final_output": "4", "experts": []},
    }
    assert ErrorEvent(message="boom").to_wire() == {"type": "error", "message": "boom"}
