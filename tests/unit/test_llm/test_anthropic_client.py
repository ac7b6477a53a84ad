import json

import pytest
import respx
from httpx import Response

from deepthink.config import DeepThinkConfig, LLMSettings, RunConfig
from deepthink.engine import CompleteEvent, DeepThinkEngine
from deepthink.errors import ModelAuthenticationError
from deepthink.llm.anthropic import AnthropicClient
from deepthink.llm.factory import ClientCache, build_client

from tests.fakes import FakeSearchClient, synthesis_reply

MESSAGES_URL = "https://api.anthropic.com/v1/messages"


@pytest.fixture(autouse=True)
def default_anthropic_endpoint(monkeypatch):
    monkeypatch.delenv("ANTHROPIC_BASE_URL", raising=False)


def _message(*texts: str, model: str = "claude-test") -> dict:
    return {
        "id": "msg_1",
        "type": "message",
        "role": "assistant",
        "model": model,
        "content": [{"type": "text", "text": text} for text in texts],
        "stop_reason": "end_turn",
        "stop_sequence": None,
        "usage": {"input_tokens": 10, "output_tokens": 4},
    }


@pytest.mark.asyncio
async def test_complete_joins_text_blocks():
    client = AnthropicClient(api_key="sk-ant-test", model="claude-test", max_retries=0)
    try:
        with respx.mock(assert_all_called=True) as respx_mock:
            route = respx_mock.post(MESSAGES_URL).mock(
                return_value=Response(200, json=_message("The answer ", "is 4."))
            )
            completion = await client.complete("sys", "What is 2+2?")

        assert completion.content == "The answer is 4."
        assert (completion.input_tokens, completion.output_tokens) == (10, 4)

        body = json.loads(route.calls.last.request.content)
        assert body["system"] == "sys"
        assert body["messages"] == [{"role": "user", "content": "What is 2+2?"}]
        assert body["temperature"] == 0.7
    finally:
        await client.aclose()


@pytest.mark.asyncio
async def test_temperature_override_is_sent():
    client = AnthropicClient(api_key="sk-ant-test", model="claude-test", max_retries=0)
    try:
        with respx.mock(assert_all_called=True) as respx_mock:
            route = respx_mock.post(MESSAGES_URL).mock(return_value=Response(200, json=_message("ok")))
            await client.complete("sys", "q", model="claude-other", temperature=0.2)

        body = json.loads(route.calls.last.request.content)
        assert body["model"] == "claude-other"
        assert body["temperature"] == 0.2
    finally:
        await client.aclose()


@pytest.mark.asyncio
async def test_authentication_error():
    client = AnthropicClient(
        api_key="sk-ant-bad", model="claude-test", max_retries=0, api_key_env="ANTHROPIC_API_KEY"
    )
    try:
        with respx.mock() as respx_mock:
            respx_mock.post(MESSAGES_URL).mock(
                return_value=Response(
                    401,
                    json={
                        "type": "error",
                        "error": {"type": "authentication_error", "message": "invalid x-api-key"},
                    },
                )
            )
            with pytest.raises(ModelAuthenticationError, match="ANTHROPIC_API_KEY"):
                await client.complete("sys", "q")
    finally:
        await client.aclose()


@pytest.mark.asyncio
async def test_build_client_anthropic_ignores_default_openai_url():
    client = build_client(LLMSettings(provider="anthropic", model="claude-test"), "sk-ant")
    try:
        assert isinstance(client, AnthropicClient)
        assert client.name == "anthropic:claude-test"
        assert str(client.client.base_url).startswith("https://api.anthropic.com")
    finally:
        await client.aclose()


@pytest.mark.asyncio
async def test_engine_run_with_anthropic_provider():
    config = DeepThinkConfig(
        llm=LLMSettings(provider="anthropic", model="claude-test", api_key="sk-ant", max_retries=0)
    )
    cache = ClientCache()

    def reply(request):
        system = json.loads(request.content)["system"]
        if "independent experts" in system:
            return Response(200, json=_message("Expert says 4"))
        return Response(200, json=_message(synthesis_reply("The answer is 4.")))

    try:
        with respx.mock(assert_all_called=True) as respx_mock:
            respx_mock.post(MESSAGES_URL).mock(side_effect=reply)
            engine = DeepThinkEngine(config, cache, FakeSearchClient())
            events = [e async for e in engine.stream("What is 2+2?", RunConfig(maxRounds=1))]
    finally:
        await cache.aclose()

    assert isinstance(events[-1], CompleteEvent)
    assert events[-1].final_output == "The answer is 4."
    assert {e["status"] for e in events[-1].experts} == {"success"}
