import pytest

from deepthink.llm.base import extract_json_from_text, with_retry


def test_extract_json_from_code_block():
    text = 'Here you go:\n```json\n{"answer": "4", "final": true}\n```\nDone.'
    assert extract_json_from_text(text) == {"answer": "4", "final": True}


def test_extract_json_bare_object():
    assert extract_json_from_text('prefix {"answer": "4"} suffix') == {"answer": "4"}


def test_extract_json_none_when_absent():
    assert extract_json_from_text("The answer is 4.") is None
    assert extract_json_from_text("[1, 2, 3]") is None
    assert extract_json_from_text("{not json}") is None


@pytest.mark.asyncio
async def test_with_retry_does_not_retry_other_errors():
    calls = 0

    async def broken():
        nonlocal calls
        calls += 1
        raise ValueError("bad request")

    with pytest.raises(ValueError):
        await with_retry(broken, retry_on=(ConnectionError,), max_attempts=3)

    assert calls == 1


@pytest.mark.asyncio
async def test_with_retry_returns_value():
    async def ok(value):
        return value * 2

    assert await with_retry(ok, 21, max_attempts=1) == 42
