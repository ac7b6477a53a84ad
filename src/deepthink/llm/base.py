"""
Utilities shared across model clients.

Provides:
- Retry with exponential backoff for transient network errors
- JSON extraction from model output
"""

import json
import logging
import re
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def with_retry(
    func: Callable[..., Awaitable[T]],
    *args: Any,
    retry_on: tuple[type[BaseException], ...] = (ConnectionError, TimeoutError),
    max_attempts: int = 3,
    **kwargs: Any,
) -> T:
    """
    Execute an async function with exponential backoff retry.

    Only exceptions in ``retry_on`` are retried; anything else propagates
    immediately. The last exception is re-raised once attempts run out.
    """
    async for attempt in AsyncRetrying(
        retry=retry_if_exception_type(retry_on),
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        reraise=True,
    ):
        with attempt:
            if attempt.retry_state.attempt_number > 1:
                logger.debug(f"Retry attempt {attempt.retry_state.attempt_number}/{max_attempts}")
            return await func(*args, **kwargs)

    # Unreachable with reraise=True
    raise RuntimeError("Retry logic failed unexpectedly")


def extract_json_from_text(text: str) -> dict[str, Any] | None:
    """
    Extract a JSON object from model output (handles markdown code blocks).

    Args:
        text: Text potentially containing JSON

    Returns:
        Parsed dict, or None if no JSON object was found
    """
    json_match = re.search(r"```(?:json)?\s*(\{.*?\})\s*```", text, re.DOTALL)
    if json_match:
        try:
            parsed = json.loads(json_match.group(1))
            if isinstance(parsed, dict):
                return parsed
        except json.JSONDecodeError:
            pass

    json_match = re.search(r"\{.*\}", text, re.DOTALL)
    if json_match:
        try:
            parsed = json.loads(json_match.group(0))
            if isinstance(parsed, dict):
                return parsed
        except json.JSONDecodeError:
            pass

    return None
