"""
Client for OpenAI-compatible chat completion APIs.

Covers OpenAI itself and every provider exposing the same
``/chat/completions`` format (DeepSeek, Moonshot, OpenRouter, local servers).
One instance keeps a persistent HTTP connection pool, which is why instances
are cached and reused across runs by the ClientCache.
"""

import logging
import time
from typing import Any

import httpx

from ..errors import ModelAuthenticationError, ModelClientError
from .base import with_retry
from .protocol import Completion

logger = logging.getLogger(__name__)


class OpenAICompatibleClient:
    """Model client for OpenAI-compatible endpoints."""

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str = "https://api.openai.com/v1",
        timeout: float = 120.0,
        max_retries: int = 3,
        temperature: float = 0.7,
        provider: str = "openai",
        api_key_env: str | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        """
        Initialize the client.

        Args:
            api_key: Bearer token for the provider
            model: Default model identifier
            base_url: API root, without the trailing ``/chat/completions``
            timeout: Per-request timeout in seconds
            max_retries: Attempts for connect/timeout failures
            temperature: Default sampling temperature
            provider: Provider label used in names and error messages
            api_key_env: Environment variable the key came from (for error hints)
            http_client: Pre-built httpx client (tests)
        """
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max_retries
        self.temperature = temperature
        self.provider = provider
        self.api_key_env = api_key_env
        self._client = http_client or httpx.AsyncClient(timeout=timeout)

    @property
    def name(self) -> str:
        return f"{self.provider}:{self.model}"

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        model: str | None = None,
        temperature: float | None = None,
    ) -> Completion:
        model_name = model or self.model
        payload = {
            "model": model_name,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": self.temperature if temperature is None else temperature,
        }

        start_time = time.monotonic()
        response = await with_retry(
            self._client.post,
            f"{self.base_url}/chat/completions",
            headers=self._headers(),
            json=payload,
            retry_on=(httpx.ConnectError, httpx.TimeoutException),
            max_attempts=self.max_retries,
        )

        if response.status_code in (401, 403):
            raise ModelAuthenticationError(self.provider, self.api_key_env)
        if response.status_code != 200:
            raise ModelClientError(
                f"{self.provider} API error ({response.status_code}): {response.text[:500]}"
            )

        result = response.json()
        choices = result.get("choices") or []
        if not choices:
            raise ModelClientError(f"{self.provider} returned no choices for {model_name}")

        content = _message_text(choices[0].get("message") or {})
        usage = result.get("usage") or {}
        duration = time.monotonic() - start_time

        logger.debug(
            f"[{self.name}] completion for {model_name}: "
            f"{usage.get('prompt_tokens', 0)} in / {usage.get('completion_tokens', 0)} out, "
            f"{duration:.1f}s"
        )

        return Completion(
            content=content,
            model=result.get("model") or model_name,
            input_tokens=usage.get("prompt_tokens", 0),
            output_tokens=usage.get("completion_tokens", 0),
            duration_seconds=duration,
        )

    async def aclose(self) -> None:
        await self._client.aclose()


def _message_text(message: dict[str, Any]) -> str:
    """
    Extract text from an assistant message.

    Handles plain string content and the list-of-parts form some providers
    return (``[{"type": "text", "text": "..."}]``).
    """
    content = message.get("content")
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return "".join(
            part.get("text", "")
            for part in content
            if isinstance(part, dict) and part.get("type") in (None, "text")
        )
    return ""
