"""
Anthropic Claude model client.

Wraps ``anthropic.AsyncAnthropic``; the SDK handles connection pooling and
its own retries for transient errors. When no ``base_url`` is given the SDK
reads ``ANTHROPIC_BASE_URL`` from the environment before falling back to
the public endpoint.

Sampling temperature is sent through ``extra_body``; ``messages.create`` in
current SDK releases has no ``temperature`` keyword.
"""

import logging
import time

import anthropic

from ..errors import ModelAuthenticationError, ModelClientError
from .protocol import Completion

logger = logging.getLogger(__name__)


class AnthropicClient:
    """Model client for the Anthropic Messages API."""

    def __init__(
        self,
        api_key: str,
        model: str = "claude-sonnet-4-20250514",
        base_url: str | None = None,
        timeout: float = 120.0,
        max_retries: int = 3,
        temperature: float = 0.7,
        max_tokens: int = 4096,
        api_key_env: str | None = None,
    ):
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.api_key_env = api_key_env
        self.client = anthropic.AsyncAnthropic(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
            max_retries=max_retries,
        )

    @property
    def name(self) -> str:
        return f"anthropic:{self.model}"

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        model: str | None = None,
        temperature: float | None = None,
    ) -> Completion:
        model_name = model or self.model
        start_time = time.monotonic()

        try:
            response = await self.client.messages.create(
                model=model_name,
                max_tokens=self.max_tokens,
                system=system_prompt,
                messages=[{"role": "user", "content": user_prompt}],
                extra_body={"temperature": self.temperature if temperature is None else temperature},
            )
        except anthropic.AuthenticationError as e:
            raise ModelAuthenticationError("Anthropic", self.api_key_env) from e
        except anthropic.APIError as e:
            raise ModelClientError(f"Anthropic API error: {e}") from e

        content = "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )

        return Completion(
            content=content,
            model=response.model or model_name,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            duration_seconds=time.monotonic() - start_time,
        )

    async def aclose(self) -> None:
        await self.client.close()
