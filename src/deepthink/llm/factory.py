"""
Model client construction and caching.

ClientCache turns resolved LLMSettings into a reusable ModelClient. Clients
hold connection pools, so reusing them across runs avoids a fresh TCP/TLS
handshake per request. The cache is owned by the process (the web app
lifespan or the CLI command) and injected into each engine.
"""

import hashlib
import logging
from collections import OrderedDict
from collections.abc import Callable

from ..config import LLMSettings
from ..errors import ModelConfigurationError
from .protocol import ModelClient

logger = logging.getLogger(__name__)

DEFAULT_OPENAI_BASE_URL = "https://api.openai.com/v1"

ClientBuilder = Callable[[LLMSettings, str], ModelClient]


def build_client(settings: LLMSettings, api_key: str) -> ModelClient:
    """
    Construct a client for the configured provider.

    Every provider other than ``anthropic`` is assumed to speak the
    OpenAI-compatible chat completions format.
    """
    if settings.provider == "anthropic":
        from .anthropic import AnthropicClient

        base_url = settings.base_url
        if base_url.rstrip("/") == DEFAULT_OPENAI_BASE_URL:
            base_url = None
        return AnthropicClient(
            api_key=api_key,
            model=settings.model,
            base_url=base_url,
            timeout=settings.timeout_seconds,
            max_retries=settings.max_retries,
            temperature=settings.temperature,
            api_key_env=settings.api_key_env,
        )

    from .openai_compat import OpenAICompatibleClient

    return OpenAICompatibleClient(
        api_key=api_key,
        model=settings.model,
        base_url=settings.base_url,
        timeout=settings.timeout_seconds,
        max_retries=settings.max_retries,
        temperature=settings.temperature,
        provider=settings.provider,
        api_key_env=settings.api_key_env,
    )


class ClientCache:
    """
    Bounded LRU cache of model clients.

    Keys combine provider, endpoint, model and a SHA-256 fingerprint of the
    credential, so raw API keys are never used as dictionary keys.

    Runs take clients with ``acquire`` and hand them back with ``release``.
    A client evicted while a run still holds it stays open until its last
    lease is released; evicted clients nobody holds are closed on the next
    ``release`` or ``aclose``.
    """

    def __init__(self, max_size: int = 20, builder: ClientBuilder = build_client):
        if max_size < 1:
            raise ValueError("max_size must be >= 1")
        self.max_size = max_size
        self._builder = builder
        self._clients: OrderedDict[str, ModelClient] = OrderedDict()
        self._leases: dict[int, int] = {}
        self._retired: dict[int, ModelClient] = {}

    def __len__(self) -> int:
        return len(self._clients)

    @property
    def active_leases(self) -> int:
        return sum(self._leases.values())

    @staticmethod
    def cache_key(settings: LLMSettings, api_key: str) -> str:
        fingerprint = hashlib.sha256(api_key.encode("utf-8")).hexdigest()[:16]
        return f"{settings.provider}:{fingerprint}:{settings.base_url}:{settings.model}"

    def get_client(self, settings: LLMSettings) -> ModelClient:
        """
        Return a cached client for these settings, building one if needed.

        Raises:
            ModelConfigurationError: If no API key is configured
        """
        api_key = settings.resolve_api_key()
        if not api_key:
            raise ModelConfigurationError(
                f"LLM API key is not configured. Set {settings.api_key_env} "
                "or pass apiKey with the request."
            )

        key = self.cache_key(settings, api_key)
        cached = self._clients.get(key)
        if cached is not None:
            self._clients.move_to_end(key)
            return cached

        if len(self._clients) >= self.max_size:
            evicted_key, evicted = self._clients.popitem(last=False)
            self._retired[id(evicted)] = evicted
            logger.debug(f"Evicted model client {evicted_key.split(':', 1)[0]} from cache")

        client = self._builder(settings, api_key)
        self._clients[key] = client
        self._retired.pop(id(client), None)
        logger.info(f"Created model client {client.name} (cached: {len(self._clients)})")
        return client

    def acquire(self, settings: LLMSettings) -> ModelClient:
        """Like ``get_client``, but holds the client open until ``release``."""
        client = self.get_client(settings)
        self._leases[id(client)] = self._leases.get(id(client), 0) + 1
        return client

    async def release(self, client: ModelClient) -> None:
        """Return a lease taken with ``acquire`` and close idle evicted clients."""
        count = self._leases.get(id(client), 0) - 1
        if count > 0:
            self._leases[id(client)] = count
        else:
            self._leases.pop(id(client), None)
        await self._close_retired()

    async def _close_retired(self) -> None:
        cached = {id(c) for c in self._clients.values()}
        idle = [
            client
            for client_id, client in self._retired.items()
            if client_id not in self._leases and client_id not in cached
        ]
        for client in idle:
            self._retired.pop(id(client), None)
            await self._close(client)

    async def _close(self, client: ModelClient) -> None:
        try:
            await client.aclose()
        except Exception as e:
            logger.warning(f"Failed to close model client {client.name}: {e}")

    def clear(self) -> None:
        """Drop every cached client (e.g. after a settings change)."""
        for client in self._clients.values():
            self._retired[id(client)] = client
        self._clients.clear()

    async def aclose(self) -> None:
        """Close and drop every client, cached or evicted."""
        clients = {id(c): c for c in [*self._clients.values(), *self._retired.values()]}
        self._clients.clear()
        self._retired.clear()
        self._leases.clear()
        for client in clients.values():
            await self._close(client)
