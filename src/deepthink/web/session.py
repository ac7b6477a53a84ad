"""
Per-connection chat session.

Guards client input before it reaches the engine, runs at most one engine
at a time, and adapts the engine's pull-based event stream to WebSocket
pushes. Message handling continues while a run streams, so a cancel
message can abort the run in flight.
"""

from __future__ import annotations

import asyncio
import json
import logging
from contextlib import aclosing
from typing import Any

from fastapi import WebSocket
from pydantic import ValidationError

from ..config import DeepThinkConfig, RunConfig
from ..engine import DeepThinkEngine
from ..llm.factory import ClientCache
from ..search.base import SearchClient

logger = logging.getLogger(__name__)

PONG_MSG = {"type": "pong"}


class ChatSession:
    """State for one WebSocket connection."""

    def __init__(
        self,
        websocket: WebSocket,
        config: DeepThinkConfig,
        client_cache: ClientCache,
        search_client: SearchClient,
    ):
        self.websocket = websocket
        self.config = config
        self.client_cache = client_cache
        self.search_client = search_client

        self.current_engine: DeepThinkEngine | None = None
        self._run_task: asyncio.Task[None] | None = None
        self._closed = False

    @property
    def is_processing(self) -> bool:
        return self.current_engine is not None

    def _new_engine(self) -> DeepThinkEngine:
        return DeepThinkEngine(self.config, self.client_cache, self.search_client)

    async def send(self, payload: dict[str, Any]) -> bool:
        """
        Send a JSON payload, reporting whether it went out.

        Send failures mean the client is gone; they are logged, not raised.
        """
        if self._closed:
            return False
        try:
            await self.websocket.send_json(payload)
            return True
        except Exception as e:
            logger.debug(f"Send failed, treating connection as closed: {e}")
            return False

    async def send_error(self, message: str) -> None:
        await self.send({"type": "error", "message": message})

    async def handle_message(self, raw: str) -> None:
        """Validate one client message and act on it."""
        try:
            await self._dispatch(raw)
        except Exception as e:
            logger.error(f"WebSocket message handler error: {e}", exc_info=True)
            await self.send_error(str(e) or "Unknown error")

    async def _dispatch(self, raw: str) -> None:
        server = self.config.server

        if len(raw.encode("utf-8")) > server.max_message_bytes:
            await self.send_error("Message too large")
            return

        logger.debug(f"Raw message received: {raw[:200]}")

        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            await self.send_error("Invalid JSON")
            return

        if not isinstance(data, dict):
            await self.send_error("Invalid JSON")
            return

        message_type = data.get("type")

        if message_type == "ping":
            await self.send(PONG_MSG)
            return

        if message_type == "cancel":
            if self.current_engine is not None:
                self.current_engine.abort()
                logger.info("Generation cancelled by client")
            return

        if self.is_processing:
            await self.send_error("Already processing a query. Please wait or send cancel.")
            return

        query = data.get("query")
        query = query.strip() if isinstance(query, str) else ""

        if not query:
            await self.send_error("Empty query")
            return

        if len(query) > server.max_query_chars:
            await self.send_error(f"Query too long (max {server.max_query_chars:,} characters)")
            return

        try:
            run_config = RunConfig.from_request(data)
        except ValidationError as e:
            fields = sorted({str(err["loc"][0]) for err in e.errors() if err["loc"]})
            await self.send_error(f"Invalid {', '.join(fields)}" if fields else "Invalid request")
            return

        logger.info(f"Received query: {query[:100]}")

        engine = self._new_engine()
        self.current_engine = engine
        self._run_task = asyncio.create_task(
            self._run(engine, query, run_config), name=f"run:{engine.run_id}"
        )

    async def _run(self, engine: DeepThinkEngine, query: str, run_config: RunConfig) -> None:
        """Stream one run to the client."""
        try:
            async with aclosing(engine.stream(query, run_config)) as events:
                async for event in events:
                    if not await self.send(event.to_wire()):
                        logger.info("WebSocket closed, aborting engine")
                        engine.abort()
                        break
        except Exception as e:
            logger.error(f"Run {engine.run_id} crashed: {e}", exc_info=True)
            await self.send_error(str(e) or "Unknown error")
        finally:
            if self.current_engine is engine:
                self.current_engine = None
            self._run_task = None

    async def wait_idle(self) -> None:
        """Wait for the active run, if any, to finish."""
        task = self._run_task
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)

    async def close(self) -> None:
        """Connection closed: abort any run in flight and wait for it to unwind."""
        self._closed = True
        if self.current_engine is not None:
            self.current_engine.abort()
        await self.wait_idle()
