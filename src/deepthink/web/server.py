"""
FastAPI app factory for the deepthink server.

Creates and configures the FastAPI application with:
- The /ws/chat WebSocket that streams reasoning runs
- Liveness and readiness probes
- CORS middleware
- Process-owned model client cache and search manager
"""

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

from .. import __version__
from ..config import DeepThinkConfig
from ..llm.factory import ClientCache
from ..search import build_search_manager
from ..search.base import SearchClient
from .session import ChatSession

logger = logging.getLogger(__name__)


def create_app(
    config: DeepThinkConfig | None = None,
    client_cache: ClientCache | None = None,
    search_client: SearchClient | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        config: Process configuration (defaults when omitted)
        client_cache: Model client cache; built from config when omitted
        search_client: Search backend; built from config when omitted

    Returns:
        Configured FastAPI application
    """
    config = config or DeepThinkConfig()
    started_at = time.time()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting deepthink server...")

        # ClientCache defines __len__, so an empty injected cache is falsy
        if client_cache is None:
            app.state.client_cache = ClientCache(max_size=config.engine.client_cache_size)
        else:
            app.state.client_cache = client_cache
        if search_client is None:
            app.state.search_client = build_search_manager(config.search)
        else:
            app.state.search_client = search_client
        app.state.sessions = set()

        logger.info("Server ready")

        yield

        logger.info("Shutting down server...")
        for session in list(app.state.sessions):
            await session.close()
        await app.state.client_cache.aclose()
        logger.info("Server stopped")

    app = FastAPI(
        title="DeepThink",
        description="Multi-round, multi-expert reasoning over WebSocket",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.server.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    async def health():
        """Liveness probe."""
        return {
            "status": "healthy",
            "version": __version__,
            "timestamp": int(time.time() * 1000),
            "uptime": int(time.time() - started_at),
        }

    @app.get("/health/ready")
    async def ready():
        """Readiness probe with runtime counters."""
        return {
            "status": "ready",
            "version": __version__,
            "timestamp": int(time.time() * 1000),
            "uptime": int(time.time() - started_at),
            "activeSessions": len(app.state.sessions),
            "cachedClients": len(app.state.client_cache),
        }

    @app.websocket("/ws/chat")
    async def chat(websocket: WebSocket):
        """
        Chat WebSocket.

        Client messages:
            {"type": "ping"}
            {"type": "cancel"}
            {"query": "...", "maxRounds": 2, "model": "...", "apiKey": "...",
             "baseUrl": "...", "fileContext": ...}

        Server messages: state_update, expert_complete, complete, error, pong
        """
        await websocket.accept()
        session = ChatSession(
            websocket,
            config,
            websocket.app.state.client_cache,
            websocket.app.state.search_client,
        )
        sessions = websocket.app.state.sessions
        sessions.add(session)
        logger.info(f"WebSocket connection established (active: {len(sessions)})")

        try:
            while True:
                raw = await websocket.receive_text()
                await session.handle_message(raw)
        except WebSocketDisconnect:
            logger.info("WebSocket connection closed")
        except Exception as e:
            logger.error(f"WebSocket connection error: {e}")
        finally:
            sessions.discard(session)
            await session.close()

    return app
