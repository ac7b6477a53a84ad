"""
WebSocket server for deepthink.

Provides:
- /ws/chat streaming of reasoning runs with cancel support
- Health endpoints
"""

from .server import create_app
from .session import ChatSession

__all__ = ["ChatSession", "create_app"]
