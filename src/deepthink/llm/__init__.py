"""Model client layer."""

from .factory import ClientCache, build_client
from .protocol import Completion, ModelClient

__all__ = [
    "ClientCache",
    "Completion",
    "ModelClient",
    "build_client",
]
