"""Realtime delivery helpers for the infrastructure layer."""

from .presence import InMemoryPresenceTracker
from .transport import WebSocketTransport

__all__ = [
    "InMemoryPresenceTracker",
    "WebSocketTransport",
]
