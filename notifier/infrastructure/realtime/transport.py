"""Websocket connection registry used as the real-time transport."""

from __future__ import annotations

import logging
import uuid
from typing import Any

from fastapi import WebSocket

from notifier.domain.contracts import PresenceTracker

logger = logging.getLogger(__name__)


class WebSocketTransport:
    """Hold live websockets keyed by connection id.

    Connection lifecycle is mirrored into the presence tracker so routing
    decisions can be made without touching the sockets themselves.
    """

    def __init__(self, presence: PresenceTracker) -> None:
        self.presence = presence
        self._sockets: dict[str, WebSocket] = {}

    async def accept(
        self,
        websocket: WebSocket,
        recipient_id: str,
        metadata: dict[str, Any] | None = None,
    ) -> str:
        """Accept ``websocket`` and register it for ``recipient_id``."""

        await websocket.accept()
        connection_id = uuid.uuid4().hex
        self._sockets[connection_id] = websocket
        await self.presence.connect(connection_id, recipient_id, metadata)
        return connection_id

    async def release(self, connection_id: str) -> None:
        """Forget ``connection_id`` and update presence."""

        self._sockets.pop(connection_id, None)
        await self.presence.disconnect(connection_id)

    async def send(self, connection_id: str, event: str, payload: Any) -> bool:
        websocket = self._sockets.get(connection_id)
        if websocket is None:
            return False
        try:
            await websocket.send_json({"type": event, "data": payload})
        except Exception as exc:
            logger.warning("Dropping websocket %s after send failure: %s", connection_id, exc)
            await self.release(connection_id)
            return False
        return True

    async def emit_to_recipient(
        self, recipient_id: str, event: str, payload: dict[str, Any]
    ) -> int:
        """Send ``event`` to every connection of ``recipient_id``."""

        delivered = 0
        for connection_id in await self.presence.connections_for(recipient_id):
            if await self.send(connection_id, event, payload):
                delivered += 1
        return delivered


__all__ = ["WebSocketTransport"]
