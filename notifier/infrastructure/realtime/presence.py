"""In-memory presence tracking for real-time routing."""

from __future__ import annotations

import logging
from typing import Any

from notifier.utils import KeyedLock

logger = logging.getLogger(__name__)


class InMemoryPresenceTracker:
    """Track which recipients hold at least one live connection.

    A recipient is online while one or more connection ids are registered for
    it; several devices may be connected at once. Mutations touching a
    recipient are serialized through a per-recipient lock so a concurrent
    connect and disconnect never leave the two maps out of step. State lives
    in this process only.
    """

    def __init__(self) -> None:
        self._connections: dict[str, set[str]] = {}
        self._recipients: dict[str, str] = {}
        self._metadata: dict[str, dict[str, Any]] = {}
        self._locks = KeyedLock()

    async def connect(
        self,
        connection_id: str,
        recipient_id: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        while True:
            previous = self._recipients.get(connection_id)
            if previous is not None and previous != recipient_id:
                await self.disconnect(connection_id)

            async with self._locks.hold(recipient_id):
                # Another connect may have claimed the id while we waited.
                current = self._recipients.get(connection_id)
                if current is not None and current != recipient_id:
                    continue
                self._connections.setdefault(recipient_id, set()).add(connection_id)
                self._recipients[connection_id] = recipient_id
                if metadata:
                    self._metadata[recipient_id] = dict(metadata)
            break

        logger.info("Recipient %s connected via %s", recipient_id, connection_id)

    async def disconnect(self, connection_id: str) -> str | None:
        """Forget ``connection_id``, returning the recipient it belonged to."""

        recipient_id = self._recipients.get(connection_id)
        if recipient_id is None:
            return None

        async with self._locks.hold(recipient_id):
            if self._recipients.get(connection_id) != recipient_id:
                return None
            del self._recipients[connection_id]
            connections = self._connections.get(recipient_id)
            if connections is not None:
                connections.discard(connection_id)
                if not connections:
                    del self._connections[recipient_id]
                    self._metadata.pop(recipient_id, None)
                    logger.info("Recipient %s fully disconnected", recipient_id)

        logger.info("Connection %s closed", connection_id)
        return recipient_id

    async def is_online(self, recipient_id: str) -> bool:
        return bool(self._connections.get(recipient_id))

    async def connections_for(self, recipient_id: str) -> list[str]:
        return sorted(self._connections.get(recipient_id, ()))

    async def online_recipients(self) -> list[str]:
        return list(self._connections)

    async def recipient_for(self, connection_id: str) -> str | None:
        return self._recipients.get(connection_id)

    async def metadata_for(self, recipient_id: str) -> dict[str, Any] | None:
        metadata = self._metadata.get(recipient_id)
        return dict(metadata) if metadata is not None else None

    def connection_count(self) -> int:
        return len(self._recipients)

    async def clear(self) -> None:
        self._connections.clear()
        self._recipients.clear()
        self._metadata.clear()
        logger.info("Presence tracker cleared")


__all__ = ["InMemoryPresenceTracker"]
