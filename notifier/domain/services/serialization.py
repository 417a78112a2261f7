"""JSON representations of notifications sent to realtime clients."""

from __future__ import annotations

from dataclasses import asdict
from datetime import datetime
from enum import Enum
from typing import Any

from notifier.domain.entities import Notification


def serialize_notification(notification: Notification) -> dict[str, Any]:
    """Return a JSON-serializable representation of ``notification``."""

    payload = asdict(notification)
    payload["channels"] = [channel.value for channel in notification.channels]
    payload["actions"] = [asdict(action) for action in notification.actions]
    _normalize_values(payload)
    return payload


def _normalize_values(data: dict[str, Any] | list[Any]) -> None:
    """Convert nested ``datetime`` and enum values into JSON friendly ones."""

    items = data.items() if isinstance(data, dict) else enumerate(data)
    for key, value in list(items):
        if isinstance(value, datetime):
            data[key] = value.isoformat()
        elif isinstance(value, Enum):
            data[key] = value.value
        elif isinstance(value, (dict, list)):
            _normalize_values(value)


__all__ = ["serialize_notification"]
