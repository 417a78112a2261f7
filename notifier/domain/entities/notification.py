"""Domain entity representing a notification addressed to one recipient."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any

from notifier.utils import ensure_utc, utc_now


class NotificationType(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"
    SYSTEM = "system"


class NotificationChannel(str, Enum):
    IN_APP = "in_app"
    PUSH = "push"
    REALTIME = "realtime"
    ALL = "all"


class NotificationPriority(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


DELIVERY_CHANNELS: tuple[NotificationChannel, ...] = (
    NotificationChannel.IN_APP,
    NotificationChannel.PUSH,
    NotificationChannel.REALTIME,
)


def expand_channels(
    channels: tuple[NotificationChannel, ...] | list[NotificationChannel],
) -> tuple[NotificationChannel, ...]:
    """Return the concrete delivery channels, replacing ``ALL`` by each of them."""

    if NotificationChannel.ALL in channels:
        return DELIVERY_CHANNELS
    return tuple(channel for channel in DELIVERY_CHANNELS if channel in channels)


@dataclass(frozen=True)
class NotificationAction:
    """Button rendered next to a notification."""

    label: str
    url: str | None = None
    action: str | None = None
    data: Any = None


@dataclass(frozen=True)
class Notification:
    """Immutable snapshot of a notification.

    State changes go through :meth:`mark_read`, :meth:`mark_delivered` and
    :meth:`mark_failed`, each returning a new snapshot. ``read`` is reachable
    whether or not the notification was delivered first.
    """

    id: str
    recipient_id: str
    type: NotificationType
    title: str
    message: str
    channels: tuple[NotificationChannel, ...]
    priority: NotificationPriority = NotificationPriority.NORMAL
    metadata: dict[str, Any] = field(default_factory=dict)
    actions: tuple[NotificationAction, ...] = ()
    expires_at: datetime | None = None
    image_url: str | None = None
    icon_url: str | None = None
    is_read: bool = False
    read_at: datetime | None = None
    created_at: datetime = field(default_factory=utc_now)
    delivered_at: datetime | None = None
    failed_at: datetime | None = None
    error_message: str | None = None

    @property
    def delivery_channels(self) -> tuple[NotificationChannel, ...]:
        return expand_channels(self.channels)

    def wants(self, channel: NotificationChannel) -> bool:
        """Return ``True`` when ``channel`` is among the delivery channels."""

        return channel in self.delivery_channels

    def is_expired(self, now: datetime | None = None) -> bool:
        if self.expires_at is None:
            return False
        return ensure_utc(self.expires_at) <= ensure_utc(now or utc_now())

    def mark_read(self, at: datetime | None = None) -> "Notification":
        if self.is_read:
            return self
        return replace(self, is_read=True, read_at=at or utc_now())

    def mark_delivered(self, at: datetime | None = None) -> "Notification":
        return replace(self, delivered_at=at or utc_now())

    def mark_failed(self, error: str, at: datetime | None = None) -> "Notification":
        return replace(self, failed_at=at or utc_now(), error_message=error)


__all__ = [
    "DELIVERY_CHANNELS",
    "Notification",
    "NotificationAction",
    "NotificationChannel",
    "NotificationPriority",
    "NotificationType",
    "expand_channels",
]
