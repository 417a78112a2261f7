"""Contracts of the collaborators the delivery core depends on.

Repositories, push providers, the work queue, the real-time transport and
the presence backend are all consumed through these protocols so that the
dispatcher never depends on a storage engine or a transport.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol

from .entities import (
    DeviceType,
    Notification,
    NotificationPriority,
    NotificationType,
    ProviderFamily,
    PushSubscription,
    UserPreferences,
)
from .errors import ProviderError


@dataclass(frozen=True)
class NotificationFilters:
    """Optional filters applied when listing a recipient's notifications."""

    type: NotificationType | None = None
    is_read: bool | None = None
    from_date: datetime | None = None
    to_date: datetime | None = None
    priority: NotificationPriority | None = None


class NotificationRepository(Protocol):
    async def save(self, notification: Notification) -> Notification: ...

    async def find_by_id(self, notification_id: str) -> Notification | None: ...

    async def find_by_recipient(
        self,
        recipient_id: str,
        filters: NotificationFilters | None = None,
        *,
        limit: int = 20,
        skip: int = 0,
    ) -> list[Notification]: ...

    async def mark_read(self, notification_id: str, at: datetime) -> None: ...

    async def mark_delivered(self, notification_id: str, at: datetime) -> None: ...

    async def mark_failed(self, notification_id: str, error: str, at: datetime) -> None: ...

    async def count_unread(self, recipient_id: str) -> int: ...

    async def delete_by_id(self, notification_id: str) -> None: ...

    async def delete_older_than(self, cutoff: datetime) -> int: ...

    async def find_unread(self, recipient_id: str, limit: int = 20) -> list[Notification]: ...


class PreferencesRepository(Protocol):
    async def find_by_recipient(self, recipient_id: str) -> UserPreferences | None: ...

    async def save(self, preferences: UserPreferences) -> UserPreferences: ...

    async def update(self, preferences: UserPreferences) -> UserPreferences: ...

    async def upsert(self, preferences: UserPreferences) -> UserPreferences: ...

    async def exists(self, recipient_id: str) -> bool: ...

    async def delete(self, recipient_id: str) -> None: ...


class SubscriptionRepository(Protocol):
    async def save(self, subscription: PushSubscription) -> PushSubscription: ...

    async def find_by_id(self, subscription_id: str) -> PushSubscription | None: ...

    async def find_by_recipient(self, recipient_id: str) -> list[PushSubscription]: ...

    async def find_active_by_recipient(self, recipient_id: str) -> list[PushSubscription]: ...

    async def find_by_device_type(
        self, recipient_id: str, device_type: DeviceType
    ) -> list[PushSubscription]: ...

    async def find_by_endpoint(self, endpoint: str) -> PushSubscription | None: ...

    async def find_by_token(self, token: str) -> PushSubscription | None: ...

    async def update(self, subscription: PushSubscription) -> PushSubscription: ...

    async def deactivate(self, subscription_id: str) -> None: ...

    async def delete_by_id(self, subscription_id: str) -> None: ...

    async def delete_by_recipient(self, recipient_id: str) -> int: ...

    async def delete_expired(self, cutoff: datetime) -> int: ...


@dataclass(frozen=True)
class PushPayload:
    """Content handed to a push backend."""

    title: str
    message: str
    data: dict[str, Any] = field(default_factory=dict)
    icon: str | None = None
    image: str | None = None
    badge: str | None = None
    actions: tuple[dict[str, str], ...] = ()

    @classmethod
    def from_notification(cls, notification: Notification) -> "PushPayload":
        data = dict(notification.metadata)
        data.update(
            {
                "notification_id": notification.id,
                "type": notification.type.value,
                "priority": notification.priority.value,
            }
        )
        return cls(
            title=notification.title,
            message=notification.message,
            data=data,
            icon=notification.icon_url,
            image=notification.image_url,
            actions=tuple(
                {"action": action.action or "", "title": action.label}
                for action in notification.actions
            ),
        )


@dataclass(frozen=True)
class SendResult:
    """Outcome of sending to one subscription."""

    subscription_id: str
    error: ProviderError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class PushSendProvider(Protocol):
    """One push backend (Web Push or FCM)."""

    family: ProviderFamily

    async def send(self, subscription: PushSubscription, payload: PushPayload) -> None:
        """Deliver to one subscription, raising a :class:`ProviderError` on rejection."""

    async def send_batch(
        self, subscriptions: Sequence[PushSubscription], payload: PushPayload
    ) -> list[SendResult]:
        """Deliver to many subscriptions; individual failures never raise."""


@dataclass(frozen=True)
class PushJob:
    """Unit of work submitted to the push queue."""

    notification_id: str
    recipient_id: str
    payload: PushPayload
    id: str = ""

    @classmethod
    def from_notification(cls, notification: Notification) -> "PushJob":
        return cls(
            notification_id=notification.id,
            recipient_id=notification.recipient_id,
            payload=PushPayload.from_notification(notification),
            id=f"push:{notification.id}",
        )


JobHandler = Callable[[PushJob], Awaitable[None]]


class WorkQueue(Protocol):
    async def submit(
        self,
        job: PushJob,
        *,
        max_attempts: int | None = None,
        backoff_base_delay: float | None = None,
    ) -> None: ...


class RealtimeTransport(Protocol):
    async def emit_to_recipient(
        self, recipient_id: str, event: str, payload: dict[str, Any]
    ) -> int:
        """Emit ``event`` to every live connection, returning how many received it."""


class PresenceTracker(Protocol):
    """Live recipient to connection relation."""

    async def connect(
        self,
        connection_id: str,
        recipient_id: str,
        metadata: dict[str, Any] | None = None,
    ) -> None: ...

    async def disconnect(self, connection_id: str) -> str | None: ...

    async def is_online(self, recipient_id: str) -> bool: ...

    async def connections_for(self, recipient_id: str) -> list[str]: ...

    async def online_recipients(self) -> list[str]: ...

    async def recipient_for(self, connection_id: str) -> str | None: ...


__all__ = [
    "JobHandler",
    "NotificationFilters",
    "NotificationRepository",
    "PreferencesRepository",
    "PresenceTracker",
    "PushJob",
    "PushPayload",
    "PushSendProvider",
    "RealtimeTransport",
    "SendResult",
    "SubscriptionRepository",
    "WorkQueue",
]
