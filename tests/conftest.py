"""Shared fixtures: in-memory collaborators for the delivery core."""

from __future__ import annotations

import sys
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Any

import pytest

# Ensure the project root (which contains the ``notifier`` package) is importable
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from notifier.application.dispatcher import DeliveryDispatcher  # noqa: E402
from notifier.domain.contracts import (  # noqa: E402
    NotificationFilters,
    PushJob,
    PushPayload,
    SendResult,
)
from notifier.domain.entities import (  # noqa: E402
    Notification,
    ProviderFamily,
    PushSubscription,
    UserPreferences,
)
from notifier.domain.errors import InfrastructureError, NotFoundError  # noqa: E402
from notifier.infrastructure.realtime import InMemoryPresenceTracker  # noqa: E402


class InMemoryNotificationRepository:
    def __init__(self) -> None:
        self.items: dict[str, Notification] = {}
        self.failing_recipients: set[str] = set()

    async def save(self, notification: Notification) -> Notification:
        if notification.recipient_id in self.failing_recipients:
            raise InfrastructureError("database unavailable")
        self.items[notification.id] = notification
        return notification

    async def find_by_id(self, notification_id: str) -> Notification | None:
        return self.items.get(notification_id)

    async def find_by_recipient(
        self,
        recipient_id: str,
        filters: NotificationFilters | None = None,
        *,
        limit: int = 20,
        skip: int = 0,
    ) -> list[Notification]:
        rows = [n for n in self.items.values() if n.recipient_id == recipient_id]
        if filters is not None:
            if filters.is_read is not None:
                rows = [n for n in rows if n.is_read is filters.is_read]
            if filters.type is not None:
                rows = [n for n in rows if n.type is filters.type]
            if filters.priority is not None:
                rows = [n for n in rows if n.priority is filters.priority]
        rows.sort(key=lambda n: n.created_at, reverse=True)
        return rows[skip : skip + limit]

    async def find_unread(self, recipient_id: str, limit: int = 20) -> list[Notification]:
        return await self.find_by_recipient(
            recipient_id, NotificationFilters(is_read=False), limit=limit
        )

    async def count_unread(self, recipient_id: str) -> int:
        return sum(
            1 for n in self.items.values() if n.recipient_id == recipient_id and not n.is_read
        )

    def _require(self, notification_id: str) -> Notification:
        if notification_id not in self.items:
            raise NotFoundError(f"Notification {notification_id} not found")
        return self.items[notification_id]

    async def mark_read(self, notification_id: str, at: datetime) -> None:
        self.items[notification_id] = self._require(notification_id).mark_read(at)

    async def mark_delivered(self, notification_id: str, at: datetime) -> None:
        self.items[notification_id] = self._require(notification_id).mark_delivered(at)

    async def mark_failed(self, notification_id: str, error: str, at: datetime) -> None:
        self.items[notification_id] = self._require(notification_id).mark_failed(error, at)

    async def delete_by_id(self, notification_id: str) -> None:
        self.items.pop(notification_id, None)

    async def delete_older_than(self, cutoff: datetime) -> int:
        stale = [key for key, n in self.items.items() if n.created_at < cutoff]
        for key in stale:
            del self.items[key]
        return len(stale)


class InMemoryPreferencesRepository:
    def __init__(self) -> None:
        self.items: dict[str, UserPreferences] = {}

    async def find_by_recipient(self, recipient_id: str) -> UserPreferences | None:
        return self.items.get(recipient_id)

    async def save(self, preferences: UserPreferences) -> UserPreferences:
        self.items[preferences.recipient_id] = preferences
        return preferences

    async def update(self, preferences: UserPreferences) -> UserPreferences:
        if preferences.recipient_id not in self.items:
            raise NotFoundError("Preferences not found")
        self.items[preferences.recipient_id] = preferences
        return preferences

    async def upsert(self, preferences: UserPreferences) -> UserPreferences:
        self.items[preferences.recipient_id] = preferences
        return preferences

    async def exists(self, recipient_id: str) -> bool:
        return recipient_id in self.items

    async def delete(self, recipient_id: str) -> None:
        self.items.pop(recipient_id, None)


class InMemorySubscriptionRepository:
    def __init__(self) -> None:
        self.items: dict[str, PushSubscription] = {}
        self.failing_updates: set[str] = set()
        self.fail_reads = False

    async def save(self, subscription: PushSubscription) -> PushSubscription:
        self.items[subscription.id] = subscription
        return subscription

    async def find_by_id(self, subscription_id: str) -> PushSubscription | None:
        return self.items.get(subscription_id)

    async def find_by_recipient(self, recipient_id: str) -> list[PushSubscription]:
        return [s for s in self.items.values() if s.recipient_id == recipient_id]

    async def find_active_by_recipient(self, recipient_id: str) -> list[PushSubscription]:
        if self.fail_reads:
            raise InfrastructureError("database unavailable")
        return [
            s for s in self.items.values() if s.recipient_id == recipient_id and s.is_active
        ]

    async def find_by_device_type(self, recipient_id, device_type) -> list[PushSubscription]:
        return [
            s
            for s in self.items.values()
            if s.recipient_id == recipient_id and s.device_type is device_type and s.is_active
        ]

    async def find_by_endpoint(self, endpoint: str) -> PushSubscription | None:
        return next((s for s in self.items.values() if s.endpoint == endpoint), None)

    async def find_by_token(self, token: str) -> PushSubscription | None:
        return next((s for s in self.items.values() if s.token == token), None)

    async def update(self, subscription: PushSubscription) -> PushSubscription:
        if subscription.id in self.failing_updates:
            raise InfrastructureError("write failed")
        if subscription.id not in self.items:
            raise NotFoundError("Subscription not found")
        self.items[subscription.id] = subscription
        return subscription

    async def deactivate(self, subscription_id: str) -> None:
        self.items[subscription_id] = replace(self.items[subscription_id], is_active=False)

    async def delete_by_id(self, subscription_id: str) -> None:
        self.items.pop(subscription_id, None)

    async def delete_by_recipient(self, recipient_id: str) -> int:
        doomed = [key for key, s in self.items.items() if s.recipient_id == recipient_id]
        for key in doomed:
            del self.items[key]
        return len(doomed)

    async def delete_expired(self, cutoff: datetime) -> int:
        doomed = [key for key, s in self.items.items() if s.last_used_at < cutoff]
        for key in doomed:
            del self.items[key]
        return len(doomed)


class RecordingQueue:
    def __init__(self) -> None:
        self.jobs: list[PushJob] = []

    async def submit(self, job: PushJob, *, max_attempts=None, backoff_base_delay=None) -> None:
        self.jobs.append(job)


class RecordingTransport:
    """Transport that records emissions for recipients the presence tracker knows."""

    def __init__(self, presence: InMemoryPresenceTracker) -> None:
        self.presence = presence
        self.emitted: list[tuple[str, str, dict[str, Any]]] = []
        self.fail = False

    async def emit_to_recipient(self, recipient_id: str, event: str, payload: dict[str, Any]) -> int:
        if self.fail:
            raise RuntimeError("socket exploded")
        self.emitted.append((recipient_id, event, payload))
        return len(await self.presence.connections_for(recipient_id))


class ScriptedProvider:
    """Push provider whose per-subscription outcome is scripted by the test."""

    def __init__(self, family: ProviderFamily) -> None:
        self.family = family
        self.outcomes: dict[str, Exception | None] = {}
        self.batches: list[list[str]] = []
        self.raise_on_batch: Exception | None = None

    async def send(self, subscription: PushSubscription, payload: PushPayload) -> None:
        error = self.outcomes.get(subscription.id)
        if error is not None:
            raise error

    async def send_batch(self, subscriptions, payload: PushPayload) -> list[SendResult]:
        self.batches.append([s.id for s in subscriptions])
        if self.raise_on_batch is not None:
            raise self.raise_on_batch
        return [SendResult(s.id, self.outcomes.get(s.id)) for s in subscriptions]


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def notification_repository() -> InMemoryNotificationRepository:
    return InMemoryNotificationRepository()


@pytest.fixture
def preferences_repository() -> InMemoryPreferencesRepository:
    return InMemoryPreferencesRepository()


@pytest.fixture
def subscription_repository() -> InMemorySubscriptionRepository:
    return InMemorySubscriptionRepository()


@pytest.fixture
def presence() -> InMemoryPresenceTracker:
    return InMemoryPresenceTracker()


@pytest.fixture
def transport(presence: InMemoryPresenceTracker) -> RecordingTransport:
    return RecordingTransport(presence)


@pytest.fixture
def queue() -> RecordingQueue:
    return RecordingQueue()


@pytest.fixture
def web_provider() -> ScriptedProvider:
    return ScriptedProvider(ProviderFamily.WEB_PUSH)


@pytest.fixture
def fcm_provider() -> ScriptedProvider:
    return ScriptedProvider(ProviderFamily.FCM)


@pytest.fixture
def dispatcher(
    notification_repository,
    preferences_repository,
    subscription_repository,
    presence,
    transport,
    queue,
    web_provider,
    fcm_provider,
) -> DeliveryDispatcher:
    return DeliveryDispatcher(
        notifications=notification_repository,
        preferences=preferences_repository,
        subscriptions=subscription_repository,
        presence=presence,
        transport=transport,
        queue=queue,
        providers=[web_provider, fcm_provider],
        chunk_size=2,
    )


@pytest.fixture
def api_settings(tmp_path):
    from notifier.config import Settings

    return Settings(
        _env_file=None,
        database_url=f"sqlite:///{tmp_path / 'notifier.db'}",
        push_queue_concurrency=1,
    )


@pytest.fixture
def client(api_settings):
    """Return a test client bound to a fresh application and database."""

    pytest.importorskip("fastapi")
    from fastapi.testclient import TestClient

    from notifier.main import create_app

    app = create_app(api_settings)
    with TestClient(app) as test_client:
        yield test_client
