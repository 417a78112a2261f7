"""Process bootstrap: builds and owns every long-lived collaborator."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from notifier.application.dispatcher import DeliveryDispatcher
from notifier.config import Settings
from notifier.domain.contracts import PushSendProvider
from notifier.infrastructure.database import Database
from notifier.infrastructure.push import FcmProvider, PushWorkQueue, QueueConfig, WebPushProvider
from notifier.infrastructure.realtime import InMemoryPresenceTracker, WebSocketTransport
from notifier.infrastructure.repositories import (
    NotificationRepository,
    PreferencesRepository,
    SubscriptionRepository,
)

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """Explicitly wired services shared by the API and the scripts."""

    settings: Settings
    database: Database
    notifications: NotificationRepository
    preferences: PreferencesRepository
    subscriptions: SubscriptionRepository
    presence: InMemoryPresenceTracker
    transport: WebSocketTransport
    dispatcher: DeliveryDispatcher
    queue: PushWorkQueue
    providers: list[PushSendProvider] = field(default_factory=list)

    async def start(self) -> None:
        self.database.connect()
        await self.queue.start()
        logger.info(
            "Notifier started (providers: %s)",
            ", ".join(provider.family.value for provider in self.providers) or "none",
        )

    async def stop(self) -> None:
        await self.queue.stop()
        await self.presence.clear()
        self.database.disconnect()
        logger.info("Notifier stopped")


def build_push_providers(settings: Settings) -> list[PushSendProvider]:
    """Instantiate the push backends whose credentials are configured."""

    providers: list[PushSendProvider] = []
    if settings.web_push_enabled:
        providers.append(
            WebPushProvider(
                vapid_private_key=settings.vapid_private_key,
                vapid_public_key=settings.vapid_public_key,
                vapid_subject=settings.vapid_subject,
            )
        )
    else:
        logger.warning("Web Push disabled: VAPID keys are not configured")

    if settings.fcm_enabled:
        providers.append(
            FcmProvider(
                project_id=settings.fcm_project_id,
                private_key=settings.fcm_private_key,
                client_email=settings.fcm_client_email,
            )
        )
    else:
        logger.warning("FCM disabled: service account is not configured")
    return providers


def build_container(
    settings: Settings, *, providers: list[PushSendProvider] | None = None
) -> ServiceContainer:
    """Wire the service graph for ``settings`` without opening any resource."""

    database = Database(settings.database_url)
    notifications = NotificationRepository(database)
    preferences = PreferencesRepository(database)
    subscriptions = SubscriptionRepository(database)
    presence = InMemoryPresenceTracker()
    transport = WebSocketTransport(presence)
    push_providers = build_push_providers(settings) if providers is None else providers

    dispatcher = DeliveryDispatcher(
        notifications=notifications,
        preferences=preferences,
        subscriptions=subscriptions,
        presence=presence,
        transport=transport,
        providers=push_providers,
        expiry_days=settings.notification_expiry_days,
        chunk_size=settings.bulk_chunk_size,
        default_timezone=settings.default_timezone,
    )
    queue = PushWorkQueue(
        dispatcher.process_push_job,
        QueueConfig(
            max_attempts=settings.push_queue_max_attempts,
            backoff_base_delay=settings.push_queue_backoff_seconds,
            concurrency=settings.push_queue_concurrency,
        ),
    )
    dispatcher.queue = queue

    return ServiceContainer(
        settings=settings,
        database=database,
        notifications=notifications,
        preferences=preferences,
        subscriptions=subscriptions,
        presence=presence,
        transport=transport,
        dispatcher=dispatcher,
        queue=queue,
        providers=push_providers,
    )


__all__ = ["ServiceContainer", "build_container", "build_push_providers"]
