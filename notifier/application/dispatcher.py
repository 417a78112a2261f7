"""Orchestration of notification creation and multi-channel fan-out.

The dispatcher persists a notification for every recipient, then triggers
each resolved delivery path: in-app is persistence only, real-time goes
through the presence tracker and transport, and push is handed to the work
queue. Push results come back through :meth:`DeliveryDispatcher.process_push_job`,
which reconciles provider outcomes into subscription health.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from notifier.domain.contracts import (
    NotificationRepository,
    PreferencesRepository,
    PresenceTracker,
    PushJob,
    PushPayload,
    PushSendProvider,
    RealtimeTransport,
    SendResult,
    SubscriptionRepository,
    WorkQueue,
)
from notifier.domain.entities import (
    Notification,
    NotificationAction,
    NotificationChannel,
    NotificationPriority,
    NotificationType,
    ProviderFamily,
    PushSubscription,
    UserPreferences,
)
from notifier.domain.errors import (
    EndpointGoneError,
    NoEligibleChannelError,
    NotifierError,
    ProviderError,
    TransientProviderError,
)
from notifier.domain.services import delivery_decision, serialize_notification
from notifier.utils import KeyedLock, ensure_utc, utc_now

logger = logging.getLogger(__name__)

NOTIFICATION_EVENT = "notification"
DIGEST_SCAN_LIMIT = 50


@dataclass(frozen=True)
class NotificationRequest:
    """Content shared by every recipient of a create or bulk request.

    ``channels`` left as ``None`` lets the recipient's preferences decide.
    """

    type: NotificationType
    title: str
    message: str
    channels: tuple[NotificationChannel, ...] | None = None
    priority: NotificationPriority = NotificationPriority.NORMAL
    metadata: dict[str, Any] = field(default_factory=dict)
    actions: tuple[NotificationAction, ...] = ()
    expires_at: datetime | None = None
    image_url: str | None = None
    icon_url: str | None = None


@dataclass(frozen=True)
class BulkFailure:
    recipient_id: str
    reason: str


@dataclass
class BulkDeliveryResult:
    """Outcome of a bulk request: one entry per distinct recipient."""

    successful: list[Notification] = field(default_factory=list)
    failed: list[BulkFailure] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.successful) + len(self.failed)


class DeliveryDispatcher:
    """Create notifications and deliver them over their resolved channels."""

    def __init__(
        self,
        *,
        notifications: NotificationRepository,
        preferences: PreferencesRepository,
        subscriptions: SubscriptionRepository,
        presence: PresenceTracker,
        transport: RealtimeTransport,
        queue: WorkQueue | None = None,
        providers: Iterable[PushSendProvider] = (),
        expiry_days: int = delivery_decision.DEFAULT_EXPIRY_DAYS,
        chunk_size: int = 100,
        default_timezone: str | None = None,
        clock: Callable[[], datetime] = utc_now,
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
    ) -> None:
        if chunk_size < 1:
            raise ValueError("chunk_size must be at least 1")
        self.notifications = notifications
        self.preferences = preferences
        self.subscriptions = subscriptions
        self.presence = presence
        self.transport = transport
        self.queue = queue
        self.providers: dict[ProviderFamily, PushSendProvider] = {
            provider.family: provider for provider in providers
        }
        self.expiry_days = expiry_days
        self.chunk_size = chunk_size
        self.default_timezone = default_timezone
        self._clock = clock
        self._id_factory = id_factory
        self._subscription_locks = KeyedLock()

    async def create_and_deliver(
        self, recipient_id: str, request: NotificationRequest
    ) -> Notification:
        """Persist a notification for ``recipient_id`` and fan it out.

        Raises :class:`ValidationError` (including :class:`NoEligibleChannelError`)
        or :class:`InfrastructureError`; downstream delivery problems are
        logged and recorded, never raised.
        """

        now = self._clock()
        stored = await self.preferences.find_by_recipient(recipient_id)
        preferences = stored or UserPreferences.defaults(
            recipient_id, timezone=self.default_timezone
        )

        channels = delivery_decision.resolve_channels(
            request.type, preferences, request.channels
        )
        if request.channels is None and not channels:
            raise NoEligibleChannelError(
                "Recipient has disabled all channels for this notification type"
            )

        notification = Notification(
            id=self._id_factory(),
            recipient_id=recipient_id,
            type=request.type,
            title=request.title,
            message=request.message,
            channels=channels,
            priority=request.priority,
            metadata=dict(request.metadata),
            actions=tuple(request.actions),
            expires_at=ensure_utc(request.expires_at)
            or delivery_decision.calculate_expiry(self.expiry_days, now=now),
            image_url=request.image_url,
            icon_url=request.icon_url,
            created_at=now,
        )
        delivery_decision.validate(notification, now=now)

        saved = await self.notifications.save(notification)
        logger.info(
            "Notification %s created for %s on %s",
            saved.id,
            recipient_id,
            ", ".join(channel.value for channel in saved.delivery_channels),
        )
        await self._fan_out(saved, preferences, now)
        return saved

    async def create_bulk(
        self, recipient_ids: Sequence[str], request: NotificationRequest
    ) -> BulkDeliveryResult:
        """Deliver ``request`` to every distinct recipient in isolation."""

        unique_ids = list(dict.fromkeys(recipient_ids))
        result = BulkDeliveryResult()

        for offset in range(0, len(unique_ids), self.chunk_size):
            chunk = unique_ids[offset : offset + self.chunk_size]
            outcomes = await asyncio.gather(
                *(self._deliver_isolated(recipient_id, request) for recipient_id in chunk)
            )
            for recipient_id, outcome in zip(chunk, outcomes):
                if isinstance(outcome, Notification):
                    result.successful.append(outcome)
                else:
                    result.failed.append(BulkFailure(recipient_id, outcome))

        logger.info(
            "Bulk delivery finished: %d successful, %d failed",
            len(result.successful),
            len(result.failed),
        )
        return result

    async def process_push_job(self, job: PushJob) -> None:
        """Send ``job`` to every active subscription of its recipient.

        Repository failures while loading subscriptions propagate so the work
        queue can retry the job. Provider failures never propagate.
        """

        subscriptions = await self.subscriptions.find_active_by_recipient(job.recipient_id)
        deliverable = [subscription for subscription in subscriptions if subscription.is_deliverable()]
        if not deliverable:
            logger.info("No active push subscriptions for recipient %s", job.recipient_id)
            return

        by_family: dict[ProviderFamily, list[PushSubscription]] = {}
        for subscription in deliverable:
            by_family.setdefault(subscription.provider_family, []).append(subscription)

        batches = await asyncio.gather(
            *(
                self._send_family(family, members, job.payload)
                for family, members in by_family.items()
            )
        )
        results = [result for batch in batches for result in batch]
        if not results:
            return

        updates = await asyncio.gather(
            *(self._reconcile(result) for result in results), return_exceptions=True
        )
        for result, update in zip(results, updates):
            if isinstance(update, BaseException):
                logger.error(
                    "Could not update health of subscription %s: %s",
                    result.subscription_id,
                    update,
                )

        successful = sum(1 for result in results if result.ok)
        logger.info(
            "Push for recipient %s: %d successful, %d failed",
            job.recipient_id,
            successful,
            len(results) - successful,
        )
        if job.notification_id:
            await self._record_push_outcome(job.notification_id, results, successful)

    async def deliver_digest(self, recipient_id: str) -> int:
        """Push the recipient's pending unread notifications.

        More than :data:`~notifier.domain.services.delivery_decision.BATCH_THRESHOLD`
        pending notifications are collapsed into one summary push. Returns
        the number of push jobs submitted.
        """

        if self.queue is None:
            logger.warning("Push queue not configured; digest for %s skipped", recipient_id)
            return 0

        now = self._clock()
        unread = await self.notifications.find_unread(recipient_id, limit=DIGEST_SCAN_LIMIT)
        pending = delivery_decision.sort_by_priority(
            delivery_decision.filter_expired(unread, now=now)
        )
        if not pending:
            return 0

        if not delivery_decision.should_batch(pending):
            for notification in pending:
                await self.queue.submit(PushJob.from_notification(notification))
            return len(pending)

        payload = PushPayload(
            title="Notification summary",
            message=delivery_decision.summarize(pending),
            data={
                "type": "digest",
                "notification_ids": [notification.id for notification in pending],
            },
            icon=pending[0].icon_url,
        )
        await self.queue.submit(
            PushJob(
                notification_id="",
                recipient_id=recipient_id,
                payload=payload,
                id=f"digest:{recipient_id}:{int(now.timestamp())}",
            )
        )
        return 1

    async def _deliver_isolated(
        self, recipient_id: str, request: NotificationRequest
    ) -> Notification | str:
        try:
            return await self.create_and_deliver(recipient_id, request)
        except NotifierError as exc:
            logger.warning("Bulk delivery to %s failed: %s", recipient_id, exc)
            return str(exc) or exc.__class__.__name__
        except Exception as exc:
            logger.exception("Unexpected error delivering to %s", recipient_id)
            return str(exc) or "Failed to create notification"

    async def _fan_out(
        self, notification: Notification, preferences: UserPreferences, now: datetime
    ) -> None:
        for channel in notification.delivery_channels:
            if channel is NotificationChannel.IN_APP:
                continue
            if not delivery_decision.should_deliver(notification, preferences, channel, now=now):
                logger.info(
                    "Channel %s suppressed for notification %s", channel.value, notification.id
                )
                continue
            if channel is NotificationChannel.REALTIME:
                await self._deliver_realtime(notification)
            elif channel is NotificationChannel.PUSH:
                await self._submit_push(notification)

    async def _deliver_realtime(self, notification: Notification) -> bool:
        if not await self.presence.is_online(notification.recipient_id):
            logger.debug(
                "Recipient %s offline; notification %s kept in-app only",
                notification.recipient_id,
                notification.id,
            )
            return False

        try:
            delivered = await self.transport.emit_to_recipient(
                notification.recipient_id,
                NOTIFICATION_EVENT,
                serialize_notification(notification),
            )
        except Exception:
            logger.exception("Real-time emission of notification %s failed", notification.id)
            return False

        if not delivered:
            return False

        try:
            await self.notifications.mark_delivered(notification.id, self._clock())
        except NotifierError:
            logger.exception("Could not mark notification %s as delivered", notification.id)
        return True

    async def _submit_push(self, notification: Notification) -> None:
        if self.queue is None:
            logger.warning(
                "Push queue not configured; notification %s not pushed", notification.id
            )
            return
        await self.queue.submit(PushJob.from_notification(notification))

    async def _send_family(
        self,
        family: ProviderFamily,
        subscriptions: list[PushSubscription],
        payload: PushPayload,
    ) -> list[SendResult]:
        provider = self.providers.get(family)
        if provider is None:
            logger.warning(
                "No %s provider configured; %d subscriptions skipped",
                family.value,
                len(subscriptions),
            )
            return []
        try:
            return await provider.send_batch(subscriptions, payload)
        except ProviderError as exc:
            logger.error("%s batch send failed: %s", family.value, exc)
            return [SendResult(subscription.id, exc) for subscription in subscriptions]
        except Exception as exc:
            logger.exception("%s batch send raised unexpectedly", family.value)
            error = TransientProviderError(str(exc) or type(exc).__name__)
            return [SendResult(subscription.id, error) for subscription in subscriptions]

    async def _reconcile(self, result: SendResult) -> None:
        async with self._subscription_locks.hold(result.subscription_id):
            current = await self.subscriptions.find_by_id(result.subscription_id)
            if current is None:
                return

            now = self._clock()
            if result.ok:
                updated = current.record_success(now)
            elif isinstance(result.error, EndpointGoneError):
                updated = current.deactivate(str(result.error), now)
            else:
                updated = current.record_failure(str(result.error), now)

            await self.subscriptions.update(updated)

        if current.is_active and not updated.is_active:
            logger.warning(
                "Subscription %s deactivated: %s", updated.id, updated.error_message
            )

    async def _record_push_outcome(
        self, notification_id: str, results: list[SendResult], successful: int
    ) -> None:
        now = self._clock()
        try:
            if successful:
                await self.notifications.mark_delivered(notification_id, now)
            else:
                errors = "; ".join(
                    sorted({str(result.error) for result in results if result.error})
                )
                await self.notifications.mark_failed(
                    notification_id, errors or "Push delivery failed", now
                )
        except NotifierError:
            logger.exception("Could not record push outcome of notification %s", notification_id)


__all__ = [
    "BulkDeliveryResult",
    "BulkFailure",
    "DeliveryDispatcher",
    "NotificationRequest",
]
