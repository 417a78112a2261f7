"""Use cases for managing device push subscriptions."""

from __future__ import annotations

import logging
import uuid
from dataclasses import replace

from notifier.domain.contracts import SubscriptionRepository
from notifier.domain.entities import DeviceInfo, DeviceType, PushKeys, PushSubscription
from notifier.domain.errors import AuthorizationError, NotFoundError, ValidationError
from notifier.utils import utc_now

logger = logging.getLogger(__name__)


def _validate_shape(
    device_type: DeviceType,
    endpoint: str | None,
    keys: PushKeys | None,
    token: str | None,
) -> None:
    if device_type is DeviceType.WEB:
        if not endpoint:
            raise ValidationError("Endpoint is required for Web Push")
        if keys is None or not keys.p256dh or not keys.auth:
            raise ValidationError("VAPID keys are required for Web Push")
    elif not token:
        raise ValidationError("FCM token is required for mobile devices")


async def subscribe(
    repository: SubscriptionRepository,
    *,
    recipient_id: str,
    device_type: DeviceType,
    endpoint: str | None = None,
    keys: PushKeys | None = None,
    token: str | None = None,
    device_info: DeviceInfo | None = None,
) -> PushSubscription:
    """Register a push endpoint, reactivating it when it is already known."""

    if not recipient_id:
        raise ValidationError("Recipient id is required")
    _validate_shape(device_type, endpoint, keys, token)

    if device_type is DeviceType.WEB:
        existing = await repository.find_by_endpoint(endpoint)
    else:
        existing = await repository.find_by_token(token)

    now = utc_now()
    if existing is not None:
        refreshed = existing.reactivate(now)
        if device_type is DeviceType.WEB:
            # Browsers rotate their encryption keys on resubscribe.
            refreshed = replace(refreshed, keys=keys)
        else:
            refreshed = replace(refreshed, token=token)
        if existing.recipient_id != recipient_id:
            # Same browser or device, now signed in as someone else.
            logger.info(
                "Subscription %s moved from %s to %s",
                existing.id,
                existing.recipient_id,
                recipient_id,
            )
            refreshed = replace(refreshed, recipient_id=recipient_id)
        if device_info is not None:
            refreshed = replace(refreshed, device_info=device_info)
        logger.info("Subscription %s reactivated for %s", existing.id, recipient_id)
        return await repository.update(refreshed)

    subscription = PushSubscription(
        id=str(uuid.uuid4()),
        recipient_id=recipient_id,
        device_type=device_type,
        endpoint=endpoint if device_type is DeviceType.WEB else None,
        keys=keys if device_type is DeviceType.WEB else None,
        token=token if device_type is not DeviceType.WEB else None,
        device_info=device_info,
        created_at=now,
        last_used_at=now,
    )
    saved = await repository.save(subscription)
    logger.info("Subscription %s (%s) created for %s", saved.id, device_type.value, recipient_id)
    return saved


async def unsubscribe(
    repository: SubscriptionRepository, subscription_id: str, recipient_id: str
) -> None:
    subscription = await repository.find_by_id(subscription_id)
    if subscription is None:
        raise NotFoundError("Subscription not found")
    if subscription.recipient_id != recipient_id:
        raise AuthorizationError("Unauthorized to delete this subscription")
    await repository.delete_by_id(subscription_id)


async def list_subscriptions(
    repository: SubscriptionRepository,
    recipient_id: str,
    *,
    active_only: bool = True,
) -> list[PushSubscription]:
    if active_only:
        return await repository.find_active_by_recipient(recipient_id)
    return await repository.find_by_recipient(recipient_id)


async def deactivate_subscription(
    repository: SubscriptionRepository, subscription_id: str
) -> None:
    await repository.deactivate(subscription_id)


__all__ = [
    "deactivate_subscription",
    "list_subscriptions",
    "subscribe",
    "unsubscribe",
]
