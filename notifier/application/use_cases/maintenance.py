"""Housekeeping use cases run from scripts or schedulers."""

from __future__ import annotations

import logging
from datetime import timedelta

from notifier.domain.contracts import NotificationRepository, SubscriptionRepository
from notifier.domain.entities.push_subscription import STALE_AFTER_DAYS
from notifier.domain.errors import ValidationError
from notifier.utils import utc_now

logger = logging.getLogger(__name__)


async def purge_old_notifications(
    repository: NotificationRepository, retention_days: int
) -> int:
    """Delete notifications created more than ``retention_days`` ago."""

    if retention_days < 1:
        raise ValidationError("retention_days must be at least 1")
    cutoff = utc_now() - timedelta(days=retention_days)
    deleted = await repository.delete_older_than(cutoff)
    logger.info("Purged %d notifications older than %s", deleted, cutoff.isoformat())
    return deleted


async def cleanup_stale_subscriptions(
    repository: SubscriptionRepository, stale_days: int = STALE_AFTER_DAYS
) -> int:
    """Delete subscriptions unused for more than ``stale_days``."""

    if stale_days < 1:
        raise ValidationError("stale_days must be at least 1")
    cutoff = utc_now() - timedelta(days=stale_days)
    deleted = await repository.delete_expired(cutoff)
    logger.info("Removed %d subscriptions unused since %s", deleted, cutoff.isoformat())
    return deleted


__all__ = ["cleanup_stale_subscriptions", "purge_old_notifications"]
