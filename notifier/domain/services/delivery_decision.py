"""Pure delivery decisions: validation, channel resolution and ordering.

Nothing in this module performs I/O; every function is synchronous and
deterministic given its inputs and the evaluation instant ``now``.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import datetime, timedelta

from notifier.domain.entities import (
    Notification,
    NotificationChannel,
    NotificationPriority,
    NotificationType,
    UserPreferences,
)
from notifier.domain.errors import ValidationError
from notifier.utils import ensure_utc, utc_now

MAX_TITLE_LENGTH = 100
MAX_MESSAGE_LENGTH = 500
MAX_ACTIONS = 3
BATCH_THRESHOLD = 5
DEFAULT_EXPIRY_DAYS = 30

_PRIORITY_WEIGHTS: dict[NotificationPriority, int] = {
    NotificationPriority.LOW: 1,
    NotificationPriority.NORMAL: 2,
    NotificationPriority.HIGH: 3,
    NotificationPriority.URGENT: 4,
}


def validate(notification: Notification, *, now: datetime | None = None) -> None:
    """Raise :class:`ValidationError` when ``notification`` is malformed."""

    if not notification.recipient_id or not notification.recipient_id.strip():
        raise ValidationError("Recipient id is required")

    if not notification.title or not notification.title.strip():
        raise ValidationError("Notification title is required")

    if not notification.message or not notification.message.strip():
        raise ValidationError("Notification message is required")

    if len(notification.title) > MAX_TITLE_LENGTH:
        raise ValidationError(
            f"Notification title cannot exceed {MAX_TITLE_LENGTH} characters"
        )

    if len(notification.message) > MAX_MESSAGE_LENGTH:
        raise ValidationError(
            f"Notification message cannot exceed {MAX_MESSAGE_LENGTH} characters"
        )

    if not notification.channels:
        raise ValidationError("At least one notification channel is required")

    for channel in notification.channels:
        if not isinstance(channel, NotificationChannel):
            raise ValidationError(f"Unknown notification channel '{channel}'")

    if len(notification.actions) > MAX_ACTIONS:
        raise ValidationError(f"Maximum {MAX_ACTIONS} actions allowed per notification")

    expires_at = ensure_utc(notification.expires_at)
    if expires_at is not None and expires_at <= ensure_utc(now or utc_now()):
        raise ValidationError("Expiration date must be in the future")


def should_deliver(
    notification: Notification,
    preferences: UserPreferences,
    channel: NotificationChannel,
    *,
    now: datetime | None = None,
) -> bool:
    """Return whether ``channel`` should fire for ``notification``.

    Urgent notifications ignore quiet hours but still honour the per-type
    channel flag.
    """

    if notification.priority is NotificationPriority.URGENT:
        return preferences.allows(notification.type, channel)

    if preferences.is_quiet_hours(now):
        return False

    return preferences.allows(notification.type, channel)


def resolve_channels(
    notification_type: NotificationType,
    preferences: UserPreferences | None,
    explicit: Sequence[NotificationChannel] | None = None,
) -> tuple[NotificationChannel, ...]:
    """Return the channels a notification of ``notification_type`` should use.

    Caller supplied channels are returned unmodified. Otherwise the enabled
    channels are derived from ``preferences`` (all of them when the recipient
    has no stored preferences). An empty result means every channel is
    disabled for this recipient.
    """

    if explicit is not None:
        return tuple(explicit)
    if preferences is None:
        return UserPreferences.defaults("").enabled_channels(notification_type)
    return preferences.enabled_channels(notification_type)


def priority_weight(priority: NotificationPriority) -> int:
    return _PRIORITY_WEIGHTS[priority]


def sort_by_priority(notifications: Iterable[Notification]) -> list[Notification]:
    """Return a new list ordered by priority, newest first within a priority."""

    return sorted(
        notifications,
        key=lambda notification: (
            priority_weight(notification.priority),
            notification.created_at,
        ),
        reverse=True,
    )


def filter_expired(
    notifications: Iterable[Notification], *, now: datetime | None = None
) -> list[Notification]:
    """Return the notifications whose expiry is absent or still ahead of ``now``."""

    reference = now or utc_now()
    return [notification for notification in notifications if not notification.is_expired(reference)]


def should_batch(notifications: Sequence[Notification]) -> bool:
    """Return ``True`` when a single summary should replace individual pushes."""

    return len(notifications) > BATCH_THRESHOLD


def summarize(notifications: Sequence[Notification]) -> str:
    """Describe ``notifications`` as ``"N new notifications: a info, b warning"``."""

    counts: dict[NotificationType, int] = {}
    for notification in notifications:
        counts[notification.type] = counts.get(notification.type, 0) + 1

    parts = [f"{count} {notification_type.value}" for notification_type, count in counts.items()]
    return f"{len(notifications)} new notifications: {', '.join(parts)}"


def group_by_recipient(
    notifications: Iterable[Notification],
) -> dict[str, list[Notification]]:
    grouped: dict[str, list[Notification]] = {}
    for notification in notifications:
        grouped.setdefault(notification.recipient_id, []).append(notification)
    return grouped


def calculate_expiry(
    days: int = DEFAULT_EXPIRY_DAYS, *, now: datetime | None = None
) -> datetime:
    """Return the default expiry instant ``days`` after ``now``."""

    return (now or utc_now()) + timedelta(days=days)


__all__ = [
    "BATCH_THRESHOLD",
    "DEFAULT_EXPIRY_DAYS",
    "MAX_ACTIONS",
    "MAX_MESSAGE_LENGTH",
    "MAX_TITLE_LENGTH",
    "calculate_expiry",
    "filter_expired",
    "group_by_recipient",
    "priority_weight",
    "resolve_channels",
    "should_batch",
    "should_deliver",
    "sort_by_priority",
    "summarize",
    "validate",
]
