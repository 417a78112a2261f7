"""Read-side use cases for a recipient's notifications."""

from __future__ import annotations

from notifier.domain.contracts import NotificationFilters, NotificationRepository
from notifier.domain.entities import Notification
from notifier.domain.errors import AuthorizationError, NotFoundError, ValidationError

MAX_PAGE_SIZE = 100


def _check_paging(limit: int, skip: int) -> None:
    if limit < 1 or limit > MAX_PAGE_SIZE:
        raise ValidationError(f"limit must be between 1 and {MAX_PAGE_SIZE}")
    if skip < 0:
        raise ValidationError("skip cannot be negative")


async def list_notifications(
    repository: NotificationRepository,
    recipient_id: str,
    *,
    filters: NotificationFilters | None = None,
    limit: int = 20,
    skip: int = 0,
) -> list[Notification]:
    """Return a page of notifications for ``recipient_id``, newest first."""

    _check_paging(limit, skip)
    if (
        filters is not None
        and filters.from_date is not None
        and filters.to_date is not None
        and filters.from_date > filters.to_date
    ):
        raise ValidationError("from_date must be earlier than to_date")
    return await repository.find_by_recipient(recipient_id, filters, limit=limit, skip=skip)


async def get_unread(
    repository: NotificationRepository, recipient_id: str, *, limit: int = 20
) -> list[Notification]:
    _check_paging(limit, 0)
    return await repository.find_unread(recipient_id, limit)


async def count_unread(repository: NotificationRepository, recipient_id: str) -> int:
    return await repository.count_unread(recipient_id)


async def get_notification(
    repository: NotificationRepository,
    notification_id: str,
    *,
    recipient_id: str | None = None,
) -> Notification:
    """Return one notification, optionally checking it belongs to ``recipient_id``."""

    notification = await repository.find_by_id(notification_id)
    if notification is None:
        raise NotFoundError("Notification not found")
    if recipient_id is not None and notification.recipient_id != recipient_id:
        raise AuthorizationError("Unauthorized to access this notification")
    return notification


__all__ = [
    "MAX_PAGE_SIZE",
    "count_unread",
    "get_notification",
    "get_unread",
    "list_notifications",
]
