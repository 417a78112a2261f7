"""Use cases for acknowledging notifications."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from notifier.domain.contracts import NotificationRepository
from notifier.domain.errors import AuthorizationError, NotFoundError, NotifierError
from notifier.utils import utc_now

logger = logging.getLogger(__name__)

MARK_ALL_PAGE_SIZE = 100


@dataclass
class MarkReadResult:
    """Per-id outcome of a bulk acknowledgement."""

    marked: list[str] = field(default_factory=list)
    failed: list[tuple[str, str]] = field(default_factory=list)


async def mark_as_read(
    repository: NotificationRepository, notification_id: str, recipient_id: str
) -> None:
    """Mark one notification as read on behalf of its recipient.

    Reading an already-read notification is a no-op.
    """

    notification = await repository.find_by_id(notification_id)
    if notification is None:
        raise NotFoundError("Notification not found")
    if notification.recipient_id != recipient_id:
        raise AuthorizationError("Unauthorized to mark this notification as read")
    if notification.is_read:
        return
    await repository.mark_read(notification_id, utc_now())


async def mark_many_as_read(
    repository: NotificationRepository,
    notification_ids: Sequence[str],
    recipient_id: str,
) -> MarkReadResult:
    """Apply :func:`mark_as_read` to each id independently."""

    result = MarkReadResult()
    for notification_id in dict.fromkeys(notification_ids):
        try:
            await mark_as_read(repository, notification_id, recipient_id)
        except NotifierError as exc:
            logger.info("Could not mark %s as read: %s", notification_id, exc)
            result.failed.append((notification_id, str(exc)))
        else:
            result.marked.append(notification_id)
    return result


async def mark_all_as_read(repository: NotificationRepository, recipient_id: str) -> int:
    """Mark every unread notification of ``recipient_id``; return how many changed."""

    marked = 0
    while True:
        unread = await repository.find_unread(recipient_id, MARK_ALL_PAGE_SIZE)
        if not unread:
            return marked
        now = utc_now()
        for notification in unread:
            await repository.mark_read(notification.id, now)
            marked += 1


__all__ = [
    "MarkReadResult",
    "mark_all_as_read",
    "mark_as_read",
    "mark_many_as_read",
]
