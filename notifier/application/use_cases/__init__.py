"""Aggregate application use cases."""

from .maintenance import cleanup_stale_subscriptions, purge_old_notifications
from .mark_as_read import MarkReadResult, mark_all_as_read, mark_as_read, mark_many_as_read
from .preferences import get_preferences, reset_preferences, update_preferences
from .queries import count_unread, get_notification, get_unread, list_notifications
from .subscriptions import (
    deactivate_subscription,
    list_subscriptions,
    subscribe,
    unsubscribe,
)

__all__ = [
    "MarkReadResult",
    "cleanup_stale_subscriptions",
    "count_unread",
    "deactivate_subscription",
    "get_notification",
    "get_preferences",
    "get_unread",
    "list_notifications",
    "list_subscriptions",
    "mark_all_as_read",
    "mark_as_read",
    "mark_many_as_read",
    "purge_old_notifications",
    "reset_preferences",
    "subscribe",
    "unsubscribe",
    "update_preferences",
]
