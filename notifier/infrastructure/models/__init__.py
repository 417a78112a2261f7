"""ORM models used by the application infrastructure."""

from .notification import NotificationModel
from .preferences import UserPreferencesModel
from .push_subscription import PushSubscriptionModel

__all__ = [
    "NotificationModel",
    "PushSubscriptionModel",
    "UserPreferencesModel",
]
