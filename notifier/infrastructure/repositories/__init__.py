"""Repository implementations for infrastructure layer."""

from .notification_repository import NotificationRepository
from .preferences_repository import PreferencesRepository
from .subscription_repository import SubscriptionRepository

__all__ = [
    "NotificationRepository",
    "PreferencesRepository",
    "SubscriptionRepository",
]
