"""Domain entities exposed by the application."""

from .notification import (
    DELIVERY_CHANNELS,
    Notification,
    NotificationAction,
    NotificationChannel,
    NotificationPriority,
    NotificationType,
    expand_channels,
)
from .preferences import ChannelPreferences, QuietHours, UserPreferences
from .push_subscription import (
    MAX_CONSECUTIVE_FAILURES,
    DeviceInfo,
    DeviceType,
    ProviderFamily,
    PushKeys,
    PushSubscription,
)

__all__ = [
    "DELIVERY_CHANNELS",
    "MAX_CONSECUTIVE_FAILURES",
    "ChannelPreferences",
    "DeviceInfo",
    "DeviceType",
    "Notification",
    "NotificationAction",
    "NotificationChannel",
    "NotificationPriority",
    "NotificationType",
    "ProviderFamily",
    "PushKeys",
    "PushSubscription",
    "QuietHours",
    "UserPreferences",
    "expand_channels",
]
