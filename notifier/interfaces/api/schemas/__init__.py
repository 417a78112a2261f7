from .notification import (
    BulkFailureRead,
    BulkNotificationCreate,
    BulkNotificationResult,
    DigestResult,
    MarkReadFailure,
    NotificationActionSchema,
    NotificationCreate,
    NotificationMarkReadRequest,
    NotificationMarkReadResponse,
    NotificationRead,
    UnreadCount,
)
from .preferences import (
    ChannelFlags,
    ChannelFlagsUpdate,
    PreferencesRead,
    PreferencesUpdate,
    QuietHoursRead,
    QuietHoursUpdate,
)
from .subscription import (
    DeviceInfoSchema,
    PushKeysSchema,
    SubscriptionCreate,
    SubscriptionRead,
)

__all__ = [
    "BulkFailureRead",
    "BulkNotificationCreate",
    "BulkNotificationResult",
    "ChannelFlags",
    "ChannelFlagsUpdate",
    "DeviceInfoSchema",
    "DigestResult",
    "MarkReadFailure",
    "NotificationActionSchema",
    "NotificationCreate",
    "NotificationMarkReadRequest",
    "NotificationMarkReadResponse",
    "NotificationRead",
    "PreferencesRead",
    "PreferencesUpdate",
    "PushKeysSchema",
    "QuietHoursRead",
    "QuietHoursUpdate",
    "SubscriptionCreate",
    "SubscriptionRead",
    "UnreadCount",
]
