"""Domain entity representing a device push endpoint and its health."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from enum import Enum

from notifier.utils import utc_now

MAX_CONSECUTIVE_FAILURES = 3
STALE_AFTER_DAYS = 90


class DeviceType(str, Enum):
    WEB = "web"
    ANDROID = "android"
    IOS = "ios"


class ProviderFamily(str, Enum):
    WEB_PUSH = "web_push"
    FCM = "fcm"


@dataclass(frozen=True)
class PushKeys:
    """Key pair a browser hands out with a Web Push subscription."""

    p256dh: str
    auth: str


@dataclass(frozen=True)
class DeviceInfo:
    user_agent: str | None = None
    platform: str | None = None
    device_name: str | None = None


@dataclass(frozen=True)
class PushSubscription:
    """Immutable snapshot of a push endpoint owned by one recipient.

    Web subscriptions carry ``endpoint`` and ``keys``; Android and iOS
    subscriptions carry ``token``. Health transitions return new snapshots:
    three consecutive failures deactivate the subscription, a success resets
    the counter.
    """

    id: str
    recipient_id: str
    device_type: DeviceType
    endpoint: str | None = None
    keys: PushKeys | None = None
    token: str | None = None
    device_info: DeviceInfo | None = None
    is_active: bool = True
    created_at: datetime = field(default_factory=utc_now)
    last_used_at: datetime = field(default_factory=utc_now)
    failure_count: int = 0
    last_failure_at: datetime | None = None
    error_message: str | None = None

    @property
    def provider_family(self) -> ProviderFamily:
        if self.device_type is DeviceType.WEB:
            return ProviderFamily.WEB_PUSH
        return ProviderFamily.FCM

    @property
    def identifier(self) -> str:
        """Return the endpoint or token addressed by the push backend."""

        if self.device_type is DeviceType.WEB:
            return self.endpoint or self.id
        return self.token or self.id

    def is_deliverable(self) -> bool:
        """Return ``True`` when the record is active and has its full shape."""

        if not self.is_active:
            return False
        if self.device_type is DeviceType.WEB:
            return bool(self.endpoint and self.keys)
        return bool(self.token)

    def is_stale(self, now: datetime | None = None, *, days: int = STALE_AFTER_DAYS) -> bool:
        return self.last_used_at < (now or utc_now()) - timedelta(days=days)

    def record_success(self, at: datetime | None = None) -> "PushSubscription":
        return replace(
            self,
            failure_count=0,
            error_message=None,
            last_used_at=at or utc_now(),
        )

    def record_failure(self, error: str, at: datetime | None = None) -> "PushSubscription":
        failure_count = self.failure_count + 1
        return replace(
            self,
            failure_count=failure_count,
            last_failure_at=at or utc_now(),
            error_message=error,
            is_active=self.is_active and failure_count < MAX_CONSECUTIVE_FAILURES,
        )

    def deactivate(self, error: str | None = None, at: datetime | None = None) -> "PushSubscription":
        if error is None:
            return replace(self, is_active=False)
        return replace(
            self,
            is_active=False,
            last_failure_at=at or utc_now(),
            error_message=error,
        )

    def reactivate(self, at: datetime | None = None) -> "PushSubscription":
        return replace(
            self,
            is_active=True,
            failure_count=0,
            error_message=None,
            last_used_at=at or utc_now(),
        )


__all__ = [
    "MAX_CONSECUTIVE_FAILURES",
    "STALE_AFTER_DAYS",
    "DeviceInfo",
    "DeviceType",
    "ProviderFamily",
    "PushKeys",
    "PushSubscription",
]
