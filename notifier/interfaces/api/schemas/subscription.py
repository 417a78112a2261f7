"""Push subscription schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from notifier.domain.entities import DeviceInfo, DeviceType, PushKeys


class PushKeysSchema(BaseModel):
    p256dh: str = Field(..., min_length=1)
    auth: str = Field(..., min_length=1)


class DeviceInfoSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_agent: str | None = None
    platform: str | None = None
    device_name: str | None = None


class SubscriptionCreate(BaseModel):
    recipient_id: str = Field(..., min_length=1, max_length=64)
    device_type: DeviceType
    endpoint: str | None = None
    keys: PushKeysSchema | None = None
    token: str | None = None
    device_info: DeviceInfoSchema | None = None

    def domain_keys(self) -> PushKeys | None:
        if self.keys is None:
            return None
        return PushKeys(p256dh=self.keys.p256dh, auth=self.keys.auth)

    def domain_device_info(self) -> DeviceInfo | None:
        if self.device_info is None:
            return None
        return DeviceInfo(**self.device_info.model_dump())


class SubscriptionRead(BaseModel):
    """Subscription as returned to clients; key material is never echoed."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    recipient_id: str
    device_type: DeviceType
    endpoint: str | None = None
    device_info: DeviceInfoSchema | None = None
    is_active: bool
    created_at: datetime
    last_used_at: datetime
    failure_count: int = 0
    last_failure_at: datetime | None = None


__all__ = [
    "DeviceInfoSchema",
    "PushKeysSchema",
    "SubscriptionCreate",
    "SubscriptionRead",
]
