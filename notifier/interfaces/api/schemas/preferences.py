"""Recipient preference schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from notifier.domain.entities import NotificationType, UserPreferences


class ChannelFlags(BaseModel):
    in_app: bool
    push: bool
    realtime: bool


class ChannelFlagsUpdate(BaseModel):
    in_app: bool | None = None
    push: bool | None = None
    realtime: bool | None = None


class QuietHoursRead(BaseModel):
    enabled: bool
    start: str
    end: str
    timezone: str


class QuietHoursUpdate(BaseModel):
    enabled: bool | None = None
    start: str | None = Field(default=None, description="HH:MM, 24h clock")
    end: str | None = Field(default=None, description="HH:MM, 24h clock")
    timezone: str | None = None


class PreferencesRead(BaseModel):
    recipient_id: str
    channels: dict[NotificationType, ChannelFlags]
    quiet_hours: QuietHoursRead
    language: str
    sound_enabled: bool
    vibration_enabled: bool
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_entity(cls, preferences: UserPreferences) -> "PreferencesRead":
        return cls(
            recipient_id=preferences.recipient_id,
            channels={
                notification_type: ChannelFlags(
                    in_app=flags.in_app, push=flags.push, realtime=flags.realtime
                )
                for notification_type, flags in preferences.channels.items()
            },
            quiet_hours=QuietHoursRead(
                enabled=preferences.quiet_hours.enabled,
                start=preferences.quiet_hours.start,
                end=preferences.quiet_hours.end,
                timezone=preferences.quiet_hours.timezone,
            ),
            language=preferences.language,
            sound_enabled=preferences.sound_enabled,
            vibration_enabled=preferences.vibration_enabled,
            created_at=preferences.created_at,
            updated_at=preferences.updated_at,
        )


class PreferencesUpdate(BaseModel):
    channels: dict[NotificationType, ChannelFlagsUpdate] | None = None
    quiet_hours: QuietHoursUpdate | None = None
    language: str | None = None
    sound_enabled: bool | None = None
    vibration_enabled: bool | None = None


__all__ = [
    "ChannelFlags",
    "ChannelFlagsUpdate",
    "PreferencesRead",
    "PreferencesUpdate",
    "QuietHoursRead",
    "QuietHoursUpdate",
]
