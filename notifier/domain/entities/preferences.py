"""Per-recipient delivery preferences."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime

from notifier.utils import parse_time_of_day, resolve_timezone, utc_now
from notifier.utils.datetime import DEFAULT_TIMEZONE

from .notification import DELIVERY_CHANNELS, NotificationChannel, NotificationType


@dataclass(frozen=True)
class ChannelPreferences:
    """Enablement flags of the three delivery channels for one type."""

    in_app: bool = True
    push: bool = True
    realtime: bool = True

    def allows(self, channel: NotificationChannel) -> bool:
        if channel is NotificationChannel.IN_APP:
            return self.in_app
        if channel is NotificationChannel.PUSH:
            return self.push
        if channel is NotificationChannel.REALTIME:
            return self.realtime
        return self.in_app or self.push or self.realtime


@dataclass(frozen=True)
class QuietHours:
    """Daily window during which non-urgent deliveries are suppressed.

    ``start`` and ``end`` are ``HH:MM`` strings evaluated in ``timezone``.
    The window is ``[start, end)``; when ``start >= end`` it wraps midnight.
    """

    enabled: bool = False
    start: str = "22:00"
    end: str = "08:00"
    timezone: str = DEFAULT_TIMEZONE

    def __post_init__(self) -> None:
        parse_time_of_day(self.start)
        parse_time_of_day(self.end)

    def contains(self, now: datetime | None = None) -> bool:
        if not self.enabled:
            return False

        local_now = (now or utc_now()).astimezone(resolve_timezone(self.timezone))
        start = parse_time_of_day(self.start)
        end = parse_time_of_day(self.end)

        current_minutes = local_now.hour * 60 + local_now.minute
        start_minutes = start.hour * 60 + start.minute
        end_minutes = end.hour * 60 + end.minute

        if start_minutes < end_minutes:
            return start_minutes <= current_minutes < end_minutes
        return current_minutes >= start_minutes or current_minutes < end_minutes


def default_channel_preferences() -> dict[NotificationType, ChannelPreferences]:
    return {notification_type: ChannelPreferences() for notification_type in NotificationType}


@dataclass
class UserPreferences:
    """Delivery preferences of a single recipient."""

    recipient_id: str
    channels: dict[NotificationType, ChannelPreferences] = field(
        default_factory=default_channel_preferences
    )
    quiet_hours: QuietHours = field(default_factory=QuietHours)
    language: str = "es"
    sound_enabled: bool = True
    vibration_enabled: bool = True
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    def __post_init__(self) -> None:
        # Exactly one record per known type, missing ones fall back to defaults.
        merged = default_channel_preferences()
        for notification_type, preferences in self.channels.items():
            merged[NotificationType(notification_type)] = preferences
        self.channels = merged

    @classmethod
    def defaults(
        cls, recipient_id: str, *, timezone: str | None = None
    ) -> "UserPreferences":
        """Return the implicit preferences of a recipient with no stored record."""

        quiet_hours = QuietHours(timezone=timezone) if timezone else QuietHours()
        return cls(recipient_id=recipient_id, quiet_hours=quiet_hours)

    def is_quiet_hours(self, now: datetime | None = None) -> bool:
        return self.quiet_hours.contains(now)

    def allows(self, notification_type: NotificationType, channel: NotificationChannel) -> bool:
        """Return the enablement flag of ``channel`` for ``notification_type``."""

        return self.channels[notification_type].allows(channel)

    def enabled_channels(
        self, notification_type: NotificationType
    ) -> tuple[NotificationChannel, ...]:
        preferences = self.channels[notification_type]
        return tuple(channel for channel in DELIVERY_CHANNELS if preferences.allows(channel))

    def set_channel(
        self,
        notification_type: NotificationType,
        *,
        in_app: bool | None = None,
        push: bool | None = None,
        realtime: bool | None = None,
    ) -> None:
        current = self.channels[notification_type]
        self.channels[notification_type] = ChannelPreferences(
            in_app=current.in_app if in_app is None else in_app,
            push=current.push if push is None else push,
            realtime=current.realtime if realtime is None else realtime,
        )
        self.updated_at = utc_now()

    def update_quiet_hours(
        self,
        *,
        enabled: bool | None = None,
        start: str | None = None,
        end: str | None = None,
        timezone: str | None = None,
    ) -> None:
        changes = {
            key: value
            for key, value in {
                "enabled": enabled,
                "start": start,
                "end": end,
                "timezone": timezone,
            }.items()
            if value is not None
        }
        self.quiet_hours = replace(self.quiet_hours, **changes)
        self.updated_at = utc_now()


__all__ = [
    "ChannelPreferences",
    "QuietHours",
    "UserPreferences",
    "default_channel_preferences",
]
