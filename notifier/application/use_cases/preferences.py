"""Use cases for reading and editing recipient preferences."""

from __future__ import annotations

import logging
from collections.abc import Mapping

from notifier.domain.contracts import PreferencesRepository
from notifier.domain.entities import NotificationType, UserPreferences
from notifier.domain.errors import ValidationError
from notifier.utils import utc_now
from notifier.utils.datetime import is_known_timezone

logger = logging.getLogger(__name__)

SUPPORTED_LANGUAGES = ("es", "en")


async def get_preferences(
    repository: PreferencesRepository,
    recipient_id: str,
    *,
    default_timezone: str | None = None,
) -> UserPreferences:
    """Return the stored preferences or the implicit defaults (not persisted)."""

    preferences = await repository.find_by_recipient(recipient_id)
    if preferences is None:
        return UserPreferences.defaults(recipient_id, timezone=default_timezone)
    return preferences


async def update_preferences(
    repository: PreferencesRepository,
    recipient_id: str,
    *,
    channels: Mapping[NotificationType | str, Mapping[str, bool | None]] | None = None,
    quiet_hours: Mapping[str, object] | None = None,
    language: str | None = None,
    sound_enabled: bool | None = None,
    vibration_enabled: bool | None = None,
    default_timezone: str | None = None,
) -> UserPreferences:
    """Apply a partial update, creating the record from defaults when absent."""

    preferences = await get_preferences(
        repository, recipient_id, default_timezone=default_timezone
    )

    for key, flags in (channels or {}).items():
        try:
            notification_type = NotificationType(key)
        except ValueError as exc:
            raise ValidationError(f"Unknown notification type '{key}'") from exc
        preferences.set_channel(
            notification_type,
            in_app=flags.get("in_app"),
            push=flags.get("push"),
            realtime=flags.get("realtime"),
        )

    if quiet_hours:
        timezone = quiet_hours.get("timezone")
        if timezone is not None and not is_known_timezone(str(timezone)):
            raise ValidationError(f"Unknown timezone '{timezone}'")
        try:
            preferences.update_quiet_hours(
                enabled=quiet_hours.get("enabled"),
                start=quiet_hours.get("start"),
                end=quiet_hours.get("end"),
                timezone=timezone,
            )
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc

    if language is not None:
        if language not in SUPPORTED_LANGUAGES:
            raise ValidationError(f"Unsupported language '{language}'")
        preferences.language = language
    if sound_enabled is not None:
        preferences.sound_enabled = sound_enabled
    if vibration_enabled is not None:
        preferences.vibration_enabled = vibration_enabled

    preferences.updated_at = utc_now()
    saved = await repository.upsert(preferences)
    logger.info("Preferences updated for %s", recipient_id)
    return saved


async def reset_preferences(
    repository: PreferencesRepository,
    recipient_id: str,
    *,
    default_timezone: str | None = None,
) -> UserPreferences:
    """Replace the recipient's preferences with the defaults."""

    defaults = UserPreferences.defaults(recipient_id, timezone=default_timezone)
    saved = await repository.upsert(defaults)
    logger.info("Preferences reset for %s", recipient_id)
    return saved


__all__ = [
    "SUPPORTED_LANGUAGES",
    "get_preferences",
    "reset_preferences",
    "update_preferences",
]
