"""Persistence helpers for recipient preferences."""

from __future__ import annotations

from typing import Any

from notifier.domain.entities import (
    ChannelPreferences,
    NotificationType,
    QuietHours,
    UserPreferences,
)
from notifier.domain.errors import NotFoundError
from notifier.infrastructure.models import UserPreferencesModel
from notifier.utils import ensure_utc, ensure_utc_naive

from .base import SqlAlchemyRepository


class PreferencesRepository(SqlAlchemyRepository):
    """Store exactly one :class:`UserPreferences` record per recipient."""

    async def find_by_recipient(self, recipient_id: str) -> UserPreferences | None:
        return await self._run(self._find_by_recipient, recipient_id)

    async def save(self, preferences: UserPreferences) -> UserPreferences:
        return await self._run(self._save, preferences)

    async def update(self, preferences: UserPreferences) -> UserPreferences:
        return await self._run(self._update, preferences)

    async def upsert(self, preferences: UserPreferences) -> UserPreferences:
        return await self._run(self._upsert, preferences)

    async def exists(self, recipient_id: str) -> bool:
        return await self._run(self._exists, recipient_id)

    async def delete(self, recipient_id: str) -> None:
        await self._run(self._delete, recipient_id)

    def _find_by_recipient(self, recipient_id: str) -> UserPreferences | None:
        with self.database.session() as session:
            model = (
                session.query(UserPreferencesModel)
                .filter(UserPreferencesModel.recipient_id == recipient_id)
                .first()
            )
            return self._to_entity(model) if model else None

    def _save(self, preferences: UserPreferences) -> UserPreferences:
        with self.database.session() as session:
            model = UserPreferencesModel()
            self._apply_entity_to_model(model, preferences)
            session.add(model)
            session.commit()
            session.refresh(model)
            return self._to_entity(model)

    def _update(self, preferences: UserPreferences) -> UserPreferences:
        with self.database.session() as session:
            model = (
                session.query(UserPreferencesModel)
                .filter(UserPreferencesModel.recipient_id == preferences.recipient_id)
                .first()
            )
            if model is None:
                raise NotFoundError(
                    f"Preferences for recipient {preferences.recipient_id} not found"
                )
            self._apply_entity_to_model(model, preferences)
            session.commit()
            session.refresh(model)
            return self._to_entity(model)

    def _upsert(self, preferences: UserPreferences) -> UserPreferences:
        with self.database.session() as session:
            model = (
                session.query(UserPreferencesModel)
                .filter(UserPreferencesModel.recipient_id == preferences.recipient_id)
                .first()
            )
            if model is None:
                model = UserPreferencesModel()
                session.add(model)
            self._apply_entity_to_model(model, preferences)
            session.commit()
            session.refresh(model)
            return self._to_entity(model)

    def _exists(self, recipient_id: str) -> bool:
        with self.database.session() as session:
            return (
                session.query(UserPreferencesModel.id)
                .filter(UserPreferencesModel.recipient_id == recipient_id)
                .first()
                is not None
            )

    def _delete(self, recipient_id: str) -> None:
        with self.database.session() as session:
            session.query(UserPreferencesModel).filter(
                UserPreferencesModel.recipient_id == recipient_id
            ).delete(synchronize_session=False)
            session.commit()

    @staticmethod
    def _apply_entity_to_model(
        model: UserPreferencesModel, preferences: UserPreferences
    ) -> None:
        model.recipient_id = preferences.recipient_id
        model.channels = {
            notification_type.value: {
                "in_app": flags.in_app,
                "push": flags.push,
                "realtime": flags.realtime,
            }
            for notification_type, flags in preferences.channels.items()
        }
        model.quiet_hours_enabled = preferences.quiet_hours.enabled
        model.quiet_hours_start = preferences.quiet_hours.start
        model.quiet_hours_end = preferences.quiet_hours.end
        model.quiet_hours_timezone = preferences.quiet_hours.timezone
        model.language = preferences.language
        model.sound_enabled = preferences.sound_enabled
        model.vibration_enabled = preferences.vibration_enabled
        model.created_at = ensure_utc_naive(preferences.created_at)
        model.updated_at = ensure_utc_naive(preferences.updated_at)

    @staticmethod
    def _to_entity(model: UserPreferencesModel) -> UserPreferences:
        stored: dict[str, Any] = model.channels or {}
        channels: dict[NotificationType, ChannelPreferences] = {}
        for key, flags in stored.items():
            try:
                notification_type = NotificationType(key)
            except ValueError:
                continue
            channels[notification_type] = ChannelPreferences(
                in_app=bool(flags.get("in_app", True)),
                push=bool(flags.get("push", True)),
                realtime=bool(flags.get("realtime", True)),
            )

        return UserPreferences(
            recipient_id=model.recipient_id,
            channels=channels,
            quiet_hours=QuietHours(
                enabled=bool(model.quiet_hours_enabled),
                start=model.quiet_hours_start,
                end=model.quiet_hours_end,
                timezone=model.quiet_hours_timezone,
            ),
            language=model.language,
            sound_enabled=bool(model.sound_enabled),
            vibration_enabled=bool(model.vibration_enabled),
            created_at=ensure_utc(model.created_at),
            updated_at=ensure_utc(model.updated_at),
        )


__all__ = ["PreferencesRepository"]
