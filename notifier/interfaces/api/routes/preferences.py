"""Rutas para consultar y modificar las preferencias de entrega."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from notifier.application.use_cases import (
    get_preferences as get_preferences_uc,
    reset_preferences as reset_preferences_uc,
    update_preferences as update_preferences_uc,
)
from notifier.config import Settings
from notifier.domain.errors import NotifierError
from notifier.infrastructure.repositories import PreferencesRepository
from notifier.interfaces.api.dependencies import (
    get_preferences_repository,
    get_settings_dependency,
    require_api_key,
)
from notifier.interfaces.api.routes_helpers import to_http_exception
from notifier.interfaces.api.schemas import PreferencesRead, PreferencesUpdate

router = APIRouter(
    prefix="/preferences",
    tags=["preferences"],
    dependencies=[Depends(require_api_key)],
)


@router.get("/{recipient_id}", response_model=PreferencesRead)
async def read_preferences(
    recipient_id: str,
    repository: PreferencesRepository = Depends(get_preferences_repository),
    settings: Settings = Depends(get_settings_dependency),
) -> PreferencesRead:
    """Devuelve las preferencias guardadas o las predeterminadas."""

    try:
        preferences = await get_preferences_uc(
            repository, recipient_id, default_timezone=settings.default_timezone
        )
    except NotifierError as exc:
        raise to_http_exception(exc) from exc
    return PreferencesRead.from_entity(preferences)


@router.put("/{recipient_id}", response_model=PreferencesRead)
async def update_preferences(
    recipient_id: str,
    payload: PreferencesUpdate,
    repository: PreferencesRepository = Depends(get_preferences_repository),
    settings: Settings = Depends(get_settings_dependency),
) -> PreferencesRead:
    """Actualiza parcialmente las preferencias del destinatario."""

    channels = None
    if payload.channels is not None:
        channels = {
            notification_type: flags.model_dump()
            for notification_type, flags in payload.channels.items()
        }
    quiet_hours = payload.quiet_hours.model_dump() if payload.quiet_hours else None

    try:
        preferences = await update_preferences_uc(
            repository,
            recipient_id,
            channels=channels,
            quiet_hours=quiet_hours,
            language=payload.language,
            sound_enabled=payload.sound_enabled,
            vibration_enabled=payload.vibration_enabled,
            default_timezone=settings.default_timezone,
        )
    except NotifierError as exc:
        raise to_http_exception(exc) from exc
    return PreferencesRead.from_entity(preferences)


@router.post("/{recipient_id}/reset", response_model=PreferencesRead)
async def reset_preferences(
    recipient_id: str,
    repository: PreferencesRepository = Depends(get_preferences_repository),
    settings: Settings = Depends(get_settings_dependency),
) -> PreferencesRead:
    """Restablece las preferencias predeterminadas."""

    try:
        preferences = await reset_preferences_uc(
            repository, recipient_id, default_timezone=settings.default_timezone
        )
    except NotifierError as exc:
        raise to_http_exception(exc) from exc
    return PreferencesRead.from_entity(preferences)


__all__ = ["router"]
