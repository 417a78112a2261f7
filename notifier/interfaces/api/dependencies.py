"""FastAPI dependency utilities."""

from __future__ import annotations

import secrets

from fastapi import Depends, HTTPException, Request, Security, status
from fastapi.security import APIKeyHeader

from notifier.application.dispatcher import DeliveryDispatcher
from notifier.bootstrap import ServiceContainer
from notifier.config import Settings
from notifier.infrastructure.repositories import (
    NotificationRepository,
    PreferencesRepository,
    SubscriptionRepository,
)

api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


def get_container(request: Request) -> ServiceContainer:
    """Return the service container created by the application lifespan."""

    container: ServiceContainer | None = getattr(request.app.state, "container", None)
    if container is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service is starting up",
        )
    return container


def get_settings_dependency(container: ServiceContainer = Depends(get_container)) -> Settings:
    return container.settings


def require_api_key(
    api_key: str | None = Security(api_key_header),
    settings: Settings = Depends(get_settings_dependency),
) -> None:
    """Reject the request when an API key is configured and not presented."""

    if not settings.api_key:
        return
    if api_key is None or not secrets.compare_digest(api_key, settings.api_key):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API key",
        )


def get_dispatcher(container: ServiceContainer = Depends(get_container)) -> DeliveryDispatcher:
    return container.dispatcher


def get_notification_repository(
    container: ServiceContainer = Depends(get_container),
) -> NotificationRepository:
    return container.notifications


def get_preferences_repository(
    container: ServiceContainer = Depends(get_container),
) -> PreferencesRepository:
    return container.preferences


def get_subscription_repository(
    container: ServiceContainer = Depends(get_container),
) -> SubscriptionRepository:
    return container.subscriptions


__all__ = [
    "api_key_header",
    "get_container",
    "get_dispatcher",
    "get_notification_repository",
    "get_preferences_repository",
    "get_settings_dependency",
    "get_subscription_repository",
    "require_api_key",
]
