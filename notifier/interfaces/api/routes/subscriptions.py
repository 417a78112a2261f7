"""Rutas para registrar y eliminar suscripciones push."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response, status

from notifier.application.use_cases import (
    list_subscriptions as list_subscriptions_uc,
    subscribe as subscribe_uc,
    unsubscribe as unsubscribe_uc,
)
from notifier.domain.errors import NotifierError
from notifier.infrastructure.repositories import SubscriptionRepository
from notifier.interfaces.api.dependencies import get_subscription_repository, require_api_key
from notifier.interfaces.api.routes_helpers import to_http_exception
from notifier.interfaces.api.schemas import SubscriptionCreate, SubscriptionRead

router = APIRouter(
    prefix="/subscriptions",
    tags=["subscriptions"],
    dependencies=[Depends(require_api_key)],
)


@router.post("", response_model=SubscriptionRead, status_code=status.HTTP_201_CREATED)
async def create_subscription(
    payload: SubscriptionCreate,
    repository: SubscriptionRepository = Depends(get_subscription_repository),
) -> SubscriptionRead:
    """Registra un endpoint Web Push o un token FCM; si ya existe lo reactiva."""

    try:
        subscription = await subscribe_uc(
            repository,
            recipient_id=payload.recipient_id,
            device_type=payload.device_type,
            endpoint=payload.endpoint,
            keys=payload.domain_keys(),
            token=payload.token,
            device_info=payload.domain_device_info(),
        )
    except NotifierError as exc:
        raise to_http_exception(exc) from exc
    return SubscriptionRead.model_validate(subscription)


@router.get("/{recipient_id}", response_model=list[SubscriptionRead])
async def list_subscriptions(
    recipient_id: str,
    include_inactive: bool = False,
    repository: SubscriptionRepository = Depends(get_subscription_repository),
) -> list[SubscriptionRead]:
    """Devuelve las suscripciones del destinatario."""

    try:
        subscriptions = await list_subscriptions_uc(
            repository, recipient_id, active_only=not include_inactive
        )
    except NotifierError as exc:
        raise to_http_exception(exc) from exc
    return [SubscriptionRead.model_validate(subscription) for subscription in subscriptions]


@router.delete("/{subscription_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_subscription(
    subscription_id: str,
    recipient_id: str = Query(..., min_length=1),
    repository: SubscriptionRepository = Depends(get_subscription_repository),
) -> Response:
    """Elimina una suscripción propiedad del destinatario."""

    try:
        await unsubscribe_uc(repository, subscription_id, recipient_id)
    except NotifierError as exc:
        raise to_http_exception(exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)


__all__ = ["router"]
