"""Endpoints and websocket handler for notifications."""

from __future__ import annotations

import logging
import secrets
from datetime import datetime
from typing import Any

from fastapi import (
    APIRouter,
    Depends,
    Query,
    Response,
    WebSocket,
    WebSocketDisconnect,
    status,
)

from notifier.application.dispatcher import DeliveryDispatcher
from notifier.application.use_cases import (
    count_unread as count_unread_uc,
    get_unread as get_unread_uc,
    list_notifications as list_notifications_uc,
    mark_all_as_read as mark_all_as_read_uc,
    mark_as_read as mark_as_read_uc,
    mark_many_as_read as mark_many_as_read_uc,
)
from notifier.bootstrap import ServiceContainer
from notifier.domain.contracts import NotificationFilters
from notifier.domain.entities import NotificationPriority, NotificationType
from notifier.domain.errors import NotifierError
from notifier.domain.services import serialize_notification
from notifier.infrastructure.repositories import NotificationRepository
from notifier.interfaces.api.dependencies import (
    get_dispatcher,
    get_notification_repository,
    require_api_key,
)
from notifier.interfaces.api.routes_helpers import to_http_exception
from notifier.interfaces.api.schemas import (
    BulkNotificationCreate,
    BulkNotificationResult,
    DigestResult,
    MarkReadFailure,
    NotificationCreate,
    NotificationMarkReadRequest,
    NotificationMarkReadResponse,
    NotificationRead,
    UnreadCount,
)

router = APIRouter(prefix="/notifications", tags=["notifications"])
logger = logging.getLogger(__name__)

WS_INITIAL_UNREAD_LIMIT = 50
WS_POLICY_VIOLATION = 1008


@router.post(
    "",
    response_model=NotificationRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_api_key)],
)
async def create_notification(
    payload: NotificationCreate,
    dispatcher: DeliveryDispatcher = Depends(get_dispatcher),
) -> NotificationRead:
    """Crea una notificación y la entrega por los canales que correspondan."""

    try:
        notification = await dispatcher.create_and_deliver(
            payload.recipient_id, payload.to_request()
        )
    except NotifierError as exc:
        raise to_http_exception(exc) from exc
    return NotificationRead.model_validate(notification)


@router.post(
    "/bulk",
    response_model=BulkNotificationResult,
    dependencies=[Depends(require_api_key)],
)
async def create_bulk_notifications(
    payload: BulkNotificationCreate,
    dispatcher: DeliveryDispatcher = Depends(get_dispatcher),
) -> BulkNotificationResult:
    """Envía la misma notificación a varios destinatarios de forma aislada."""

    result = await dispatcher.create_bulk(payload.recipient_ids, payload.to_request())
    return BulkNotificationResult.from_result(result)


@router.get(
    "",
    response_model=list[NotificationRead],
    dependencies=[Depends(require_api_key)],
)
async def list_notifications(
    recipient_id: str = Query(..., min_length=1),
    type: NotificationType | None = None,
    is_read: bool | None = None,
    priority: NotificationPriority | None = None,
    from_date: datetime | None = None,
    to_date: datetime | None = None,
    limit: int = Query(20, ge=1, le=100),
    skip: int = Query(0, ge=0),
    repository: NotificationRepository = Depends(get_notification_repository),
) -> list[NotificationRead]:
    """Devuelve las notificaciones del destinatario, de la más reciente a la más antigua."""

    filters = NotificationFilters(
        type=type,
        is_read=is_read,
        from_date=from_date,
        to_date=to_date,
        priority=priority,
    )
    try:
        notifications = await list_notifications_uc(
            repository, recipient_id, filters=filters, limit=limit, skip=skip
        )
    except NotifierError as exc:
        raise to_http_exception(exc) from exc
    return [NotificationRead.model_validate(notification) for notification in notifications]


@router.get(
    "/unread/{recipient_id}",
    response_model=list[NotificationRead],
    dependencies=[Depends(require_api_key)],
)
async def list_unread_notifications(
    recipient_id: str,
    limit: int = Query(20, ge=1, le=100),
    repository: NotificationRepository = Depends(get_notification_repository),
) -> list[NotificationRead]:
    """Devuelve las notificaciones pendientes de leer."""

    try:
        notifications = await get_unread_uc(repository, recipient_id, limit=limit)
    except NotifierError as exc:
        raise to_http_exception(exc) from exc
    return [NotificationRead.model_validate(notification) for notification in notifications]


@router.get(
    "/unread/{recipient_id}/count",
    response_model=UnreadCount,
    dependencies=[Depends(require_api_key)],
)
async def get_unread_count(
    recipient_id: str,
    repository: NotificationRepository = Depends(get_notification_repository),
) -> UnreadCount:
    try:
        count = await count_unread_uc(repository, recipient_id)
    except NotifierError as exc:
        raise to_http_exception(exc) from exc
    return UnreadCount(recipient_id=recipient_id, count=count)


@router.patch(
    "/{notification_id}/read",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_api_key)],
)
async def mark_notification_as_read(
    notification_id: str,
    recipient_id: str = Query(..., min_length=1),
    repository: NotificationRepository = Depends(get_notification_repository),
) -> Response:
    """Marca una notificación como leída."""

    try:
        await mark_as_read_uc(repository, notification_id, recipient_id)
    except NotifierError as exc:
        raise to_http_exception(exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/read",
    response_model=NotificationMarkReadResponse,
    dependencies=[Depends(require_api_key)],
)
async def mark_notifications_as_read(
    payload: NotificationMarkReadRequest,
    repository: NotificationRepository = Depends(get_notification_repository),
) -> NotificationMarkReadResponse:
    """Marca varias notificaciones, o todas las pendientes, como leídas."""

    try:
        if payload.notification_ids is None:
            count = await mark_all_as_read_uc(repository, payload.recipient_id)
            return NotificationMarkReadResponse(count=count)

        result = await mark_many_as_read_uc(
            repository, payload.notification_ids, payload.recipient_id
        )
    except NotifierError as exc:
        raise to_http_exception(exc) from exc

    return NotificationMarkReadResponse(
        count=len(result.marked),
        marked=result.marked,
        failed=[MarkReadFailure(id=item_id, reason=reason) for item_id, reason in result.failed],
    )


@router.post(
    "/digest/{recipient_id}",
    response_model=DigestResult,
    dependencies=[Depends(require_api_key)],
)
async def send_digest(
    recipient_id: str,
    dispatcher: DeliveryDispatcher = Depends(get_dispatcher),
) -> DigestResult:
    """Reenvía por push las notificaciones pendientes, agrupadas si son muchas."""

    try:
        jobs = await dispatcher.deliver_digest(recipient_id)
    except NotifierError as exc:
        raise to_http_exception(exc) from exc
    return DigestResult(recipient_id=recipient_id, jobs=jobs)


def _websocket_authorized(websocket: WebSocket, container: ServiceContainer) -> bool:
    expected = container.settings.api_key
    if not expected:
        return True
    presented = websocket.query_params.get("api_key") or websocket.headers.get("x-api-key")
    return presented is not None and secrets.compare_digest(presented, expected)


async def _send_unread_count(container: ServiceContainer, recipient_id: str) -> None:
    count = await count_unread_uc(container.notifications, recipient_id)
    await container.transport.emit_to_recipient(
        recipient_id, "unread_count", {"count": count}
    )


async def _handle_socket_message(
    container: ServiceContainer,
    websocket: WebSocket,
    recipient_id: str,
    message: dict[str, Any],
) -> None:
    message_type = message.get("type")
    data = message.get("data") if isinstance(message.get("data"), dict) else {}
    repository = container.notifications

    if message_type == "ping":
        await websocket.send_json({"type": "pong"})
        return

    if message_type == "get_notifications":
        notifications = await list_notifications_uc(
            repository,
            recipient_id,
            limit=int(data.get("limit", 20)),
            skip=int(data.get("skip", 0)),
        )
        await websocket.send_json(
            {"type": "notifications", "data": [serialize_notification(n) for n in notifications]}
        )
        return

    if message_type == "get_unread":
        notifications = await get_unread_uc(repository, recipient_id)
        await websocket.send_json(
            {"type": "unread", "data": [serialize_notification(n) for n in notifications]}
        )
        return

    if message_type == "mark_as_read":
        ids = data.get("ids") or [data.get("notification_id")]
        ids = [str(item) for item in ids if item]
        if not ids:
            await websocket.send_json(
                {"type": "error", "data": {"message": "notification_id is required"}}
            )
            return
        result = await mark_many_as_read_uc(repository, ids, recipient_id)
        await websocket.send_json(
            {
                "type": "marked_as_read",
                "data": {
                    "ids": result.marked,
                    "failed": [{"id": item_id, "reason": reason} for item_id, reason in result.failed],
                },
            }
        )
        await _send_unread_count(container, recipient_id)
        return

    if message_type == "mark_all_as_read":
        count = await mark_all_as_read_uc(repository, recipient_id)
        await websocket.send_json({"type": "marked_as_read", "data": {"all": True, "count": count}})
        await _send_unread_count(container, recipient_id)
        return

    await websocket.send_json(
        {"type": "error", "data": {"message": f"Unknown message type '{message_type}'"}}
    )


@router.websocket("/ws")
async def notifications_websocket(websocket: WebSocket) -> None:
    """Websocket endpoint that streams notifications to a connected recipient."""

    container: ServiceContainer | None = getattr(websocket.app.state, "container", None)
    recipient_id = websocket.query_params.get("recipient_id")
    if container is None or not recipient_id or not _websocket_authorized(websocket, container):
        await websocket.close(code=WS_POLICY_VIOLATION)
        return

    connection_id = await container.transport.accept(
        websocket,
        recipient_id,
        {"user_agent": websocket.headers.get("user-agent")},
    )
    try:
        pending = await get_unread_uc(
            container.notifications, recipient_id, limit=WS_INITIAL_UNREAD_LIMIT
        )
        unread_count = await count_unread_uc(container.notifications, recipient_id)
        await websocket.send_json(
            {
                "type": "init",
                "data": {
                    "notifications": [serialize_notification(n) for n in pending],
                    "unread_count": unread_count,
                },
            }
        )

        while True:
            try:
                message = await websocket.receive_json()
            except WebSocketDisconnect:
                raise
            except ValueError:
                continue

            if not isinstance(message, dict):
                continue

            try:
                await _handle_socket_message(container, websocket, recipient_id, message)
            except (NotifierError, ValueError) as exc:
                await websocket.send_json({"type": "error", "data": {"message": str(exc)}})
    except WebSocketDisconnect:
        logger.debug("Websocket %s disconnected", connection_id)
    finally:
        await container.transport.release(connection_id)


__all__ = ["router"]
