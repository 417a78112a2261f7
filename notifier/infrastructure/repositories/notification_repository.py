"""Persistence helpers for notification entities."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import func
from sqlalchemy.orm import Query

from notifier.domain.contracts import NotificationFilters
from notifier.domain.entities import (
    Notification,
    NotificationAction,
    NotificationChannel,
    NotificationPriority,
    NotificationType,
)
from notifier.domain.errors import NotFoundError
from notifier.infrastructure.models import NotificationModel
from notifier.utils import ensure_utc, ensure_utc_naive

from .base import SqlAlchemyRepository


class NotificationRepository(SqlAlchemyRepository):
    """Provide CRUD operations for :class:`Notification` objects."""

    async def save(self, notification: Notification) -> Notification:
        return await self._run(self._save, notification)

    async def find_by_id(self, notification_id: str) -> Notification | None:
        return await self._run(self._find_by_id, notification_id)

    async def find_by_recipient(
        self,
        recipient_id: str,
        filters: NotificationFilters | None = None,
        *,
        limit: int = 20,
        skip: int = 0,
    ) -> list[Notification]:
        return await self._run(
            self._find_by_recipient, recipient_id, filters, limit=limit, skip=skip
        )

    async def find_unread(self, recipient_id: str, limit: int = 20) -> list[Notification]:
        return await self._run(
            self._find_by_recipient,
            recipient_id,
            NotificationFilters(is_read=False),
            limit=limit,
            skip=0,
        )

    async def count_unread(self, recipient_id: str) -> int:
        return await self._run(self._count_unread, recipient_id)

    async def mark_read(self, notification_id: str, at: datetime) -> None:
        await self._run(
            self._update_fields,
            notification_id,
            {"is_read": True, "read_at": ensure_utc_naive(at)},
        )

    async def mark_delivered(self, notification_id: str, at: datetime) -> None:
        await self._run(
            self._update_fields, notification_id, {"delivered_at": ensure_utc_naive(at)}
        )

    async def mark_failed(self, notification_id: str, error: str, at: datetime) -> None:
        await self._run(
            self._update_fields,
            notification_id,
            {"failed_at": ensure_utc_naive(at), "error_message": error},
        )

    async def delete_by_id(self, notification_id: str) -> None:
        await self._run(self._delete_by_id, notification_id)

    async def delete_older_than(self, cutoff: datetime) -> int:
        return await self._run(self._delete_older_than, cutoff)

    def _save(self, notification: Notification) -> Notification:
        with self.database.session() as session:
            model = NotificationModel()
            self._apply_entity_to_model(model, notification)
            session.add(model)
            session.commit()
            session.refresh(model)
            return self._to_entity(model)

    def _find_by_id(self, notification_id: str) -> Notification | None:
        with self.database.session() as session:
            model = session.get(NotificationModel, notification_id)
            return self._to_entity(model) if model else None

    def _find_by_recipient(
        self,
        recipient_id: str,
        filters: NotificationFilters | None,
        *,
        limit: int,
        skip: int,
    ) -> list[Notification]:
        with self.database.session() as session:
            query = session.query(NotificationModel).filter(
                NotificationModel.recipient_id == recipient_id
            )
            query = self._apply_filters(query, filters)
            query = query.order_by(
                NotificationModel.created_at.desc(), NotificationModel.id.desc()
            )
            if skip:
                query = query.offset(skip)
            if limit is not None:
                query = query.limit(limit)
            return [self._to_entity(model) for model in query.all()]

    def _count_unread(self, recipient_id: str) -> int:
        with self.database.session() as session:
            return (
                session.query(func.count(NotificationModel.id))
                .filter(NotificationModel.recipient_id == recipient_id)
                .filter(NotificationModel.is_read.is_(False))
                .scalar()
                or 0
            )

    def _update_fields(self, notification_id: str, values: dict[str, Any]) -> None:
        with self.database.session() as session:
            updated = (
                session.query(NotificationModel)
                .filter(NotificationModel.id == notification_id)
                .update(values, synchronize_session=False)
            )
            if not updated:
                raise NotFoundError(f"Notification {notification_id} not found")
            session.commit()

    def _delete_by_id(self, notification_id: str) -> None:
        with self.database.session() as session:
            session.query(NotificationModel).filter(
                NotificationModel.id == notification_id
            ).delete(synchronize_session=False)
            session.commit()

    def _delete_older_than(self, cutoff: datetime) -> int:
        with self.database.session() as session:
            deleted = (
                session.query(NotificationModel)
                .filter(NotificationModel.created_at < ensure_utc_naive(cutoff))
                .delete(synchronize_session=False)
            )
            session.commit()
            return deleted

    @staticmethod
    def _apply_filters(query: Query, filters: NotificationFilters | None) -> Query:
        if filters is None:
            return query
        if filters.type is not None:
            query = query.filter(NotificationModel.type == filters.type.value)
        if filters.is_read is not None:
            query = query.filter(NotificationModel.is_read.is_(filters.is_read))
        if filters.priority is not None:
            query = query.filter(NotificationModel.priority == filters.priority.value)
        if filters.from_date is not None:
            query = query.filter(
                NotificationModel.created_at >= ensure_utc_naive(filters.from_date)
            )
        if filters.to_date is not None:
            query = query.filter(
                NotificationModel.created_at <= ensure_utc_naive(filters.to_date)
            )
        return query

    @staticmethod
    def _apply_entity_to_model(model: NotificationModel, notification: Notification) -> None:
        model.id = notification.id
        model.recipient_id = notification.recipient_id
        model.type = notification.type.value
        model.title = notification.title
        model.message = notification.message
        model.channels = [channel.value for channel in notification.channels]
        model.priority = notification.priority.value
        model.payload = dict(notification.metadata)
        model.actions = [
            {
                "label": action.label,
                "url": action.url,
                "action": action.action,
                "data": action.data,
            }
            for action in notification.actions
        ]
        model.expires_at = ensure_utc_naive(notification.expires_at)
        model.image_url = notification.image_url
        model.icon_url = notification.icon_url
        model.is_read = notification.is_read
        model.read_at = ensure_utc_naive(notification.read_at)
        model.created_at = ensure_utc_naive(notification.created_at)
        model.delivered_at = ensure_utc_naive(notification.delivered_at)
        model.failed_at = ensure_utc_naive(notification.failed_at)
        model.error_message = notification.error_message

    @staticmethod
    def _to_entity(model: NotificationModel) -> Notification:
        return Notification(
            id=model.id,
            recipient_id=model.recipient_id,
            type=NotificationType(model.type),
            title=model.title,
            message=model.message,
            channels=tuple(NotificationChannel(channel) for channel in model.channels or []),
            priority=NotificationPriority(model.priority),
            metadata=model.payload or {},
            actions=tuple(
                NotificationAction(
                    label=action.get("label", ""),
                    url=action.get("url"),
                    action=action.get("action"),
                    data=action.get("data"),
                )
                for action in model.actions or []
            ),
            expires_at=ensure_utc(model.expires_at),
            image_url=model.image_url,
            icon_url=model.icon_url,
            is_read=bool(model.is_read),
            read_at=ensure_utc(model.read_at),
            created_at=ensure_utc(model.created_at),
            delivered_at=ensure_utc(model.delivered_at),
            failed_at=ensure_utc(model.failed_at),
            error_message=model.error_message,
        )


__all__ = ["NotificationRepository"]
