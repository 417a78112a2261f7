"""Persistence helpers for push subscriptions."""

from __future__ import annotations

from datetime import datetime

from notifier.domain.entities import DeviceInfo, DeviceType, PushKeys, PushSubscription
from notifier.domain.errors import NotFoundError
from notifier.infrastructure.models import PushSubscriptionModel
from notifier.utils import ensure_utc, ensure_utc_naive

from .base import SqlAlchemyRepository


class SubscriptionRepository(SqlAlchemyRepository):
    """Provide CRUD operations for :class:`PushSubscription` objects."""

    async def save(self, subscription: PushSubscription) -> PushSubscription:
        return await self._run(self._save, subscription)

    async def find_by_id(self, subscription_id: str) -> PushSubscription | None:
        return await self._run(self._find_by_id, subscription_id)

    async def find_by_recipient(self, recipient_id: str) -> list[PushSubscription]:
        return await self._run(self._find_by_recipient, recipient_id, active_only=False)

    async def find_active_by_recipient(self, recipient_id: str) -> list[PushSubscription]:
        return await self._run(self._find_by_recipient, recipient_id, active_only=True)

    async def find_by_device_type(
        self, recipient_id: str, device_type: DeviceType
    ) -> list[PushSubscription]:
        return await self._run(self._find_by_device_type, recipient_id, device_type)

    async def find_by_endpoint(self, endpoint: str) -> PushSubscription | None:
        return await self._run(self._find_first, PushSubscriptionModel.endpoint == endpoint)

    async def find_by_token(self, token: str) -> PushSubscription | None:
        return await self._run(self._find_first, PushSubscriptionModel.token == token)

    async def update(self, subscription: PushSubscription) -> PushSubscription:
        return await self._run(self._update, subscription)

    async def deactivate(self, subscription_id: str) -> None:
        await self._run(self._deactivate, subscription_id)

    async def delete_by_id(self, subscription_id: str) -> None:
        await self._run(self._delete_by_id, subscription_id)

    async def delete_by_recipient(self, recipient_id: str) -> int:
        return await self._run(self._delete_by_recipient, recipient_id)

    async def delete_expired(self, cutoff: datetime) -> int:
        return await self._run(self._delete_expired, cutoff)

    def _save(self, subscription: PushSubscription) -> PushSubscription:
        with self.database.session() as session:
            model = PushSubscriptionModel()
            self._apply_entity_to_model(model, subscription)
            session.add(model)
            session.commit()
            session.refresh(model)
            return self._to_entity(model)

    def _find_by_id(self, subscription_id: str) -> PushSubscription | None:
        with self.database.session() as session:
            model = session.get(PushSubscriptionModel, subscription_id)
            return self._to_entity(model) if model else None

    def _find_by_recipient(
        self, recipient_id: str, *, active_only: bool
    ) -> list[PushSubscription]:
        with self.database.session() as session:
            query = session.query(PushSubscriptionModel).filter(
                PushSubscriptionModel.recipient_id == recipient_id
            )
            if active_only:
                query = query.filter(PushSubscriptionModel.is_active.is_(True))
            query = query.order_by(PushSubscriptionModel.created_at)
            return [self._to_entity(model) for model in query.all()]

    def _find_by_device_type(
        self, recipient_id: str, device_type: DeviceType
    ) -> list[PushSubscription]:
        with self.database.session() as session:
            models = (
                session.query(PushSubscriptionModel)
                .filter(PushSubscriptionModel.recipient_id == recipient_id)
                .filter(PushSubscriptionModel.device_type == device_type.value)
                .filter(PushSubscriptionModel.is_active.is_(True))
                .order_by(PushSubscriptionModel.created_at)
                .all()
            )
            return [self._to_entity(model) for model in models]

    def _find_first(self, criterion) -> PushSubscription | None:
        with self.database.session() as session:
            model = session.query(PushSubscriptionModel).filter(criterion).first()
            return self._to_entity(model) if model else None

    def _update(self, subscription: PushSubscription) -> PushSubscription:
        with self.database.session() as session:
            model = session.get(PushSubscriptionModel, subscription.id)
            if model is None:
                raise NotFoundError(f"Subscription {subscription.id} not found")
            self._apply_entity_to_model(model, subscription)
            session.commit()
            session.refresh(model)
            return self._to_entity(model)

    def _deactivate(self, subscription_id: str) -> None:
        with self.database.session() as session:
            updated = (
                session.query(PushSubscriptionModel)
                .filter(PushSubscriptionModel.id == subscription_id)
                .update({"is_active": False}, synchronize_session=False)
            )
            if not updated:
                raise NotFoundError(f"Subscription {subscription_id} not found")
            session.commit()

    def _delete_by_id(self, subscription_id: str) -> None:
        with self.database.session() as session:
            session.query(PushSubscriptionModel).filter(
                PushSubscriptionModel.id == subscription_id
            ).delete(synchronize_session=False)
            session.commit()

    def _delete_by_recipient(self, recipient_id: str) -> int:
        with self.database.session() as session:
            deleted = (
                session.query(PushSubscriptionModel)
                .filter(PushSubscriptionModel.recipient_id == recipient_id)
                .delete(synchronize_session=False)
            )
            session.commit()
            return deleted

    def _delete_expired(self, cutoff: datetime) -> int:
        with self.database.session() as session:
            deleted = (
                session.query(PushSubscriptionModel)
                .filter(PushSubscriptionModel.last_used_at < ensure_utc_naive(cutoff))
                .delete(synchronize_session=False)
            )
            session.commit()
            return deleted

    @staticmethod
    def _apply_entity_to_model(
        model: PushSubscriptionModel, subscription: PushSubscription
    ) -> None:
        model.id = subscription.id
        model.recipient_id = subscription.recipient_id
        model.device_type = subscription.device_type.value
        model.endpoint = subscription.endpoint
        model.p256dh = subscription.keys.p256dh if subscription.keys else None
        model.auth = subscription.keys.auth if subscription.keys else None
        model.token = subscription.token
        model.device_info = (
            {
                "user_agent": subscription.device_info.user_agent,
                "platform": subscription.device_info.platform,
                "device_name": subscription.device_info.device_name,
            }
            if subscription.device_info
            else None
        )
        model.is_active = subscription.is_active
        model.created_at = ensure_utc_naive(subscription.created_at)
        model.last_used_at = ensure_utc_naive(subscription.last_used_at)
        model.failure_count = subscription.failure_count
        model.last_failure_at = ensure_utc_naive(subscription.last_failure_at)
        model.error_message = subscription.error_message

    @staticmethod
    def _to_entity(model: PushSubscriptionModel) -> PushSubscription:
        keys = None
        if model.p256dh and model.auth:
            keys = PushKeys(p256dh=model.p256dh, auth=model.auth)

        device_info = None
        if model.device_info:
            device_info = DeviceInfo(
                user_agent=model.device_info.get("user_agent"),
                platform=model.device_info.get("platform"),
                device_name=model.device_info.get("device_name"),
            )

        return PushSubscription(
            id=model.id,
            recipient_id=model.recipient_id,
            device_type=DeviceType(model.device_type),
            endpoint=model.endpoint,
            keys=keys,
            token=model.token,
            device_info=device_info,
            is_active=bool(model.is_active),
            created_at=ensure_utc(model.created_at),
            last_used_at=ensure_utc(model.last_used_at),
            failure_count=model.failure_count or 0,
            last_failure_at=ensure_utc(model.last_failure_at),
            error_message=model.error_message,
        )


__all__ = ["SubscriptionRepository"]
