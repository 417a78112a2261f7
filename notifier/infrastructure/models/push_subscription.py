"""SQLAlchemy model for device push subscriptions."""

from sqlalchemy import JSON, Boolean, Column, DateTime, Integer, String, Text

from notifier.infrastructure.database import Base


class PushSubscriptionModel(Base):
    """Database representation of a Web Push endpoint or mobile token."""

    __tablename__ = "push_subscription"

    id = Column(String(36), primary_key=True)
    recipient_id = Column(String(64), nullable=False, index=True)
    device_type = Column(String(10), nullable=False)
    endpoint = Column(String(1000), nullable=True, index=True)
    p256dh = Column(String(255), nullable=True)
    auth = Column(String(255), nullable=True)
    token = Column(String(500), nullable=True, index=True)
    device_info = Column(JSON, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(), nullable=False)
    last_used_at = Column(DateTime(), nullable=False)
    failure_count = Column(Integer, nullable=False, default=0)
    last_failure_at = Column(DateTime(), nullable=True)
    error_message = Column(Text, nullable=True)


__all__ = ["PushSubscriptionModel"]
