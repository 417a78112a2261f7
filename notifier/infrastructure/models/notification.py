"""SQLAlchemy model for persisted notifications."""

from sqlalchemy import JSON, Boolean, Column, DateTime, Index, String, Text

from notifier.infrastructure.database import Base


class NotificationModel(Base):
    """Database representation for recipient notifications."""

    __tablename__ = "notification"
    __table_args__ = (
        Index("ix_notification_recipient_created", "recipient_id", "created_at"),
        Index("ix_notification_recipient_read", "recipient_id", "is_read"),
    )

    id = Column(String(36), primary_key=True)
    recipient_id = Column(String(64), nullable=False, index=True)
    type = Column(String(20), nullable=False)
    title = Column(String(100), nullable=False)
    message = Column(Text, nullable=False)
    channels = Column(JSON, nullable=False, default=list)
    priority = Column(String(10), nullable=False, default="normal")
    payload = Column(JSON, nullable=False, default=dict)
    actions = Column(JSON, nullable=False, default=list)
    expires_at = Column(DateTime(), nullable=True)
    image_url = Column(String(500), nullable=True)
    icon_url = Column(String(500), nullable=True)
    is_read = Column(Boolean, nullable=False, default=False)
    read_at = Column(DateTime(), nullable=True)
    created_at = Column(DateTime(), nullable=False)
    delivered_at = Column(DateTime(), nullable=True)
    failed_at = Column(DateTime(), nullable=True)
    error_message = Column(Text, nullable=True)


__all__ = ["NotificationModel"]
