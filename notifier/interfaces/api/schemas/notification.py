"""Pydantic models describing notification payloads."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from notifier.application.dispatcher import BulkDeliveryResult, NotificationRequest
from notifier.domain.entities import (
    NotificationAction,
    NotificationChannel,
    NotificationPriority,
    NotificationType,
)


class NotificationActionSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    label: str = Field(..., min_length=1, max_length=50)
    url: str | None = None
    action: str | None = None
    data: Any = None


class NotificationContent(BaseModel):
    """Fields shared by single and bulk creation requests."""

    type: NotificationType
    title: str
    message: str
    channels: list[NotificationChannel] | None = Field(
        default=None,
        description="Explicit channels; omitted to let recipient preferences decide",
    )
    priority: NotificationPriority = NotificationPriority.NORMAL
    metadata: dict[str, Any] = Field(default_factory=dict)
    actions: list[NotificationActionSchema] = Field(default_factory=list)
    expires_at: datetime | None = None
    image_url: str | None = None
    icon_url: str | None = None

    def to_request(self) -> NotificationRequest:
        return NotificationRequest(
            type=self.type,
            title=self.title,
            message=self.message,
            channels=tuple(self.channels) if self.channels is not None else None,
            priority=self.priority,
            metadata=dict(self.metadata),
            actions=tuple(
                NotificationAction(
                    label=action.label,
                    url=action.url,
                    action=action.action,
                    data=action.data,
                )
                for action in self.actions
            ),
            expires_at=self.expires_at,
            image_url=self.image_url,
            icon_url=self.icon_url,
        )


class NotificationCreate(NotificationContent):
    recipient_id: str = Field(..., min_length=1, max_length=64)


class BulkNotificationCreate(NotificationContent):
    recipient_ids: list[str] = Field(..., min_length=1, max_length=10000)


class NotificationRead(BaseModel):
    """Representation of a notification delivered to the client."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    recipient_id: str
    type: NotificationType
    title: str
    message: str
    channels: list[NotificationChannel]
    priority: NotificationPriority
    metadata: dict[str, Any] = Field(default_factory=dict)
    actions: list[NotificationActionSchema] = Field(default_factory=list)
    expires_at: datetime | None = None
    image_url: str | None = None
    icon_url: str | None = None
    is_read: bool = False
    read_at: datetime | None = None
    created_at: datetime
    delivered_at: datetime | None = None
    failed_at: datetime | None = None
    error_message: str | None = None


class BulkFailureRead(BaseModel):
    recipient_id: str
    reason: str


class BulkNotificationResult(BaseModel):
    successful: list[NotificationRead]
    failed: list[BulkFailureRead]
    total: int

    @classmethod
    def from_result(cls, result: BulkDeliveryResult) -> "BulkNotificationResult":
        return cls(
            successful=[NotificationRead.model_validate(item) for item in result.successful],
            failed=[
                BulkFailureRead(recipient_id=item.recipient_id, reason=item.reason)
                for item in result.failed
            ],
            total=result.total,
        )


class NotificationMarkReadRequest(BaseModel):
    """Payload used to mark a batch of notifications as read.

    Omitting ``notification_ids`` marks every unread notification.
    """

    recipient_id: str = Field(..., min_length=1)
    notification_ids: list[str] | None = Field(default=None, min_length=1)


class MarkReadFailure(BaseModel):
    id: str
    reason: str


class NotificationMarkReadResponse(BaseModel):
    count: int
    marked: list[str] = Field(default_factory=list)
    failed: list[MarkReadFailure] = Field(default_factory=list)


class UnreadCount(BaseModel):
    recipient_id: str
    count: int


class DigestResult(BaseModel):
    recipient_id: str
    jobs: int


__all__ = [
    "BulkFailureRead",
    "BulkNotificationCreate",
    "BulkNotificationResult",
    "DigestResult",
    "MarkReadFailure",
    "NotificationActionSchema",
    "NotificationCreate",
    "NotificationMarkReadRequest",
    "NotificationMarkReadResponse",
    "NotificationRead",
    "UnreadCount",
]
