"""
In-app notification table and API schemas.
"""

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict
from sqlalchemy import Boolean, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ..db import Base, TimestampMixin, UUIDPrimaryKeyMixin


class NotificationType(str, Enum):
    GENERAL = "general"
    DEAL = "deal"
    SUPPORT = "support"
    PARTNER = "partner"
    INVOICE = "invoice"
    MDF = "mdf"


class Notification(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """A message shown in a user's notification bell."""

    __tablename__ = "notifications"

    # Hosted auth user id of the recipient
    user_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(String(50), default=NotificationType.GENERAL.value)
    reference_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    reference_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    __table_args__ = (Index("ix_notifications_user_read", "user_id", "is_read"),)


# Pydantic models for API


class BulkNotificationRequest(BaseModel):
    notifications: list[dict[str, Any]] | None = None


class NotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: str
    title: str
    message: str
    type: str
    reference_id: str | None
    reference_type: str | None
    is_read: bool
    created_at: datetime


class BulkNotificationResponse(BaseModel):
    success: bool = True
    data: list[NotificationResponse]


class NotificationList(BaseModel):
    notifications: list[NotificationResponse]
    total: int
    unread_count: int
