"""Webhook models for event notifications."""

import datetime
from enum import Enum
from typing import Any, Optional

from sqlalchemy import Boolean, DateTime, Integer, JSON, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from academy.storage.database.base import Base, TimestampMixin, generate_uuid


class WebhookEvent(str, Enum):
    """Webhook event types known to the admin surface."""

    USER_REGISTERED = "user_registered"
    USER_UPDATED = "user_updated"
    COURSE_ENROLLED = "course_enrolled"
    COURSE_COMPLETED = "course_completed"
    COURSE_PURCHASE = "course_purchase"
    PAYMENT_RECEIVED = "payment_received"
    SUBSCRIPTION_CREATED = "subscription_created"
    SUBSCRIPTION_CANCELLED = "subscription_cancelled"


class WebhookConfig(Base, TimestampMixin):
    """Registered webhook subscription."""

    __tablename__ = "webhook_configs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    webhook_url: Mapped[str] = mapped_column(String(2048), nullable=False)

    # Event names that trigger this webhook (JSON array)
    event_types: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    secret_key: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def subscribes_to(self, event_type: str) -> bool:
        """Check whether this webhook is eligible for an event."""
        return bool(self.is_active) and event_type in (self.event_types or [])

    def __repr__(self) -> str:
        return f"<WebhookConfig(id={self.id}, name='{self.name}', url='{self.webhook_url}')>"


class WebhookLog(Base):
    """Single forwarded delivery attempt."""

    __tablename__ = "webhook_logs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    webhook_url: Mapped[str] = mapped_column(String(2048), nullable=False)
    event_type: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    payload: Mapped[Any] = mapped_column(JSON, nullable=False)

    response_status: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    response_body: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    success: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    user_id: Mapped[Optional[str]] = mapped_column(String, nullable=True, index=True)
    metadata_: Mapped[Optional[dict]] = mapped_column("metadata", JSON, nullable=True)

    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        index=True,
    )

    def __repr__(self) -> str:
        return f"<WebhookLog(id={self.id}, event_type='{self.event_type}', success={self.success})>"
