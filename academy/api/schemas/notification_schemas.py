"""Pydantic schemas for recipient notification routes."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class NotificationResponse(BaseModel):
    """Notification response."""

    id: str
    user_id: str
    title: str
    message: str
    type: str
    category: Optional[str]
    action_url: Optional[str]
    metadata: Optional[dict] = Field(default=None, validation_alias="metadata_")
    expires_at: Optional[datetime]
    is_read: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class UnreadCountResponse(BaseModel):
    """Unread notification count."""

    unread: int


class MarkAllReadResponse(BaseModel):
    """Result of marking all notifications read."""

    updated: int
