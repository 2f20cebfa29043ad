"""Pydantic schemas for function endpoints."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from academy.notifications.fanout import FanoutRequest
from academy.storage.database.notification_models import NotificationType


class SendWebhookRequest(BaseModel):
    """Webhook dispatch request."""

    model_config = ConfigDict(populate_by_name=True)

    event_type: str = Field(alias="eventType", min_length=1)
    data: Any = None


class SendNotificationRequest(BaseModel):
    """Notification fan-out request.

    Title and message are checked by the fan-out itself so a missing value
    is reported the same way from every entry point.
    """

    user_id: Optional[str] = None
    user_ids: Optional[list[str]] = None
    title: Optional[str] = None
    message: Optional[str] = None
    type: NotificationType = NotificationType.INFO
    category: Optional[str] = None
    action_url: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None
    expires_at: Optional[datetime] = None

    def to_fanout_request(self) -> FanoutRequest:
        return FanoutRequest(
            title=self.title,
            message=self.message,
            user_id=self.user_id,
            user_ids=list(self.user_ids or []),
            type=self.type,
            category=self.category,
            action_url=self.action_url,
            metadata=self.metadata,
            expires_at=self.expires_at,
        )


class ForwardWebhookRequest(BaseModel):
    """Single-destination forward request."""

    event_type: Optional[str] = None
    webhook_url: Optional[str] = None
    user_id: Optional[str] = None
    data: Any = None
    metadata: Optional[dict[str, Any]] = None
