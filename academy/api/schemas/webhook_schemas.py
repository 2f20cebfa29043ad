"""Pydantic schemas for webhooks."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, HttpUrl, field_validator

from academy.storage.database.webhook_models import WebhookEvent


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


class WebhookCreate(BaseModel):
    """Webhook creation request."""

    name: str = Field(min_length=1)
    webhook_url: HttpUrl
    event_types: list[WebhookEvent] = Field(min_length=1)
    secret_key: Optional[str] = None
    is_active: bool = True

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("name must not be blank")
        return value

    @field_validator("secret_key")
    @classmethod
    def normalize_secret(cls, value: Optional[str]) -> Optional[str]:
        return _blank_to_none(value)


class WebhookUpdate(BaseModel):
    """Webhook update request."""

    name: Optional[str] = Field(default=None, min_length=1)
    webhook_url: Optional[HttpUrl] = None
    event_types: Optional[list[WebhookEvent]] = Field(default=None, min_length=1)
    secret_key: Optional[str] = None
    is_active: Optional[bool] = None

    @field_validator("secret_key")
    @classmethod
    def normalize_secret(cls, value: Optional[str]) -> Optional[str]:
        return _blank_to_none(value)


class WebhookResponse(BaseModel):
    """Webhook response."""

    id: str
    name: str
    webhook_url: str
    event_types: list[str]
    secret_key: Optional[str]
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class WebhookLogResponse(BaseModel):
    """Webhook log response."""

    id: str
    webhook_url: str
    event_type: str
    payload: Any
    response_status: Optional[int]
    response_body: Optional[str]
    success: bool
    user_id: Optional[str]
    metadata: Optional[dict] = Field(default=None, validation_alias="metadata_")
    created_at: datetime

    model_config = {"from_attributes": True}


class WebhookTestPayload(BaseModel):
    """Webhook test payload."""

    message: str = "Test webhook from Cliniks Academy"
    data: Optional[dict] = None
