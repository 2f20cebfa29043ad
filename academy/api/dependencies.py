"""Dependencies for FastAPI routes."""

import hmac
import json
from typing import Any, AsyncGenerator, Optional, Sequence, TypeVar

import httpx
from fastapi import Depends, Header, Request
from pydantic import BaseModel, ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from academy.core.config import get_settings
from academy.core.exceptions import UnauthorizedException, ValidationException
from academy.notifications.fanout import NotificationFanout
from academy.storage.database.base import get_db
from academy.storage.database.repository import (
    NotificationRepository,
    ProfileDirectory,
    WebhookLogRepository,
    WebhookRepository,
)
from academy.webhooks.dispatcher import WebhookDispatcher
from academy.webhooks.forwarder import WebhookForwarder

settings = get_settings()

ModelT = TypeVar("ModelT", bound=BaseModel)


async def get_http_client() -> AsyncGenerator[httpx.AsyncClient, None]:
    """Dependency for an outbound HTTP client.

    Yields:
        httpx.AsyncClient: Client closed after the request
    """
    async with httpx.AsyncClient(timeout=settings.webhook_timeout) as client:
        yield client


def get_webhook_repository(db: AsyncSession = Depends(get_db)) -> WebhookRepository:
    return WebhookRepository(db)


def get_webhook_log_repository(db: AsyncSession = Depends(get_db)) -> WebhookLogRepository:
    return WebhookLogRepository(db)


def get_notification_repository(db: AsyncSession = Depends(get_db)) -> NotificationRepository:
    return NotificationRepository(db)


def get_webhook_dispatcher(
    repository: WebhookRepository = Depends(get_webhook_repository),
    client: httpx.AsyncClient = Depends(get_http_client),
) -> WebhookDispatcher:
    return WebhookDispatcher(repository, client)


def get_webhook_forwarder(
    logs: WebhookLogRepository = Depends(get_webhook_log_repository),
    client: httpx.AsyncClient = Depends(get_http_client),
) -> WebhookForwarder:
    return WebhookForwarder(logs, client)


def get_notification_fanout(
    notifications: NotificationRepository = Depends(get_notification_repository),
    db: AsyncSession = Depends(get_db),
) -> NotificationFanout:
    return NotificationFanout(notifications, ProfileDirectory(db))


async def require_service_role(authorization: Optional[str] = Header(None)) -> None:
    """Require the service role key as a Bearer token.

    Raises:
        UnauthorizedException: If the header is missing or the key is wrong
    """
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not hmac.compare_digest(
        token.strip().encode("utf-8"), settings.service_role_key.encode("utf-8")
    ):
        raise UnauthorizedException("Unauthorized - Invalid or missing Bearer token")


async def get_current_user_id(x_user_id: Optional[str] = Header(None)) -> str:
    """Get the caller's user id, asserted by the upstream identity provider.

    Raises:
        UnauthorizedException: If the header is missing
    """
    if not x_user_id or not x_user_id.strip():
        raise UnauthorizedException("Not authenticated")
    return x_user_id.strip()


async def parse_body(request: Request, model: type[ModelT]) -> ModelT:
    """Parse and validate a JSON request body.

    Raises:
        ValidationException: If the body is not valid JSON or fails validation
    """
    try:
        payload = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ValidationException("Invalid JSON body") from e

    if not isinstance(payload, dict):
        raise ValidationException("Request body must be a JSON object")

    try:
        return model.model_validate(payload)
    except ValidationError as e:
        raise validation_failure(e.errors()) from e


def validation_failure(errors: Sequence[Any]) -> ValidationException:
    """Summarize pydantic errors as a single-message ValidationException."""
    details = {"errors": [{"loc": list(err["loc"]), "msg": err["msg"]} for err in errors]}
    if not errors:
        return ValidationException("Invalid request", details)
    first = errors[0]
    location = ".".join(str(part) for part in first["loc"]) or "body"
    return ValidationException(f"Invalid request: {location}: {first['msg']}", details)
