"""Webhook management routes."""

from typing import Any

from fastapi import APIRouter, Depends

from academy.api.dependencies import (
    get_webhook_forwarder,
    get_webhook_log_repository,
    get_webhook_repository,
    require_service_role,
)
from academy.api.schemas.webhook_schemas import (
    WebhookCreate,
    WebhookLogResponse,
    WebhookResponse,
    WebhookTestPayload,
    WebhookUpdate,
)
from academy.core.exceptions import NotFoundException
from academy.core.logging import get_logger
from academy.storage.database.repository import WebhookLogRepository, WebhookRepository
from academy.storage.database.webhook_models import WebhookConfig, WebhookEvent
from academy.webhooks.forwarder import WebhookForwarder

logger = get_logger(__name__)
router = APIRouter(
    prefix="/webhooks",
    tags=["webhooks"],
    dependencies=[Depends(require_service_role)],
)


async def _get_webhook_or_404(webhooks: WebhookRepository, webhook_id: str) -> WebhookConfig:
    webhook = await webhooks.get_by_id(webhook_id)
    if not webhook:
        raise NotFoundException("Webhook not found")
    return webhook


@router.get("", response_model=list[WebhookResponse])
async def list_webhooks(
    webhooks: WebhookRepository = Depends(get_webhook_repository),
) -> Any:
    """List all webhooks."""
    return await webhooks.list_all()


@router.post("", response_model=WebhookResponse, status_code=201)
async def create_webhook(
    webhook_data: WebhookCreate,
    webhooks: WebhookRepository = Depends(get_webhook_repository),
) -> Any:
    """Create new webhook."""
    return await webhooks.create(
        name=webhook_data.name,
        webhook_url=str(webhook_data.webhook_url),
        event_types=[event.value for event in webhook_data.event_types],
        secret_key=webhook_data.secret_key,
        is_active=webhook_data.is_active,
    )


@router.get("/logs", response_model=list[WebhookLogResponse])
async def list_webhook_logs(
    limit: int = 50,
    logs: WebhookLogRepository = Depends(get_webhook_log_repository),
) -> Any:
    """List recent forwarded delivery attempts."""
    return await logs.list_recent(limit=limit)


@router.get("/events/types", response_model=list[str])
async def list_event_types() -> Any:
    """List available webhook event types."""
    return [event.value for event in WebhookEvent]


@router.get("/{webhook_id}", response_model=WebhookResponse)
async def get_webhook(
    webhook_id: str,
    webhooks: WebhookRepository = Depends(get_webhook_repository),
) -> Any:
    """Get webhook by ID."""
    return await _get_webhook_or_404(webhooks, webhook_id)


@router.patch("/{webhook_id}", response_model=WebhookResponse)
async def update_webhook(
    webhook_id: str,
    webhook_data: WebhookUpdate,
    webhooks: WebhookRepository = Depends(get_webhook_repository),
) -> Any:
    """Update webhook."""
    webhook = await _get_webhook_or_404(webhooks, webhook_id)

    update_data = webhook_data.model_dump(exclude_unset=True)

    if "event_types" in update_data:
        update_data["event_types"] = [event.value for event in webhook_data.event_types or []]

    if "webhook_url" in update_data:
        update_data["webhook_url"] = str(webhook_data.webhook_url)

    return await webhooks.update(webhook, **update_data)


@router.delete("/{webhook_id}", status_code=204)
async def delete_webhook(
    webhook_id: str,
    webhooks: WebhookRepository = Depends(get_webhook_repository),
) -> None:
    """Delete webhook."""
    webhook = await _get_webhook_or_404(webhooks, webhook_id)
    await webhooks.delete(webhook)


@router.post("/{webhook_id}/test", status_code=202)
async def test_webhook(
    webhook_id: str,
    test_payload: WebhookTestPayload,
    webhooks: WebhookRepository = Depends(get_webhook_repository),
    forwarder: WebhookForwarder = Depends(get_webhook_forwarder),
) -> Any:
    """Send test webhook delivery."""
    webhook = await _get_webhook_or_404(webhooks, webhook_id)

    result = await forwarder.forward(
        event_type="test_webhook",
        webhook_url=webhook.webhook_url,
        data={
            "message": test_payload.message,
            "webhook_name": webhook.name,
            **(test_payload.data or {}),
        },
        metadata={"test": True, "webhook_id": webhook.id},
    )

    logger.info("webhook_test_sent", webhook_id=webhook_id, status_code=result.response_status)

    return {"message": "Test webhook sent", "response_status": result.response_status}
