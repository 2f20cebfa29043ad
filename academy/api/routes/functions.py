"""Function endpoints: webhook dispatch, notification fan-out, forwarding."""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, Response

from academy.api.dependencies import (
    get_notification_fanout,
    get_webhook_dispatcher,
    get_webhook_forwarder,
    parse_body,
    require_service_role,
)
from academy.api.schemas.function_schemas import (
    ForwardWebhookRequest,
    SendNotificationRequest,
    SendWebhookRequest,
)
from academy.core.logging import get_logger
from academy.notifications.fanout import NotificationFanout
from academy.webhooks.dispatcher import WebhookDispatcher
from academy.webhooks.forwarder import WebhookForwarder

logger = get_logger(__name__)
router = APIRouter(prefix="/functions/v1", tags=["functions"])

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
}

FUNCTION_NAMES = ("send-webhook", "send-notification", "n8n-webhook-handler")


async def preflight() -> Response:
    """Answer CORS preflight."""
    return Response(status_code=200, headers=CORS_HEADERS)


for _name in FUNCTION_NAMES:
    router.add_api_route(f"/{_name}", preflight, methods=["OPTIONS"], include_in_schema=False)


@router.post("/send-webhook")
async def send_webhook(
    request: Request,
    dispatcher: WebhookDispatcher = Depends(get_webhook_dispatcher),
) -> JSONResponse:
    """Dispatch an event to every subscribed webhook."""
    body = await parse_body(request, SendWebhookRequest)

    summary = await dispatcher.dispatch(body.event_type, body.data)

    logger.info(
        "send_webhook_completed",
        event_type=body.event_type,
        sent=summary.sent,
        failed=sum(1 for result in summary.results if not result.success),
    )
    return JSONResponse(summary.to_dict(), headers=CORS_HEADERS)


@router.post("/send-notification")
async def send_notification(
    request: Request,
    fanout: NotificationFanout = Depends(get_notification_fanout),
) -> JSONResponse:
    """Create one notification per target user."""
    body = await parse_body(request, SendNotificationRequest)

    result = await fanout.send(body.to_fanout_request())

    return JSONResponse(
        {
            "success": True,
            "message": result.message,
            "notifications_created": result.created,
        },
        headers=CORS_HEADERS,
    )


@router.post("/n8n-webhook-handler", dependencies=[Depends(require_service_role)])
async def forward_webhook(
    request: Request,
    forwarder: WebhookForwarder = Depends(get_webhook_forwarder),
) -> JSONResponse:
    """Forward one event to an explicit URL and log the attempt."""
    body = await parse_body(request, ForwardWebhookRequest)

    result = await forwarder.forward(
        event_type=body.event_type or "",
        webhook_url=body.webhook_url or "",
        data=body.data,
        user_id=body.user_id,
        metadata=body.metadata,
    )

    return JSONResponse(
        {
            "success": True,
            "message": "Webhook sent successfully",
            "webhook_url": result.webhook_url,
            "event_type": result.event_type,
            "response_status": result.response_status,
            "payload_sent": result.payload,
        },
        headers=CORS_HEADERS,
    )
