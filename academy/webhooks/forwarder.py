"""Single-destination webhook forwarding with delivery logging."""

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Optional

import httpx

from academy.core.config import get_settings
from academy.core.exceptions import DeliveryFailedError, StorageException, ValidationException
from academy.core.logging import get_logger
from academy.storage.database.repository import WebhookLogRepository
from academy.webhooks.signing import format_timestamp

settings = get_settings()
logger = get_logger(__name__)

SOURCE = "cliniks-academy"
TEST_SOURCE = "cliniks-academy-test"
TEST_PREFIX = "test_"
RESPONSE_BODY_LIMIT = 1000


@dataclass
class ForwardResult:
    """Outcome of a successful forward."""

    event_type: str
    webhook_url: str
    response_status: int
    payload: dict[str, Any]


def build_forward_payload(
    event_type: str,
    data: Any,
    moment: datetime,
    user_id: Optional[str] = None,
    metadata: Optional[dict[str, Any]] = None,
) -> dict[str, Any]:
    """Build the body posted to a forward destination.

    Test events are flattened so the receiver sees the same shape as the
    real event, marked with ``test: true``.
    """
    timestamp = format_timestamp(moment)

    if event_type.startswith(TEST_PREFIX):
        payload = dict(data) if isinstance(data, dict) else {"data": data}
        payload.update(
            test=True,
            event_type=event_type[len(TEST_PREFIX):],
            timestamp=timestamp,
            source=TEST_SOURCE,
        )
        return payload

    return {
        "event_type": event_type,
        "timestamp": timestamp,
        "user_id": user_id,
        "data": data,
        "metadata": metadata,
        "source": SOURCE,
    }


class WebhookForwarder:
    """Posts a payload to an explicit URL and records the attempt."""

    def __init__(
        self,
        logs: WebhookLogRepository,
        client: httpx.AsyncClient,
        *,
        timeout: Optional[float] = None,
        user_agent: Optional[str] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.logs = logs
        self.client = client
        self.timeout = settings.webhook_timeout if timeout is None else timeout
        self.user_agent = settings.webhook_user_agent if user_agent is None else user_agent
        self.clock = clock or (lambda: datetime.now(timezone.utc))

        if self.timeout <= 0:
            raise ValueError("timeout must be positive")

    async def forward(
        self,
        event_type: str,
        webhook_url: str,
        data: Any,
        user_id: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> ForwardResult:
        """Forward one event to one URL.

        Raises:
            ValidationException: If event type or URL is missing
            DeliveryFailedError: If the URL is invalid, the destination is unreachable,
                or it answers non-2xx
        """
        if not event_type or not webhook_url:
            raise ValidationException("Event type and webhook URL are required")

        payload = build_forward_payload(event_type, data, self.clock(), user_id, metadata)
        request_id = str(uuid.uuid4())

        logger.info("forwarding_webhook", event_type=event_type, url=webhook_url, request_id=request_id)

        try:
            response = await self.client.post(
                webhook_url,
                json=payload,
                headers={"User-Agent": self.user_agent},
                timeout=self.timeout,
            )
        except (httpx.RequestError, httpx.InvalidURL) as e:
            await self._record(
                event_type,
                webhook_url,
                payload,
                user_id,
                response_status=None,
                response_body=None,
                success=False,
                metadata={"request_id": request_id, "error": str(e)},
            )
            raise DeliveryFailedError(f"Webhook request failed: {e}") from e

        response_text = response.text
        success = response.is_success

        await self._record(
            event_type,
            webhook_url,
            payload,
            user_id,
            response_status=response.status_code,
            response_body=response_text[:RESPONSE_BODY_LIMIT],
            success=success,
            metadata={"headers": dict(response.headers), "request_id": request_id},
        )

        if not success:
            raise DeliveryFailedError(
                f"Webhook failed with status {response.status_code}: {response_text[:500]}",
                response_status=response.status_code,
            )

        logger.info("webhook_forwarded", event_type=event_type, status_code=response.status_code)
        return ForwardResult(
            event_type=event_type,
            webhook_url=webhook_url,
            response_status=response.status_code,
            payload=payload,
        )

    async def _record(
        self,
        event_type: str,
        webhook_url: str,
        payload: dict[str, Any],
        user_id: Optional[str],
        **fields: Any,
    ) -> None:
        """Write a delivery log row; a failed write is logged, not raised."""
        metadata = fields.pop("metadata", None)
        try:
            await self.logs.create(
                webhook_url=webhook_url,
                event_type=event_type,
                payload=payload,
                user_id=user_id,
                metadata_=metadata,
                **fields,
            )
        except StorageException as e:
            logger.error("webhook_log_write_failed", event_type=event_type, url=webhook_url, error=e.message)
