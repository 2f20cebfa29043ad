"""Webhook event dispatcher."""

import asyncio
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Optional

import httpx

from academy.core.config import get_settings
from academy.core.exceptions import ValidationException
from academy.core.logging import get_logger
from academy.storage.database.repository import WebhookRepository
from academy.storage.database.webhook_models import WebhookConfig
from academy.webhooks.signing import SIGNATURE_HEADER, build_envelope, serialize_envelope, sign_payload

settings = get_settings()
logger = get_logger(__name__)

# Status recorded when no HTTP response was received
FAILURE_STATUS = 500


@dataclass
class DeliveryResult:
    """Outcome of one delivery attempt."""

    webhook_id: str
    status: int
    success: bool
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        if self.error is None:
            data.pop("error")
        return data


@dataclass
class DispatchSummary:
    """Aggregated dispatch outcome."""

    sent: int = 0
    results: list[DeliveryResult] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"sent": self.sent, "results": [result.to_dict() for result in self.results]}


class WebhookDispatcher:
    """Fans an event out to every subscribed webhook."""

    def __init__(
        self,
        repository: WebhookRepository,
        client: httpx.AsyncClient,
        *,
        max_concurrency: Optional[int] = None,
        timeout: Optional[float] = None,
        user_agent: Optional[str] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        """Initialize webhook dispatcher.

        Args:
            repository: Source of webhook subscriptions
            client: HTTP client used for outbound calls
            max_concurrency: Maximum deliveries in flight (default from settings)
            timeout: Per-request timeout in seconds (default from settings)
            user_agent: User-Agent header value (default from settings)
            clock: Returns the dispatch time (default: current UTC time)
        """
        self.repository = repository
        self.client = client
        self.max_concurrency = settings.webhook_max_concurrency if max_concurrency is None else max_concurrency
        self.timeout = settings.webhook_timeout if timeout is None else timeout
        self.user_agent = settings.webhook_user_agent if user_agent is None else user_agent
        self.clock = clock or (lambda: datetime.now(timezone.utc))

        if self.max_concurrency < 1:
            raise ValueError("max_concurrency must be positive")
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")

    async def dispatch(self, event_type: str, data: Any) -> DispatchSummary:
        """Dispatch event to all active webhooks subscribed to it.

        Args:
            event_type: Event name
            data: Caller payload, embedded unchanged in each envelope

        Returns:
            Number of attempts and per-webhook outcomes, in subscription order

        Raises:
            ValidationException: If event_type is empty
            StorageException: If subscriptions cannot be loaded
        """
        if not isinstance(event_type, str) or not event_type.strip():
            raise ValidationException("eventType is required")

        webhooks = await self.repository.list_active_for_event(event_type)

        logger.info(
            "dispatching_webhook_event",
            event_type=event_type,
            webhooks_count=len(webhooks),
        )

        if not webhooks:
            return DispatchSummary()

        dispatched_at = self.clock()
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def bounded(webhook: WebhookConfig) -> DeliveryResult:
            async with semaphore:
                return await self._attempt_delivery(webhook, event_type, data, dispatched_at)

        results = await asyncio.gather(*(bounded(webhook) for webhook in webhooks))
        return DispatchSummary(sent=len(results), results=list(results))

    def _build_request(
        self,
        webhook: WebhookConfig,
        event_type: str,
        data: Any,
        dispatched_at: datetime,
    ) -> tuple[bytes, dict[str, str]]:
        body = serialize_envelope(build_envelope(event_type, data, webhook.id, dispatched_at))

        headers = {
            "Content-Type": "application/json",
            "User-Agent": self.user_agent,
        }
        if webhook.secret_key:
            headers[SIGNATURE_HEADER] = sign_payload(body, webhook.secret_key)

        return body, headers

    async def _attempt_delivery(
        self,
        webhook: WebhookConfig,
        event_type: str,
        data: Any,
        dispatched_at: datetime,
    ) -> DeliveryResult:
        """Attempt to deliver webhook once.

        Args:
            webhook: Webhook configuration
            event_type: Event name
            data: Caller payload
            dispatched_at: Dispatch time stamped into the envelope

        Returns:
            Delivery outcome; never raises for per-webhook failures
        """
        try:
            body, headers = self._build_request(webhook, event_type, data, dispatched_at)
            response = await self.client.post(
                webhook.webhook_url,
                content=body,
                headers=headers,
                timeout=self.timeout,
            )

        except httpx.RequestError as e:
            logger.warning(
                "webhook_delivery_request_error",
                webhook_id=webhook.id,
                webhook_name=webhook.name,
                event_type=event_type,
                error=str(e),
            )
            return DeliveryResult(
                webhook_id=webhook.id,
                status=FAILURE_STATUS,
                success=False,
                error=f"Request error: {e}",
            )

        except Exception as e:
            logger.error(
                "webhook_delivery_error",
                webhook_id=webhook.id,
                webhook_name=webhook.name,
                event_type=event_type,
                error=str(e),
                exc_info=True,
            )
            return DeliveryResult(
                webhook_id=webhook.id,
                status=FAILURE_STATUS,
                success=False,
                error=f"Unexpected error: {e}",
            )

        success = 200 <= response.status_code < 300
        if success:
            logger.info(
                "webhook_delivered_successfully",
                webhook_id=webhook.id,
                webhook_name=webhook.name,
                event_type=event_type,
                status_code=response.status_code,
            )
        else:
            logger.warning(
                "webhook_delivery_rejected",
                webhook_id=webhook.id,
                webhook_name=webhook.name,
                event_type=event_type,
                status_code=response.status_code,
            )

        return DeliveryResult(webhook_id=webhook.id, status=response.status_code, success=success)
