"""Webhook notification system."""

from academy.webhooks.dispatcher import DeliveryResult, DispatchSummary, WebhookDispatcher
from academy.webhooks.forwarder import ForwardResult, WebhookForwarder
from academy.webhooks.signing import sign_payload, verify_signature

__all__ = [
    "DeliveryResult",
    "DispatchSummary",
    "ForwardResult",
    "WebhookDispatcher",
    "WebhookForwarder",
    "sign_payload",
    "verify_signature",
]
