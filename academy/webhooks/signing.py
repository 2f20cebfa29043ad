"""Webhook envelope serialization and HMAC signing."""

import hashlib
import hmac
import json
from datetime import datetime, timezone
from typing import Any, Union

SIGNATURE_HEADER = "X-Signature"


def format_timestamp(moment: datetime) -> str:
    """Format a datetime as ISO-8601 UTC with millisecond precision.

    Args:
        moment: Timezone-aware or naive (assumed UTC) datetime

    Returns:
        Timestamp like ``2024-05-01T12:00:00.000Z``
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def build_envelope(event_type: str, data: Any, webhook_id: str, moment: datetime) -> dict[str, Any]:
    """Build the dispatch envelope sent to a single webhook."""
    return {
        "event": event_type,
        "timestamp": format_timestamp(moment),
        "data": data,
        "webhook_id": webhook_id,
    }


def serialize_envelope(envelope: dict[str, Any]) -> bytes:
    """Serialize an envelope to the exact bytes that are signed and sent."""
    return json.dumps(envelope, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def sign_payload(body: Union[bytes, str], secret: str) -> str:
    """Generate HMAC-SHA-256 signature for a serialized payload.

    Args:
        body: Serialized payload
        secret: Webhook secret

    Returns:
        Lowercase hex digest
    """
    if isinstance(body, str):
        body = body.encode("utf-8")
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def verify_signature(body: Union[bytes, str], secret: str, signature: str | None) -> bool:
    """Check a received signature against the payload in constant time."""
    if not signature:
        return False
    expected = sign_payload(body, secret)
    return hmac.compare_digest(expected, signature.strip().lower())
