"""Tests for webhook envelope serialization and signing."""

import hashlib
import hmac
import json
from datetime import datetime, timedelta, timezone

from academy.webhooks.signing import (
    build_envelope,
    format_timestamp,
    serialize_envelope,
    sign_payload,
    verify_signature,
)

MOMENT = datetime(2024, 5, 1, 12, 30, 45, 123456, tzinfo=timezone.utc)


def test_format_timestamp_utc_milliseconds() -> None:
    """Test timestamps use millisecond precision and a Z suffix."""
    assert format_timestamp(MOMENT) == "2024-05-01T12:30:45.123Z"


def test_format_timestamp_converts_offset() -> None:
    """Test non-UTC datetimes are converted to UTC."""
    local = MOMENT.astimezone(timezone(timedelta(hours=-3)))
    assert format_timestamp(local) == "2024-05-01T12:30:45.123Z"


def test_format_timestamp_naive_is_utc() -> None:
    """Test naive datetimes are treated as UTC."""
    assert format_timestamp(datetime(2024, 1, 2, 3, 4, 5)) == "2024-01-02T03:04:05.000Z"


def test_envelope_key_order_and_compact_body() -> None:
    """Test envelope serializes in fixed key order without whitespace."""
    envelope = build_envelope("course_purchase", {"orderId": "o1"}, "wh-1", MOMENT)
    body = serialize_envelope(envelope)

    assert body == (
        b'{"event":"course_purchase","timestamp":"2024-05-01T12:30:45.123Z",'
        b'"data":{"orderId":"o1"},"webhook_id":"wh-1"}'
    )
    assert list(json.loads(body)) == ["event", "timestamp", "data", "webhook_id"]


def test_envelope_keeps_unicode() -> None:
    """Test non-ASCII payloads are sent as UTF-8."""
    body = serialize_envelope(build_envelope("user_registered", {"name": "João"}, "wh-1", MOMENT))
    assert "João".encode("utf-8") in body


def test_signature_matches_hmac_sha256_hex() -> None:
    """Test signature is lowercase hex HMAC-SHA-256."""
    body = b'{"event":"x"}'
    expected = hmac.new(b"s3cr3t", body, hashlib.sha256).hexdigest()

    signature = sign_payload(body, "s3cr3t")

    assert signature == expected
    assert signature == signature.lower()
    assert len(signature) == 64


def test_signature_is_deterministic() -> None:
    """Test same secret and body give the same signature."""
    body = serialize_envelope(build_envelope("e", {"a": 1}, "wh", MOMENT))
    assert sign_payload(body, "k") == sign_payload(body, "k")
    assert sign_payload(body.decode("utf-8"), "k") == sign_payload(body, "k")


def test_signature_changes_with_one_byte() -> None:
    """Test altering a single byte changes the signature."""
    body = bytearray(b'{"event":"course_purchase","data":{"orderId":"o1"}}')
    original = sign_payload(bytes(body), "s3cr3t")
    body[-3] = ord("2")
    assert sign_payload(bytes(body), "s3cr3t") != original


def test_signature_depends_on_secret() -> None:
    """Test different secrets give different signatures."""
    assert sign_payload(b"body", "a") != sign_payload(b"body", "b")


def test_verify_signature() -> None:
    """Test receiver-side verification."""
    body = b'{"event":"x"}'
    signature = sign_payload(body, "s3cr3t")

    assert verify_signature(body, "s3cr3t", signature) is True
    assert verify_signature(body, "s3cr3t", signature.upper()) is True
    assert verify_signature(body, "wrong", signature) is False
    assert verify_signature(b'{"event":"y"}', "s3cr3t", signature) is False
    assert verify_signature(body, "s3cr3t", None) is False
    assert verify_signature(body, "s3cr3t", "") is False
