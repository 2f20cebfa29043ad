"""Tests for function endpoints."""

import json

import httpx
import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from academy.api.app import app
from academy.api.dependencies import get_webhook_repository
from academy.storage.database.notification_models import Notification, Profile
from academy.storage.database.webhook_models import WebhookLog
from academy.webhooks.signing import verify_signature
from tests.conftest import OutboundRecorder
from tests.fakes import SERVICE_KEY, FakeWebhookRepository, make_webhook

AUTH = {"Authorization": f"Bearer {SERVICE_KEY}"}


async def seed(session_factory: async_sessionmaker[AsyncSession], *rows) -> None:
    async with session_factory() as session:
        session.add_all(rows)
        await session.commit()


async def notifications_in_db(session_factory: async_sessionmaker[AsyncSession]) -> list[Notification]:
    async with session_factory() as session:
        result = await session.execute(select(Notification).order_by(Notification.user_id))
        return list(result.scalars().all())


class TestCors:
    """Test preflight and method handling."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name", ["send-webhook", "send-notification", "n8n-webhook-handler"])
    async def test_preflight(self, client: httpx.AsyncClient, name: str) -> None:
        """Test OPTIONS answers with the CORS headers and no body."""
        response = await client.options(f"/functions/v1/{name}")

        assert response.status_code == 200
        assert response.content == b""
        assert response.headers["access-control-allow-origin"] == "*"
        assert "content-type" in response.headers["access-control-allow-headers"]

    @pytest.mark.asyncio
    async def test_browser_preflight_gets_fixed_headers(self, client: httpx.AsyncClient) -> None:
        """Test a browser preflight is answered with the fixed header list."""
        response = await client.options(
            "/functions/v1/send-webhook",
            headers={
                "Origin": "https://academy.example",
                "Access-Control-Request-Method": "POST",
                "Access-Control-Request-Headers": "x-evil",
            },
        )

        assert response.status_code == 200
        assert response.content == b""
        assert response.headers["access-control-allow-origin"] == "*"
        assert response.headers["access-control-allow-headers"] == (
            "authorization, x-client-info, apikey, content-type"
        )

    @pytest.mark.asyncio
    async def test_get_not_allowed(self, client: httpx.AsyncClient) -> None:
        """Test only POST dispatches."""
        response = await client.get("/functions/v1/send-webhook")

        assert response.status_code == 405
        assert response.json() == {"error": "Method Not Allowed"}
        assert response.headers["access-control-allow-origin"] == "*"

    @pytest.mark.asyncio
    async def test_unknown_route(self, client: httpx.AsyncClient) -> None:
        """Test unknown paths use the error body."""
        response = await client.post("/functions/v1/send-sms", json={})

        assert response.status_code == 404
        assert response.json() == {"error": "Not Found"}


class TestUnhandledErrors:
    """Test failures outside the service exception hierarchy."""

    @pytest.mark.asyncio
    async def test_store_unreachable(self, client: httpx.AsyncClient, outbound: OutboundRecorder) -> None:
        """Test a raw connection error is returned as a JSON 500."""
        repository = FakeWebhookRepository([], error=ConnectionRefusedError("connection refused"))
        app.dependency_overrides[get_webhook_repository] = lambda: repository

        response = await client.post("/functions/v1/send-webhook", json={"eventType": "course_purchase"})

        assert response.status_code == 500
        assert response.headers["content-type"] == "application/json"
        assert response.headers["access-control-allow-origin"] == "*"
        assert response.json() == {"error": "connection refused"}
        assert outbound.requests == []


class TestSendWebhook:
    """Test POST /functions/v1/send-webhook."""

    @pytest.mark.asyncio
    async def test_signed_delivery(
        self,
        client: httpx.AsyncClient,
        outbound: OutboundRecorder,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        """Test one subscription receives a signed envelope."""
        await seed(
            session_factory,
            make_webhook("wh-1", url="https://n8n.test/hook", secret="s3cr3t"),
            make_webhook("wh-2", url="https://other.test/hook", events=["user_registered"]),
        )

        response = await client.post(
            "/functions/v1/send-webhook",
            json={"eventType": "course_purchase", "data": {"orderId": "o1"}},
        )

        assert response.status_code == 200
        assert response.json() == {
            "sent": 1,
            "results": [{"webhook_id": "wh-1", "status": 200, "success": True}],
        }
        assert response.headers["access-control-allow-origin"] == "*"

        assert len(outbound.requests) == 1
        sent = outbound.requests[0]
        envelope = json.loads(sent.content)
        assert list(envelope) == ["event", "timestamp", "data", "webhook_id"]
        assert envelope["event"] == "course_purchase"
        assert envelope["data"] == {"orderId": "o1"}
        assert envelope["timestamp"].endswith("Z")
        assert verify_signature(sent.content, "s3cr3t", sent.headers["X-Signature"])

    @pytest.mark.asyncio
    async def test_no_subscriptions(self, client: httpx.AsyncClient, outbound: OutboundRecorder) -> None:
        """Test an event nobody subscribes to sends nothing."""
        response = await client.post("/functions/v1/send-webhook", json={"eventType": "user_updated"})

        assert response.status_code == 200
        assert response.json() == {"sent": 0, "results": []}
        assert outbound.requests == []

    @pytest.mark.asyncio
    async def test_destination_failures_are_reported(
        self,
        client: httpx.AsyncClient,
        outbound: OutboundRecorder,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        """Test failed destinations are reported while the request succeeds."""
        await seed(
            session_factory,
            make_webhook("ok", url="https://ok.test/"),
            make_webhook("down", url="https://down.test/"),
            make_webhook("busy", url="https://busy.test/"),
        )
        outbound.statuses = {"down.test": None, "busy.test": 503}

        response = await client.post("/functions/v1/send-webhook", json={"eventType": "course_purchase"})

        assert response.status_code == 200
        by_id = {result["webhook_id"]: result for result in response.json()["results"]}
        assert by_id["ok"]["success"] is True
        assert by_id["busy"] == {"webhook_id": "busy", "status": 503, "success": False}
        assert by_id["down"]["status"] == 500
        assert by_id["down"]["error"].startswith("Request error")

    @pytest.mark.asyncio
    async def test_invalid_json(self, client: httpx.AsyncClient) -> None:
        """Test a malformed body is rejected."""
        response = await client.post(
            "/functions/v1/send-webhook",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid JSON body"}
        assert response.headers["access-control-allow-origin"] == "*"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [{}, {"eventType": ""}, {"data": {"a": 1}}])
    async def test_missing_event_type(
        self, client: httpx.AsyncClient, outbound: OutboundRecorder, body: dict
    ) -> None:
        """Test the event name is required."""
        response = await client.post("/functions/v1/send-webhook", json=body)

        assert response.status_code == 400
        assert "eventType" in response.json()["error"]
        assert outbound.requests == []

    @pytest.mark.asyncio
    async def test_non_object_body(self, client: httpx.AsyncClient) -> None:
        """Test a JSON array body is rejected."""
        response = await client.post("/functions/v1/send-webhook", json=["course_purchase"])

        assert response.status_code == 400
        assert response.json() == {"error": "Request body must be a JSON object"}


class TestSendNotification:
    """Test POST /functions/v1/send-notification."""

    @pytest.mark.asyncio
    async def test_single_user(
        self, client: httpx.AsyncClient, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        """Test a single recipient gets one unread notification."""
        response = await client.post(
            "/functions/v1/send-notification",
            json={
                "user_id": "u1",
                "title": "Bem-vindo",
                "message": "Seu curso está disponível",
                "type": "success",
                "action_url": "/cursos/1",
                "metadata": {"course_id": "c1"},
            },
        )

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "message": "Notifications sent to 1 users",
            "notifications_created": 1,
        }

        rows = await notifications_in_db(session_factory)
        assert len(rows) == 1
        assert rows[0].user_id == "u1"
        assert rows[0].type == "success"
        assert rows[0].is_read is False
        assert rows[0].metadata_ == {"course_id": "c1"}

    @pytest.mark.asyncio
    async def test_explicit_list(
        self, client: httpx.AsyncClient, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        """Test one record per listed user."""
        response = await client.post(
            "/functions/v1/send-notification",
            json={"user_ids": ["u1", "u2", "u3"], "title": "Hi", "message": "Body", "category": "course"},
        )

        assert response.status_code == 200
        assert response.json()["notifications_created"] == 3
        rows = await notifications_in_db(session_factory)
        assert [row.user_id for row in rows] == ["u1", "u2", "u3"]
        assert {row.category for row in rows} == {"course"}

    @pytest.mark.asyncio
    async def test_broadcast(
        self, client: httpx.AsyncClient, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        """Test omitting recipients targets every profile."""
        await seed(session_factory, *(Profile(id=f"p{i}") for i in range(4)))

        response = await client.post(
            "/functions/v1/send-notification",
            json={"title": "Maintenance", "message": "Tonight", "user_ids": []},
        )

        assert response.status_code == 200
        assert response.json()["message"] == "Notifications sent to 4 users"
        rows = await notifications_in_db(session_factory)
        assert [row.user_id for row in rows] == ["p0", "p1", "p2", "p3"]

    @pytest.mark.asyncio
    async def test_no_recipients(
        self, client: httpx.AsyncClient, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        """Test a broadcast to an empty directory fails and writes nothing."""
        response = await client.post("/functions/v1/send-notification", json={"title": "Hi", "message": "Body"})

        assert response.status_code == 400
        assert response.json() == {"error": "No target users found"}
        assert await notifications_in_db(session_factory) == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [{"message": "Body"}, {"title": "Hi"}, {"title": "", "message": "Body"}])
    async def test_title_and_message_required(
        self, client: httpx.AsyncClient, session_factory: async_sessionmaker[AsyncSession], body: dict
    ) -> None:
        """Test title and message are required."""
        response = await client.post("/functions/v1/send-notification", json={"user_id": "u1", **body})

        assert response.status_code == 400
        assert response.json() == {"error": "Title and message are required"}
        assert await notifications_in_db(session_factory) == []

    @pytest.mark.asyncio
    async def test_invalid_type(self, client: httpx.AsyncClient) -> None:
        """Test an unknown notification type is rejected."""
        response = await client.post(
            "/functions/v1/send-notification",
            json={"user_id": "u1", "title": "Hi", "message": "Body", "type": "critical"},
        )

        assert response.status_code == 400
        assert response.json()["error"].startswith("Invalid request: type")


class TestForwardWebhook:
    """Test POST /functions/v1/n8n-webhook-handler."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("headers", [{}, {"Authorization": "Bearer wrong"}, {"Authorization": SERVICE_KEY}])
    async def test_requires_service_role(
        self, client: httpx.AsyncClient, outbound: OutboundRecorder, headers: dict
    ) -> None:
        """Test a missing or wrong bearer token is rejected."""
        response = await client.post(
            "/functions/v1/n8n-webhook-handler",
            json={"event_type": "user_registered", "webhook_url": "https://n8n.test/hook"},
            headers=headers,
        )

        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized - Invalid or missing Bearer token"}
        assert outbound.requests == []

    @pytest.mark.asyncio
    async def test_forward_success(
        self,
        client: httpx.AsyncClient,
        outbound: OutboundRecorder,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        """Test a successful forward is logged and echoed back."""
        response = await client.post(
            "/functions/v1/n8n-webhook-handler",
            json={
                "event_type": "user_registered",
                "webhook_url": "https://n8n.test/hook",
                "user_id": "u1",
                "data": {"email": "ana@example.com"},
            },
            headers=AUTH,
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "Webhook sent successfully"
        assert body["response_status"] == 200
        assert body["payload_sent"]["source"] == "cliniks-academy"
        assert body["payload_sent"]["data"] == {"email": "ana@example.com"}
        assert json.loads(outbound.requests[0].content) == body["payload_sent"]

        async with session_factory() as session:
            logs = (await session.execute(select(WebhookLog))).scalars().all()
        assert len(logs) == 1
        assert logs[0].success is True
        assert logs[0].user_id == "u1"

    @pytest.mark.asyncio
    async def test_destination_rejects(
        self,
        client: httpx.AsyncClient,
        outbound: OutboundRecorder,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        """Test a non-2xx reply fails the request but keeps the log row."""
        outbound.statuses = {"n8n.test": 500}

        response = await client.post(
            "/functions/v1/n8n-webhook-handler",
            json={"event_type": "user_registered", "webhook_url": "https://n8n.test/hook"},
            headers=AUTH,
        )

        assert response.status_code == 502
        assert response.json()["error"].startswith("Webhook failed with status 500")

        async with session_factory() as session:
            logs = (await session.execute(select(WebhookLog))).scalars().all()
        assert [(log.success, log.response_status) for log in logs] == [(False, 500)]

    @pytest.mark.asyncio
    async def test_missing_url(self, client: httpx.AsyncClient) -> None:
        """Test event type and URL are required."""
        response = await client.post(
            "/functions/v1/n8n-webhook-handler",
            json={"event_type": "user_registered"},
            headers=AUTH,
        )

        assert response.status_code == 400
        assert response.json() == {"error": "Event type and webhook URL are required"}


@pytest.mark.asyncio
async def test_health(client: httpx.AsyncClient) -> None:
    """Test health endpoint."""
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


@pytest.mark.asyncio
async def test_request_id_is_echoed(client: httpx.AsyncClient) -> None:
    """Test the caller's request id is returned, or one is generated."""
    response = await client.get("/health", headers={"X-Request-Id": "req-123"})
    assert response.headers["X-Request-Id"] == "req-123"

    response = await client.get("/health")
    assert len(response.headers["X-Request-Id"]) == 32
