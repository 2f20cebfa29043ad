"""Shared test fixtures."""

import os

# Settings are cached on first import; configure before importing the app.
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["SERVICE_ROLE_KEY"] = "test-service-key"
os.environ.setdefault("DEBUG", "false")

from typing import AsyncGenerator, Optional

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from academy.api.app import app
from academy.api.dependencies import get_http_client
from academy.storage.database.base import Base, get_db, session_scope
from academy.storage.database.notification_models import Notification, Profile  # noqa: F401
from academy.storage.database.webhook_models import WebhookConfig, WebhookLog  # noqa: F401


@pytest.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """In-memory SQLite database with all tables created."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
async def async_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Database session bound to the in-memory database."""
    async with session_factory() as session:
        yield session


class OutboundRecorder:
    """Mock transport handler recording outbound webhook calls.

    ``statuses`` maps a destination host to the status it answers with;
    ``None`` makes the host unreachable.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.statuses: dict[str, Optional[int]] = {}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        status = self.statuses.get(request.url.host, 200)
        if status is None:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(status, text="ok" if status < 400 else "error")


@pytest.fixture
def outbound() -> OutboundRecorder:
    """Recorder for outbound webhook calls."""
    return OutboundRecorder()


@pytest.fixture
async def client(
    session_factory: async_sessionmaker[AsyncSession],
    outbound: OutboundRecorder,
) -> AsyncGenerator[httpx.AsyncClient, None]:
    """API client wired to the in-memory database and mocked outbound HTTP."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_scope(session_factory) as session:
            yield session

    async def override_get_http_client() -> AsyncGenerator[httpx.AsyncClient, None]:
        async with httpx.AsyncClient(transport=httpx.MockTransport(outbound)) as http_client:
            yield http_client

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_http_client] = override_get_http_client

    # Unhandled errors still reach the client as JSON 500s
    transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as api_client:
        yield api_client

    app.dependency_overrides.clear()
