"""Declarative base, engine and session handling."""

import datetime
import uuid
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, AsyncIterator

from sqlalchemy import DateTime, func
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from academy.core.config import get_settings

settings = get_settings()


class Base(DeclarativeBase):
    """Base class for all database models."""


class TimestampMixin:
    """Created/updated timestamps maintained by the database."""

    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


def generate_uuid() -> str:
    return str(uuid.uuid4())


def engine_options() -> dict[str, Any]:
    """Engine keyword arguments for the configured database."""
    options: dict[str, Any] = {"echo": settings.debug}
    if not settings.uses_sqlite:
        # SQLite pools do not accept sizing arguments
        options.update(
            pool_pre_ping=True,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_pool_size // 2,
        )
    return options


async_engine = create_async_engine(settings.async_database_url, **engine_options())

AsyncSessionLocal = async_sessionmaker(
    async_engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


@asynccontextmanager
async def session_scope(
    factory: async_sessionmaker[AsyncSession] = AsyncSessionLocal,
) -> AsyncIterator[AsyncSession]:
    """Session committed on success and rolled back on any error."""
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for getting async database session.

    Yields:
        AsyncSession: Session committed after the request
    """
    async with session_scope() as session:
        yield session


async def init_db() -> None:
    """Create all tables."""
    # Register every model on Base.metadata before create_all
    from academy.storage.database import notification_models, webhook_models  # noqa: F401

    async with async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    await async_engine.dispose()
