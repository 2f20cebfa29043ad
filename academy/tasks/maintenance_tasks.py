"""Scheduled clean-up of expired notifications and old webhook logs."""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from academy.core.config import get_settings
from academy.core.logging import bind_request_context, clear_request_context, get_logger
from academy.storage.database.base import AsyncSessionLocal, close_db, session_scope
from academy.storage.database.repository import NotificationRepository, WebhookLogRepository
from academy.tasks.celery_app import celery_app

settings = get_settings()
logger = get_logger(__name__)


def _run(task_name: str, job: Callable[[], Awaitable[dict[str, Any]]]) -> dict[str, Any]:
    """Run an async job on a fresh event loop from a Celery worker.

    Pooled connections are bound to the loop that opened them, so the pool
    is disposed before the loop closes.
    """

    async def run_and_dispose() -> dict[str, Any]:
        try:
            return await job()
        finally:
            await close_db()

    bind_request_context(task=task_name)
    try:
        return asyncio.run(run_and_dispose())
    finally:
        clear_request_context()


@celery_app.task(name="purge_expired_notifications")
def purge_expired_notifications_task() -> dict[str, Any]:
    """Delete notifications whose expiry has passed."""
    return _run("purge_expired_notifications", purge_expired_notifications)


@celery_app.task(name="cleanup_webhook_logs")
def cleanup_webhook_logs_task() -> dict[str, Any]:
    """Delete forwarded webhook log rows older than the retention window."""
    return _run("cleanup_webhook_logs", cleanup_webhook_logs)


async def purge_expired_notifications(
    session_factory: async_sessionmaker[AsyncSession] = AsyncSessionLocal,
    now: Optional[datetime] = None,
) -> dict[str, Any]:
    """Delete every notification with ``expires_at`` before now.

    Returns:
        ``{"status": "completed", "deleted": n}`` or ``{"status": "failed", "error": ...}``
    """
    try:
        async with session_scope(session_factory) as session:
            deleted = await NotificationRepository(session).delete_expired(now)
    except Exception as e:
        logger.error("purge_expired_notifications_failed", error=str(e), exc_info=True)
        return {"status": "failed", "error": str(e)}

    logger.info("expired_notifications_purged", deleted=deleted)
    return {"status": "completed", "deleted": deleted}


async def cleanup_webhook_logs(
    session_factory: async_sessionmaker[AsyncSession] = AsyncSessionLocal,
    retention_days: Optional[int] = None,
    now: Optional[datetime] = None,
) -> dict[str, Any]:
    """Delete webhook log rows created before the retention cutoff.

    Args:
        session_factory: Session factory
        retention_days: Days to keep (defaults to WEBHOOK_LOG_RETENTION_DAYS)
        now: Reference time

    Returns:
        Result dict including the ISO cutoff used
    """
    days = settings.webhook_log_retention_days if retention_days is None else retention_days
    cutoff = (now or datetime.now(timezone.utc)) - timedelta(days=days)

    try:
        async with session_scope(session_factory) as session:
            deleted = await WebhookLogRepository(session).delete_older_than(cutoff)
    except Exception as e:
        logger.error("cleanup_webhook_logs_failed", error=str(e), exc_info=True)
        return {"status": "failed", "error": str(e)}

    logger.info("webhook_logs_cleaned", deleted=deleted, cutoff_date=cutoff.isoformat())
    return {"status": "completed", "deleted": deleted, "cutoff_date": cutoff.isoformat()}
