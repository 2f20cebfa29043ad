"""Database repository layer."""

from datetime import datetime, timezone
from typing import Any, AsyncIterator, Optional

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from academy.core.exceptions import StorageException
from academy.core.logging import get_logger
from academy.storage.database.notification_models import Notification, Profile
from academy.storage.database.webhook_models import WebhookConfig, WebhookLog

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WebhookRepository:
    """Repository for WebhookConfig model."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session."""
        self.session = session

    async def list_active_for_event(self, event_type: str) -> list[WebhookConfig]:
        """Get active webhooks subscribed to an event.

        Event sets are stored as portable JSON arrays, so membership is
        checked after loading the active rows.
        """
        try:
            result = await self.session.execute(
                select(WebhookConfig)
                .where(WebhookConfig.is_active.is_(True))
                .order_by(WebhookConfig.created_at, WebhookConfig.id)
            )
        except SQLAlchemyError as e:
            raise StorageException(f"Failed to load webhooks: {e}") from e
        return [webhook for webhook in result.scalars().all() if webhook.subscribes_to(event_type)]

    async def list_all(self) -> list[WebhookConfig]:
        """List all webhooks, newest first."""
        result = await self.session.execute(
            select(WebhookConfig).order_by(WebhookConfig.created_at.desc(), WebhookConfig.id)
        )
        return list(result.scalars().all())

    async def get_by_id(self, webhook_id: str) -> Optional[WebhookConfig]:
        """Get webhook by ID."""
        result = await self.session.execute(
            select(WebhookConfig).where(WebhookConfig.id == webhook_id)
        )
        return result.scalar_one_or_none()

    async def create(self, **kwargs: Any) -> WebhookConfig:
        """Create new webhook."""
        webhook = WebhookConfig(**kwargs)
        self.session.add(webhook)
        await self.session.flush()
        await self.session.refresh(webhook)
        logger.info("webhook_created", webhook_id=webhook.id, events=webhook.event_types)
        return webhook

    async def update(self, webhook: WebhookConfig, **kwargs: Any) -> WebhookConfig:
        """Update webhook."""
        for key, value in kwargs.items():
            setattr(webhook, key, value)
        await self.session.flush()
        await self.session.refresh(webhook)
        logger.info("webhook_updated", webhook_id=webhook.id)
        return webhook

    async def delete(self, webhook: WebhookConfig) -> None:
        """Delete webhook."""
        await self.session.delete(webhook)
        await self.session.flush()
        logger.info("webhook_deleted", webhook_id=webhook.id)


class WebhookLogRepository:
    """Repository for WebhookLog model."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session."""
        self.session = session

    async def create(self, **kwargs: Any) -> WebhookLog:
        """Record a delivery attempt.

        The row is committed immediately so it survives a failing request.
        """
        log = WebhookLog(**kwargs)
        try:
            self.session.add(log)
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise StorageException(f"Failed to write webhook log: {e}") from e
        return log

    async def list_recent(self, limit: int = 50) -> list[WebhookLog]:
        """List most recent delivery attempts."""
        result = await self.session.execute(
            select(WebhookLog).order_by(WebhookLog.created_at.desc()).limit(limit)
        )
        return list(result.scalars().all())

    async def delete_older_than(self, cutoff: datetime) -> int:
        """Delete log rows created before cutoff."""
        result = await self.session.execute(delete(WebhookLog).where(WebhookLog.created_at < cutoff))
        return result.rowcount or 0


class NotificationRepository:
    """Repository for Notification model."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session."""
        self.session = session

    async def insert_batch(self, records: list[dict[str, Any]]) -> int:
        """Stage a batch of notifications in the current transaction.

        Nothing is durable until commit() is called.

        Returns:
            Number of rows flushed
        """
        notifications = [Notification(**record) for record in records]
        try:
            self.session.add_all(notifications)
            await self.session.flush()
        except SQLAlchemyError as e:
            raise StorageException(f"Failed to create notifications: {e}") from e
        return len(notifications)

    async def commit(self) -> None:
        """Commit staged notifications."""
        try:
            await self.session.commit()
        except SQLAlchemyError as e:
            raise StorageException(f"Failed to commit notifications: {e}") from e

    async def rollback(self) -> None:
        """Discard staged notifications."""
        await self.session.rollback()

    def _visible(self, user_id: str, now: datetime) -> Any:
        return (Notification.user_id == user_id) & or_(
            Notification.expires_at.is_(None), Notification.expires_at > now
        )

    async def list_for_user(
        self,
        user_id: str,
        limit: int = 50,
        unread_only: bool = False,
    ) -> list[Notification]:
        """List a user's unexpired notifications, newest first."""
        query = select(Notification).where(self._visible(user_id, _utcnow()))
        if unread_only:
            query = query.where(Notification.is_read.is_(False))
        result = await self.session.execute(
            query.order_by(Notification.created_at.desc(), Notification.id).limit(limit)
        )
        return list(result.scalars().all())

    async def count_unread(self, user_id: str) -> int:
        """Count a user's unread, unexpired notifications."""
        result = await self.session.execute(
            select(func.count(Notification.id)).where(
                self._visible(user_id, _utcnow()),
                Notification.is_read.is_(False),
            )
        )
        return int(result.scalar_one())

    async def get_for_user(self, notification_id: str, user_id: str) -> Optional[Notification]:
        """Get notification owned by user."""
        result = await self.session.execute(
            select(Notification).where(
                Notification.id == notification_id,
                Notification.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()

    async def mark_read(self, notification: Notification) -> Notification:
        """Mark a single notification as read."""
        notification.is_read = True
        await self.session.flush()
        return notification

    async def mark_all_read(self, user_id: str) -> int:
        """Mark all of a user's notifications as read."""
        result = await self.session.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
            .values(is_read=True)
        )
        return result.rowcount or 0

    async def delete(self, notification: Notification) -> None:
        """Delete notification."""
        await self.session.delete(notification)
        await self.session.flush()

    async def delete_expired(self, now: Optional[datetime] = None) -> int:
        """Delete notifications whose expiry has passed."""
        cutoff = now or _utcnow()
        result = await self.session.execute(
            delete(Notification).where(
                Notification.expires_at.isnot(None),
                Notification.expires_at < cutoff,
            )
        )
        return result.rowcount or 0


class ProfileDirectory:
    """Read-only view of the user directory."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize directory with database session."""
        self.session = session

    async def iter_pages(self, page_size: int) -> AsyncIterator[list[str]]:
        """Stream every user id in pages using keyset pagination.

        Args:
            page_size: Number of ids fetched per query

        Yields:
            Non-empty pages of user ids in ascending order
        """
        if page_size < 1:
            raise ValueError("page_size must be positive")

        last_id: Optional[str] = None
        while True:
            query = select(Profile.id).order_by(Profile.id).limit(page_size)
            if last_id is not None:
                query = query.where(Profile.id > last_id)
            try:
                result = await self.session.execute(query)
            except SQLAlchemyError as e:
                raise StorageException(f"Failed to load user directory: {e}") from e

            page = list(result.scalars().all())
            if page:
                yield page

            if len(page) < page_size:
                return
            last_id = page[-1]
