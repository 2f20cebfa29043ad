"""Notification fan-out: one message, one persisted row per recipient."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Optional

from academy.core.config import get_settings
from academy.core.exceptions import NoRecipientsError, ValidationException
from academy.core.logging import get_logger
from academy.storage.database.notification_models import NotificationType
from academy.storage.database.repository import NotificationRepository, ProfileDirectory

settings = get_settings()
logger = get_logger(__name__)


@dataclass
class FanoutRequest:
    """Message plus target specification.

    ``user_id`` wins over ``user_ids``; when neither is given the message
    is broadcast to every user in the directory.
    """

    title: Optional[str]
    message: Optional[str]
    user_id: Optional[str] = None
    user_ids: list[str] = field(default_factory=list)
    type: NotificationType = NotificationType.INFO
    category: Optional[str] = None
    action_url: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None
    expires_at: Optional[datetime] = None


@dataclass
class FanoutResult:
    """Fan-out outcome."""

    targeted: int
    created: int

    @property
    def message(self) -> str:
        return f"Notifications sent to {self.targeted} users"


def _to_utc(moment: Optional[datetime]) -> Optional[datetime]:
    if moment is None:
        return None
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


class NotificationFanout:
    """Creates one notification per resolved recipient."""

    def __init__(
        self,
        notifications: NotificationRepository,
        directory: ProfileDirectory,
        *,
        page_size: Optional[int] = None,
    ) -> None:
        """Initialize fan-out.

        Args:
            notifications: Notification store
            directory: User directory used for broadcasts
            page_size: Directory ids fetched per query (default from settings)
        """
        self.notifications = notifications
        self.directory = directory
        self.page_size = settings.directory_page_size if page_size is None else page_size

        if self.page_size < 1:
            raise ValueError("page_size must be positive")

    async def send(self, request: FanoutRequest) -> FanoutResult:
        """Resolve recipients and persist their notifications atomically.

        Raises:
            ValidationException: If title or message is missing
            NoRecipientsError: If no recipient could be resolved
            StorageException: If the directory or the write fails
        """
        if not (request.title or "").strip() or not (request.message or "").strip():
            raise ValidationException("Title and message are required")

        targeted = 0
        created = 0
        try:
            async for batch in self._target_batches(request):
                records = [self._build_record(request, user_id) for user_id in batch]
                created += await self.notifications.insert_batch(records)
                targeted += len(batch)

            if targeted == 0:
                raise NoRecipientsError()

            await self.notifications.commit()
        except Exception:
            await self.notifications.rollback()
            raise

        logger.info(
            "notifications_created",
            targeted=targeted,
            created=created,
            category=request.category,
            broadcast=not (request.user_id or request.user_ids),
        )
        return FanoutResult(targeted=targeted, created=created)

    async def _target_batches(self, request: FanoutRequest) -> AsyncIterator[list[str]]:
        if request.user_id:
            yield [request.user_id]
        elif request.user_ids:
            yield list(request.user_ids)
        else:
            async for page in self.directory.iter_pages(self.page_size):
                yield page

    @staticmethod
    def _build_record(request: FanoutRequest, user_id: str) -> dict[str, Any]:
        return {
            "user_id": user_id,
            "title": request.title,
            "message": request.message,
            "type": NotificationType(request.type).value,
            "category": request.category,
            "action_url": request.action_url,
            "metadata_": request.metadata,
            "expires_at": _to_utc(request.expires_at),
            "is_read": False,
        }
