"""Recipient notification routes."""

from typing import Any

from fastapi import APIRouter, Depends, Query

from academy.api.dependencies import get_current_user_id, get_notification_repository
from academy.api.schemas.notification_schemas import (
    MarkAllReadResponse,
    NotificationResponse,
    UnreadCountResponse,
)
from academy.core.exceptions import NotFoundException
from academy.core.logging import get_logger
from academy.storage.database.notification_models import Notification
from academy.storage.database.repository import NotificationRepository

logger = get_logger(__name__)
router = APIRouter(prefix="/notifications", tags=["notifications"])


async def _get_owned_or_404(
    notifications: NotificationRepository,
    notification_id: str,
    user_id: str,
) -> Notification:
    notification = await notifications.get_for_user(notification_id, user_id)
    if not notification:
        raise NotFoundException("Notification not found")
    return notification


@router.get("", response_model=list[NotificationResponse])
async def list_notifications(
    limit: int = Query(50, ge=1, le=200),
    unread_only: bool = False,
    user_id: str = Depends(get_current_user_id),
    notifications: NotificationRepository = Depends(get_notification_repository),
) -> Any:
    """List current user's notifications."""
    return await notifications.list_for_user(user_id, limit=limit, unread_only=unread_only)


@router.get("/unread-count", response_model=UnreadCountResponse)
async def unread_count(
    user_id: str = Depends(get_current_user_id),
    notifications: NotificationRepository = Depends(get_notification_repository),
) -> Any:
    """Count current user's unread notifications."""
    return {"unread": await notifications.count_unread(user_id)}


@router.post("/read-all", response_model=MarkAllReadResponse)
async def mark_all_read(
    user_id: str = Depends(get_current_user_id),
    notifications: NotificationRepository = Depends(get_notification_repository),
) -> Any:
    """Mark all of current user's notifications as read."""
    updated = await notifications.mark_all_read(user_id)
    logger.info("notifications_marked_read", user_id=user_id, updated=updated)
    return {"updated": updated}


@router.post("/{notification_id}/read", response_model=NotificationResponse)
async def mark_read(
    notification_id: str,
    user_id: str = Depends(get_current_user_id),
    notifications: NotificationRepository = Depends(get_notification_repository),
) -> Any:
    """Mark a notification as read."""
    notification = await _get_owned_or_404(notifications, notification_id, user_id)
    return await notifications.mark_read(notification)


@router.delete("/{notification_id}", status_code=204)
async def delete_notification(
    notification_id: str,
    user_id: str = Depends(get_current_user_id),
    notifications: NotificationRepository = Depends(get_notification_repository),
) -> None:
    """Delete a notification."""
    notification = await _get_owned_or_404(notifications, notification_id, user_id)
    await notifications.delete(notification)
