"""
MailTrack Backend: Notification Routes
========================================

What:  The caller's notification inbox: list, unread badge count, mark as
       read and delete.
How:   Only notifications visible to the caller can be read or changed;
       anything else answers 404 as if it did not exist.
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from mailtrack.config import settings
from mailtrack.database import get_db_session
from mailtrack.dependencies import get_current_user
from mailtrack.models.user import User
from mailtrack.schemas.common import ErrorResponse, MessageResponse
from mailtrack.schemas.notification import (
    NotificationListResponse,
    UnreadCount,
    UnreadCountResponse,
)
from mailtrack.services.notification_service import notification_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("", response_model=NotificationListResponse, summary="Notifications visible to the caller")
async def list_notifications(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=settings.notification_page_size, ge=1, le=settings.max_page_size),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> NotificationListResponse:
    result = await notification_service.list_for_user(db, user, page=page, limit=limit)
    return NotificationListResponse(data=result)


@router.get("/unread-count", response_model=UnreadCountResponse)
async def unread_count(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> UnreadCountResponse:
    count = await notification_service.unread_count(db, user)
    return UnreadCountResponse(data=UnreadCount(unread_count=count))


@router.patch("/mark-all-read", response_model=MessageResponse)
async def mark_all_read(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    updated = await notification_service.mark_all_as_read(db, user)
    logger.info("Marked %d notifications read for %s", updated, user.username)
    return MessageResponse(message="All notifications marked as read")


@router.patch(
    "/{notification_id}/read",
    response_model=MessageResponse,
    responses={404: {"description": "Notification not found", "model": ErrorResponse}},
)
async def mark_read(
    notification_id: UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    await notification_service.mark_as_read(db, notification_id, user)
    return MessageResponse(message="Notification marked as read")


@router.delete(
    "/{notification_id}",
    response_model=MessageResponse,
    responses={404: {"description": "Notification not found", "model": ErrorResponse}},
)
async def delete_notification(
    notification_id: UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    await notification_service.delete(db, notification_id, user)
    return MessageResponse(message="Notification deleted successfully")
