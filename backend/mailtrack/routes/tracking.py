"""
MailTrack Backend: Letter Tracking Routes
===========================================

What:  Combined incoming/outgoing listing for the tracking screen, with
       statuses expressed as display labels ("Pending", "Handled to
       Courier", …).

Query Parameters (GET /tracking):
    page, limit   pagination over the merged, newest-first stream
    status        display label; unknown labels answer 400
    type          incoming | outgoing
    priority      high | medium | low
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from mailtrack.config import settings
from mailtrack.database import get_db_session
from mailtrack.dependencies import get_current_user
from mailtrack.models.enums import LetterType, Priority
from mailtrack.models.user import User
from mailtrack.schemas.common import ErrorResponse
from mailtrack.schemas.notification import (
    TrackingListResponse,
    TrackingRecordResponse,
    TrackingStats,
    TrackingStatusUpdate,
    TrackingUpdateResponse,
)
from mailtrack.services.tracking_service import tracking_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tracking", tags=["Tracking"])


@router.get(
    "",
    response_model=TrackingListResponse,
    responses={400: {"description": "Unknown status label", "model": ErrorResponse}},
    summary="Incoming and outgoing letters, newest first",
)
async def list_tracking(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=settings.default_page_size, ge=1, le=settings.max_page_size),
    status: str | None = Query(default=None, description="Display label, e.g. 'In Progress'"),
    record_type: LetterType | None = Query(default=None, alias="type"),
    priority: Priority | None = Query(default=None),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> TrackingListResponse:
    return await tracking_service.list(
        db,
        user,
        page=page,
        limit=limit,
        status=status,
        record_type=record_type,
        priority=priority,
    )


@router.put(
    "/status",
    response_model=TrackingUpdateResponse,
    responses={
        400: {"description": "Label not defined for the letter type", "model": ErrorResponse},
        404: {"description": "Letter not found", "model": ErrorResponse},
    },
    summary="Set a letter's status using its display label",
)
async def update_tracking_status(
    body: TrackingStatusUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> TrackingUpdateResponse:
    record = await tracking_service.update_status(
        db, body.record_id, body.record_type, body.new_status, user
    )
    return TrackingUpdateResponse(message=f"Status updated to {record.status}", record=record)


@router.get("/stats/overview", response_model=TrackingStats, summary="Per-status counts for both directions")
async def tracking_stats(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> TrackingStats:
    return await tracking_service.stats(db, user)


@router.get(
    "/{record_type}/{record_id}",
    response_model=TrackingRecordResponse,
    responses={404: {"description": "Letter not found", "model": ErrorResponse}},
)
async def get_tracking_record(
    record_type: LetterType,
    record_id: UUID,
    _: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> TrackingRecordResponse:
    record = await tracking_service.get(db, record_type, record_id)
    return TrackingRecordResponse(record=record)
