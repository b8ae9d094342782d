"""
MailTrack Backend: Courier Service Routes
===========================================

What:  CRUD for the courier services outgoing letters are handed to.
Who:   Mutations are super-admin only; any authenticated user may read.
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from mailtrack.database import get_db_session
from mailtrack.dependencies import get_current_user, require_super_admin
from mailtrack.models.user import User
from mailtrack.schemas.common import ErrorResponse, MessageResponse
from mailtrack.schemas.department import (
    CourierCreate,
    CourierListResponse,
    CourierResponse,
    CourierUpdate,
    StatusUpdate,
)
from mailtrack.services.courier_service import courier_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/couriers", tags=["Couriers"])


@router.post(
    "/create",
    status_code=201,
    response_model=CourierResponse,
    responses={400: {"description": "Invalid input or duplicate code", "model": ErrorResponse}},
    summary="Register a courier service",
)
async def create_courier(
    body: CourierCreate,
    _: User = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db_session),
) -> CourierResponse:
    return CourierResponse.model_validate(await courier_service.create(db, body))


@router.post("", status_code=201, response_model=CourierResponse, include_in_schema=False)
async def create_courier_at_root(
    body: CourierCreate,
    _: User = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db_session),
) -> CourierResponse:
    return CourierResponse.model_validate(await courier_service.create(db, body))


@router.get("", response_model=CourierListResponse, summary="List courier services, newest first")
async def list_couriers(
    _: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> CourierListResponse:
    couriers = await courier_service.list(db)
    return CourierListResponse(
        couriers=[CourierResponse.model_validate(c) for c in couriers],
        total=len(couriers),
    )


@router.get(
    "/{courier_id}",
    response_model=CourierResponse,
    responses={404: {"description": "Courier service not found", "model": ErrorResponse}},
)
async def get_courier(
    courier_id: UUID,
    _: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> CourierResponse:
    return CourierResponse.model_validate(await courier_service.get(db, courier_id))


@router.put("/{courier_id}", response_model=CourierResponse)
async def update_courier(
    courier_id: UUID,
    body: CourierUpdate,
    _: User = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db_session),
) -> CourierResponse:
    return CourierResponse.model_validate(await courier_service.update(db, courier_id, body))


@router.delete("/{courier_id}", response_model=MessageResponse)
async def delete_courier(
    courier_id: UUID,
    _: User = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    await courier_service.delete(db, courier_id)
    return MessageResponse(message="Courier service deleted successfully")


@router.patch("/{courier_id}/status", response_model=CourierResponse)
async def set_courier_status(
    courier_id: UUID,
    body: StatusUpdate,
    _: User = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db_session),
) -> CourierResponse:
    courier = await courier_service.set_status(db, courier_id, body.status)
    return CourierResponse.model_validate(courier)
