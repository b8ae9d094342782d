"""
MailTrack Backend: Outgoing Letter Routes
===========================================

What:  Register, list, edit and track letters leaving a department.
How:   Every response uses the `{success, message, data}` envelope.
       Create and update take multipart/form-data (`qrCode`, `from`, `to`,
       `priority`, `subject`, `courierServiceId`, optional `image`).
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from mailtrack.config import settings
from mailtrack.database import get_db_session
from mailtrack.dependencies import get_current_user, require_super_admin
from mailtrack.models.user import User
from mailtrack.routes.forms import read_letter_form
from mailtrack.schemas.common import ErrorResponse
from mailtrack.schemas.letter import (
    OutgoingCreate,
    OutgoingDepartmentList,
    OutgoingEnvelope,
    OutgoingQrStatusResult,
    OutgoingStatusUpdate,
    OutgoingUpdate,
)
from mailtrack.services.outgoing_service import outgoing_service, outgoing_to_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/outgoing", tags=["Outgoing Letters"])


@router.post(
    "",
    status_code=201,
    response_model=OutgoingEnvelope,
    responses={400: {"description": "Invalid fields, duplicate QR code or bad image", "model": ErrorResponse}},
    summary="Register an outgoing letter (multipart/form-data)",
)
async def create_outgoing(
    request: Request,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> OutgoingEnvelope:
    fields, image = await read_letter_form(request)
    data = OutgoingCreate.model_validate(fields)
    letter = await outgoing_service.create(db, data, user, image=image)
    return OutgoingEnvelope(message="Outgoing letter created successfully", data=outgoing_to_response(letter))


@router.get("", response_model=OutgoingEnvelope, summary="List outgoing letters visible to the caller")
async def list_outgoing(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=settings.default_page_size, ge=1, le=settings.max_page_size),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> OutgoingEnvelope:
    result = await outgoing_service.list(db, user, page=page, limit=limit)
    return OutgoingEnvelope(message="Outgoing letters retrieved successfully", data=result)


@router.get("/courier/tracking", response_model=OutgoingEnvelope, summary="Courier tracking listing")
async def courier_tracking(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=settings.default_page_size, ge=1, le=settings.max_page_size),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> OutgoingEnvelope:
    result = await outgoing_service.courier_tracking(db, user, page=page, limit=limit)
    return OutgoingEnvelope(message="Courier tracking data retrieved successfully", data=result)


@router.get("/stats/overview", response_model=OutgoingEnvelope, summary="Outgoing letter counts per status")
async def outgoing_stats(
    _: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> OutgoingEnvelope:
    stats = await outgoing_service.stats(db)
    return OutgoingEnvelope(message="Outgoing statistics retrieved successfully", data=stats)


@router.get("/department/{department_id}", response_model=OutgoingEnvelope)
async def list_outgoing_for_department(
    department_id: UUID,
    _: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> OutgoingEnvelope:
    letters = await outgoing_service.list_by_department(db, department_id)
    return OutgoingEnvelope(
        message="Department outgoing letters retrieved successfully",
        data=OutgoingDepartmentList(
            records=[outgoing_to_response(letter) for letter in letters],
            total=len(letters),
        ),
    )


@router.get(
    "/qr/{qr_code}",
    response_model=OutgoingEnvelope,
    responses={404: {"description": "No letter with this QR code", "model": ErrorResponse}},
)
async def get_outgoing_by_qr(
    qr_code: str,
    _: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> OutgoingEnvelope:
    letter = await outgoing_service.get_by_qr(db, qr_code)
    return OutgoingEnvelope(message="Outgoing letter retrieved successfully", data=outgoing_to_response(letter))


@router.patch("/qr/{qr_code}/status", response_model=OutgoingEnvelope)
async def update_outgoing_status_by_qr(
    qr_code: str,
    body: OutgoingStatusUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> OutgoingEnvelope:
    letter, changed = await outgoing_service.update_status_by_qr(db, qr_code, body.status, user)
    message = f"Status updated to {letter.status}" if changed else f"Status is already {letter.status}"
    return OutgoingEnvelope(
        message=message,
        data=OutgoingQrStatusResult(updated=outgoing_to_response(letter), status_changed=changed),
    )


@router.get(
    "/{letter_id}",
    response_model=OutgoingEnvelope,
    responses={404: {"description": "Outgoing letter not found", "model": ErrorResponse}},
)
async def get_outgoing(
    letter_id: UUID,
    _: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> OutgoingEnvelope:
    letter = await outgoing_service.get(db, letter_id)
    return OutgoingEnvelope(message="Outgoing letter retrieved successfully", data=outgoing_to_response(letter))


@router.put("/{letter_id}", response_model=OutgoingEnvelope, summary="Edit an outgoing letter (super admin)")
async def update_outgoing(
    letter_id: UUID,
    request: Request,
    _: User = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db_session),
) -> OutgoingEnvelope:
    # An empty courierServiceId detaches the courier
    fields, image = await read_letter_form(request, clearable={"courierServiceId"})
    data = OutgoingUpdate.model_validate(fields)
    letter = await outgoing_service.update(db, letter_id, data, image=image)
    return OutgoingEnvelope(message="Outgoing letter updated successfully", data=outgoing_to_response(letter))


@router.delete("/{letter_id}", response_model=OutgoingEnvelope)
async def delete_outgoing(
    letter_id: UUID,
    _: User = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db_session),
) -> OutgoingEnvelope:
    await outgoing_service.delete(db, letter_id)
    return OutgoingEnvelope(message="Outgoing letter deleted successfully")


@router.patch("/{letter_id}/status", response_model=OutgoingEnvelope)
async def update_outgoing_status(
    letter_id: UUID,
    body: OutgoingStatusUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> OutgoingEnvelope:
    letter = await outgoing_service.update_status(
        db,
        letter_id,
        body.status,
        user,
        dispatched_date=body.dispatched_date,
        delivered_date=body.delivered_date,
    )
    return OutgoingEnvelope(
        message=f"Status updated to {letter.status}",
        data=outgoing_to_response(letter),
    )
