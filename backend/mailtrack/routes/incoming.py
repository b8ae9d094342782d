"""
MailTrack Backend: Incoming Letter Routes
===========================================

What:  Register, list, edit and track incoming letters.
How:   Create and update take multipart/form-data so a scanned image can
       travel with the fields. Text fields use their JSON names
       (`qrCode`, `from`, `to`, `priority`, …); the file goes in `image`.

Status Endpoints:
    PATCH /incoming/{id}/status      set status by letter ID
    PATCH /incoming/qr/{qr}/status   set status by scanned QR code; a
                                     repeated scan with the same status
                                     reports statusChanged=false
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from mailtrack.config import settings
from mailtrack.database import get_db_session
from mailtrack.dependencies import get_current_user, require_super_admin
from mailtrack.models.user import User
from mailtrack.routes.forms import read_letter_form
from mailtrack.schemas.common import ErrorResponse
from mailtrack.schemas.letter import (
    IncomingCreate,
    IncomingEnvelope,
    IncomingListResponse,
    IncomingQrStatusResponse,
    IncomingRecordEnvelope,
    IncomingStatusUpdate,
    IncomingUpdate,
    IncomingUpdatedEnvelope,
)
from mailtrack.services.incoming_service import incoming_service, incoming_to_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/incoming", tags=["Incoming Letters"])


@router.post(
    "",
    status_code=201,
    response_model=IncomingEnvelope,
    responses={
        400: {"description": "Invalid fields, unknown department or bad image", "model": ErrorResponse},
        401: {"description": "Not authenticated", "model": ErrorResponse},
    },
    summary="Register an incoming letter (multipart/form-data)",
)
async def create_incoming(
    request: Request,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> IncomingEnvelope:
    fields, image = await read_letter_form(request)
    data = IncomingCreate.model_validate(fields)
    letter = await incoming_service.create(db, data, user, image=image)
    return IncomingEnvelope(incoming=incoming_to_response(letter))


@router.get("", response_model=IncomingListResponse, summary="List incoming letters visible to the caller")
async def list_incoming(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=settings.default_page_size, ge=1, le=settings.max_page_size),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> IncomingListResponse:
    return await incoming_service.list(db, user, page=page, limit=limit)


@router.get(
    "/qr/{qr_code}",
    response_model=IncomingRecordEnvelope,
    responses={404: {"description": "No letter with this QR code", "model": ErrorResponse}},
)
async def get_incoming_by_qr(
    qr_code: str,
    _: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> IncomingRecordEnvelope:
    letter = await incoming_service.get_by_qr(db, qr_code)
    return IncomingRecordEnvelope(record=incoming_to_response(letter))


@router.patch("/qr/{qr_code}/status", response_model=IncomingQrStatusResponse)
async def update_incoming_status_by_qr(
    qr_code: str,
    body: IncomingStatusUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> IncomingQrStatusResponse:
    letter, changed = await incoming_service.update_status_by_qr(db, qr_code, body.status, user)
    message = f"Status updated to {letter.status}" if changed else f"Status is already {letter.status}"
    return IncomingQrStatusResponse(
        message=message,
        updated=incoming_to_response(letter),
        status_changed=changed,
    )


@router.get(
    "/{letter_id}",
    response_model=IncomingRecordEnvelope,
    responses={404: {"description": "Letter not found", "model": ErrorResponse}},
)
async def get_incoming(
    letter_id: UUID,
    _: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> IncomingRecordEnvelope:
    letter = await incoming_service.get(db, letter_id)
    return IncomingRecordEnvelope(record=incoming_to_response(letter))


@router.put(
    "/{letter_id}",
    response_model=IncomingUpdatedEnvelope,
    summary="Edit an incoming letter (multipart/form-data, super admin)",
)
async def update_incoming(
    letter_id: UUID,
    request: Request,
    _: User = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db_session),
) -> IncomingUpdatedEnvelope:
    fields, image = await read_letter_form(request)
    data = IncomingUpdate.model_validate(fields)
    letter = await incoming_service.update(db, letter_id, data, image=image)
    return IncomingUpdatedEnvelope(updated=incoming_to_response(letter))


@router.delete("/{letter_id}", status_code=204, response_class=Response)
async def delete_incoming(
    letter_id: UUID,
    _: User = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db_session),
) -> Response:
    await incoming_service.delete(db, letter_id)
    return Response(status_code=204)


@router.patch("/{letter_id}/status", response_model=IncomingUpdatedEnvelope)
async def update_incoming_status(
    letter_id: UUID,
    body: IncomingStatusUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> IncomingUpdatedEnvelope:
    letter = await incoming_service.update_status(db, letter_id, body.status, user)
    return IncomingUpdatedEnvelope(updated=incoming_to_response(letter))
