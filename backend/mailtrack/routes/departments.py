"""
MailTrack Backend: Department Routes
======================================

What:  CRUD for departments. Creating a department also creates its
       `other_department` login account.
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
    DepartmentCreate,
    DepartmentCreateResponse,
    DepartmentListResponse,
    DepartmentResponse,
    DepartmentUpdate,
    StatusUpdate,
)
from mailtrack.services.department_service import department_service, department_to_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/departments", tags=["Departments"])


async def _create(body: DepartmentCreate, db: AsyncSession) -> DepartmentCreateResponse:
    return await department_service.create_with_account(db, body)


@router.post(
    "/create",
    status_code=201,
    response_model=DepartmentCreateResponse,
    responses={
        400: {"description": "Invalid input, duplicate code or username", "model": ErrorResponse},
        403: {"description": "Super admin only", "model": ErrorResponse},
    },
    summary="Create a department and its login account",
)
async def create_department(
    body: DepartmentCreate,
    _: User = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db_session),
) -> DepartmentCreateResponse:
    return await _create(body, db)


@router.post(
    "",
    status_code=201,
    response_model=DepartmentCreateResponse,
    include_in_schema=False,
)
async def create_department_at_root(
    body: DepartmentCreate,
    _: User = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db_session),
) -> DepartmentCreateResponse:
    return await _create(body, db)


@router.get("", response_model=DepartmentListResponse, summary="List departments, newest first")
async def list_departments(
    _: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> DepartmentListResponse:
    departments = await department_service.list(db)
    return DepartmentListResponse(
        departments=[department_to_response(d) for d in departments],
        total=len(departments),
    )


@router.get(
    "/{department_id}",
    response_model=DepartmentResponse,
    responses={404: {"description": "Department not found", "model": ErrorResponse}},
)
async def get_department(
    department_id: UUID,
    _: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> DepartmentResponse:
    return department_to_response(await department_service.get(db, department_id))


@router.put(
    "/{department_id}",
    response_model=DepartmentResponse,
    responses={
        400: {"description": "Invalid input or duplicate code/username", "model": ErrorResponse},
        404: {"description": "Department not found", "model": ErrorResponse},
    },
    summary="Update a department and optionally its account credentials",
)
async def update_department(
    department_id: UUID,
    body: DepartmentUpdate,
    _: User = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db_session),
) -> DepartmentResponse:
    department = await department_service.update(db, department_id, body)
    return department_to_response(department)


@router.delete(
    "/{department_id}",
    response_model=MessageResponse,
    responses={
        400: {"description": "Letters still reference the department", "model": ErrorResponse},
        404: {"description": "Department not found", "model": ErrorResponse},
    },
)
async def delete_department(
    department_id: UUID,
    _: User = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    await department_service.delete(db, department_id)
    return MessageResponse(message="Department deleted successfully")


@router.patch("/{department_id}/status", response_model=DepartmentResponse)
async def set_department_status(
    department_id: UUID,
    body: StatusUpdate,
    _: User = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db_session),
) -> DepartmentResponse:
    department = await department_service.set_status(db, department_id, body.status)
    return department_to_response(department)
