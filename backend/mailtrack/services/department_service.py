"""
MailTrack Backend: Department Service
=======================================

What:  CRUD for departments and the login account each one owns.
How:   Creating a department creates its `other_department` user first and
       links it through departments.user_id. Updates may rename the
       account or reset its password. Deletes are refused while letters
       still reference the department; otherwise the department's
       notifications, the department and its account are removed together.
Who:   Called by routes/departments.py.
"""

import logging
import uuid
from typing import List

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from mailtrack.exceptions import DeletionBlockedError, DuplicateError, NotFoundError
from mailtrack.models.enums import ActiveStatus, Role
from mailtrack.models.letter import IncomingLetter, OutgoingLetter
from mailtrack.models.notification import Notification
from mailtrack.models.user import Department, User
from mailtrack.schemas.auth import DepartmentBrief, UserResponse
from mailtrack.schemas.department import (
    DepartmentCreate,
    DepartmentCreateResponse,
    DepartmentResponse,
    DepartmentUpdate,
)
from mailtrack.services.auth_service import auth_service, get_password_hash

logger = logging.getLogger(__name__)

DUPLICATE_CODE_MESSAGE = "Department code already exists. Please use a unique code."


def department_to_response(department: Department) -> DepartmentResponse:
    return DepartmentResponse(
        id=department.id,
        name=department.name,
        code=department.code,
        head=department.head,
        contact=department.contact,
        status=department.status,
        user_id=department.user_id,
        username=department.user.username if department.user is not None else None,
        created_at=department.created_at,
    )


class DepartmentService:

    async def get(self, db: AsyncSession, department_id: uuid.UUID) -> Department:
        result = await db.execute(select(Department).where(Department.id == department_id))
        department = result.scalar_one_or_none()
        if department is None:
            raise NotFoundError(
                resource="department",
                resource_id=str(department_id),
                message="Department not found",
            )
        return department

    async def _ensure_code_free(
        self, db: AsyncSession, code: str, exclude_id: uuid.UUID | None = None
    ) -> None:
        query = select(Department.id).where(Department.code == code)
        if exclude_id is not None:
            query = query.where(Department.id != exclude_id)
        if (await db.execute(query)).first() is not None:
            raise DuplicateError(message=DUPLICATE_CODE_MESSAGE, field="code")

    async def create_with_account(
        self, db: AsyncSession, data: DepartmentCreate
    ) -> DepartmentCreateResponse:
        """
        Create the department's login account, then the department itself.

        Raises:
            DuplicateError: Username or department code already taken (→ 400)
        """
        await self._ensure_code_free(db, data.code)
        user = await auth_service.create_user(
            db, data.username, data.password, Role.OTHER_DEPARTMENT.value
        )

        department = Department(
            name=data.name,
            code=data.code,
            head=data.head,
            contact=data.contact,
            status=data.status.value,
            user_id=user.id,
        )
        department.user = user
        db.add(department)
        await db.flush()
        logger.info("Department created: %s (%s) with account %s", department.code, department.id, user.username)

        return DepartmentCreateResponse(
            department=department_to_response(department),
            user=UserResponse(
                id=user.id,
                username=user.username,
                role=user.role,
                department=DepartmentBrief(id=department.id, name=department.name, code=department.code),
                created_at=user.created_at,
            ),
        )

    async def list(self, db: AsyncSession) -> List[Department]:
        result = await db.execute(select(Department).order_by(Department.created_at.desc()))
        return list(result.scalars().all())

    async def update(
        self, db: AsyncSession, department_id: uuid.UUID, data: DepartmentUpdate
    ) -> Department:
        department = await self.get(db, department_id)

        if data.code is not None and data.code != department.code:
            await self._ensure_code_free(db, data.code, exclude_id=department.id)
            department.code = data.code
        if data.name is not None:
            department.name = data.name
        if data.head is not None:
            department.head = data.head
        if data.contact is not None:
            department.contact = data.contact
        if data.status is not None:
            department.status = data.status.value

        account = department.user
        if data.username is not None and data.username != account.username:
            existing = await auth_service.get_user_by_username(db, data.username)
            if existing is not None and existing.id != account.id:
                raise DuplicateError(message="Username already exists", field="username")
            account.username = data.username
        if data.password is not None:
            account.password_hash = get_password_hash(data.password)

        await db.flush()
        logger.info("Department updated: %s", department.id)
        return department

    async def set_status(
        self, db: AsyncSession, department_id: uuid.UUID, status: ActiveStatus
    ) -> Department:
        department = await self.get(db, department_id)
        department.status = ActiveStatus(status).value
        await db.flush()
        return department

    async def delete(self, db: AsyncSession, department_id: uuid.UUID) -> None:
        """
        Delete a department with its notifications and login account.

        Raises:
            DeletionBlockedError: Letters still reference the department (→ 400)
        """
        department = await self.get(db, department_id)

        incoming_count = (
            await db.execute(
                select(func.count(IncomingLetter.id)).where(IncomingLetter.to_department_id == department.id)
            )
        ).scalar() or 0
        if incoming_count:
            raise DeletionBlockedError(
                message=(
                    f"Cannot delete department. It has {incoming_count} incoming letter(s) "
                    f"associated with it. Please transfer or delete these letters first."
                ),
                blocking_count=incoming_count,
            )

        outgoing_count = (
            await db.execute(
                select(func.count(OutgoingLetter.id)).where(OutgoingLetter.from_department_id == department.id)
            )
        ).scalar() or 0
        if outgoing_count:
            raise DeletionBlockedError(
                message=(
                    f"Cannot delete department. It has {outgoing_count} outgoing letter(s) "
                    f"associated with it. Please transfer or delete these letters first."
                ),
                blocking_count=outgoing_count,
            )

        user_id = department.user_id
        await db.execute(
            delete(Notification).where(
                or_(Notification.department_id == department.id, Notification.user_id == user_id)
            )
        )
        await db.execute(delete(Department).where(Department.id == department.id))
        await db.execute(delete(User).where(User.id == user_id))
        db.expunge(department)
        logger.info("Department deleted: %s (account %s removed)", department_id, user_id)


department_service = DepartmentService()
