"""
MailTrack Backend: Courier Service
====================================

What:  CRUD for courier services plus the active/inactive switch.
How:   Courier codes are unique. Deleting a courier detaches it from the
       outgoing letters that used it instead of deleting those letters.
"""

import logging
import uuid
from typing import List

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from mailtrack.exceptions import DuplicateError, NotFoundError
from mailtrack.models.courier import Courier
from mailtrack.models.enums import ActiveStatus
from mailtrack.models.letter import OutgoingLetter
from mailtrack.schemas.department import CourierCreate, CourierUpdate

logger = logging.getLogger(__name__)

DUPLICATE_CODE_MESSAGE = "Service code already exists. Please use a unique code."


class CourierService:

    async def get(self, db: AsyncSession, courier_id: uuid.UUID) -> Courier:
        result = await db.execute(select(Courier).where(Courier.id == courier_id))
        courier = result.scalar_one_or_none()
        if courier is None:
            raise NotFoundError(
                resource="courier",
                resource_id=str(courier_id),
                message="Courier service not found",
            )
        return courier

    async def _ensure_code_free(
        self, db: AsyncSession, code: str, exclude_id: uuid.UUID | None = None
    ) -> None:
        query = select(Courier.id).where(Courier.code == code)
        if exclude_id is not None:
            query = query.where(Courier.id != exclude_id)
        if (await db.execute(query)).first() is not None:
            raise DuplicateError(message=DUPLICATE_CODE_MESSAGE, field="code")

    async def create(self, db: AsyncSession, data: CourierCreate) -> Courier:
        await self._ensure_code_free(db, data.code)
        courier = Courier(
            service_name=data.service_name,
            code=data.code,
            contact_person=data.contact_person,
            email=str(data.email),
            phone=data.phone,
            address=data.address,
            status=data.status.value,
        )
        db.add(courier)
        await db.flush()
        logger.info("Courier created: %s (%s)", courier.code, courier.id)
        return courier

    async def list(self, db: AsyncSession) -> List[Courier]:
        result = await db.execute(select(Courier).order_by(Courier.created_at.desc()))
        return list(result.scalars().all())

    async def update(
        self, db: AsyncSession, courier_id: uuid.UUID, data: CourierUpdate
    ) -> Courier:
        courier = await self.get(db, courier_id)
        changes = data.model_dump(exclude_unset=True, exclude_none=True)

        if "code" in changes and changes["code"] != courier.code:
            await self._ensure_code_free(db, changes["code"], exclude_id=courier.id)
        for field, value in changes.items():
            if isinstance(value, ActiveStatus):
                value = value.value
            elif field == "email":
                value = str(value)
            setattr(courier, field, value)

        await db.flush()
        logger.info("Courier updated: %s (%s)", courier.id, ", ".join(sorted(changes)))
        return courier

    async def set_status(
        self, db: AsyncSession, courier_id: uuid.UUID, status: ActiveStatus
    ) -> Courier:
        courier = await self.get(db, courier_id)
        courier.status = ActiveStatus(status).value
        await db.flush()
        return courier

    async def delete(self, db: AsyncSession, courier_id: uuid.UUID) -> None:
        courier = await self.get(db, courier_id)
        await db.execute(
            update(OutgoingLetter)
            .where(OutgoingLetter.courier_service_id == courier.id)
            .values(courier_service_id=None)
            .execution_options(synchronize_session=False)
        )
        await db.execute(delete(Courier).where(Courier.id == courier.id))
        db.expunge(courier)
        logger.info("Courier deleted: %s", courier_id)


courier_service = CourierService()
