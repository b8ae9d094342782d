"""
MailTrack Backend: Outgoing Letter Service
============================================

What:  Dispatch tracking for letters leaving a department, optionally
       through a courier service.
How:   Same shape as the incoming service: flush the letter, then fan out
       notifications. The sending department (`from`) is the letter's
       counterparty for role scoping and notifications. QR codes are unique.
Who:   Called by routes/outgoing.py and by the tracking service.

Status Flow:
    PENDING_DISPATCH → DISPATCHED → DELIVERED | RETURNED
    DISPATCHED stamps dispatched_date and DELIVERED stamps delivered_date,
    unless the caller supplies explicit dates.
"""

import logging
import uuid
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from sqlalchemy import false, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from mailtrack.config import settings
from mailtrack.exceptions import DuplicateError, NotFoundError, ValidationError
from mailtrack.models.courier import Courier
from mailtrack.models.enums import GLOBAL_ROLES, OutgoingStatus, Role
from mailtrack.models.letter import OutgoingLetter
from mailtrack.models.user import Department, User, utcnow
from mailtrack.schemas.auth import DepartmentBrief
from mailtrack.schemas.common import PageInfo
from mailtrack.schemas.letter import (
    CourierBrief,
    OutgoingCreate,
    OutgoingPage,
    OutgoingResponse,
    OutgoingStats,
    OutgoingUpdate,
)
from mailtrack.services.file_service import ImageUpload, file_service
from mailtrack.services.notification_service import notification_service

logger = logging.getLogger(__name__)

STATUS_PHRASES = {
    OutgoingStatus.PENDING_DISPATCH.value: "pending dispatch",
    OutgoingStatus.DISPATCHED.value: "handed to courier service",
    OutgoingStatus.DELIVERED.value: "delivered to recipient",
    OutgoingStatus.RETURNED.value: "returned",
}


# ── Notification wording ──────────────────────────────────────────────────


def _subject(letter: OutgoingLetter) -> str:
    return letter.subject or "No subject"


def _department_name(letter: OutgoingLetter) -> str:
    return letter.department.name if letter.department is not None else "Unknown Department"


def created_messages(letter: OutgoingLetter) -> Dict[str, str]:
    subject, dept, to, qr = _subject(letter), _department_name(letter), letter.recipient, letter.qr_code
    return {
        Role.SUPER_ADMIN.value: f"New outgoing letter created: {subject} from {dept} to {to} (QR: {qr})",
        Role.RD_DEPARTMENT.value: f"New outgoing letter dispatched: {subject} from {dept} to {to} (QR: {qr})",
        Role.OTHER_DEPARTMENT.value: (
            f"New outgoing letter created from your department: {subject} to {to} (QR: {qr})"
        ),
    }


def status_messages(letter: OutgoingLetter) -> Dict[str, str]:
    subject, dept, to, qr = _subject(letter), _department_name(letter), letter.recipient, letter.qr_code
    if letter.status == OutgoingStatus.DISPATCHED.value:
        global_message = (
            f"Letter {qr} ({subject}) from {dept} has been handed to courier service for delivery to {to}"
        )
        department_message = f"Your letter {qr} ({subject}) has been handed to courier service for delivery to {to}"
    else:
        phrase = STATUS_PHRASES.get(letter.status, letter.status.lower())
        global_message = f"Outgoing letter {qr} has been {phrase}"
        department_message = f"Your outgoing letter {qr} has been {phrase}"
    return {
        Role.SUPER_ADMIN.value: global_message,
        Role.RD_DEPARTMENT.value: global_message,
        Role.OTHER_DEPARTMENT.value: department_message,
    }


def outgoing_to_response(letter: OutgoingLetter) -> OutgoingResponse:
    department = None
    if letter.department is not None:
        department = DepartmentBrief(
            id=letter.department.id,
            name=letter.department.name,
            code=letter.department.code,
        )
    courier = None
    if letter.courier is not None:
        courier = CourierBrief(
            id=letter.courier.id,
            service_name=letter.courier.service_name,
            code=letter.courier.code,
        )
    return OutgoingResponse(
        id=letter.id,
        qr_code=letter.qr_code,
        from_department_id=letter.from_department_id,
        recipient=letter.recipient,
        priority=letter.priority,
        subject=letter.subject,
        status=letter.status,
        image=file_service.public_url(letter.image),
        courier_service_id=letter.courier_service_id,
        dispatched_date=letter.dispatched_date,
        delivered_date=letter.delivered_date,
        created_at=letter.created_at,
        department=department,
        courier=courier,
    )


class OutgoingService:

    @staticmethod
    def scope(user: User):
        """WHERE clause limiting outgoing letters to what `user` may list."""
        if user.role in GLOBAL_ROLES:
            return None
        if user.department is None:
            return false()
        return OutgoingLetter.from_department_id == user.department.id

    async def _resolve_department(self, db: AsyncSession, department_id: uuid.UUID) -> Department:
        result = await db.execute(select(Department).where(Department.id == department_id))
        department = result.scalar_one_or_none()
        if department is None:
            raise ValidationError(
                message="Sending department does not exist",
                field="from",
                context={"department_id": str(department_id)},
            )
        return department

    async def _resolve_courier(self, db: AsyncSession, courier_id: uuid.UUID) -> Courier:
        result = await db.execute(select(Courier).where(Courier.id == courier_id))
        courier = result.scalar_one_or_none()
        if courier is None:
            raise ValidationError(
                message="Courier service does not exist",
                field="courierServiceId",
                context={"courier_id": str(courier_id)},
            )
        return courier

    async def _ensure_qr_free(
        self, db: AsyncSession, qr_code: str, exclude_id: uuid.UUID | None = None
    ) -> None:
        query = select(OutgoingLetter.id).where(OutgoingLetter.qr_code == qr_code)
        if exclude_id is not None:
            query = query.where(OutgoingLetter.id != exclude_id)
        if (await db.execute(query)).first() is not None:
            raise DuplicateError(
                message="An outgoing letter with this QR code already exists",
                field="qrCode",
            )

    @staticmethod
    def _apply_status(
        letter: OutgoingLetter,
        status: str,
        dispatched_date: Optional[datetime] = None,
        delivered_date: Optional[datetime] = None,
    ) -> None:
        letter.status = status
        if dispatched_date is not None:
            letter.dispatched_date = dispatched_date
        elif status == OutgoingStatus.DISPATCHED.value:
            letter.dispatched_date = utcnow()
        if delivered_date is not None:
            letter.delivered_date = delivered_date
        elif status == OutgoingStatus.DELIVERED.value:
            letter.delivered_date = utcnow()

    # ══════════════════════════════════════════════════════════════════════
    # Create
    # ══════════════════════════════════════════════════════════════════════

    async def create(
        self,
        db: AsyncSession,
        data: OutgoingCreate,
        creator: User,
        image: Optional[ImageUpload] = None,
    ) -> OutgoingLetter:
        """
        Record a new outgoing letter (PENDING_DISPATCH) and notify its audience.

        Raises:
            ValidationError: Unknown sending department or courier (→ 400)
            DuplicateError: QR code already used by another outgoing letter (→ 400)
        """
        department = await self._resolve_department(db, data.from_department_id)
        courier = None
        if data.courier_service_id is not None:
            courier = await self._resolve_courier(db, data.courier_service_id)
        await self._ensure_qr_free(db, data.qr_code)

        stored_image: Optional[str] = None
        if image is not None:
            _, stored_image = await file_service.validate_and_store(
                image.filename, image.content, image.content_length
            )

        try:
            letter = OutgoingLetter(
                qr_code=data.qr_code,
                from_department_id=department.id,
                recipient=data.recipient,
                priority=data.priority.value,
                subject=data.subject,
                status=OutgoingStatus.PENDING_DISPATCH.value,
                image=stored_image,
                courier_service_id=courier.id if courier is not None else None,
                dispatched_date=None,
                delivered_date=None,
            )
            letter.department = department
            letter.courier = courier
            db.add(letter)
            await db.flush()
        except Exception:
            await file_service.delete_stored(stored_image)
            raise

        logger.info("Outgoing letter created: %s (QR %s) from %s", letter.id, letter.qr_code, department.code)

        await notification_service.fan_out(
            db,
            created_messages(letter),
            counterparty_department_id=department.id,
            actor_id=creator.id,
            outgoing_id=letter.id,
        )
        return letter

    # ══════════════════════════════════════════════════════════════════════
    # Read
    # ══════════════════════════════════════════════════════════════════════

    async def list(
        self,
        db: AsyncSession,
        user: User,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> OutgoingPage:
        """Newest first; department accounts see only letters they sent."""
        limit = limit or settings.default_page_size
        offset = (page - 1) * limit

        count_query = select(func.count(OutgoingLetter.id))
        query = select(OutgoingLetter)
        scope = self.scope(user)
        if scope is not None:
            count_query = count_query.where(scope)
            query = query.where(scope)

        total = (await db.execute(count_query)).scalar() or 0
        result = await db.execute(
            query.order_by(OutgoingLetter.created_at.desc(), OutgoingLetter.id.desc())
            .offset(offset)
            .limit(limit)
        )
        return OutgoingPage(
            records=[outgoing_to_response(letter) for letter in result.scalars().all()],
            **PageInfo.build(page, limit, total).model_dump(),
        )

    async def courier_tracking(
        self,
        db: AsyncSession,
        user: User,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> OutgoingPage:
        """Listing behind the courier tracking screen (same scope and order)."""
        return await self.list(db, user, page=page, limit=limit)

    async def list_by_department(
        self, db: AsyncSession, department_id: uuid.UUID
    ) -> List[OutgoingLetter]:
        result = await db.execute(
            select(OutgoingLetter)
            .where(OutgoingLetter.from_department_id == department_id)
            .order_by(OutgoingLetter.created_at.desc())
        )
        return list(result.scalars().all())

    async def stats(self, db: AsyncSession) -> OutgoingStats:
        result = await db.execute(
            select(OutgoingLetter.status, func.count(OutgoingLetter.id)).group_by(OutgoingLetter.status)
        )
        counts = {status: count for status, count in result.all()}
        return OutgoingStats(
            total=sum(counts.values()),
            pending=counts.get(OutgoingStatus.PENDING_DISPATCH.value, 0),
            dispatched=counts.get(OutgoingStatus.DISPATCHED.value, 0),
            delivered=counts.get(OutgoingStatus.DELIVERED.value, 0),
            returned=counts.get(OutgoingStatus.RETURNED.value, 0),
        )

    async def get(self, db: AsyncSession, letter_id: uuid.UUID) -> OutgoingLetter:
        result = await db.execute(select(OutgoingLetter).where(OutgoingLetter.id == letter_id))
        letter = result.scalar_one_or_none()
        if letter is None:
            raise NotFoundError(
                resource="outgoing letter",
                resource_id=str(letter_id),
                message="Outgoing letter not found",
            )
        return letter

    async def get_by_qr(self, db: AsyncSession, qr_code: str) -> OutgoingLetter:
        result = await db.execute(select(OutgoingLetter).where(OutgoingLetter.qr_code == qr_code))
        letter = result.scalar_one_or_none()
        if letter is None:
            raise NotFoundError(
                resource="outgoing letter",
                resource_id=qr_code,
                message="Outgoing letter not found with this QR code",
            )
        return letter

    # ══════════════════════════════════════════════════════════════════════
    # Update & Delete
    # ══════════════════════════════════════════════════════════════════════

    async def update(
        self,
        db: AsyncSession,
        letter_id: uuid.UUID,
        data: OutgoingUpdate,
        image: Optional[ImageUpload] = None,
    ) -> OutgoingLetter:
        """
        Apply the fields that were sent. Sending courier_service_id as None
        (an empty `courierServiceId` on the form) detaches the courier.
        """
        letter = await self.get(db, letter_id)
        changes = data.model_dump(exclude_unset=True, exclude_none=True)

        department_id = changes.pop("from_department_id", None)
        if department_id is not None and department_id != letter.from_department_id:
            letter.department = await self._resolve_department(db, department_id)

        courier_id = changes.pop("courier_service_id", None)
        if courier_id is not None and courier_id != letter.courier_service_id:
            letter.courier = await self._resolve_courier(db, courier_id)
        elif courier_id is None and "courier_service_id" in data.model_fields_set:
            letter.courier = None

        qr_code = changes.get("qr_code")
        if qr_code is not None and qr_code != letter.qr_code:
            await self._ensure_qr_free(db, qr_code, exclude_id=letter.id)

        if "status" in changes:
            self._apply_status(letter, changes.pop("status").value)
        if "priority" in changes:
            letter.priority = changes.pop("priority").value
        for field, value in changes.items():
            setattr(letter, field, value)

        old_image: Optional[str] = None
        if image is not None:
            _, new_image = await file_service.validate_and_store(
                image.filename, image.content, image.content_length
            )
            old_image, letter.image = letter.image, new_image

        await db.flush()
        await file_service.delete_stored(old_image)
        logger.info("Outgoing letter updated: %s", letter.id)
        return letter

    async def delete(self, db: AsyncSession, letter_id: uuid.UUID) -> None:
        letter = await self.get(db, letter_id)
        image = letter.image
        await notification_service.delete_for_letter(db, outgoing_id=letter.id)
        await db.delete(letter)
        await db.flush()
        await file_service.delete_stored(image)
        logger.info("Outgoing letter deleted: %s", letter_id)

    # ══════════════════════════════════════════════════════════════════════
    # Status
    # ══════════════════════════════════════════════════════════════════════

    async def _change_status(
        self,
        db: AsyncSession,
        letter: OutgoingLetter,
        status: OutgoingStatus,
        actor: User,
        dispatched_date: Optional[datetime] = None,
        delivered_date: Optional[datetime] = None,
    ) -> OutgoingLetter:
        self._apply_status(letter, OutgoingStatus(status).value, dispatched_date, delivered_date)
        await db.flush()
        logger.info("Outgoing letter %s status → %s (by %s)", letter.id, letter.status, actor.username)

        await notification_service.fan_out(
            db,
            status_messages(letter),
            counterparty_department_id=letter.from_department_id,
            actor_id=actor.id,
            outgoing_id=letter.id,
        )
        return letter

    async def update_status(
        self,
        db: AsyncSession,
        letter_id: uuid.UUID,
        status: OutgoingStatus,
        actor: User,
        dispatched_date: Optional[datetime] = None,
        delivered_date: Optional[datetime] = None,
    ) -> OutgoingLetter:
        letter = await self.get(db, letter_id)
        return await self._change_status(db, letter, status, actor, dispatched_date, delivered_date)

    async def update_status_by_qr(
        self, db: AsyncSession, qr_code: str, status: OutgoingStatus, actor: User
    ) -> Tuple[OutgoingLetter, bool]:
        """Scanner workflow; an unchanged status writes nothing and notifies no one."""
        letter = await self.get_by_qr(db, qr_code)
        if letter.status == OutgoingStatus(status).value:
            return letter, False
        return await self._change_status(db, letter, status, actor), True


outgoing_service = OutgoingService()
