"""
MailTrack Backend: Incoming Letter Service
============================================

What:  Recording, listing, editing and status tracking of incoming letters.
How:   Every write flushes the letter first, then hands the event to the
       notification fan-out with audience-specific wording. Listings are
       scoped by role: department accounts only see letters addressed to
       their own department.
Who:   Called by routes/incoming.py and by the tracking service.

Status Flow:
    RECEIVED → TRANSFERRED → COLLECTED → ARCHIVED
    Any status may be set directly; the first move to COLLECTED stamps
    collected_date. Setting the status a letter already has through the
    QR scanner endpoint is a no-op and sends no notifications.
"""

import logging
import uuid
from typing import Dict, Optional, Tuple

from sqlalchemy import false, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from mailtrack.config import settings
from mailtrack.exceptions import NotFoundError, ValidationError
from mailtrack.models.enums import GLOBAL_ROLES, IncomingStatus, Role
from mailtrack.models.letter import IncomingLetter
from mailtrack.models.user import Department, User, utcnow
from mailtrack.schemas.auth import DepartmentBrief
from mailtrack.schemas.letter import (
    IncomingCreate,
    IncomingListResponse,
    IncomingResponse,
    IncomingUpdate,
)
from mailtrack.services.file_service import ImageUpload, file_service
from mailtrack.services.notification_service import notification_service

logger = logging.getLogger(__name__)

STATUS_MESSAGES = {
    IncomingStatus.RECEIVED.value: "Letter has been received",
    IncomingStatus.TRANSFERRED.value: "Letter has been transferred",
    IncomingStatus.COLLECTED.value: "Letter has been collected",
    IncomingStatus.ARCHIVED.value: "Letter has been archived",
}


# ── Notification wording ──────────────────────────────────────────────────


def _subject(letter: IncomingLetter) -> str:
    return letter.subject or "No subject"


def _department_name(letter: IncomingLetter) -> str:
    return letter.department.name if letter.department is not None else "Unknown Department"


def created_messages(letter: IncomingLetter) -> Dict[str, str]:
    subject, dept, qr = _subject(letter), _department_name(letter), letter.qr_code
    return {
        Role.SUPER_ADMIN.value: f"New incoming letter created: {subject} for {dept} (QR: {qr})",
        Role.RD_DEPARTMENT.value: f"New incoming letter received: {subject} for {dept} (QR: {qr})",
        Role.OTHER_DEPARTMENT.value: f"New incoming letter received for your department: {subject} (QR: {qr})",
    }


def status_messages(letter: IncomingLetter) -> Dict[str, str]:
    subject, dept, qr, status = _subject(letter), _department_name(letter), letter.qr_code, letter.status
    global_message = f"Status updated to {status}: {subject} for {dept} (QR: {qr})"
    return {
        Role.SUPER_ADMIN.value: global_message,
        Role.RD_DEPARTMENT.value: global_message,
        Role.OTHER_DEPARTMENT.value: f"{STATUS_MESSAGES.get(status, status)}: {subject} (QR: {qr})",
    }


def incoming_to_response(letter: IncomingLetter) -> IncomingResponse:
    department = None
    if letter.department is not None:
        department = DepartmentBrief(
            id=letter.department.id,
            name=letter.department.name,
            code=letter.department.code,
        )
    return IncomingResponse(
        id=letter.id,
        qr_code=letter.qr_code,
        sender=letter.sender,
        to_department_id=letter.to_department_id,
        priority=letter.priority,
        subject=letter.subject,
        description=letter.description,
        filing=letter.filing,
        status=letter.status,
        image=file_service.public_url(letter.image),
        received_date=letter.received_date,
        collected_date=letter.collected_date,
        created_at=letter.created_at,
        department=department,
    )


class IncomingService:

    @staticmethod
    def scope(user: User):
        """WHERE clause limiting incoming letters to what `user` may list."""
        if user.role in GLOBAL_ROLES:
            return None
        if user.department is None:
            return false()
        return IncomingLetter.to_department_id == user.department.id

    async def _resolve_department(self, db: AsyncSession, department_id: uuid.UUID) -> Department:
        result = await db.execute(select(Department).where(Department.id == department_id))
        department = result.scalar_one_or_none()
        if department is None:
            raise ValidationError(
                message="Destination department does not exist",
                field="to",
                context={"department_id": str(department_id)},
            )
        return department

    @staticmethod
    def _apply_status(letter: IncomingLetter, status: str) -> None:
        letter.status = status
        if status == IncomingStatus.COLLECTED.value and letter.collected_date is None:
            letter.collected_date = utcnow()

    # ══════════════════════════════════════════════════════════════════════
    # Create
    # ══════════════════════════════════════════════════════════════════════

    async def create(
        self,
        db: AsyncSession,
        data: IncomingCreate,
        creator: User,
        image: Optional[ImageUpload] = None,
    ) -> IncomingLetter:
        """
        Record a new incoming letter and notify its audience.

        Workflow:
            1. Check the destination department exists (400 otherwise)
            2. Validate and store the image, when one was uploaded
            3. Insert the letter (status RECEIVED unless given)
            4. Fan out notifications, skipping the creator
        On failure after step 2, the stored image is removed.
        """
        department = await self._resolve_department(db, data.to_department_id)

        stored_image: Optional[str] = None
        if image is not None:
            _, stored_image = await file_service.validate_and_store(
                image.filename, image.content, image.content_length
            )

        try:
            letter = IncomingLetter(
                qr_code=data.qr_code,
                sender=data.sender,
                to_department_id=department.id,
                priority=data.priority.value,
                subject=data.subject,
                description=data.description,
                filing=data.filing,
                image=stored_image,
                received_date=data.received_date or utcnow(),
            )
            letter.department = department
            self._apply_status(letter, (data.status or IncomingStatus.RECEIVED).value)
            db.add(letter)
            await db.flush()
        except Exception:
            await file_service.delete_stored(stored_image)
            raise

        logger.info("Incoming letter created: %s (QR %s) for %s", letter.id, letter.qr_code, department.code)

        await notification_service.fan_out(
            db,
            created_messages(letter),
            counterparty_department_id=department.id,
            actor_id=creator.id,
            incoming_id=letter.id,
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
    ) -> IncomingListResponse:
        """Newest first; department accounts see only their own letters."""
        limit = limit or settings.default_page_size
        offset = (page - 1) * limit

        count_query = select(func.count(IncomingLetter.id))
        query = select(IncomingLetter)
        scope = self.scope(user)
        if scope is not None:
            count_query = count_query.where(scope)
            query = query.where(scope)

        total = (await db.execute(count_query)).scalar() or 0
        result = await db.execute(
            query.order_by(IncomingLetter.created_at.desc(), IncomingLetter.id.desc())
            .offset(offset)
            .limit(limit)
        )
        records = [incoming_to_response(letter) for letter in result.scalars().all()]

        return IncomingListResponse(
            records=records,
            total=total,
            has_more=offset + limit < total,
            current_page=offset // limit + 1,
            total_pages=(total + limit - 1) // limit,
        )

    async def get(self, db: AsyncSession, letter_id: uuid.UUID) -> IncomingLetter:
        result = await db.execute(select(IncomingLetter).where(IncomingLetter.id == letter_id))
        letter = result.scalar_one_or_none()
        if letter is None:
            raise NotFoundError(resource="incoming letter", resource_id=str(letter_id), message="Not found")
        return letter

    async def get_by_qr(self, db: AsyncSession, qr_code: str) -> IncomingLetter:
        """QR codes may repeat on incoming letters; the newest match wins."""
        result = await db.execute(
            select(IncomingLetter)
            .where(IncomingLetter.qr_code == qr_code)
            .order_by(IncomingLetter.created_at.desc())
            .limit(1)
        )
        letter = result.scalar_one_or_none()
        if letter is None:
            raise NotFoundError(
                resource="incoming letter",
                resource_id=qr_code,
                message="Letter not found with this QR code",
            )
        return letter

    # ══════════════════════════════════════════════════════════════════════
    # Update & Delete
    # ══════════════════════════════════════════════════════════════════════

    async def update(
        self,
        db: AsyncSession,
        letter_id: uuid.UUID,
        data: IncomingUpdate,
        image: Optional[ImageUpload] = None,
    ) -> IncomingLetter:
        """
        Edit letter fields. A new image replaces the stored one; without an
        upload the existing image is kept.
        """
        letter = await self.get(db, letter_id)
        changes = data.model_dump(exclude_unset=True, exclude_none=True)

        if "to_department_id" in changes and changes["to_department_id"] != letter.to_department_id:
            letter.department = await self._resolve_department(db, changes.pop("to_department_id"))
        changes.pop("to_department_id", None)

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
        logger.info("Incoming letter updated: %s", letter.id)
        return letter

    async def delete(self, db: AsyncSession, letter_id: uuid.UUID) -> None:
        """Remove the letter, its notifications and its stored image."""
        result = await db.execute(select(IncomingLetter).where(IncomingLetter.id == letter_id))
        letter = result.scalar_one_or_none()
        if letter is None:
            raise NotFoundError(resource="incoming letter", resource_id=str(letter_id), message="Record not found")

        image = letter.image
        await notification_service.delete_for_letter(db, incoming_id=letter.id)
        await db.delete(letter)
        await db.flush()
        await file_service.delete_stored(image)
        logger.info("Incoming letter deleted: %s", letter_id)

    # ══════════════════════════════════════════════════════════════════════
    # Status
    # ══════════════════════════════════════════════════════════════════════

    async def _change_status(
        self, db: AsyncSession, letter: IncomingLetter, status: IncomingStatus, actor: User
    ) -> IncomingLetter:
        self._apply_status(letter, IncomingStatus(status).value)
        await db.flush()
        logger.info("Incoming letter %s status → %s (by %s)", letter.id, letter.status, actor.username)

        await notification_service.fan_out(
            db,
            status_messages(letter),
            counterparty_department_id=letter.to_department_id,
            actor_id=actor.id,
            incoming_id=letter.id,
        )
        return letter

    async def update_status(
        self, db: AsyncSession, letter_id: uuid.UUID, status: IncomingStatus, actor: User
    ) -> IncomingLetter:
        letter = await self.get(db, letter_id)
        return await self._change_status(db, letter, status, actor)

    async def update_status_by_qr(
        self, db: AsyncSession, qr_code: str, status: IncomingStatus, actor: User
    ) -> Tuple[IncomingLetter, bool]:
        """
        Scanner workflow. Returns (letter, status_changed); an unchanged
        status writes nothing and notifies no one.
        """
        result = await db.execute(
            select(IncomingLetter)
            .where(IncomingLetter.qr_code == qr_code)
            .order_by(IncomingLetter.created_at.desc())
            .limit(1)
        )
        letter = result.scalar_one_or_none()
        if letter is None:
            raise NotFoundError(
                resource="incoming letter",
                resource_id=qr_code,
                message="Incoming letter not found with this QR code",
            )

        if letter.status == IncomingStatus(status).value:
            return letter, False
        return await self._change_status(db, letter, status, actor), True


incoming_service = IncomingService()
