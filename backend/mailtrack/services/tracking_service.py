"""
MailTrack Backend: Letter Tracking Service
============================================

What:  One listing of incoming and outgoing letters for the tracking screen,
       with statuses shown as display labels.
How:   Each source is queried with the caller's role scope and the
       translated status filter. Pagination is done on the merged stream:
       both sources supply their newest `page * limit` rows, those are
       merged by creation time and the requested window is sliced out.
       Status changes are translated back through status_map and delegated
       to the letter services, so they notify exactly like direct updates.
Who:   Called by routes/tracking.py.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import List, Optional, Tuple, Union

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from mailtrack.config import settings
from mailtrack.exceptions import ValidationError
from mailtrack.models.enums import IncomingStatus, LetterType, OutgoingStatus, Priority
from mailtrack.models.letter import IncomingLetter, OutgoingLetter
from mailtrack.models.user import User
from mailtrack.schemas.auth import DepartmentBrief
from mailtrack.schemas.common import PageInfo
from mailtrack.schemas.notification import (
    IncomingCounts,
    OutgoingCounts,
    TrackingListResponse,
    TrackingRecord,
    TrackingStats,
)
from mailtrack.services import status_map
from mailtrack.services.file_service import file_service
from mailtrack.services.incoming_service import incoming_service
from mailtrack.services.outgoing_service import outgoing_service

logger = logging.getLogger(__name__)

Letter = Union[IncomingLetter, OutgoingLetter]


def _sort_key(record: TrackingRecord) -> datetime:
    # SQLite hands back naive datetimes; everything is stored as UTC
    created = record.created_at
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    return created


def _department_brief(letter: Letter) -> Optional[DepartmentBrief]:
    if letter.department is None:
        return None
    return DepartmentBrief(id=letter.department.id, name=letter.department.name, code=letter.department.code)


def incoming_to_record(letter: IncomingLetter) -> TrackingRecord:
    return TrackingRecord(
        id=letter.id,
        qr_code=letter.qr_code,
        type=LetterType.INCOMING,
        sender=letter.sender,
        recipient=letter.department.name if letter.department is not None else "",
        subject=letter.subject,
        description=letter.description,
        filing=letter.filing,
        priority=letter.priority,
        status=status_map.to_display(LetterType.INCOMING, letter.status),
        created_at=letter.created_at,
        assigned_date=letter.received_date,
        collected_date=letter.collected_date,
        image=file_service.public_url(letter.image),
        department=_department_brief(letter),
    )


def outgoing_to_record(letter: OutgoingLetter) -> TrackingRecord:
    return TrackingRecord(
        id=letter.id,
        qr_code=letter.qr_code,
        type=LetterType.OUTGOING,
        sender=letter.department.name if letter.department is not None else "",
        recipient=letter.recipient,
        subject=letter.subject,
        priority=letter.priority,
        status=status_map.to_display(LetterType.OUTGOING, letter.status),
        created_at=letter.created_at,
        assigned_date=letter.created_at,
        dispatched_date=letter.dispatched_date,
        delivered_date=letter.delivered_date,
        image=file_service.public_url(letter.image),
        department=_department_brief(letter),
    )


class TrackingService:

    async def _fetch(
        self,
        db: AsyncSession,
        model,
        filters: list,
        take: int,
    ) -> Tuple[int, list]:
        """Count matching rows and load the newest `take` of them."""
        count_query = select(func.count(model.id))
        query = select(model)
        for condition in filters:
            count_query = count_query.where(condition)
            query = query.where(condition)

        total = (await db.execute(count_query)).scalar() or 0
        if total == 0:
            return 0, []
        result = await db.execute(
            query.order_by(model.created_at.desc(), model.id.desc()).limit(take)
        )
        return total, list(result.scalars().all())

    async def list(
        self,
        db: AsyncSession,
        user: User,
        page: int = 1,
        limit: Optional[int] = None,
        status: Optional[str] = None,
        record_type: Optional[LetterType] = None,
        priority: Optional[Priority] = None,
    ) -> TrackingListResponse:
        """
        Merged, newest-first listing of both letter directions.

        Args:
            status: Display label ("Pending", "Handled to Courier", …).
                A label defined for only one direction restricts the listing
                to that direction.
            record_type: Restrict to incoming or outgoing letters.
            priority: Restrict to one priority.

        Raises:
            ValidationError: `status` is not a label of either direction.
        """
        limit = limit or settings.default_page_size
        take = page * limit

        include_incoming = record_type in (None, LetterType.INCOMING)
        include_outgoing = record_type in (None, LetterType.OUTGOING)

        incoming_filters: list = []
        outgoing_filters: list = []

        if status:
            incoming_status = status_map.find_internal(LetterType.INCOMING, status)
            outgoing_status = status_map.find_internal(LetterType.OUTGOING, status)
            if incoming_status is None and outgoing_status is None:
                raise ValidationError(
                    message=f"Unknown status '{status}'",
                    field="status",
                    context={
                        "incoming": status_map.display_labels(LetterType.INCOMING),
                        "outgoing": status_map.display_labels(LetterType.OUTGOING),
                    },
                )
            include_incoming = include_incoming and incoming_status is not None
            include_outgoing = include_outgoing and outgoing_status is not None
            if incoming_status is not None:
                incoming_filters.append(IncomingLetter.status == incoming_status)
            if outgoing_status is not None:
                outgoing_filters.append(OutgoingLetter.status == outgoing_status)

        if priority is not None:
            incoming_filters.append(IncomingLetter.priority == Priority(priority).value)
            outgoing_filters.append(OutgoingLetter.priority == Priority(priority).value)

        incoming_scope = incoming_service.scope(user)
        if incoming_scope is not None:
            incoming_filters.append(incoming_scope)
        outgoing_scope = outgoing_service.scope(user)
        if outgoing_scope is not None:
            outgoing_filters.append(outgoing_scope)

        total = 0
        records: List[TrackingRecord] = []
        if include_incoming:
            count, letters = await self._fetch(db, IncomingLetter, incoming_filters, take)
            total += count
            records.extend(incoming_to_record(letter) for letter in letters)
        if include_outgoing:
            count, letters = await self._fetch(db, OutgoingLetter, outgoing_filters, take)
            total += count
            records.extend(outgoing_to_record(letter) for letter in letters)

        records.sort(key=_sort_key, reverse=True)
        window = records[(page - 1) * limit:take]

        logger.debug(
            "Tracking list for %s: page=%d limit=%d total=%d returned=%d",
            user.username, page, limit, total, len(window),
        )
        return TrackingListResponse(records=window, pagination=PageInfo.build(page, limit, total))

    async def get(self, db: AsyncSession, record_type: LetterType, record_id: uuid.UUID) -> TrackingRecord:
        if LetterType(record_type) == LetterType.INCOMING:
            return incoming_to_record(await incoming_service.get(db, record_id))
        return outgoing_to_record(await outgoing_service.get(db, record_id))

    async def update_status(
        self,
        db: AsyncSession,
        record_id: uuid.UUID,
        record_type: LetterType,
        display_status: str,
        actor: User,
    ) -> TrackingRecord:
        """Translate a display label and apply it through the letter service."""
        internal = status_map.to_internal(record_type, display_status)
        if LetterType(record_type) == LetterType.INCOMING:
            letter = await incoming_service.update_status(db, record_id, IncomingStatus(internal), actor)
            return incoming_to_record(letter)
        letter = await outgoing_service.update_status(db, record_id, OutgoingStatus(internal), actor)
        return outgoing_to_record(letter)

    async def stats(self, db: AsyncSession, user: User) -> TrackingStats:
        """Per-status counts for both directions within the caller's scope."""
        incoming_query = select(IncomingLetter.status, func.count(IncomingLetter.id)).group_by(
            IncomingLetter.status
        )
        incoming_scope = incoming_service.scope(user)
        if incoming_scope is not None:
            incoming_query = incoming_query.where(incoming_scope)

        outgoing_query = select(OutgoingLetter.status, func.count(OutgoingLetter.id)).group_by(
            OutgoingLetter.status
        )
        outgoing_scope = outgoing_service.scope(user)
        if outgoing_scope is not None:
            outgoing_query = outgoing_query.where(outgoing_scope)

        incoming = {status: count for status, count in (await db.execute(incoming_query)).all()}
        outgoing = {status: count for status, count in (await db.execute(outgoing_query)).all()}

        incoming_counts = IncomingCounts(
            pending=incoming.get(IncomingStatus.RECEIVED.value, 0),
            in_progress=incoming.get(IncomingStatus.TRANSFERRED.value, 0),
            collected=incoming.get(IncomingStatus.COLLECTED.value, 0),
            archived=incoming.get(IncomingStatus.ARCHIVED.value, 0),
            total=sum(incoming.values()),
        )
        outgoing_counts = OutgoingCounts(
            pending=outgoing.get(OutgoingStatus.PENDING_DISPATCH.value, 0),
            handled_to_courier=outgoing.get(OutgoingStatus.DISPATCHED.value, 0),
            delivered=outgoing.get(OutgoingStatus.DELIVERED.value, 0),
            returned=outgoing.get(OutgoingStatus.RETURNED.value, 0),
            total=sum(outgoing.values()),
        )
        return TrackingStats(
            incoming=incoming_counts,
            outgoing=outgoing_counts,
            total=incoming_counts.total + outgoing_counts.total,
        )


tracking_service = TrackingService()
