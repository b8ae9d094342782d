"""
MailTrack Backend: Notification Service
=========================================

What:  Fan-out of letter events to the users who should hear about them,
       and the per-user notification inbox.
How:   `select_recipients` is the whole audience rule, kept free of I/O.
       `fan_out` loads every user once, applies the rule, and writes the
       batch with a single bulk INSERT inside a SAVEPOINT.
Who:   Called by the incoming and outgoing letter services after every
       create and status change; the inbox methods back routes/notifications.py.

Audience Rule (letter create and status update alike):
    super_admin        → always, unless they are the actor
    rd_department      → always, unless they are the actor
    other_department   → only when their department is the letter's
                         counterparty (incoming: `to`, outgoing: `from`),
                         unless they are the actor

Failure Isolation:
    The letter row is flushed before the fan-out starts. A failed
    notification insert rolls back to the savepoint and is logged; the
    letter write and the HTTP response are unaffected.

Read State:
    `is_read` belongs to the addressed user. Broadcast rows (no user_id)
    are shown to several readers from one row, so they are never flipped
    and never counted as unread.
"""

import logging
import uuid
from typing import Dict, Iterable, List, Optional

from sqlalchemy import and_, delete, func, insert, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from mailtrack.config import settings
from mailtrack.exceptions import NotFoundError
from mailtrack.models.enums import GLOBAL_ROLES, Role
from mailtrack.models.notification import Notification
from mailtrack.models.user import User, utcnow
from mailtrack.schemas.notification import NotificationPage, NotificationResponse

logger = logging.getLogger(__name__)


def select_recipients(
    users: Iterable[User],
    counterparty_department_id: Optional[uuid.UUID],
    actor_id: Optional[uuid.UUID],
) -> List[User]:
    """Apply the audience rule to a user list. The actor is never included."""
    recipients = []
    for user in users:
        if actor_id is not None and user.id == actor_id:
            continue
        if user.role in GLOBAL_ROLES:
            recipients.append(user)
        elif (
            user.role == Role.OTHER_DEPARTMENT.value
            and user.department is not None
            and counterparty_department_id is not None
            and user.department.id == counterparty_department_id
        ):
            recipients.append(user)
    return recipients


class NotificationService:
    """Fan-out writer plus the read side of each user's inbox."""

    # ══════════════════════════════════════════════════════════════════════
    # Fan-out
    # ══════════════════════════════════════════════════════════════════════

    async def fan_out(
        self,
        db: AsyncSession,
        messages: Dict[str, str],
        counterparty_department_id: uuid.UUID,
        actor_id: Optional[uuid.UUID] = None,
        incoming_id: Optional[uuid.UUID] = None,
        outgoing_id: Optional[uuid.UUID] = None,
    ) -> int:
        """
        Notify every eligible user about a letter event.

        Args:
            messages: Message text keyed by recipient role value; each
                      audience gets its own wording.
            counterparty_department_id: The department on the letter's side.
            actor_id: The user who caused the event (excluded).

        Returns:
            Number of notifications written (0 when the insert failed).
        """
        try:
            result = await db.execute(select(User))
            recipients = select_recipients(result.scalars().all(), counterparty_department_id, actor_id)

            now = utcnow()
            rows = [
                {
                    "id": uuid.uuid4(),
                    "message": messages[user.role],
                    "incoming_id": incoming_id,
                    "outgoing_id": outgoing_id,
                    "department_id": counterparty_department_id,
                    "user_id": user.id,
                    "is_read": False,
                    "created_at": now,
                }
                for user in recipients
                if user.role in messages
            ]
            if not rows:
                return 0

            async with db.begin_nested():
                await db.execute(insert(Notification), rows)

        except SQLAlchemyError as e:
            logger.error(
                "Notification fan-out failed (incoming=%s outgoing=%s): %s",
                incoming_id,
                outgoing_id,
                str(e),
            )
            return 0

        logger.info(
            "Fan-out wrote %d notifications (incoming=%s outgoing=%s)",
            len(rows),
            incoming_id,
            outgoing_id,
        )
        return len(rows)

    async def create(
        self,
        db: AsyncSession,
        message: str,
        user_id: Optional[uuid.UUID] = None,
        department_id: Optional[uuid.UUID] = None,
        incoming_id: Optional[uuid.UUID] = None,
        outgoing_id: Optional[uuid.UUID] = None,
    ) -> Notification:
        """Insert a single notification (user-addressed or a broadcast)."""
        notification = Notification(
            message=message,
            user_id=user_id,
            department_id=department_id,
            incoming_id=incoming_id,
            outgoing_id=outgoing_id,
        )
        db.add(notification)
        await db.flush()
        return notification

    async def delete_for_letter(
        self,
        db: AsyncSession,
        incoming_id: Optional[uuid.UUID] = None,
        outgoing_id: Optional[uuid.UUID] = None,
    ) -> None:
        if incoming_id is not None:
            await db.execute(delete(Notification).where(Notification.incoming_id == incoming_id))
        if outgoing_id is not None:
            await db.execute(delete(Notification).where(Notification.outgoing_id == outgoing_id))

    # ══════════════════════════════════════════════════════════════════════
    # Inbox
    # ══════════════════════════════════════════════════════════════════════

    @staticmethod
    def _visible_to(user: User):
        """
        Rows addressed to the user, plus broadcasts (no user_id) for global
        roles or for the user's own department.
        """
        own = Notification.user_id == user.id
        broadcast = Notification.user_id.is_(None)
        if user.role in GLOBAL_ROLES:
            return or_(own, broadcast)
        if user.department is not None:
            return or_(own, and_(broadcast, Notification.department_id == user.department.id))
        return own

    async def list_for_user(
        self,
        db: AsyncSession,
        user: User,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> NotificationPage:
        limit = limit or settings.notification_page_size
        offset = (page - 1) * limit
        visible = self._visible_to(user)

        total = (
            await db.execute(select(func.count(Notification.id)).where(visible))
        ).scalar() or 0

        result = await db.execute(
            select(Notification)
            .where(visible)
            .order_by(Notification.created_at.desc(), Notification.id.desc())
            .offset(offset)
            .limit(limit)
        )
        notifications = [
            NotificationResponse.model_validate(n) for n in result.scalars().all()
        ]

        return NotificationPage(
            notifications=notifications,
            total=total,
            has_more=offset + limit < total,
            current_page=page,
            total_pages=(total + limit - 1) // limit,
        )

    async def unread_count(self, db: AsyncSession, user: User) -> int:
        """Unread rows addressed to the user; broadcasts carry no per-user read state."""
        result = await db.execute(
            select(func.count(Notification.id)).where(
                Notification.user_id == user.id, Notification.is_read.is_(False)
            )
        )
        return result.scalar() or 0

    async def _get_visible(
        self, db: AsyncSession, notification_id: uuid.UUID, user: User
    ) -> Notification:
        result = await db.execute(
            select(Notification).where(
                Notification.id == notification_id, self._visible_to(user)
            )
        )
        notification = result.scalar_one_or_none()
        if notification is None:
            raise NotFoundError(
                resource="notification",
                resource_id=str(notification_id),
                message="Notification not found",
            )
        return notification

    async def mark_as_read(
        self, db: AsyncSession, notification_id: uuid.UUID, user: User
    ) -> Notification:
        """
        Flag one of the user's notifications as read. A visible broadcast is
        returned unchanged: its row is shared with every other reader.
        """
        notification = await self._get_visible(db, notification_id, user)
        if notification.user_id == user.id:
            notification.is_read = True
            await db.flush()
        return notification

    async def mark_all_as_read(self, db: AsyncSession, user: User) -> int:
        result = await db.execute(
            update(Notification)
            .where(Notification.user_id == user.id, Notification.is_read.is_(False))
            .values(is_read=True)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    async def delete(
        self, db: AsyncSession, notification_id: uuid.UUID, user: User
    ) -> None:
        notification = await self._get_visible(db, notification_id, user)
        await db.delete(notification)
        await db.flush()


notification_service = NotificationService()
