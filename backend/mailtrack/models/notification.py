"""
MailTrack Backend: Notification Model
=======================================

What:  ORM model for the `notifications` table.
How:   One row per recipient. A notification points at no more than one
       letter (incoming XOR outgoing); the CHECK constraint enforces it
       and the letter foreign keys cascade on delete.

Visibility:
    Rows written by the fan-out carry `user_id`. Rows without a user are
    broadcasts, visible to global roles and to the department named in
    `department_id` (see services/notification_service.py).
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Index, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from mailtrack.database import Base
from mailtrack.models.user import utcnow


class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    incoming_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("incoming_letters.id", ondelete="CASCADE"), nullable=True,
    )
    outgoing_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("outgoing_letters.id", ondelete="CASCADE"), nullable=True,
    )
    department_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("departments.id", ondelete="CASCADE"), nullable=True,
    )
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=True,
    )
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow,
    )

    __table_args__ = (
        CheckConstraint(
            "incoming_id IS NULL OR outgoing_id IS NULL",
            name="ck_notifications_single_letter",
        ),
        Index("idx_notifications_user_created", "user_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Notification(id={self.id}, user_id={self.user_id}, is_read={self.is_read})>"
