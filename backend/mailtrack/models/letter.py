"""
MailTrack Backend: Letter Models
==================================

What:  ORM models for `incoming_letters` and `outgoing_letters`.
How:   Each letter has one department on its side of the exchange:
       the addressee (`to_department_id`) for incoming letters and the
       sender (`from_department_id`) for outgoing ones. The other side is
       free text. That department is the letter's counterparty for role
       filtering and notification fan-out.

Query Patterns:
    - Role-filtered listing: WHERE <department column> = :dept
      ORDER BY created_at DESC → indexed on both columns
    - Lookup by scanned QR code: WHERE qr_code = :qr → indexed
      (unique for outgoing letters, repeatable for incoming ones)
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mailtrack.database import Base
from mailtrack.models.courier import Courier
from mailtrack.models.enums import IncomingStatus, OutgoingStatus, Priority
from mailtrack.models.user import Department, utcnow


class IncomingLetter(Base):
    """A letter received from outside, addressed to one department."""

    __tablename__ = "incoming_letters"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    qr_code: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    sender: Mapped[str] = mapped_column(String(255), nullable=False)
    to_department_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("departments.id"), nullable=False, index=True,
    )
    priority: Mapped[str] = mapped_column(
        String(16), nullable=False, default=Priority.MEDIUM.value,
    )
    subject: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    filing: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    status: Mapped[str] = mapped_column(
        String(32), nullable=False, default=IncomingStatus.RECEIVED.value,
    )
    # Relative path under the storage root
    image: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    received_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow,
    )
    # Stamped when the letter first reaches COLLECTED
    collected_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow,
    )

    department: Mapped[Department] = relationship(lazy="selectin")

    __table_args__ = (
        Index("idx_incoming_created_at", created_at.desc()),
    )

    def __repr__(self) -> str:
        return f"<IncomingLetter(id={self.id}, qr='{self.qr_code}', status='{self.status}')>"


class OutgoingLetter(Base):
    """A letter sent by one department, optionally through a courier."""

    __tablename__ = "outgoing_letters"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    qr_code: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    from_department_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("departments.id"), nullable=False, index=True,
    )
    recipient: Mapped[str] = mapped_column(String(255), nullable=False)
    priority: Mapped[str] = mapped_column(
        String(16), nullable=False, default=Priority.MEDIUM.value,
    )
    subject: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    status: Mapped[str] = mapped_column(
        String(32), nullable=False, default=OutgoingStatus.PENDING_DISPATCH.value,
    )
    image: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    courier_service_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("couriers.id", ondelete="SET NULL"), nullable=True,
    )
    dispatched_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    delivered_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow,
    )

    department: Mapped[Department] = relationship(lazy="selectin")
    courier: Mapped[Optional[Courier]] = relationship(lazy="selectin")

    __table_args__ = (
        Index("idx_outgoing_created_at", created_at.desc()),
    )

    def __repr__(self) -> str:
        return f"<OutgoingLetter(id={self.id}, qr='{self.qr_code}', status='{self.status}')>"
