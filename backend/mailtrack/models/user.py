"""
MailTrack Backend: User and Department Models
===============================================

What:  ORM models for the `users` and `departments` tables.
How:   Every department owns exactly one login account of role
       `other_department` (departments.user_id, unique). Super admins and
       R&D users have no department.

Table Design:
    - UUID primary keys, generated in Python so SQLite and PostgreSQL behave alike
    - users.username and departments.code are unique
    - role and status are short VARCHARs holding enum values (see models/enums.py)
    - Deleting a user cascades to its department row at the database level;
      the service layer deletes the department explicitly as well
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mailtrack.database import Base
from mailtrack.models.enums import ActiveStatus, Role


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    """An authenticated account. The role is fixed at creation."""

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    username: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(
        String(32), nullable=False, default=Role.OTHER_DEPARTMENT.value,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow,
    )

    # One-to-one back reference; None for super_admin and rd_department users.
    # selectin: loaded with the user so role checks never lazy-load in async code
    department: Mapped[Optional["Department"]] = relationship(
        back_populates="user", uselist=False, lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, username='{self.username}', role='{self.role}')>"


class Department(Base):
    """An organizational unit that sends and receives letters."""

    __tablename__ = "departments"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    head: Mapped[str] = mapped_column(String(255), nullable=False)
    contact: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=ActiveStatus.ACTIVE.value,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow,
    )

    user: Mapped[User] = relationship(back_populates="department", lazy="selectin")

    def __repr__(self) -> str:
        return f"<Department(id={self.id}, code='{self.code}', status='{self.status}')>"
