"""
MailTrack Backend: Domain Enumerations
========================================

What:  The fixed vocabularies stored in the database: roles, letter
       statuses, priorities, and the active/inactive switch shared by
       departments and couriers.
How:   `str` enums, so members compare equal to the raw column values and
       serialize as plain strings in JSON.
"""

import enum


class Role(str, enum.Enum):
    SUPER_ADMIN = "super_admin"
    RD_DEPARTMENT = "rd_department"
    OTHER_DEPARTMENT = "other_department"


# Roles that see every letter and receive every broadcast
GLOBAL_ROLES = frozenset({Role.SUPER_ADMIN.value, Role.RD_DEPARTMENT.value})


class IncomingStatus(str, enum.Enum):
    """Lifecycle: RECEIVED → TRANSFERRED → COLLECTED → ARCHIVED."""

    RECEIVED = "RECEIVED"
    TRANSFERRED = "TRANSFERRED"
    COLLECTED = "COLLECTED"
    ARCHIVED = "ARCHIVED"


class OutgoingStatus(str, enum.Enum):
    """Lifecycle: PENDING_DISPATCH → DISPATCHED → DELIVERED | RETURNED."""

    PENDING_DISPATCH = "PENDING_DISPATCH"
    DISPATCHED = "DISPATCHED"
    DELIVERED = "DELIVERED"
    RETURNED = "RETURNED"


class Priority(str, enum.Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ActiveStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class LetterType(str, enum.Enum):
    INCOMING = "incoming"
    OUTGOING = "outgoing"
