"""
MailTrack Backend: Notification & Tracking Schemas
====================================================

What:  Response bodies for /notifications and the unified letter records
       served by /tracking.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import Field

from mailtrack.models.enums import LetterType
from mailtrack.schemas.auth import DepartmentBrief
from mailtrack.schemas.common import CamelModel, PageInfo


# ══════════════════════════════════════════════════════════════════════════
# Notifications
# ══════════════════════════════════════════════════════════════════════════


class NotificationResponse(CamelModel):
    id: uuid.UUID
    message: str
    incoming_id: Optional[uuid.UUID] = None
    outgoing_id: Optional[uuid.UUID] = None
    department_id: Optional[uuid.UUID] = None
    user_id: Optional[uuid.UUID] = None
    is_read: bool
    created_at: datetime


class NotificationPage(CamelModel):
    notifications: List[NotificationResponse]
    total: int
    has_more: bool
    current_page: int
    total_pages: int


class NotificationListResponse(CamelModel):
    success: bool = True
    data: NotificationPage


class UnreadCount(CamelModel):
    unread_count: int


class UnreadCountResponse(CamelModel):
    success: bool = True
    data: UnreadCount


# ══════════════════════════════════════════════════════════════════════════
# Tracking
# ══════════════════════════════════════════════════════════════════════════


class TrackingStatusUpdate(CamelModel):
    record_id: uuid.UUID
    record_type: LetterType
    new_status: str = Field(min_length=1, description="Display label, e.g. 'Handled to Courier'")


class TrackingRecord(CamelModel):
    """One letter of either direction, with its status as a display label."""
    id: uuid.UUID
    qr_code: str
    type: LetterType
    sender: str = Field(alias="from")
    recipient: str = Field(alias="to")
    subject: Optional[str] = None
    description: Optional[str] = None
    filing: Optional[str] = None
    priority: str
    status: str
    created_at: datetime
    assigned_date: datetime
    collected_date: Optional[datetime] = None
    dispatched_date: Optional[datetime] = None
    delivered_date: Optional[datetime] = None
    image: Optional[str] = None
    department: Optional[DepartmentBrief] = None


class TrackingListResponse(CamelModel):
    records: List[TrackingRecord]
    pagination: PageInfo


class TrackingRecordResponse(CamelModel):
    record: TrackingRecord


class TrackingUpdateResponse(CamelModel):
    success: bool = True
    message: str
    record: TrackingRecord


class IncomingCounts(CamelModel):
    pending: int = 0
    in_progress: int = 0
    collected: int = 0
    archived: int = 0
    total: int = 0


class OutgoingCounts(CamelModel):
    pending: int = 0
    handled_to_courier: int = 0
    delivered: int = 0
    returned: int = 0
    total: int = 0


class TrackingStats(CamelModel):
    incoming: IncomingCounts
    outgoing: OutgoingCounts
    total: int
