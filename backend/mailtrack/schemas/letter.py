"""
MailTrack Backend: Letter Schemas
===================================

What:  Request and response bodies for /incoming and /outgoing.
How:   The letter's free-text side and its department side travel as
       `from` / `to` on the wire. Python cannot name a field `from`, so
       those fields carry explicit aliases.

Wire example (incoming):
    {
        "id": "…", "qrCode": "QR-0001", "from": "Ministry of Finance",
        "to": "<department uuid>", "priority": "high", "status": "RECEIVED",
        "receivedDate": "2024-05-01T09:30:00Z", "department": {...}
    }
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import Field

from mailtrack.models.enums import IncomingStatus, OutgoingStatus, Priority
from mailtrack.schemas.auth import DepartmentBrief
from mailtrack.schemas.common import CamelModel


# ══════════════════════════════════════════════════════════════════════════
# Incoming
# ══════════════════════════════════════════════════════════════════════════


class IncomingCreate(CamelModel):
    qr_code: str = Field(min_length=1, max_length=255)
    sender: str = Field(min_length=1, max_length=255, alias="from")
    to_department_id: uuid.UUID = Field(alias="to")
    priority: Priority
    subject: Optional[str] = None
    description: Optional[str] = None
    filing: Optional[str] = None
    status: Optional[IncomingStatus] = None
    received_date: Optional[datetime] = None


class IncomingUpdate(CamelModel):
    qr_code: Optional[str] = Field(default=None, min_length=1, max_length=255)
    sender: Optional[str] = Field(default=None, min_length=1, max_length=255, alias="from")
    to_department_id: Optional[uuid.UUID] = Field(default=None, alias="to")
    priority: Optional[Priority] = None
    subject: Optional[str] = None
    description: Optional[str] = None
    filing: Optional[str] = None
    status: Optional[IncomingStatus] = None
    received_date: Optional[datetime] = None


class IncomingStatusUpdate(CamelModel):
    status: IncomingStatus


class IncomingResponse(CamelModel):
    id: uuid.UUID
    qr_code: str
    sender: str = Field(alias="from")
    to_department_id: uuid.UUID = Field(alias="to")
    priority: str
    subject: Optional[str] = None
    description: Optional[str] = None
    filing: Optional[str] = None
    status: str
    image: Optional[str] = Field(default=None, description="URL of the stored letter image")
    received_date: datetime
    collected_date: Optional[datetime] = None
    created_at: datetime
    department: Optional[DepartmentBrief] = None


class IncomingEnvelope(CamelModel):
    incoming: IncomingResponse


class IncomingRecordEnvelope(CamelModel):
    record: IncomingResponse


class IncomingUpdatedEnvelope(CamelModel):
    updated: IncomingResponse


class IncomingListResponse(CamelModel):
    records: List[IncomingResponse]
    total: int
    has_more: bool
    current_page: int
    total_pages: int


class IncomingQrStatusResponse(CamelModel):
    success: bool = True
    message: str
    updated: IncomingResponse
    status_changed: bool


# ══════════════════════════════════════════════════════════════════════════
# Outgoing
# ══════════════════════════════════════════════════════════════════════════


class OutgoingCreate(CamelModel):
    qr_code: str = Field(min_length=1, max_length=255)
    from_department_id: uuid.UUID = Field(alias="from")
    recipient: str = Field(min_length=1, max_length=255, alias="to")
    priority: Priority
    subject: Optional[str] = None
    courier_service_id: Optional[uuid.UUID] = None


class OutgoingUpdate(CamelModel):
    qr_code: Optional[str] = Field(default=None, min_length=1, max_length=255)
    from_department_id: Optional[uuid.UUID] = Field(default=None, alias="from")
    recipient: Optional[str] = Field(default=None, min_length=1, max_length=255, alias="to")
    priority: Optional[Priority] = None
    subject: Optional[str] = None
    courier_service_id: Optional[uuid.UUID] = None
    status: Optional[OutgoingStatus] = None


class OutgoingStatusUpdate(CamelModel):
    status: OutgoingStatus
    dispatched_date: Optional[datetime] = None
    delivered_date: Optional[datetime] = None


class CourierBrief(CamelModel):
    id: uuid.UUID
    service_name: str
    code: str


class OutgoingResponse(CamelModel):
    id: uuid.UUID
    qr_code: str
    from_department_id: uuid.UUID = Field(alias="from")
    recipient: str = Field(alias="to")
    priority: str
    subject: Optional[str] = None
    status: str
    image: Optional[str] = None
    courier_service_id: Optional[uuid.UUID] = None
    dispatched_date: Optional[datetime] = None
    delivered_date: Optional[datetime] = None
    created_at: datetime
    department: Optional[DepartmentBrief] = None
    courier: Optional[CourierBrief] = None


class OutgoingPage(CamelModel):
    """One page of outgoing letters; paging fields sit beside `records`, as for incoming."""
    records: List[OutgoingResponse]
    total: int
    has_more: bool
    current_page: int
    total_pages: int


class OutgoingDepartmentList(CamelModel):
    records: List[OutgoingResponse]
    total: int


class OutgoingStats(CamelModel):
    total: int
    pending: int
    dispatched: int
    delivered: int
    returned: int


class OutgoingQrStatusResult(CamelModel):
    updated: OutgoingResponse
    status_changed: bool


class OutgoingEnvelope(CamelModel):
    """`{success, message, data}` wrapper used by every /outgoing response."""
    success: bool = True
    message: str
    data: Optional[
        OutgoingResponse | OutgoingPage | OutgoingDepartmentList | OutgoingStats | OutgoingQrStatusResult
    ] = None
