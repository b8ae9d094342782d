"""
MailTrack Backend: Department & Courier Schemas
=================================================

What:  Request and response bodies for /departments and /couriers.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import EmailStr, Field, field_validator, model_validator

from mailtrack.models.enums import ActiveStatus
from mailtrack.schemas.auth import USERNAME_PATTERN, UserResponse
from mailtrack.schemas.common import CamelModel


class StatusUpdate(CamelModel):
    status: ActiveStatus


# ══════════════════════════════════════════════════════════════════════════
# Departments
# ══════════════════════════════════════════════════════════════════════════


class DepartmentCreate(CamelModel):
    """A department plus the login account created alongside it."""
    name: str = Field(min_length=2, max_length=255)
    code: str = Field(min_length=2, max_length=50)
    head: str = Field(min_length=2, max_length=255)
    contact: str = Field(min_length=2, max_length=255)
    status: ActiveStatus = ActiveStatus.ACTIVE
    username: str = Field(min_length=3, max_length=50, pattern=USERNAME_PATTERN)
    password: str = Field(min_length=6, max_length=100)


class DepartmentUpdate(CamelModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=255)
    code: Optional[str] = Field(default=None, min_length=2, max_length=50)
    head: Optional[str] = Field(default=None, min_length=2, max_length=255)
    contact: Optional[str] = Field(default=None, min_length=2, max_length=255)
    status: Optional[ActiveStatus] = None
    username: Optional[str] = Field(default=None, min_length=3, max_length=50, pattern=USERNAME_PATTERN)
    password: Optional[str] = Field(default=None, min_length=6, max_length=100)

    @model_validator(mode="after")
    def require_one_field(self) -> "DepartmentUpdate":
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided for update")
        return self


class DepartmentResponse(CamelModel):
    id: uuid.UUID
    name: str
    code: str
    head: str
    contact: str
    status: str
    user_id: uuid.UUID
    username: Optional[str] = None
    created_at: datetime


class DepartmentCreateResponse(CamelModel):
    success: bool = True
    department: DepartmentResponse
    user: UserResponse


class DepartmentListResponse(CamelModel):
    departments: List[DepartmentResponse]
    total: int


# ══════════════════════════════════════════════════════════════════════════
# Couriers
# ══════════════════════════════════════════════════════════════════════════


class CourierCreate(CamelModel):
    service_name: str = Field(min_length=2, max_length=255)
    code: str = Field(min_length=2, max_length=50)
    contact_person: str = Field(min_length=2, max_length=255)
    email: EmailStr
    phone: str = Field(min_length=5, max_length=50)
    address: str = Field(min_length=2)
    status: ActiveStatus = ActiveStatus.ACTIVE

    @field_validator("code")
    @classmethod
    def strip_code(cls, v: str) -> str:
        return v.strip()


class CourierUpdate(CamelModel):
    service_name: Optional[str] = Field(default=None, min_length=2, max_length=255)
    code: Optional[str] = Field(default=None, min_length=2, max_length=50)
    contact_person: Optional[str] = Field(default=None, min_length=2, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(default=None, min_length=5, max_length=50)
    address: Optional[str] = Field(default=None, min_length=2)
    status: Optional[ActiveStatus] = None

    @model_validator(mode="after")
    def require_one_field(self) -> "CourierUpdate":
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided for update")
        return self


class CourierResponse(CamelModel):
    id: uuid.UUID
    service_name: str
    code: str
    contact_person: str
    email: str
    phone: str
    address: str
    status: str
    created_at: datetime


class CourierListResponse(CamelModel):
    couriers: List[CourierResponse]
    total: int
