"""
MailTrack Backend: Authentication Schemas
===========================================

What:  Request and response bodies for /auth endpoints.
How:   Field constraints mirror the account rules enforced at signup:
       usernames are 3-50 word characters, passwords 6-100 characters
       with at least one lowercase letter, one uppercase letter and one digit.
"""

import re
import uuid
from datetime import datetime
from typing import Optional

from pydantic import Field, field_validator

from mailtrack.models.enums import Role
from mailtrack.schemas.common import CamelModel

USERNAME_PATTERN = r"^[a-zA-Z0-9_]+$"


def check_password_strength(value: str) -> str:
    """Shared with department account updates."""
    if not re.search(r"[a-z]", value):
        raise ValueError("Password must contain at least one lowercase letter")
    if not re.search(r"[A-Z]", value):
        raise ValueError("Password must contain at least one uppercase letter")
    if not re.search(r"\d", value):
        raise ValueError("Password must contain at least one number")
    return value


# ── Requests ──────────────────────────────────────────────────────────────


class SignupRequest(CamelModel):
    username: str = Field(min_length=3, max_length=50, pattern=USERNAME_PATTERN)
    password: str = Field(min_length=6, max_length=100)
    role: Role

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return check_password_strength(v)


class LoginRequest(CamelModel):
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)


class RefreshRequest(CamelModel):
    refresh_token: str = Field(min_length=1, description="Refresh token from /auth/login")


# ── Responses ─────────────────────────────────────────────────────────────


class DepartmentBrief(CamelModel):
    id: uuid.UUID
    name: str
    code: str


class UserResponse(CamelModel):
    id: uuid.UUID
    username: str
    role: str
    department: Optional[DepartmentBrief] = None
    created_at: Optional[datetime] = None


class SignupResponse(CamelModel):
    user: UserResponse


class TokenResponse(CamelModel):
    success: bool = True
    access_token: str
    refresh_token: str
    access_expires_in: int = Field(description="Access token lifetime in seconds")
    refresh_expires_in: int = Field(description="Refresh token lifetime in seconds")
    user: UserResponse
