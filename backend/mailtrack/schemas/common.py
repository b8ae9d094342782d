"""
MailTrack Backend: Shared Pydantic Schemas
============================================

What:  Base model and the response shapes shared by every router.
How:   `CamelModel` gives snake_case Python fields camelCase JSON names
       (`qr_code` ↔ `qrCode`). Inputs accept either spelling; responses
       are serialized by alias.
"""

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ══════════════════════════════════════════════════════════════════════════
# Pagination
# ══════════════════════════════════════════════════════════════════════════


class PageInfo(CamelModel):
    """
    Pagination metadata for page/limit listings.

    has_more is true when rows exist past the current window;
    total_pages is ceil(total / limit).
    """
    current_page: int = Field(description="1-based page number")
    total_pages: int = Field(description="Number of pages at the requested limit")
    total: int = Field(description="Total rows matching the filters")
    has_more: bool = Field(description="Whether a next page exists")

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "PageInfo":
        return cls(
            current_page=page,
            total_pages=(total + limit - 1) // limit if limit else 0,
            total=total,
            has_more=page * limit < total,
        )


class MessageResponse(CamelModel):
    success: bool = True
    message: str


# ══════════════════════════════════════════════════════════════════════════
# Error & Health
# ══════════════════════════════════════════════════════════════════════════


class ErrorResponse(BaseModel):
    """
    Standardized error body for all API errors.

    Example:
        {
            "error": "validation_error",
            "message": "Department code already exists. Please use a unique code.",
            "details": {"field": "code"},
            "request_id": "1f2e3d4c"
        }
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[Any] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(CamelModel):
    status: str = Field(description="'ok' when the database answers, 'degraded' otherwise")
    timestamp: datetime
    version: str
    message: str
    database: str = Field(description="Database connectivity: connected, disconnected")
    uptime_seconds: float = Field(description="Seconds since service started")


class RootResponse(BaseModel):
    message: str
    documentation: str
    available_versions: List[str]
