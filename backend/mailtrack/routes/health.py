"""
MailTrack Backend: Health & Root Routes
=========================================

What:  Liveness/readiness probe and the API root document.
How:   The probe runs SELECT 1; a database failure is reported as
       "degraded" with HTTP 503 so load balancers stop routing traffic.
"""

import logging
import time
from datetime import datetime, timezone

from fastapi import APIRouter, Response
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from mailtrack import __version__
from mailtrack.database import engine
from mailtrack.schemas.common import HealthResponse, RootResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])
root_router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get("/health", response_model=HealthResponse, summary="Service health check")
async def health_check(response: Response) -> HealthResponse:
    db_status = "connected"
    status = "ok"
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as e:
        db_status = "disconnected"
        status = "degraded"
        response.status_code = 503
        logger.warning("Health check: database unreachable: %s", str(e))

    return HealthResponse(
        status=status,
        timestamp=datetime.now(timezone.utc),
        version=__version__,
        message="MailTrack API is running" if status == "ok" else "Database unreachable",
        database=db_status,
        uptime_seconds=round(time.time() - _start_time, 2),
    )


@root_router.get("/", response_model=RootResponse, include_in_schema=False)
async def root() -> RootResponse:
    return RootResponse(
        message="MailTrack API",
        documentation="/docs",
        available_versions=["v1"],
    )
