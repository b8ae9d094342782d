"""
MailTrack Backend: Access Log Middleware
==========================================

What:  One access-log line per API call, naming the account that made it.
How:   get_current_user leaves the authenticated username on request.state;
       the line is written after the response, so it includes the status,
       the elapsed time and that username ("-" for anonymous calls such as
       login). Health probes are not logged. Bodies, uploaded images and
       the Authorization header are never logged.

Example:
    2024-05-01T09:30:00 [INFO] mailtrack.access: records PATCH /api/v1/incoming/qr/QR-1/status → 200 (12.4ms) [a1b2c3d4]
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from mailtrack.middleware.request_id import request_id_var

logger = logging.getLogger("mailtrack.access")

UNLOGGED_PATHS = frozenset({"/health", "/api/v1/health"})
ANONYMOUS = "-"


def level_for_status(status: int) -> int:
    """5xx → ERROR, 4xx → WARNING, everything else INFO."""
    if status >= 500:
        return logging.ERROR
    if status >= 400:
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path in UNLOGGED_PATHS:
            return await call_next(request)

        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000

        username = getattr(request.state, "username", None) or ANONYMOUS
        client = request.client.host if request.client else "unknown"
        rid = request_id_var.get("")

        logger.log(
            level_for_status(response.status_code),
            "%s %s %s → %d (%.1fms) [%s]",
            username,
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
            rid,
            extra={
                "request_id": rid,
                "username": username,
                "client_ip": client,
                "status": response.status_code,
                "duration_ms": round(elapsed_ms, 2),
            },
        )
        return response
