"""
MailTrack Backend: FastAPI Application Factory
================================================

What:  Creates and configures the FastAPI application instance.
How:   create_app() registers middleware, exception handlers and routers;
       uvicorn serves the module-level `app` (uvicorn mailtrack.main:app).

Application Architecture:
    ┌──────────────────────────────────────────────────────────┐
    │                      FastAPI App                         │
    │                                                          │
    │  Middleware:  Request ID → Access log → GZip → CORS      │
    │                                                          │
    │  Routers (mounted under /api/v1 and /api):               │
    │    auth · departments · couriers · incoming · outgoing   │
    │    notifications · tracking · files                      │
    │  Plus: GET /health, GET /api/v1/health, GET /            │
    │                                                          │
    │  Exception handlers:                                     │
    │    Validation→400  Auth→401  Permission→403  NotFound→404│
    │    FileStorage/Database/unexpected→500                   │
    └──────────────────────────────────────────────────────────┘
"""

import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

import pydantic
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from mailtrack import __version__
from mailtrack.config import settings
from mailtrack.database import dispose_engine
from mailtrack.exceptions import (
    AuthenticationError,
    DatabaseError,
    FileStorageError,
    MailTrackError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from mailtrack.middleware.logging import RequestLoggingMiddleware
from mailtrack.middleware.request_id import RequestIDMiddleware, request_id_var
from mailtrack.routes import (
    auth,
    couriers,
    departments,
    files,
    health,
    incoming,
    notifications,
    outgoing,
    tracking,
)

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"
LEGACY_API_PREFIX = "/api"

API_ROUTERS = (
    auth.router,
    departments.router,
    couriers.router,
    incoming.router,
    outgoing.router,
    notifications.router,
    tracking.router,
    files.router,
)


# ══════════════════════════════════════════════════════════════════════════
# Logging
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """Configure the root logger once, before anything else logs."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Third-party loggers are chatty at INFO
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Startup: logging, configuration checks, storage directory.
    Shutdown: dispose the database engine.

    Schema changes are applied with Alembic, never at startup.
    """
    setup_logging()
    logger.info("MailTrack API %s starting (environment=%s)", __version__, settings.environment)

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        logger.critical("Refusing to start: %s", e)
        raise

    storage = Path(settings.storage_root).resolve()
    storage.mkdir(parents=True, exist_ok=True)
    logger.info(
        "Letter images under %s; listening on %s:%d",
        storage,
        settings.backend_host,
        settings.backend_port,
    )

    yield

    await dispose_engine()
    logger.info("MailTrack API stopped")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _error_response(
    status_code: int,
    error: str,
    message: str,
    details=None,
    headers=None,
) -> JSONResponse:
    content = {"error": error, "message": message, "request_id": request_id_var.get("")}
    if details is not None:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content, headers=headers)


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map exceptions to HTTP responses with the `{error, message, details?,
    request_id}` body.

        ValidationError (incl. Duplicate, DeletionBlocked)  → 400
        RequestValidationError / pydantic ValidationError   → 400
        AuthenticationError                                 → 401
        PermissionDeniedError                               → 403
        NotFoundError                                       → 404
        FileStorageError / DatabaseError / MailTrackError   → 500
        Exception (fallback)                                → 500

    Server errors never expose their context in the body; it is logged.
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("[%s] Validation error: %s", request_id_var.get(""), exc.message)
        return _error_response(400, "validation_error", exc.message, details=exc.context or None)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation_error(request: Request, exc: RequestValidationError):
        logger.warning("[%s] Request validation failed: %d issue(s)", request_id_var.get(""), len(exc.errors()))
        return _error_response(
            400, "validation_error", "Validation failed", details=jsonable_encoder(exc.errors())
        )

    @app.exception_handler(pydantic.ValidationError)
    async def handle_schema_validation_error(request: Request, exc: pydantic.ValidationError):
        logger.warning("[%s] Form validation failed: %d issue(s)", request_id_var.get(""), exc.error_count())
        return _error_response(
            400,
            "validation_error",
            "Validation failed",
            details=jsonable_encoder(exc.errors(include_url=False, include_context=False)),
        )

    @app.exception_handler(AuthenticationError)
    async def handle_authentication_error(request: Request, exc: AuthenticationError):
        return _error_response(
            401, "authentication_error", exc.message, headers={"WWW-Authenticate": "Bearer"}
        )

    @app.exception_handler(PermissionDeniedError)
    async def handle_permission_denied(request: Request, exc: PermissionDeniedError):
        logger.info("[%s] Permission denied: %s %s", request_id_var.get(""), request.method, request.url.path)
        return _error_response(403, "permission_denied", exc.message)

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return _error_response(404, "not_found", exc.message)

    @app.exception_handler(FileStorageError)
    async def handle_file_storage_error(request: Request, exc: FileStorageError):
        logger.error("[%s] File storage error: %s | Context: %s", request_id_var.get(""), exc.message, exc.context)
        return _error_response(500, "server_error", exc.message)

    @app.exception_handler(DatabaseError)
    async def handle_database_error(request: Request, exc: DatabaseError):
        logger.error("[%s] Database error: %s | Context: %s", request_id_var.get(""), exc.message, exc.context)
        return _error_response(500, "server_error", "An internal error occurred. Please try again later.")

    @app.exception_handler(MailTrackError)
    async def handle_mailtrack_error(request: Request, exc: MailTrackError):
        logger.error("[%s] Unhandled application error: %s | Context: %s", request_id_var.get(""), exc.message, exc.context)
        return _error_response(500, "server_error", exc.message)

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error("[%s] Unexpected error: %s", request_id_var.get(""), str(exc), exc_info=True)
        return _error_response(
            500,
            "internal_server_error",
            "An unexpected error occurred. Please try again or contact support.",
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    app = FastAPI(
        title="MailTrack API",
        description=(
            "Department mail tracking: incoming and outgoing letters, QR scanning, "
            "courier hand-off and role-scoped notifications."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # Last added runs first: RequestID → Logging → GZip → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-Total-Count"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    for router in API_ROUTERS:
        app.include_router(router, prefix=API_PREFIX)
        app.include_router(router, prefix=LEGACY_API_PREFIX, include_in_schema=False)

    app.include_router(health.router)
    app.include_router(health.router, prefix=API_PREFIX, include_in_schema=False)
    app.include_router(health.root_router)

    return app


app = create_app()
