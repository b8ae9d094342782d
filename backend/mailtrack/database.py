"""
MailTrack Backend: Database Session Management
================================================

What:  Async SQLAlchemy engine, the declarative Base, and the per-request
       session dependency.
How:   One engine per process. PostgreSQL gets a bounded, pre-pinged pool
       sized from settings; SQLite URLs (local runs, tests) keep the
       dialect's default pool. Each request's session commits when the
       route returns and rolls back when it raises. SQLAlchemy failures
       leave as DatabaseError, which the API answers with a generic 500.
"""

import logging
from typing import Any, AsyncGenerator, Dict

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from mailtrack.config import settings
from mailtrack.exceptions import DatabaseError

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Metadata shared by every model; read by Alembic and by the test suite's create_all."""


def _pool_options() -> Dict[str, Any]:
    if settings.is_sqlite:
        return {}
    return {
        "pool_size": settings.db_pool_size,
        "max_overflow": settings.db_max_overflow,
        "pool_pre_ping": settings.db_pool_pre_ping,
        "pool_recycle": 3600,
    }


engine = create_async_engine(
    settings.database_url,
    echo=settings.log_level == "DEBUG",
    **_pool_options(),
)

# Loaded attributes survive commit so responses can be built afterwards
async_session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency: one session per request, committed on success.

        @router.get("/incoming")
        async def list_incoming(db: AsyncSession = Depends(get_db_session)):
            ...
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except SQLAlchemyError as e:
            await session.rollback()
            logger.exception("Database operation failed")
            raise DatabaseError(context={"error": type(e).__name__}) from e
        except Exception:
            await session.rollback()
            raise


async def dispose_engine() -> None:
    """Closes pooled connections on shutdown (app lifespan)."""
    await engine.dispose()
