"""
MailTrack Backend: Alembic Environment
========================================

What:  Applies the MailTrack schema (users, departments, couriers, letters,
       notifications) with the same async driver the API uses.
How:   The URL is taken from mailtrack.config.settings so alembic.ini never
       carries credentials. SQLite targets get batch mode, since ALTER TABLE
       there cannot drop or retype columns.
Who:   `alembic upgrade head` on deploy, `alembic revision --autogenerate`
       during development.
"""

import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import create_async_engine

import mailtrack.models  # noqa: F401  (registers every table on Base.metadata)
from mailtrack.config import settings
from mailtrack.database import Base

if context.config.config_file_name is not None:
    fileConfig(context.config.config_file_name)


def _configure(**options) -> None:
    context.configure(
        target_metadata=Base.metadata,
        compare_type=True,
        render_as_batch=settings.is_sqlite,
        **options,
    )


def _migrate(connection: Connection) -> None:
    _configure(connection=connection)
    with context.begin_transaction():
        context.run_migrations()


async def _migrate_online() -> None:
    engine = create_async_engine(settings.database_url, poolclass=pool.NullPool)
    try:
        async with engine.connect() as connection:
            await connection.run_sync(_migrate)
    finally:
        await engine.dispose()


if context.is_offline_mode():
    # `alembic upgrade head --sql`: print the DDL instead of running it
    _configure(
        url=settings.database_url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()
else:
    asyncio.run(_migrate_online())
