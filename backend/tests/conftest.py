"""
MailTrack Backend: Test Configuration (conftest.py)
=====================================================

What:  Shared pytest fixtures for the whole suite.
How:   Every test gets a fresh in-memory SQLite database (aiosqlite with a
       single shared connection), created from the ORM metadata. Services
       are exercised against it directly; API tests go through an HTTPX
       AsyncClient whose session dependency is bound to the same database.

Fixture Hierarchy (all function-scoped):
    engine → session_factory → db_session
                             └→ client (FastAPI app, get_db_session overridden)
    db_session → super_admin, rd_user, records_dept, finance_dept, courier

    Seeding fixtures commit, so data they create is visible to API calls.
    Tests that mix db_session and client must commit before calling the API.
"""

import os
import tempfile

# Settings are read at import time: configure before any mailtrack import
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["STORAGE_ROOT"] = tempfile.mkdtemp(prefix="mailtrack_test_")
os.environ["JWT_SECRET"] = "test-secret-not-for-production-use-0123456789"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["ENVIRONMENT"] = "test"

from typing import Dict

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import mailtrack.models  # noqa: F401
from mailtrack.database import Base, get_db_session
from mailtrack.models.courier import Courier
from mailtrack.models.enums import Priority, Role
from mailtrack.models.user import Department, User
from mailtrack.schemas.department import CourierCreate, DepartmentCreate
from mailtrack.schemas.letter import IncomingCreate, OutgoingCreate
from mailtrack.services.auth_service import auth_service, create_access_token
from mailtrack.services.courier_service import courier_service
from mailtrack.services.department_service import department_service

TEST_PASSWORD = "Secret123"

# Minimal JPEG: SOI + JFIF APP0 header + EOI
JPEG_BYTES = (
    b"\xff\xd8\xff\xe0\x00\x10JFIF\x00\x01\x01\x00\x00\x01\x00\x01\x00\x00"
    b"\xff\xd9"
)


def auth_headers(user: User) -> Dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user)}"}


# ══════════════════════════════════════════════════════════════════════════
# Database
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def engine():
    """
    In-memory SQLite shared through one connection (StaticPool).

    pysqlite's own transaction handling breaks SAVEPOINT; the two listeners
    hand BEGIN back to SQLAlchemy so begin_nested() behaves as on PostgreSQL.
    """
    test_engine = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)

    @event.listens_for(test_engine.sync_engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(test_engine.sync_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine
    await test_engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory):
    """HTTPX client for the FastAPI app, one committed session per request."""
    from mailtrack.main import app

    async def override_get_db_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_session] = override_get_db_session
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as test_client:
        yield test_client
    app.dependency_overrides.clear()


# ══════════════════════════════════════════════════════════════════════════
# Seed Data
# ══════════════════════════════════════════════════════════════════════════

async def _make_department(db: AsyncSession, name: str, code: str, username: str) -> Department:
    created = await department_service.create_with_account(
        db,
        DepartmentCreate(
            name=name,
            code=code,
            head=f"Head of {name}",
            contact="+1 555 0100",
            username=username,
            password=TEST_PASSWORD,
        ),
    )
    department = await department_service.get(db, created.department.id)
    await db.commit()
    return department


@pytest_asyncio.fixture
async def super_admin(db_session) -> User:
    user = await auth_service.create_user(db_session, "admin", TEST_PASSWORD, Role.SUPER_ADMIN.value)
    await db_session.commit()
    return user


@pytest_asyncio.fixture
async def rd_user(db_session) -> User:
    user = await auth_service.create_user(db_session, "rd_officer", TEST_PASSWORD, Role.RD_DEPARTMENT.value)
    await db_session.commit()
    return user


@pytest_asyncio.fixture
async def records_dept(db_session) -> Department:
    return await _make_department(db_session, "Records Office", "REC", "records")


@pytest_asyncio.fixture
async def finance_dept(db_session) -> Department:
    return await _make_department(db_session, "Finance", "FIN", "finance")


@pytest_asyncio.fixture
async def courier(db_session) -> Courier:
    created = await courier_service.create(
        db_session,
        CourierCreate(
            service_name="Blue Dart",
            code="BD",
            contact_person="Asha Rao",
            email="ops@bluedart.in",
            phone="+91 22 5555 0100",
            address="Andheri East, Mumbai",
        ),
    )
    await db_session.commit()
    return created


@pytest.fixture
def jpeg_bytes() -> bytes:
    return JPEG_BYTES


# ══════════════════════════════════════════════════════════════════════════
# Letter Payloads
# ══════════════════════════════════════════════════════════════════════════

def incoming_payload(department: Department, **overrides) -> IncomingCreate:
    fields = {
        "qr_code": "IN-0001",
        "sender": "Ministry of Finance",
        "to_department_id": department.id,
        "priority": Priority.MEDIUM,
        "subject": "Budget circular",
    }
    fields.update(overrides)
    return IncomingCreate(**fields)


def outgoing_payload(department: Department, **overrides) -> OutgoingCreate:
    fields = {
        "qr_code": "OUT-0001",
        "from_department_id": department.id,
        "recipient": "State Audit Office",
        "priority": Priority.HIGH,
        "subject": "Quarterly returns",
    }
    fields.update(overrides)
    return OutgoingCreate(**fields)
