"""
MailTrack Backend: Application Package Initializer
====================================================

What: Marks the `mailtrack` directory as a Python package.
Who:  Imported by uvicorn (`mailtrack.main:app`), Alembic, and pytest.

Architecture Note:
    The backend is layered the same way throughout:

    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns, auth dependencies
    ├─────────────────────────────────────┤
    │         Services (Business Logic)   │  ← role filters, status rules, fan-out
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │        Database (Persistence)       │  ← Async SQLAlchemy sessions
    └─────────────────────────────────────┘
"""

__version__ = "1.0.0"
