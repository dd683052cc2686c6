"""
Natours API — Application Package Initializer
===============================================

What: Marks the `natours` directory as a Python package.
Why:  Enables module imports like `from natours.config import settings`.
Who:  Used implicitly by Python's import system and explicitly by Alembic, pytest,
      uvicorn and the command-line scripts.

Architecture Note:
    The backend follows the same layered shape throughout:

    ┌─────────────────────────────────────┐
    │   Routes + Dependencies (API Layer) │  ← HTTP, auth chain, envelopes
    ├─────────────────────────────────────┤
    │         Services (Business Logic)   │  ← CRUD factory, query builder,
    │                                     │    credentials, statistics
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │        Database (Persistence)       │  ← Async SQLAlchemy sessions
    └─────────────────────────────────────┘

    Routes never touch SQL directly; services never touch Request objects.
"""

__version__ = "1.0.0"
