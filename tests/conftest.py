"""
Natours API — Test Configuration (conftest.py)
================================================

What:  Shared pytest fixtures for the entire test suite.
Why:   Provides reusable test infrastructure (a real SQLite database, an API
       client, user/tour factories and a mocked mailer).
How:   pytest auto-discovers conftest.py and makes fixtures available to all
       tests. The environment is configured before any natours module is
       imported, because settings are read once at import time.

Fixture Hierarchy:
    Function-scoped (created fresh for each test):
    ├── database:     Empty schema in a temporary SQLite file, dropped afterwards
    ├── db_session:   AsyncSession on that database
    ├── client:       HTTPX AsyncClient talking to the FastAPI app
    ├── make_user:    Factory creating users (any role) through the user service
    ├── make_tour:    Factory creating tours (secret ones too) through the tour service
    ├── auth_headers: user → Authorization header with a fresh session token
    └── mock_email:   AsyncMock in place of the SMTP sender
"""

import itertools
import os
import tempfile
from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient


# ══════════════════════════════════════════════════════════════════════════
# Environment Setup
# ══════════════════════════════════════════════════════════════════════════

# Override settings for testing BEFORE any natours imports
_TEST_DIR = tempfile.mkdtemp(prefix="natours_test_")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_DIR}/test.db"
os.environ["JWT_SECRET"] = "test-secret-key-that-is-long-enough-for-hs256"
os.environ["ENVIRONMENT"] = "development"
os.environ["BCRYPT_ROUNDS"] = "4"  # Hashing speed over strength in tests
os.environ["RATE_LIMIT_REQUESTS"] = "100000"
os.environ["LOG_LEVEL"] = "WARNING"  # Reduce noise during tests

from natours.database import Base, async_session_factory, dispose_engine, engine  # noqa: E402
from natours.services.credentials import issue_token  # noqa: E402
from natours.services.tour_service import tour_service  # noqa: E402
from natours.services.user_service import user_service  # noqa: E402

import natours.models  # noqa: E402,F401


TOUR_PAYLOAD = {
    "duration": 5,
    "maxGroupSize": 10,
    "difficulty": "easy",
    "price": 500,
    "summary": "Breathtaking hike through the national park",
    "description": "Five days of hiking, camping and cooking on open fire.",
    "imageCover": "tour-cover.jpg",
    "images": ["tour-1.jpg", "tour-2.jpg"],
    "startLocation": {
        "type": "Point",
        "coordinates": [-116.214531, 51.417611],
        "address": "224 Banff Ave, Banff, AB, Canada",
        "description": "Banff, CAN",
    },
    "locations": [
        {"type": "Point", "coordinates": [-116.214531, 51.417611], "description": "Banff", "day": 1}
    ],
    "startDates": ["2021-04-25T09:00:00Z", "2021-07-20T09:00:00Z"],
}


# ══════════════════════════════════════════════════════════════════════════
# Function-Scoped Fixtures (created fresh for each test)
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def database():
    """
    Creates every table before the test and drops them afterwards.

    The engine is disposed at teardown because its pooled connection belongs
    to the event loop of the test that opened it.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await dispose_engine()


@pytest_asyncio.fixture
async def db_session(database):
    async with async_session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(database):
    """
    Provides an async HTTP test client for endpoint testing.

    Usage:
        async def test_health(client):
            response = await client.get("/health")
            assert response.status_code == 200
    """
    from natours.main import app

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture
def make_user(database):
    """
    Factory for users. Each call gets a unique name and email.

    Usage:
        admin = await make_user(role="admin")
        guide = await make_user(role="guide", name="Miyah Myles")
    """
    counter = itertools.count(1)

    async def _make_user(role="user", password="pass1234", **overrides):
        n = next(counter)
        data = {
            "name": f"Test User {n}",
            "email": f"user{n}@example.com",
            "role": role,
            "password": password,
            **overrides,
        }
        async with async_session_factory() as session:
            return await user_service.create(session, data)

    return _make_user


@pytest.fixture
def make_tour(database):
    """Factory for tours built from TOUR_PAYLOAD (secretTour=True works too)."""
    counter = itertools.count(1)

    async def _make_tour(**overrides):
        data = {**TOUR_PAYLOAD, "name": f"The Test Tour Number {next(counter)}", **overrides}
        async with async_session_factory() as session:
            return await tour_service.create(session, data)

    return _make_tour


@pytest.fixture
def auth_headers():
    def _auth_headers(user):
        return {"Authorization": f"Bearer {issue_token(user.id)}"}

    return _auth_headers


@pytest.fixture
def mock_email():
    """Replaces SMTP delivery; inspect `mock_email.await_args` for the sent text."""
    from natours.services.email_service import email_service

    with patch.object(email_service, "send", new=AsyncMock()) as send:
        yield send


@pytest.fixture
def tour_payload():
    """Request body for POST /tours; keyword arguments override fields."""

    def _tour_payload(**overrides):
        return {**TOUR_PAYLOAD, "name": "The Forest Hiker", **overrides}

    return _tour_payload
