"""
Shared pytest configuration for rinkleague tests.

Runs against SQLite (aiosqlite) in a temporary directory by default, or against
TEST_DATABASE_URL when it is set (e.g. a PostgreSQL test database).

SAFETY: This module REFUSES to run against any database whose name does not
contain the substring "test". This prevents accidental drop of the development
or production database when environment variables are misconfigured.
"""

import os

# Must be set before the routes package is imported (rate limiter, email)
os.environ.setdefault("ENV", "test")
os.environ.setdefault("ENABLE_EMAIL", "false")

from datetime import timedelta  # noqa: E402
from typing import Optional  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy import select  # noqa: E402
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker  # noqa: E402
from sqlalchemy.pool import NullPool  # noqa: E402

from rinkleague.database import db  # noqa: E402
from rinkleague.database.db import Base  # noqa: E402
from rinkleague.database.models import Event, EventRegistration, User  # noqa: E402
from rinkleague.utils.datetime_utils import utcnow  # noqa: E402


def _check_test_database_url(url: str) -> str:
    """Raise RuntimeError unless the database name contains "test"."""
    db_name = url.rsplit("/", 1)[-1].split("?")[0]
    if "test" not in db_name.lower():
        raise RuntimeError(
            f"\n{'=' * 70}\n"
            f"  SAFETY: Refusing to run tests against database '{db_name}'.\n"
            f"  The database name must contain 'test' to prevent accidental\n"
            f"  data loss in development or production databases.\n\n"
            f"  Resolved URL: {url}\n\n"
            f"  Fix: set TEST_DATABASE_URL to a test database, e.g.:\n"
            f"    export TEST_DATABASE_URL=postgresql+asyncpg://.../rinkleague_test\n"
            f"{'=' * 70}"
        )
    return url


# Validated at import time so pytest fails immediately with a clear message
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL")
if TEST_DATABASE_URL:
    _check_test_database_url(TEST_DATABASE_URL)


@pytest_asyncio.fixture(scope="function")
async def test_engine(tmp_path):
    """Create a test database engine with fresh tables for each test."""
    url = TEST_DATABASE_URL or f"sqlite+aiosqlite:///{tmp_path / 'rinkleague_test.db'}"
    _check_test_database_url(url)

    # NullPool: every session gets its own connection, like separate requests.
    # The SQLite timeout lets concurrent writers wait for the roster lock.
    engine = create_async_engine(
        url,
        echo=False,
        poolclass=NullPool,
        connect_args={"timeout": 30} if url.startswith("sqlite") else {},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    # Code that opens its own sessions (API dependencies, scripts) uses the test engine
    test_session_maker = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )
    original_async_session_local = db.AsyncSessionLocal
    db.AsyncSessionLocal = test_session_maker

    yield engine

    db.AsyncSessionLocal = original_async_session_local
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(test_engine):
    """Session factory for tests that need several independent sessions."""
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def db_session(session_factory):
    """A database session for one test."""
    async with session_factory() as session:
        try:
            yield session
        finally:
            await session.rollback()
            await session.close()


@pytest_asyncio.fixture
async def make_user(session_factory):
    """Create and commit a user; returns its id."""
    counter = {"n": 0}

    async def _make_user(first_name: str = "Test", last_name: Optional[str] = None, **kwargs) -> int:
        counter["n"] += 1
        last_name = last_name or f"Player{counter['n']}"
        email = kwargs.pop("email", f"{first_name}.{last_name}@example.com".lower())
        async with session_factory() as session:
            user = User(
                email=email,
                first_name=first_name,
                last_name=last_name,
                **kwargs,
            )
            session.add(user)
            await session.commit()
            return user.id

    return _make_user


@pytest_asyncio.fixture
async def make_event(session_factory):
    """Create and commit an event starting tomorrow unless overridden; returns its id."""

    async def _make_event(**kwargs) -> int:
        values = {
            "name": "Tuesday Skate",
            "league": "B",
            "type": "league",
            "start_time": utcnow() + timedelta(days=1),
            "location": "Rink on the Beach",
            "max_players": None,
            "approval_needed": False,
        }
        values.update(kwargs)
        async with session_factory() as session:
            event = Event(**values)
            session.add(event)
            await session.commit()
            return event.id

    return _make_event


@pytest_asyncio.fixture
async def fetch_registrations(session_factory):
    """Read an event's registrations from a fresh session, keyed by user id."""

    async def _fetch(event_id: int):
        async with session_factory() as session:
            result = await session.execute(
                select(EventRegistration).where(EventRegistration.event_id == event_id)
            )
            return {reg.user_id: reg for reg in result.scalars().all()}

    return _fetch


@pytest.fixture
def sent_emails(monkeypatch):
    """Capture promotion emails instead of sending them; yields (to, event_name) pairs."""
    sent = []

    async def fake_send(to, event_name, start_time_display, location_display, venue_key=None):
        sent.append((to, event_name))
        return {"ok": True}

    monkeypatch.setattr("rinkleague.services.email_service.send_waitlist_promoted_email", fake_send)
    return sent
