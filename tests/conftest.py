"""Shared fixtures: in-memory SQLite database and activity builders."""
import os

# Must be set before dailypuzzle.db builds its engine
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from dailypuzzle.cache import AnalyticsCache
from dailypuzzle.db import get_db
from dailypuzzle.main import app
from dailypuzzle.migrations import run_migrations
from dailypuzzle.schemas import ActivityRecord


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await run_migrations(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
async def client(session_maker):
    """HTTP client against the app, backed by the in-memory database."""

    async def override_get_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.state.analytics_cache = AnalyticsCache()
    app.state.resync_required = False
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


def make_activity(date: str, **fields) -> ActivityRecord:
    """Build an activity record with sensible solved defaults."""
    data = {
        "difficulty": "easy",
        "solved": True,
        "attempts": 1,
        "time_taken": 30,
        "score": 70,
    }
    data.update(fields)
    if not data["solved"]:
        data["score"] = 0
    return ActivityRecord(date=date, puzzle_seed=date, **data)


@pytest.fixture
def activity():
    return make_activity
