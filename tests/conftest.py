"""Root test configuration - shared fixtures for all test modules.

IMPORTANT: Environment variables are set BEFORE any backend imports
so that config.py can load Settings without a .env file.
"""

from __future__ import annotations

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")  # In-memory SQLite
os.environ.setdefault("ENVIRONMENT", "testing")

# Now safe to import backend modules
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from backend.common.config import Settings, get_settings
from backend.common.models import Base
from backend.common.schemas import TimeSeriesPoint
from tests.factories import make_series

# ─── Clear cached settings so test env vars are used ───
get_settings.cache_clear()


# ─── Test Database ───


@pytest_asyncio.fixture
async def engine():
    """Create an async in-memory database with all tables."""
    test_engine = create_async_engine(
        "sqlite+aiosqlite://",
        echo=False,
        poolclass=StaticPool,
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    await test_engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the per-test engine."""
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


# ─── Test Settings ───


@pytest.fixture
def test_settings() -> Settings:
    return get_settings()


# ─── Sample Series ───


@pytest.fixture
def rising_series() -> list[TimeSeriesPoint]:
    """Five daily points 100, 110, ..., 140 from 2026-01-01."""
    return make_series([100.0, 110.0, 120.0, 130.0, 140.0])


@pytest.fixture
def constant_series() -> list[TimeSeriesPoint]:
    """90 days of a constant 250.0 net cash-flow from 2026-01-01."""
    return make_series([250.0] * 90)
