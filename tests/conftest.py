"""
Pytest configuration and fixtures.
"""

import os
import sys
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

# Add app to path
sys.path.append(os.getcwd())

# No external services in tests
os.environ.setdefault("DATABASE_URL", "")
os.environ.setdefault("OPENAI_API_KEY", "")
os.environ.setdefault("EMAIL_API_KEY", "")
os.environ.setdefault("CLOUDINARY_CLOUD_NAME", "")
os.environ.setdefault("PUBLIC_API_URL", "http://testserver")
os.environ.setdefault("ADMIN_API_KEY", "test-admin-key")

from app.clock import ManualClock  # noqa: E402
from app.database import Base  # noqa: E402
import app.models  # noqa: E402,F401

# Use in-memory SQLite for tests
TEST_DB_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture
async def test_engine():
    """Create async engine for tests. One shared connection per test."""
    engine = create_async_engine(
        TEST_DB_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def session_maker(test_engine):
    return async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False
    )


@pytest_asyncio.fixture
async def db(session_maker) -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database session for a test."""
    async with session_maker() as session:
        yield session
        await session.rollback()


@pytest.fixture
def session_factory(session_maker):
    """Drop-in for get_db_context in tick functions."""

    @asynccontextmanager
    async def factory():
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    return factory


@pytest.fixture
def clock():
    return ManualClock(datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def payload():
    return {
        "answers": {
            "gender": "Male",
            "genderConfirm": "Female",
            "ageRange": "25-34",
            "keyTraits": ["Kind", "Adventurous"],
            "loveLanguage": "Quality time",
        },
        "birthDetails": {"date": "1990-05-15", "time": "08:30", "city": "Austin"},
    }
