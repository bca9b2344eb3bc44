import os
from typing import AsyncGenerator

# Settings are read at import time by several modules; set test values first
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("RAZORPAY_WEBHOOK_SECRET", "whsec_test")

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from libs.auth.dependencies import get_current_user
from libs.common.config import get_settings
from libs.db.base import Base
from libs.db.session import get_async_db

# Import all models so metadata includes every table
from services.ledger_service import models as _ledger_models  # noqa: F401

from tests.auth import make_user

get_settings.cache_clear()
settings = get_settings()

TEST_DATABASE_URL = os.environ.get("TEST_DATABASE_URL", "sqlite+aiosqlite://")


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def test_engine():
    """
    Fresh schema per test. SQLite in-memory by default; point
    TEST_DATABASE_URL at Postgres to exercise row locks for real.
    """
    if TEST_DATABASE_URL.startswith("sqlite"):
        engine = create_async_engine(
            TEST_DATABASE_URL,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        engine = create_async_engine(TEST_DATABASE_URL, future=True)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    session_factory = async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    session = session_factory()
    try:
        yield session
    finally:
        await session.close()


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def ledger_app(db_session):
    from services.ledger_service.app.main import create_app

    app = create_app()
    app.dependency_overrides[get_async_db] = lambda: db_session
    yield app
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def ledger_client(ledger_app) -> AsyncGenerator[AsyncClient, None]:
    """Client authenticated as a creator unless a test overrides auth."""
    ledger_app.dependency_overrides[get_current_user] = lambda: make_user()
    async with AsyncClient(
        transport=ASGITransport(app=ledger_app), base_url="http://test"
    ) as client:
        yield client
