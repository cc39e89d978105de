"""Fixtures shared by the whole suite: a per-test database, seed data and an HTTP client."""

import os
from collections.abc import AsyncGenerator

# Must run before adms is imported: settings, the engine and tracing read these
os.environ["ENVIRONMENT"] = "testing"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["OTEL_ENABLED"] = "false"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from adms.core.config import Settings
from adms.core.database import get_db
from adms.main import app
from adms.models.base import Base
from factories import SeedData, seed_reference_data


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    return Settings(environment="testing", log_level="WARNING")


# ===== Database =====


@pytest_asyncio.fixture
async def test_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Fresh in-memory schema per test.

    StaticPool pins the one in-memory connection, so every session of the
    test sees the same database and commits stay local to the test.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Session configured like the application's (no expiry on commit, no autoflush)."""
    make_session = async_sessionmaker(test_engine, expire_on_commit=False, autoflush=False)
    async with make_session() as session:
        yield session


@pytest_asyncio.fixture
async def seed(db_session: AsyncSession) -> SeedData:
    """Activity vocabularies, two users and one matter/document/revision chain."""
    return await seed_reference_data(db_session)


# ===== HTTP =====


@pytest_asyncio.fixture
async def async_client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """AsyncClient against the app, with get_db answering the test session.

    Example:
        async def test_health(async_client: AsyncClient):
            response = await async_client.get("/health")
            assert response.status_code == 200
    """

    async def use_test_session() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = use_test_session
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            yield client
    finally:
        app.dependency_overrides.pop(get_db, None)
