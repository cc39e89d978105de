"""Test application health and error translation."""
from unittest.mock import AsyncMock, patch

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from adms.core.errors import (
    InvalidPageParameterError,
    NotFoundError,
    PersistenceError,
    ReferentialIntegrityError,
)
from adms.main import SERVICE_NAME, SERVICE_VERSION, app, register_exception_handlers
from adms.query.mapping import FieldMappingRegistry


async def test_health_check(async_client: AsyncClient) -> None:
    """Test the health check endpoint."""
    with patch("adms.main.check_database_connection", new=AsyncMock(return_value=True)):
        response = await async_client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["service"] == SERVICE_NAME
    assert data["version"] == SERVICE_VERSION


async def test_health_check_response_structure(async_client: AsyncClient) -> None:
    """Test that health check response has correct structure."""
    with patch("adms.main.check_database_connection", new=AsyncMock(return_value=True)):
        response = await async_client.get("/health")

    data = response.json()
    assert set(data) == {"status", "service", "version", "timestamp", "checks"}

    db_check = data["checks"]["database"]
    assert db_check["status"] == "healthy"
    assert isinstance(db_check["response_time_ms"], (int, float))
    assert db_check["timestamp"].endswith("Z")


async def test_health_check_degraded(async_client: AsyncClient) -> None:
    """Test a failing database reports degraded, still with 200."""
    with patch("adms.main.check_database_connection", new=AsyncMock(return_value=False)):
        response = await async_client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "degraded"
    assert data["checks"]["database"]["status"] == "unhealthy"


def test_registry_frozen_at_startup() -> None:
    """Test the app carries a frozen field mapping registry."""
    registry = app.state.field_mappings
    assert isinstance(registry, FieldMappingRegistry)
    assert registry.frozen is True


class TestExceptionHandlers:
    """Test domain errors map to HTTP responses."""

    @pytest.fixture
    async def client(self) -> AsyncClient:
        errors_app = FastAPI()
        register_exception_handlers(errors_app)

        @errors_app.get("/query-error")
        async def query_error() -> None:
            raise InvalidPageParameterError("pageSize", 0)

        @errors_app.get("/not-found")
        async def not_found() -> None:
            raise NotFoundError("Matter with id 1 not found")

        @errors_app.get("/referential")
        async def referential() -> None:
            raise ReferentialIntegrityError("User", "42")

        @errors_app.get("/persistence")
        async def persistence() -> None:
            raise PersistenceError("database is locked")

        async with AsyncClient(transport=ASGITransport(app=errors_app), base_url="http://test") as client:
            yield client

    async def test_query_error_is_400(self, client: AsyncClient) -> None:
        """Test query errors name the offending parameter."""
        response = await client.get("/query-error")

        assert response.status_code == 400
        assert response.json()["field"] == "pageSize"

    async def test_not_found_is_404(self, client: AsyncClient) -> None:
        """Test missing subjects are 404."""
        response = await client.get("/not-found")

        assert response.status_code == 404
        assert response.json() == {"detail": "Matter with id 1 not found"}

    async def test_referential_is_422(self, client: AsyncClient) -> None:
        """Test referential errors name the missing entity."""
        response = await client.get("/referential")

        assert response.status_code == 422
        assert response.json()["entity"] == "User"

    async def test_persistence_is_500_without_details(self, client: AsyncClient) -> None:
        """Test store failures do not leak driver messages."""
        response = await client.get("/persistence")

        assert response.status_code == 500
        assert "locked" not in response.text
