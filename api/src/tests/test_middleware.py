"""Tests for correlation ID middleware."""
import uuid
from unittest.mock import MagicMock, patch

import pytest
from fastapi import FastAPI, HTTPException
from fastapi.testclient import TestClient

from adms.core.middleware import (
    CORRELATION_ID_HEADER,
    CorrelationIdMiddleware,
    correlation_id_var,
    get_correlation_id,
)


class TestCorrelationIdMiddleware:
    """Test suite for CorrelationIdMiddleware functionality."""

    @pytest.fixture
    def app(self) -> FastAPI:
        """Create a test FastAPI app with CorrelationIdMiddleware."""
        app = FastAPI()
        app.add_middleware(CorrelationIdMiddleware)

        @app.get("/test")
        async def test_endpoint() -> dict[str, str]:
            return {"message": "test", "correlation_id": get_correlation_id()}

        @app.get("/missing")
        async def missing_endpoint() -> None:
            raise HTTPException(status_code=404, detail="nope")

        @app.get("/error")
        async def error_endpoint() -> None:
            raise ValueError("Test error")

        return app

    @pytest.fixture
    def client(self, app: FastAPI) -> TestClient:
        """Create test client with the app."""
        return TestClient(app, raise_server_exceptions=False)

    def test_correlation_id_generated(self, client: TestClient) -> None:
        """Test a UUID4 correlation id is generated when none is sent."""
        response = client.get("/test")

        assert response.status_code == 200
        correlation_id = response.headers[CORRELATION_ID_HEADER]
        assert uuid.UUID(correlation_id).version == 4

    def test_incoming_correlation_id_reused(self, client: TestClient) -> None:
        """Test an upstream correlation id is echoed and visible to the endpoint."""
        response = client.get("/test", headers={CORRELATION_ID_HEADER: "upstream-123"})

        assert response.headers[CORRELATION_ID_HEADER] == "upstream-123"
        assert response.json()["correlation_id"] == "upstream-123"

    def test_oversized_correlation_id_replaced(self, client: TestClient) -> None:
        """Test an unreasonably long header is replaced with a fresh id."""
        response = client.get("/test", headers={CORRELATION_ID_HEADER: "x" * 500})

        correlation_id = response.headers[CORRELATION_ID_HEADER]
        assert correlation_id != "x" * 500
        uuid.UUID(correlation_id)

    def test_correlation_id_unique_per_request(self, client: TestClient) -> None:
        """Test each request gets its own id."""
        first = client.get("/test").headers[CORRELATION_ID_HEADER]
        second = client.get("/test").headers[CORRELATION_ID_HEADER]
        assert first != second

    def test_status_codes_preserved(self, client: TestClient) -> None:
        """Test the middleware does not change response status codes."""
        response = client.get("/missing")

        assert response.status_code == 404
        assert CORRELATION_ID_HEADER in response.headers

    @patch("adms.core.middleware.logger")
    def test_request_logged(self, mock_logger: MagicMock, client: TestClient) -> None:
        """Test request start and completion are logged."""
        client.get("/test?pageNumber=2")

        messages = [call.args[0] for call in mock_logger.info.call_args_list]
        assert "Request started" in messages
        assert "Request completed" in messages

        started = mock_logger.info.call_args_list[0]
        assert started.kwargs["query_params"] == "pageNumber=2"

    @patch("adms.core.middleware.logger")
    def test_error_request_logged(self, mock_logger: MagicMock, client: TestClient) -> None:
        """Test unhandled errors are logged before propagating."""
        response = client.get("/error")

        assert response.status_code == 500
        mock_logger.error.assert_called_once()
        assert mock_logger.error.call_args.kwargs["error_type"] == "ValueError"

    @patch("adms.core.middleware.structlog.contextvars.clear_contextvars")
    def test_structlog_context_cleared_after_request(
        self, mock_clear: MagicMock, client: TestClient
    ) -> None:
        """Test request-bound log context is cleared afterwards."""
        client.get("/test")
        mock_clear.assert_called()

    def test_get_correlation_id_outside_request(self) -> None:
        """Test the accessor returns an empty string with no request context."""
        token = correlation_id_var.set("")
        try:
            assert get_correlation_id() == ""
        finally:
            correlation_id_var.reset(token)
