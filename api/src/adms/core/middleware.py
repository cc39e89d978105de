"""Correlation ID middleware.

Every request gets an id that is echoed in X-Correlation-ID, bound into the
structlog context and attached to the request span, so one audit listing can
be followed from the access log to the database spans.
"""
import time
import uuid
from collections.abc import Awaitable, Callable
from contextvars import ContextVar

import structlog
from fastapi import Request, Response
from opentelemetry.trace.status import Status, StatusCode
from starlette.middleware.base import BaseHTTPMiddleware

from adms.core.logging import get_logger
from adms.core.tracing import create_span, get_tracer

CORRELATION_ID_HEADER = "X-Correlation-ID"
_MAX_CORRELATION_ID_LENGTH = 128

correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")

logger = get_logger(__name__)
tracer = get_tracer(__name__)


def _incoming_correlation_id(request: Request) -> str | None:
    value = request.headers.get(CORRELATION_ID_HEADER, "").strip()
    if not value or len(value) > _MAX_CORRELATION_ID_LENGTH or not value.isprintable():
        return None
    return value


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Reuse a sane upstream X-Correlation-ID, or generate a UUID4."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        correlation_id = _incoming_correlation_id(request) or str(uuid.uuid4())
        correlation_id_var.set(correlation_id)
        structlog.contextvars.bind_contextvars(correlation_id=correlation_id)

        span_attributes = {
            "http.method": request.method,
            "http.route": request.url.path,
            "correlation.id": correlation_id,
        }
        started = time.perf_counter()
        try:
            with create_span(tracer, f"{request.method} {request.url.path}", **span_attributes) as span:
                logger.info(
                    "Request started",
                    method=request.method,
                    path=request.url.path,
                    query_params=str(request.query_params) if request.query_params else None,
                )
                try:
                    response = await call_next(request)
                except Exception as exc:
                    span.record_exception(exc)
                    span.set_status(Status(StatusCode.ERROR, str(exc)))
                    logger.error(
                        "Request failed",
                        error=str(exc),
                        error_type=type(exc).__name__,
                        duration_ms=_elapsed_ms(started),
                        exc_info=True,
                    )
                    raise

                response.headers[CORRELATION_ID_HEADER] = correlation_id
                span.set_attribute("http.status_code", response.status_code)
                if response.status_code >= 500:
                    span.set_status(Status(StatusCode.ERROR, f"HTTP {response.status_code}"))
                else:
                    span.set_status(Status(StatusCode.OK))

                logger.info(
                    "Request completed",
                    status_code=response.status_code,
                    duration_ms=_elapsed_ms(started),
                )
                return response
        finally:
            structlog.contextvars.clear_contextvars()


def get_correlation_id() -> str:
    """Correlation id of the current request, or "" outside one."""
    return correlation_id_var.get("")
