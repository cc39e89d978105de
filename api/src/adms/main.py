"""ADMS API application: lifespan, error translation, health and routers."""
import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from adms.api import audits
from adms.core.config import settings
from adms.core.database import check_database_connection, close_database
from adms.core.errors import (
    NotFoundError,
    PersistenceError,
    QueryError,
    ReferentialIntegrityError,
)
from adms.core.logging import configure_logging, get_logger
from adms.core.middleware import CorrelationIdMiddleware
from adms.core.tracing import configure_tracing, instrument_fastapi_app
from adms.query.registrations import get_registry

configure_logging()
logger = get_logger(__name__)

SERVICE_NAME = "adms-api"
SERVICE_VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Tracing on startup; connection pool disposal on shutdown."""
    logger.info("Starting ADMS API", version=SERVICE_VERSION, environment=settings.environment)
    configure_tracing(SERVICE_VERSION)

    yield

    logger.info("Shutting down ADMS API")
    await close_database()


def _iso_now() -> str:
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


async def _probe_database() -> dict[str, Any]:
    started = time.perf_counter()
    reachable = await check_database_connection()
    return {
        "status": "healthy" if reachable else "unhealthy",
        "response_time_ms": round((time.perf_counter() - started) * 1000, 2),
        "timestamp": _iso_now(),
    }


def register_exception_handlers(app: FastAPI) -> None:
    """Translate domain errors into HTTP responses."""

    @app.exception_handler(QueryError)
    async def query_error_handler(request: Request, exc: QueryError) -> JSONResponse:
        logger.info("Rejected query input", error=str(exc), field=exc.field, path=request.url.path)
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": str(exc), "field": exc.field},
        )

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})

    @app.exception_handler(ReferentialIntegrityError)
    async def referential_integrity_handler(
        request: Request, exc: ReferentialIntegrityError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"detail": str(exc), "entity": exc.entity},
        )

    @app.exception_handler(PersistenceError)
    async def persistence_error_handler(request: Request, exc: PersistenceError) -> JSONResponse:
        logger.error("Persistence failure", error=str(exc), path=request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "A database error occurred"},
        )


def create_app() -> FastAPI:
    """Build the app: field mappings, middleware, error handlers, routes."""
    app = FastAPI(
        title="ADMS API",
        description="Document management audit trail with paged, sortable and shapeable listings",
        version=SERVICE_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # Mapping defects fail here, before the first request
    app.state.field_mappings = get_registry()

    app.add_middleware(CorrelationIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[audits.PAGINATION_HEADER, "X-Correlation-ID"],
    )

    register_exception_handlers(app)

    @app.get("/health", tags=["health"])
    async def health_check() -> dict[str, Any]:
        """Liveness plus a database round trip.

        Answers 200 either way; "degraded" means the database did not
        respond to SELECT 1.
        """
        database = await _probe_database()
        overall = "healthy" if database["status"] == "healthy" else "degraded"
        logger.info("Health check completed", status=overall, duration_ms=database["response_time_ms"])
        return {
            "status": overall,
            "service": SERVICE_NAME,
            "version": SERVICE_VERSION,
            "timestamp": _iso_now(),
            "checks": {"database": database},
        }

    app.include_router(audits.router, prefix="/api")
    instrument_fastapi_app(app)

    logger.info("FastAPI application created", cors_origins=settings.cors_origins_list)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "adms.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=not settings.is_production,
        log_config=None,
    )
