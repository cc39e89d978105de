"""Async SQLAlchemy engine, session factory and the FastAPI session dependency."""

from typing import Any, AsyncGenerator

from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from adms.core.config import settings
from adms.core.logging import get_logger

logger = get_logger(__name__)


class DBErrorMessage:
    """Error messages raised by this module."""
    CREATE_ENGINE_NO_URL = "DATABASE_URL is not configured"
    CREATE_ENGINE_MIN_DB_POOL_SIZE = "DATABASE_POOL_SIZE must be at least 1"
    CREATE_ENGINE_NEGATIVE_MAX_OVERFLOW = "DATABASE_MAX_OVERFLOW must be non-negative"
    CREATE_ENGINE_FAILED = "Failed to create database engine"

    GET_DB_SESSION_FAILED = "Failed to create database session"
    CLOSE_DATABASE_FAILED = "Failed to close database connections"


def _check_settings() -> None:
    if not settings.database_url:
        raise ValueError(DBErrorMessage.CREATE_ENGINE_NO_URL)
    if settings.database_pool_size < 1:
        raise ValueError(DBErrorMessage.CREATE_ENGINE_MIN_DB_POOL_SIZE)
    if settings.database_max_overflow < 0:
        raise ValueError(DBErrorMessage.CREATE_ENGINE_NEGATIVE_MAX_OVERFLOW)


def _safe_url(url: str) -> str:
    # Drop credentials; keep driver, host and database
    scheme, _, rest = url.partition("://")
    return f"{scheme}://{rest.rpartition('@')[2]}"


def create_engine() -> AsyncEngine:
    """Build the AsyncEngine described by settings.

    Server databases get a sized queue pool with pre-ping and hourly
    recycling. SQLite uses SQLAlchemy's default pool.

    Raises:
        ValueError: If the settings are missing or inconsistent, or the
            driver rejects the URL
    """
    _check_settings()

    options: dict[str, Any] = {"echo": False}
    if not settings.is_sqlite:
        options.update(
            pool_size=settings.database_pool_size,
            max_overflow=settings.database_max_overflow,
            pool_pre_ping=True,
            pool_recycle=3600,
        )

    logger.info(
        "Creating async database engine",
        url=_safe_url(settings.database_url),
        pooled=not settings.is_sqlite,
    )
    try:
        return create_async_engine(settings.database_url, **options)
    except Exception as e:
        logger.error("Database engine rejected configuration", error=str(e))
        raise ValueError(DBErrorMessage.CREATE_ENGINE_FAILED) from e


def _enable_sqlite_foreign_keys(dbapi_connection: Any, connection_record: Any) -> None:
    # SQLite ignores REFERENCES clauses unless asked per connection
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


engine: AsyncEngine = create_engine()
if settings.is_sqlite:
    event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)

async_session_maker: async_sessionmaker[AsyncSession] = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: one session per request, rolled back if the handler raises.

    Raises:
        RuntimeError: If the session cannot be created
    """
    try:
        session = async_session_maker()
    except Exception as e:
        logger.error("Could not open database session", error=str(e))
        raise RuntimeError(DBErrorMessage.GET_DB_SESSION_FAILED) from e

    async with session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def check_database_connection() -> bool:
    """Run SELECT 1. Never raises; used by the health endpoint."""
    try:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error("Database connection check failed", error=str(e))
        return False


async def close_database() -> None:
    """Dispose the engine's pool at shutdown.

    Raises:
        RuntimeError: If the pool cannot be disposed
    """
    try:
        logger.info("Closing database connections")
        await engine.dispose()
    except Exception as e:
        logger.error("Error closing database connections", error=str(e))
        raise RuntimeError(DBErrorMessage.CLOSE_DATABASE_FAILED) from e
