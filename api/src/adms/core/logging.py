"""structlog setup.

Every log line carries the service name, environment and, inside a request,
the correlation id bound by CorrelationIdMiddleware. JSON is rendered in
production and under pytest; a console renderer is used otherwise.
"""
import logging
import os
import sys

import structlog
from structlog.types import EventDict, Processor

from adms.core.config import settings

# stdlib loggers that are too chatty at INFO for an audit API
_NOISY_LOGGERS = ("sqlalchemy.engine", "aiosqlite", "uvicorn.access")


def add_service_context(logger: logging.Logger, method_name: str, event_dict: EventDict) -> EventDict:
    event_dict.setdefault("service", settings.otel_service_name)
    event_dict.setdefault("environment", settings.environment)
    return event_dict


def _wants_json() -> bool:
    under_pytest = "pytest" in sys.modules or bool(os.environ.get("PYTEST_CURRENT_TEST"))
    return settings.log_format == "json" or settings.is_production or under_pytest


def _renderers() -> list[Processor]:
    if _wants_json():
        # JSONRenderer serialises exc_info itself
        return [structlog.processors.JSONRenderer(default=str)]
    return [structlog.processors.format_exc_info, structlog.dev.ConsoleRenderer()]


def configure_logging() -> None:
    """Configure structlog and the stdlib root logger from settings."""
    level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            add_service_context,
            structlog.processors.StackInfoRenderer(),
            *_renderers(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.BoundLogger:
    return structlog.get_logger(name)
