"""OpenTelemetry wiring.

Spans are exported over OTLP/gRPC when OTEL_ENABLED is true and we are not
under pytest. When tracing is off the decorators return the function
unchanged, so there is no per-call overhead.
"""
import contextlib
import functools
import os
from collections.abc import Iterator
from typing import Any, Callable, TypeVar

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.trace.status import Status, StatusCode

from adms.core.config import settings

F = TypeVar("F", bound=Callable[..., Any])

SERVICE_NAMESPACE = "adms"


def is_tracing_enabled() -> bool:
    if "pytest" in os.environ.get("_", "") or os.environ.get("PYTEST_CURRENT_TEST"):
        return False
    return settings.otel_enabled


def configure_tracing(service_version: str = "0.1.0") -> None:
    """Install the global tracer provider with an OTLP exporter."""
    if not is_tracing_enabled():
        return

    provider = TracerProvider(resource=Resource.create({
        "service.name": settings.otel_service_name,
        "service.namespace": SERVICE_NAMESPACE,
        "service.version": service_version,
        "deployment.environment": settings.environment,
    }))
    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(
        endpoint=settings.otel_exporter_otlp_endpoint,
        insecure=not settings.is_production,
    )))
    trace.set_tracer_provider(provider)


def get_tracer(name: str) -> trace.Tracer:
    return trace.get_tracer(name)


def instrument_fastapi_app(app: Any) -> None:
    if is_tracing_enabled():
        FastAPIInstrumentor.instrument_app(app)


def _set_attributes(span: Any, attributes: dict[str, Any]) -> None:
    for key, value in attributes.items():
        if value is not None:
            span.set_attribute(key, str(value))


@contextlib.contextmanager
def _span(tracer: trace.Tracer, name: str, attributes: dict[str, Any]) -> Iterator[Any]:
    """Start a span, tag it, and mark it OK or ERROR on the way out."""
    with tracer.start_as_current_span(name, record_exception=False, set_status_on_exception=False) as span:
        _set_attributes(span, attributes)
        try:
            yield span
        except Exception as exc:
            span.record_exception(exc)
            span.set_status(Status(StatusCode.ERROR, str(exc)))
            raise
        else:
            span.set_status(Status(StatusCode.OK))


def create_span(tracer: trace.Tracer, name: str, **attributes: Any) -> Any:
    """Context manager yielding a span, or a no-op stand-in when tracing is off.

    Unlike the decorators, the caller sets the final status itself.
    """
    if not is_tracing_enabled():
        return _NoOpSpan()

    @contextlib.contextmanager
    def _attributed() -> Iterator[Any]:
        with tracer.start_as_current_span(name) as span:
            _set_attributes(span, attributes)
            yield span

    return _attributed()


def trace_async(
    span_name: str | None = None,
    tracer_name: str | None = None,
    **span_attributes: Any
) -> Callable[[F], F]:
    """Wrap a coroutine function in a span.

    Example:
        @trace_async("audit.record_transfer", component="audit")
        async def record_transfer(...) -> TransferEvent:
            ...
    """
    def decorator(func: F) -> F:
        if not is_tracing_enabled():
            return func
        tracer = get_tracer(tracer_name or func.__module__)
        name = span_name or func.__qualname__

        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            with _span(tracer, name, span_attributes):
                return await func(*args, **kwargs)

        return wrapper  # type: ignore
    return decorator


def trace_sync(
    span_name: str | None = None,
    tracer_name: str | None = None,
    **span_attributes: Any
) -> Callable[[F], F]:
    """Wrap a plain function in a span.

    Example:
        @trace_sync("query.shape_data", component="query")
        def shape_data(items, shape_type, fields) -> list[dict]:
            ...
    """
    def decorator(func: F) -> F:
        if not is_tracing_enabled():
            return func
        tracer = get_tracer(tracer_name or func.__module__)
        name = span_name or func.__qualname__

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            with _span(tracer, name, span_attributes):
                return func(*args, **kwargs)

        return wrapper  # type: ignore
    return decorator


def _db_system() -> str:
    # "postgresql+asyncpg://..." -> "postgresql"
    return settings.database_url.partition(":")[0].partition("+")[0]


def trace_database(operation: str | None = None) -> Callable[[F], F]:
    """trace_async with the db.* attributes set.

    Args:
        operation: Span and db.operation name (default: the function's name)
    """
    def decorator(func: F) -> F:
        op_name = operation or func.__name__
        return trace_async(
            op_name,
            **{"db.operation": op_name, "db.system": _db_system(), "component": "database"},
        )(func)
    return decorator


class _NoOpSpan:
    """Stands in for a span when tracing is off."""

    def __enter__(self) -> "_NoOpSpan":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        return None

    def set_attribute(self, key: str, value: Any) -> None:
        pass

    def set_status(self, status: Any) -> None:
        pass

    def record_exception(self, exception: Exception) -> None:
        pass
