"""
OpenTelemetry setup for the MCP servers.

Spans cover tool calls (``mcp.tool.<name>``), session creation
(``mcp.session.open``) and, when instrumentation is enabled, every FastAPI
request.
"""
import functools
import inspect
import os
import sys
from typing import Any, Dict, Optional

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import DEPLOYMENT_ENVIRONMENT, SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.trace.status import Status, StatusCode


def _console_exporter_enabled(environment: str) -> bool:
    # Never under pytest: the exporter thread writes after capture ends
    if "pytest" in sys.modules or environment != "development":
        return False
    return os.getenv("ENABLE_CONSOLE_EXPORTERS", "false").lower() == "true"


def setup_tracing(
    service_name: str,
    environment: str = "development",
    otlp_endpoint: Optional[str] = None,
    service_version: str = "1.0.0",
) -> trace.Tracer:
    """
    Install a global tracer provider for one MCP server.

    Args:
        service_name: MCP server name, e.g. ``poshcare-day-server``
        environment: Deployment environment
        otlp_endpoint: OTLP gRPC endpoint; falls back to OTEL_EXPORTER_OTLP_ENDPOINT
        service_version: Server version reported in the resource
    """
    provider = TracerProvider(resource=Resource.create({
        SERVICE_NAME: service_name,
        SERVICE_VERSION: service_version,
        DEPLOYMENT_ENVIRONMENT: environment,
    }))

    if _console_exporter_enabled(environment):
        provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))

    endpoint = otlp_endpoint or os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")
    if endpoint:
        provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint)))

    trace.set_tracer_provider(provider)
    return trace.get_tracer(service_name, service_version)


def instrument_fastapi(app):
    """Create a server span per HTTP request, /mcp included."""
    FastAPIInstrumentor.instrument_app(app)
    return app


def get_tracer(name: str = None) -> trace.Tracer:
    return trace.get_tracer(name or __name__)


def trace_span(
    name: Optional[str] = None,
    attributes: Optional[Dict[str, Any]] = None,
    kind: trace.SpanKind = trace.SpanKind.INTERNAL,
    record_exception: bool = True,
):
    """
    Run the decorated function (sync or async) inside a span.

    The span is named ``name`` or, when omitted, ``<module>.<function>``.
    Exceptions are recorded on the span and re-raised.
    """
    def decorator(func):
        span_name = name or f"{func.__module__}.{func.__name__}"

        def start_span():
            return get_tracer(func.__module__).start_as_current_span(
                span_name, kind=kind, attributes=attributes or {}
            )

        def mark_failed(span, exc: Exception) -> None:
            if record_exception:
                span.record_exception(exc)
                span.set_status(Status(StatusCode.ERROR, str(exc)))

        if inspect.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(*args, **kwargs):
                with start_span() as span:
                    try:
                        return await func(*args, **kwargs)
                    except Exception as e:
                        mark_failed(span, e)
                        raise
            return async_wrapper

        @functools.wraps(func)
        def sync_wrapper(*args, **kwargs):
            with start_span() as span:
                try:
                    return func(*args, **kwargs)
                except Exception as e:
                    mark_failed(span, e)
                    raise
        return sync_wrapper

    return decorator


__all__ = [
    'setup_tracing',
    'get_tracer',
    'trace_span',
    'instrument_fastapi',
]
