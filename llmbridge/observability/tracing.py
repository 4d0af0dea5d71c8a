"""
llmbridge - OpenTelemetry Tracing

Each generation is recorded as a `llmbridge.generate` client span carrying
the provider, model, finish reason and token counts.

Without setup_tracing() the library uses whatever tracer provider the
host application installed (a no-op one if none), so spans cost nothing
unless someone is listening.

Usage:
    from llmbridge.observability.tracing import setup_tracing

    # Optional, only when the host application has no tracing of its own
    setup_tracing(otlp_endpoint="http://localhost:4317")
"""

import os
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource, SERVICE_NAME, SERVICE_VERSION
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    ConsoleSpanExporter,
    SimpleSpanProcessor,
    SpanExporter,
)
from opentelemetry.trace import SpanKind, Status, StatusCode

# Optional OTLP exporter (requires opentelemetry-exporter-otlp)
try:
    from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
    OTLP_AVAILABLE = True
except ImportError:
    OTLP_AVAILABLE = False

INSTRUMENTATION_NAME = "llmbridge"
INSTRUMENTATION_VERSION = "0.1.0"


class TracingManager:
    """Owns a tracer provider configured by this library."""

    _instance: Optional["TracingManager"] = None

    def __init__(
        self,
        service_name: str = "llmbridge",
        service_version: str = INSTRUMENTATION_VERSION,
        otlp_endpoint: Optional[str] = None,
        console_export: bool = False,
        exporter: Optional[SpanExporter] = None,
        set_global: bool = True,
    ):
        """
        Initialize tracing.

        Args:
            service_name: Name of the service
            service_version: Version of the service
            otlp_endpoint: OTLP collector endpoint (e.g., http://localhost:4317)
            console_export: Whether to export spans to console (for debugging)
            exporter: Extra exporter, flushed synchronously (tests use an in-memory one)
            set_global: Install the provider as the global tracer provider
        """
        resource = Resource.create({
            SERVICE_NAME: service_name,
            SERVICE_VERSION: service_version,
        })

        self.provider = TracerProvider(resource=resource)

        if otlp_endpoint and OTLP_AVAILABLE:
            self.provider.add_span_processor(
                BatchSpanProcessor(OTLPSpanExporter(endpoint=otlp_endpoint))
            )

        if console_export:
            self.provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))

        if exporter is not None:
            self.provider.add_span_processor(SimpleSpanProcessor(exporter))

        if set_global:
            trace.set_tracer_provider(self.provider)

        self.tracer = self.provider.get_tracer(INSTRUMENTATION_NAME, INSTRUMENTATION_VERSION)

    @classmethod
    def reset_instance(cls):
        """Reset singleton (for testing)."""
        cls._instance = None

    def get_tracer(self) -> trace.Tracer:
        return self.tracer

    def shutdown(self):
        """Shutdown the tracer provider."""
        self.provider.shutdown()


def setup_tracing(
    service_name: str = "llmbridge",
    service_version: str = INSTRUMENTATION_VERSION,
    otlp_endpoint: Optional[str] = None,
    console_export: bool = False,
    exporter: Optional[SpanExporter] = None,
    set_global: bool = True,
) -> TracingManager:
    """
    Configure a tracer provider for llmbridge spans.

    Reads OTEL_EXPORTER_OTLP_ENDPOINT and OTEL_CONSOLE_EXPORT when the
    corresponding arguments are not given.
    """
    if otlp_endpoint is None:
        otlp_endpoint = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")

    if os.getenv("OTEL_CONSOLE_EXPORT", "").lower() == "true":
        console_export = True

    TracingManager._instance = TracingManager(
        service_name=service_name,
        service_version=service_version,
        otlp_endpoint=otlp_endpoint,
        console_export=console_export,
        exporter=exporter,
        set_global=set_global,
    )
    return TracingManager._instance


def get_tracer() -> trace.Tracer:
    """Tracer from setup_tracing(), else from the global provider."""
    if TracingManager._instance is not None:
        return TracingManager._instance.get_tracer()
    return trace.get_tracer(INSTRUMENTATION_NAME, INSTRUMENTATION_VERSION)


def start_generation_span(provider: str, model: str) -> trace.Span:
    """
    Start the span of one streamed generation.

    The span is not made current: a stream is consumed across many
    suspensions of the caller, so the pipeline ends it explicitly.
    """
    return get_tracer().start_span(
        "llmbridge.generate",
        kind=SpanKind.CLIENT,
        attributes={
            "ai.provider": provider,
            "ai.model": model,
            "ai.operation": "stream",
        },
    )


def end_generation_span(
    span: trace.Span,
    attributes: Optional[Dict[str, Any]] = None,
    error: Optional[BaseException] = None,
    error_description: Optional[str] = None,
):
    """Set result attributes and status, then end the span."""
    for key, value in (attributes or {}).items():
        if value is not None:
            span.set_attribute(key, value)

    if error is not None:
        span.record_exception(error)
        span.set_status(Status(StatusCode.ERROR, str(error)))
    elif error_description is not None:
        span.set_status(Status(StatusCode.ERROR, error_description))
    else:
        span.set_status(Status(StatusCode.OK))

    span.end()


@contextmanager
def trace_operation(name: str, attributes: Optional[Dict[str, Any]] = None) -> Iterator[trace.Span]:
    """
    Current span around a plain (non-streaming) operation.

    Usage:
        with trace_operation("llmbridge.tool", {"ai.tool.name": "get_weather"}):
            result = await execute(...)
    """
    with get_tracer().start_as_current_span(
        name,
        kind=SpanKind.INTERNAL,
        attributes=attributes,
        record_exception=True,
        set_status_on_exception=True,
    ) as span:
        yield span
