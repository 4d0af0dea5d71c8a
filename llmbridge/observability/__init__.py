"""
llmbridge - Observability Module

- Structured JSON logging with per-stream context injection
- Prometheus metrics (Counter, Histogram, Gauge)
- OpenTelemetry tracing of generations

Usage:
    from llmbridge.observability import get_logger, get_metrics, get_tracer

    logger = get_logger(__name__)
    metrics = get_metrics()
    tracer = get_tracer()
"""

from .logging import (
    LogContext,
    StructuredLogger,
    TimedOperation,
    bound_context,
    get_logger,
    setup_logging,
)
from .metrics import (
    MetricsCollector,
    get_metrics,
    metrics_text,
    setup_metrics,
)
from .tracing import (
    TracingManager,
    get_tracer,
    setup_tracing,
    end_generation_span,
    start_generation_span,
    trace_operation,
)

__all__ = [
    # Logging
    "LogContext",
    "StructuredLogger",
    "TimedOperation",
    "bound_context",
    "get_logger",
    "setup_logging",
    # Metrics
    "MetricsCollector",
    "get_metrics",
    "metrics_text",
    "setup_metrics",
    # Tracing
    "TracingManager",
    "get_tracer",
    "setup_tracing",
    "end_generation_span",
    "start_generation_span",
    "trace_operation",
]
