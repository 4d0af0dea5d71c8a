"""
llmbridge - Prometheus Metrics

Metrics exposed:
- llmbridge_streams_total: Counter of finished streams by provider, model, finish reason
- llmbridge_stream_duration_seconds: Histogram of stream wall time
- llmbridge_time_to_first_token_seconds: Histogram of time to first content
- llmbridge_chunks_total: Counter of emitted stream chunks
- llmbridge_tool_calls_total: Counter of assembled tool calls by outcome
- llmbridge_tool_executions_total: Counter of local tool executions by status
- llmbridge_tokens_total: Counter of reported tokens (input/output/reasoning/cache)
- llmbridge_upstream_errors_total: Counter of provider errors by code
- llmbridge_active_streams: Gauge of streams currently being consumed

Usage:
    from llmbridge.observability.metrics import get_metrics, metrics_text

    metrics = get_metrics()
    metrics.record_stream(provider="openai", model="gpt-4o", finish_reason="stop", duration_seconds=1.2)

    # Expose in the host application's /metrics handler
    body = metrics_text()
"""

from typing import Optional

from prometheus_client import (
    Counter,
    Gauge,
    Histogram,
    CollectorRegistry,
    generate_latest,
    CONTENT_TYPE_LATEST,
    REGISTRY,
)

from ..core.models import GenerationUsage


class MetricsCollector:
    """
    Central metrics collector using Prometheus client.

    A registry can only hold one collector of each name, so collectors
    built against an already-used registry share the first one's metrics.
    """

    _instance: Optional["MetricsCollector"] = None
    _by_registry: dict = {}

    def __init__(self, registry: CollectorRegistry = REGISTRY):
        self.registry = registry

        existing = MetricsCollector._by_registry.get(id(registry))
        if existing is not None:
            self._copy_from(existing)
            return
        MetricsCollector._by_registry[id(registry)] = self

        self.streams_total = Counter(
            "llmbridge_streams_total",
            "Total number of finished streams",
            labelnames=["provider", "model", "finish_reason"],
            registry=registry,
        )

        # Generation streams typically range from 0.1s to 60s+
        self.stream_duration = Histogram(
            "llmbridge_stream_duration_seconds",
            "Stream duration in seconds",
            labelnames=["provider", "model"],
            buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 25.0, 50.0, 100.0, float("inf")),
            registry=registry,
        )

        self.time_to_first_token = Histogram(
            "llmbridge_time_to_first_token_seconds",
            "Time to first token in streaming responses",
            labelnames=["provider", "model"],
            buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0, float("inf")),
            registry=registry,
        )

        self.chunks_total = Counter(
            "llmbridge_chunks_total",
            "Total stream chunks emitted",
            labelnames=["provider"],
            registry=registry,
        )

        # outcome = complete/degraded/dropped/ignored
        self.tool_calls_total = Counter(
            "llmbridge_tool_calls_total",
            "Total tool calls assembled from streams",
            labelnames=["provider", "outcome"],
            registry=registry,
        )

        self.tool_executions_total = Counter(
            "llmbridge_tool_executions_total",
            "Total local tool executions",
            labelnames=["tool", "status"],
            registry=registry,
        )

        self.tool_execution_duration = Histogram(
            "llmbridge_tool_execution_duration_seconds",
            "Local tool execution duration",
            labelnames=["tool"],
            buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 30.0, float("inf")),
            registry=registry,
        )

        # type = input/output/reasoning/cache
        self.tokens_total = Counter(
            "llmbridge_tokens_total",
            "Total tokens reported by providers",
            labelnames=["provider", "model", "type"],
            registry=registry,
        )

        self.upstream_errors = Counter(
            "llmbridge_upstream_errors_total",
            "Total provider errors",
            labelnames=["provider", "code"],
            registry=registry,
        )

        self.active_streams = Gauge(
            "llmbridge_active_streams",
            "Number of streams currently being consumed",
            labelnames=["provider"],
            registry=registry,
        )

    @classmethod
    def get_instance(cls) -> "MetricsCollector":
        """Get singleton instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset_instance(cls):
        """Reset singleton (for testing)."""
        cls._instance = None
        cls._by_registry.clear()

    def _copy_from(self, other: "MetricsCollector"):
        self.streams_total = other.streams_total
        self.stream_duration = other.stream_duration
        self.time_to_first_token = other.time_to_first_token
        self.chunks_total = other.chunks_total
        self.tool_calls_total = other.tool_calls_total
        self.tool_executions_total = other.tool_executions_total
        self.tool_execution_duration = other.tool_execution_duration
        self.tokens_total = other.tokens_total
        self.upstream_errors = other.upstream_errors
        self.active_streams = other.active_streams

    def record_stream(
        self,
        provider: str,
        model: str,
        finish_reason: str,
        duration_seconds: float,
    ):
        """Record a finished stream."""
        self.streams_total.labels(
            provider=provider,
            model=model,
            finish_reason=finish_reason,
        ).inc()

        self.stream_duration.labels(
            provider=provider,
            model=model,
        ).observe(duration_seconds)

    def record_time_to_first_token(self, provider: str, model: str, ttft_seconds: float):
        """Record time to first token for a stream."""
        self.time_to_first_token.labels(provider=provider, model=model).observe(ttft_seconds)

    def record_chunk(self, provider: str):
        self.chunks_total.labels(provider=provider).inc()

    def record_tool_calls(
        self,
        provider: str,
        complete: int = 0,
        degraded: int = 0,
        dropped: int = 0,
        ignored: int = 0,
    ):
        """
        Record assembled tool calls of a stream.

        `ignored` counts tool-call fragments discarded because the
        request did not enable tools.
        """
        outcomes = (("complete", complete), ("degraded", degraded), ("dropped", dropped), ("ignored", ignored))
        for outcome, count in outcomes:
            if count:
                self.tool_calls_total.labels(provider=provider, outcome=outcome).inc(count)

    def record_tool_execution(self, tool: str, success: bool, duration_seconds: float):
        """Record a local tool execution."""
        self.tool_executions_total.labels(
            tool=tool,
            status="success" if success else "error",
        ).inc()
        self.tool_execution_duration.labels(tool=tool).observe(duration_seconds)

    def record_usage(self, provider: str, model: str, usage: GenerationUsage):
        """Record the token fields a provider reported."""
        for token_type, value in (
            ("input", usage.input_tokens),
            ("output", usage.output_tokens),
            ("reasoning", usage.reasoning_tokens),
            ("cache", usage.cache_tokens),
        ):
            if value:
                self.tokens_total.labels(provider=provider, model=model, type=token_type).inc(value)

    def record_upstream_error(self, provider: str, code: str):
        self.upstream_errors.labels(provider=provider, code=code).inc()

    def track_active_stream(self, provider: str) -> "ActiveStreamTracker":
        """Context manager to track streams being consumed."""
        return ActiveStreamTracker(self, provider)


class ActiveStreamTracker:
    """Context manager for tracking active streams."""

    def __init__(self, collector: MetricsCollector, provider: str):
        self.collector = collector
        self.provider = provider

    def __enter__(self):
        self.collector.active_streams.labels(provider=self.provider).inc()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.collector.active_streams.labels(provider=self.provider).dec()


_metrics_instance: Optional[MetricsCollector] = None


def setup_metrics(registry: CollectorRegistry = REGISTRY) -> MetricsCollector:
    """
    Setup metrics collection.

    Safe to call multiple times - returns existing instance.
    """
    global _metrics_instance

    if _metrics_instance is not None and _metrics_instance.registry is registry:
        return _metrics_instance

    _metrics_instance = MetricsCollector(registry)
    MetricsCollector._instance = _metrics_instance
    return _metrics_instance


def get_metrics() -> MetricsCollector:
    """Get the metrics collector instance, creating it on first use."""
    global _metrics_instance
    if _metrics_instance is None:
        _metrics_instance = MetricsCollector.get_instance()
    return _metrics_instance


def metrics_text(registry: CollectorRegistry = REGISTRY) -> bytes:
    """Prometheus exposition body for the host application's /metrics handler."""
    return generate_latest(registry)


METRICS_CONTENT_TYPE = CONTENT_TYPE_LATEST
