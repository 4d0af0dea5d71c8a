"""
llmbridge - Structured JSON Logging

Structured logging with automatic context injection.

Features:
- JSON-formatted logs for easy parsing
- Per-stream context (stream_id, provider, model) via contextvars
- Level and format configurable via environment
- Sensitive field redaction (api keys never reach the log)

Usage:
    from llmbridge.observability.logging import setup_logging, get_logger

    setup_logging(level="DEBUG")

    logger = get_logger(__name__)
    logger.info("Stream finished", finish_reason="stop")

Output:
    {"timestamp": "2026-01-15T10:30:00+00:00", "level": "INFO",
     "logger": "llmbridge.streaming.pipeline", "message": "Stream finished",
     "finish_reason": "stop", "stream_id": "strm_1a2b3c", "provider": "openai"}
"""

import json
import logging
import os
import sys
import time
from contextlib import contextmanager
from contextvars import ContextVar, Token
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, Optional, Union

ROOT_LOGGER_NAME = "llmbridge"

_log_context: ContextVar[Optional["LogContext"]] = ContextVar("llmbridge_log_context", default=None)


@dataclass
class LogContext:
    """
    Correlation fields injected into every log record.

    Each stream sets its own context, so concurrent generations never
    see each other's fields.
    """
    stream_id: str = ""
    provider: str = ""
    model: str = ""
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def get_current(cls) -> Optional["LogContext"]:
        return _log_context.get()

    @classmethod
    def set_current(cls, ctx: Optional["LogContext"]) -> Token:
        return _log_context.set(ctx)

    @classmethod
    def reset(cls, token: Token):
        _log_context.reset(token)

    def update(self, **kwargs):
        """Update context fields."""
        for key, value in kwargs.items():
            if key in ("stream_id", "provider", "model"):
                setattr(self, key, value)
            else:
                self.extra[key] = value

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        if self.stream_id:
            result["stream_id"] = self.stream_id
        if self.provider:
            result["provider"] = self.provider
        if self.model:
            result["model"] = self.model
        result.update(self.extra)
        return result


@contextmanager
def bound_context(**fields) -> Iterator[LogContext]:
    """
    Derive a context from the current one and make it current.

    Fields of an enclosing context (e.g. a tool run's run_id) are kept
    unless overridden.

    Usage:
        with bound_context(stream_id="strm_1", provider="openai"):
            logger.debug("Frame normalized")
    """
    parent = LogContext.get_current()
    ctx = LogContext(
        stream_id=parent.stream_id if parent else "",
        provider=parent.provider if parent else "",
        model=parent.model if parent else "",
        extra=dict(parent.extra) if parent else {},
    )
    ctx.update(**fields)
    token = LogContext.set_current(ctx)
    try:
        yield ctx
    finally:
        LogContext.reset(token)


_RESERVED_ATTRS = {
    "name", "msg", "args", "created", "filename",
    "funcName", "levelname", "levelno", "lineno",
    "module", "msecs", "pathname", "process",
    "processName", "relativeCreated", "stack_info",
    "exc_info", "exc_text", "thread", "threadName",
    "message", "taskName",
}


class JSONFormatter(logging.Formatter):
    """JSON log formatter with context injection and redaction."""

    SENSITIVE_FIELDS = {
        "password", "secret", "token_value", "api_key", "apikey",
        "authorization", "credential", "private_key",
    }

    def __init__(
        self,
        include_location: bool = False,
        redact_sensitive: bool = True,
    ):
        super().__init__()
        self.include_location = include_location
        self.redact_sensitive = redact_sensitive

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if self.include_location:
            log_data["location"] = f"{record.filename}:{record.lineno}"

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        ctx = LogContext.get_current()
        if ctx:
            log_data.update(ctx.to_dict())

        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRS:
                continue
            if self.redact_sensitive and self._is_sensitive(key):
                value = "[REDACTED]"
            log_data[key] = value

        return json.dumps(log_data, default=str, ensure_ascii=False)

    def _is_sensitive(self, field_name: str) -> bool:
        field_lower = field_name.lower()
        return any(sensitive in field_lower for sensitive in self.SENSITIVE_FIELDS)


class StructuredLogger:
    """
    Structured logger wrapper.

    Keyword arguments other than exc_info/stack_info/stacklevel become
    structured fields on the record.
    """

    def __init__(self, logger: logging.Logger):
        self._logger = logger

    @property
    def name(self) -> str:
        return self._logger.name

    def isEnabledFor(self, level: int) -> bool:
        return self._logger.isEnabledFor(level)

    def _log(self, level: int, msg: str, *args, **kwargs):
        if not self._logger.isEnabledFor(level):
            return

        extra = kwargs.pop("extra", {})

        ctx = LogContext.get_current()
        if ctx:
            for key, value in ctx.to_dict().items():
                extra.setdefault(key, value)

        for key in list(kwargs.keys()):
            if key not in {"exc_info", "stack_info", "stacklevel"}:
                extra[key] = kwargs.pop(key)

        kwargs["extra"] = extra
        self._logger.log(level, msg, *args, **kwargs)

    def debug(self, msg: str, *args, **kwargs):
        self._log(logging.DEBUG, msg, *args, **kwargs)

    def info(self, msg: str, *args, **kwargs):
        self._log(logging.INFO, msg, *args, **kwargs)

    def warning(self, msg: str, *args, **kwargs):
        self._log(logging.WARNING, msg, *args, **kwargs)

    def error(self, msg: str, *args, **kwargs):
        self._log(logging.ERROR, msg, *args, **kwargs)

    def exception(self, msg: str, *args, **kwargs):
        kwargs["exc_info"] = True
        self._log(logging.ERROR, msg, *args, **kwargs)


_logging_configured = False


def setup_logging(
    level: Union[str, int] = "WARNING",
    json_output: bool = True,
    include_location: bool = False,
    redact_sensitive: bool = True,
) -> None:
    """
    Configure the `llmbridge` logger namespace.

    Only the library's own logger is touched; the application's root
    logger is left alone.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: Use JSON formatter (True) or plain text (False)
        include_location: Include filename:lineno in logs
        redact_sensitive: Redact sensitive fields like api keys
    """
    global _logging_configured

    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.WARNING)

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(level)

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)

    if json_output:
        formatter: logging.Formatter = JSONFormatter(
            include_location=include_location,
            redact_sensitive=redact_sensitive,
        )
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )

    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.propagate = False

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    _logging_configured = True


def get_logger(name: str) -> StructuredLogger:
    """
    Get a structured logger.

    Auto-configures from LOG_LEVEL / LOG_FORMAT on first use.
    """
    if not _logging_configured:
        level = os.getenv("LOG_LEVEL", "WARNING")
        json_output = os.getenv("LOG_FORMAT", "json").lower() == "json"
        setup_logging(level=level, json_output=json_output)

    return StructuredLogger(logging.getLogger(name))


class TimedOperation:
    """
    Context manager for timing operations.

    Usage:
        with TimedOperation("tool.get_weather", logger) as timer:
            result = get_weather(...)
        # Logs: "tool.get_weather completed" with duration_ms
    """

    def __init__(
        self,
        operation: str,
        logger: Optional[StructuredLogger] = None,
        log_level: int = logging.DEBUG,
        extra: Optional[Dict[str, Any]] = None,
    ):
        self.operation = operation
        self.logger = logger or get_logger(f"{ROOT_LOGGER_NAME}.timed")
        self.log_level = log_level
        self.extra = extra or {}
        self.start_time: Optional[float] = None
        self.duration_ms: Optional[float] = None

    def __enter__(self) -> "TimedOperation":
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.duration_ms = (time.perf_counter() - self.start_time) * 1000

        log_extra = {
            "operation": self.operation,
            "duration_ms": round(self.duration_ms, 2),
            **self.extra,
        }

        if exc_type:
            log_extra["error"] = str(exc_val)
            self.logger._log(logging.WARNING, f"{self.operation} failed", extra=log_extra)
        else:
            self.logger._log(self.log_level, f"{self.operation} completed", extra=log_extra)

    async def __aenter__(self) -> "TimedOperation":
        return self.__enter__()

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return self.__exit__(exc_type, exc_val, exc_tb)
