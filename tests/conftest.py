"""
llmbridge - Pytest Configuration

Configures:
- Integration test markers (skip by default, live provider calls)
- A fresh Prometheus registry per test
- Raw frame fixtures for every provider
"""

import json
import os
from typing import Any, Dict, List, Optional

import pytest
from prometheus_client import CollectorRegistry

from llmbridge.observability.metrics import MetricsCollector, setup_metrics


# ============================================================
# Environment Configuration
# ============================================================

def _is_truthy(value: Optional[str]) -> bool:
    """Check if environment variable is truthy."""
    if value is None:
        return False
    return value.lower() in ("1", "true", "yes", "on")


RUN_INTEGRATION = _is_truthy(os.getenv("RUN_INTEGRATION"))


# ============================================================
# Pytest Markers
# ============================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "integration: mark test as integration test (requires RUN_INTEGRATION=1)"
    )


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless RUN_INTEGRATION=1."""
    skip_integration = pytest.mark.skip(
        reason="Integration test - set RUN_INTEGRATION=1 to run"
    )

    for item in items:
        if "integration" in item.keywords and not RUN_INTEGRATION:
            item.add_marker(skip_integration)


# ============================================================
# Metrics
# ============================================================

@pytest.fixture(autouse=True)
def metrics_registry():
    """Route all metrics of a test into its own registry."""
    MetricsCollector.reset_instance()
    registry = CollectorRegistry()
    setup_metrics(registry)
    yield registry
    MetricsCollector.reset_instance()


# ============================================================
# Frame Sources
# ============================================================

@pytest.fixture
def frame_source():
    """
    Factory for async frame iterators that record whether they were closed.

    Usage:
        source = frame_source(["{...}", "{...}"])
        async for chunk in stream_chunks(source, normalizer): ...
        assert source.closed
    """
    class FrameSource:
        def __init__(self, frames: List[Any], error: Optional[BaseException] = None):
            self.frames = list(frames)
            self.error = error
            self.pulled = 0
            self.closed = False
            self._gen = self._run()

        async def _run(self):
            try:
                for frame in self.frames:
                    self.pulled += 1
                    yield frame
                if self.error is not None:
                    raise self.error
            finally:
                self.closed = True

        def __aiter__(self):
            return self

        async def __anext__(self):
            return await self._gen.__anext__()

        async def aclose(self):
            await self._gen.aclose()
            self.closed = True

    return FrameSource


# ============================================================
# OpenAI Frames
# ============================================================

def openai_chunk(
    delta: Optional[Dict[str, Any]] = None,
    finish_reason: Optional[str] = None,
    usage: Optional[Dict[str, Any]] = None,
) -> str:
    frame: Dict[str, Any] = {
        "id": "chatcmpl-test123",
        "object": "chat.completion.chunk",
        "model": "gpt-4o",
        "choices": [{"index": 0, "delta": delta or {}, "finish_reason": finish_reason}],
    }
    if usage is not None:
        frame["usage"] = usage
    return json.dumps(frame)


@pytest.fixture
def openai_text_frames() -> List[str]:
    """Three text deltas, a stop frame, a trailing usage frame and [DONE]."""
    return [
        openai_chunk({"role": "assistant", "content": "Hel"}),
        openai_chunk({"content": "lo "}),
        openai_chunk({"content": "world"}),
        openai_chunk(finish_reason="stop"),
        json.dumps({
            "id": "chatcmpl-test123",
            "object": "chat.completion.chunk",
            "choices": [],
            "usage": {"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15},
        }),
        "[DONE]",
    ]


@pytest.fixture
def openai_tool_frames() -> List[str]:
    """One tool call streamed in two argument fragments."""
    return [
        openai_chunk({"role": "assistant", "tool_calls": [{
            "index": 0,
            "id": "c1",
            "type": "function",
            "function": {"name": "calculator", "arguments": '{"a":1,'},
        }]}),
        openai_chunk({"tool_calls": [{"index": 0, "function": {"arguments": '"b":2}'}}]}),
        openai_chunk(finish_reason="tool_calls"),
        "[DONE]",
    ]


# ============================================================
# Anthropic Frames
# ============================================================

@pytest.fixture
def anthropic_tool_frames() -> List[Dict[str, Any]]:
    """Text block, then a tool_use block whose input streams as JSON text."""
    return [
        {"type": "message_start", "message": {
            "id": "msg_1", "role": "assistant", "content": [],
            "usage": {"input_tokens": 10, "output_tokens": 1},
        }},
        {"type": "content_block_start", "index": 0, "content_block": {"type": "text", "text": ""}},
        {"type": "content_block_delta", "index": 0, "delta": {"type": "text_delta", "text": "Let me check."}},
        {"type": "content_block_stop", "index": 0},
        {"type": "content_block_start", "index": 1, "content_block": {
            "type": "tool_use", "id": "toolu_1", "name": "get_weather", "input": {},
        }},
        {"type": "content_block_delta", "index": 1, "delta": {"type": "input_json_delta", "partial_json": '{"location":'}},
        {"type": "content_block_delta", "index": 1, "delta": {"type": "input_json_delta", "partial_json": ' "Paris"}'}},
        {"type": "content_block_stop", "index": 1},
        {"type": "message_delta", "delta": {"stop_reason": "tool_use"}, "usage": {"output_tokens": 5}},
        {"type": "message_stop"},
    ]


# ============================================================
# Google Frames
# ============================================================

def google_chunk(
    parts: Optional[List[Dict[str, Any]]] = None,
    finish_reason: Optional[str] = None,
    usage: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    candidate: Dict[str, Any] = {"content": {"role": "model", "parts": parts or []}}
    if finish_reason:
        candidate["finishReason"] = finish_reason
    frame: Dict[str, Any] = {"candidates": [candidate]}
    if usage is not None:
        frame["usageMetadata"] = usage
    return frame


@pytest.fixture
def google_snapshot_frames() -> List[Dict[str, Any]]:
    """Every text part is the full answer so far."""
    return [
        google_chunk([{"text": "H"}]),
        google_chunk([{"text": "He"}]),
        google_chunk([{"text": "Hel"}], finish_reason="STOP"),
    ]


@pytest.fixture
def make_openai_chunk():
    return openai_chunk


@pytest.fixture
def make_google_chunk():
    return google_chunk
