"""
llmbridge - Streaming Module

Provider frames are normalized into signals, folded into StreamChunks by
a per-stream accumulator, and consumed through the helpers in
consumers.py.
"""

from .signals import (
    FinishSignal,
    ReasoningDelta,
    Signal,
    TextDelta,
    ToolCallFragment,
    UsageSignal,
)
from .tool_calls import ToolCallAssembler, parse_arguments
from .normalizer import (
    AnthropicNormalizer,
    GoogleNormalizer,
    OpenAINormalizer,
    OpenAIResponsesNormalizer,
    StreamNormalizer,
    create_normalizer,
)
from .accumulator import StreamAccumulator
from .sse import SSEDecoder, SSEEvent, aiter_sse_events
from .pipeline import normalize_stream, stream_chunks
from .consumers import (
    StreamHandlers,
    collect_stream,
    filter_stream,
    fold_chunks,
    map_stream,
    print_stream,
    process_stream,
)

__all__ = [
    # Signals
    "FinishSignal",
    "ReasoningDelta",
    "Signal",
    "TextDelta",
    "ToolCallFragment",
    "UsageSignal",
    # Assembly
    "ToolCallAssembler",
    "parse_arguments",
    # Normalizers
    "AnthropicNormalizer",
    "GoogleNormalizer",
    "OpenAINormalizer",
    "OpenAIResponsesNormalizer",
    "StreamNormalizer",
    "create_normalizer",
    # Accumulation
    "StreamAccumulator",
    # Framing and pipeline
    "SSEDecoder",
    "SSEEvent",
    "aiter_sse_events",
    "normalize_stream",
    "stream_chunks",
    # Consumers
    "StreamHandlers",
    "collect_stream",
    "filter_stream",
    "fold_chunks",
    "map_stream",
    "print_stream",
    "process_stream",
]
