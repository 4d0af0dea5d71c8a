"""
llmbridge - Unified streaming over multiple LLM providers

One chunk sequence for OpenAI (chat completions and Responses), Anthropic
and Google: vendor frames are normalized into text, reasoning, tool-call,
usage and finish signals and folded into StreamChunks with accumulated
content.
"""

from .core.models import (
    AudioContent,
    FinishReason,
    GenerationOptions,
    GenerationUsage,
    ImageContent,
    Message,
    Provider,
    ReasoningState,
    Role,
    StreamChunk,
    StreamResult,
    TextContent,
    Tool,
    ToolCall,
    ToolChoiceSpecific,
    ToolResultContent,
)
from .core.errors import LLMBridgeException
from .core.config import ProviderConfig, SnapshotMode, StreamSettings, ToolCallEmission
from .client import LLMProvider, create_provider, generate, get_available_provider
from .streaming import (
    StreamHandlers,
    collect_stream,
    filter_stream,
    fold_chunks,
    map_stream,
    normalize_stream,
    print_stream,
    process_stream,
)
from .tools import (
    ToolRegistry,
    ToolRunner,
    append_tool_turn,
    execute_tool_calls,
    tool,
)

__version__ = "0.1.0"

__all__ = [
    "AudioContent",
    "FinishReason",
    "GenerationOptions",
    "GenerationUsage",
    "ImageContent",
    "Message",
    "Provider",
    "ReasoningState",
    "Role",
    "StreamChunk",
    "StreamResult",
    "TextContent",
    "Tool",
    "ToolCall",
    "ToolChoiceSpecific",
    "ToolResultContent",
    "LLMBridgeException",
    "ProviderConfig",
    "SnapshotMode",
    "StreamSettings",
    "ToolCallEmission",
    "LLMProvider",
    "create_provider",
    "generate",
    "get_available_provider",
    "StreamHandlers",
    "collect_stream",
    "filter_stream",
    "fold_chunks",
    "map_stream",
    "normalize_stream",
    "print_stream",
    "process_stream",
    "ToolRegistry",
    "ToolRunner",
    "append_tool_turn",
    "execute_tool_calls",
    "tool",
]
