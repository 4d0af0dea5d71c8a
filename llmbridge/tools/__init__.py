"""
llmbridge - Tools Module

Python callables as tools, and the tool-call round trip that feeds their
results back into the conversation.
"""

from .registry import (
    ToolFunction,
    ToolRegistry,
    create_tool,
    format_tool_result,
    tool,
)
from .roundtrip import (
    RunResult,
    ToolRunner,
    append_tool_turn,
    execute_tool_call,
    execute_tool_calls,
    tool_results_by_id,
)

__all__ = [
    # Registry
    "ToolFunction",
    "ToolRegistry",
    "create_tool",
    "format_tool_result",
    "tool",
    # Round trip
    "RunResult",
    "ToolRunner",
    "append_tool_turn",
    "execute_tool_call",
    "execute_tool_calls",
    "tool_results_by_id",
]
