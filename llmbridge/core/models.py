"""
llmbridge - Core Data Models

Unified conversation and streaming models shared by every provider.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union


# ============================================================
# Enums
# ============================================================

class Provider(str, Enum):
    """Supported provider APIs."""
    OPENAI = "openai"
    OPENAI_RESPONSES = "openai_responses"
    ANTHROPIC = "anthropic"
    GOOGLE = "google"


class Role(str, Enum):
    """Message roles."""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class FinishReason(str, Enum):
    """Normalized finish reasons."""
    STOP = "stop"
    LENGTH = "length"
    TOOL_USE = "tool_use"
    ERROR = "error"


# ============================================================
# Content Parts
# ============================================================

@dataclass
class TextContent:
    """Text content part."""
    text: str = ""
    type: Literal["text"] = "text"


@dataclass
class ImageContent:
    """Image content part (base64 or data URL)."""
    image: str = ""
    type: Literal["image"] = "image"


@dataclass
class AudioContent:
    """Audio content part (base64 or data URL) with an optional format hint."""
    audio: str = ""
    format: Optional[str] = None
    type: Literal["audio"] = "audio"


@dataclass
class ToolResultContent:
    """Result of a tool execution, correlated to the call that produced it."""
    tool_call_id: str = ""
    result: str = ""
    type: Literal["tool_result"] = "tool_result"


Content = Union[TextContent, ImageContent, AudioContent, ToolResultContent]


# ============================================================
# Tool Calling
# ============================================================

@dataclass
class Tool:
    """
    Tool declaration.

    `parameters` is a JSON-schema shaped object passed through to the
    provider untouched.
    """
    name: str
    description: str = ""
    parameters: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ToolCall:
    """A finalized tool invocation requested by the model."""
    id: str
    name: str
    arguments: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ToolChoiceSpecific:
    """Force a specific tool."""
    name: str


ToolChoice = Union[Literal["auto", "none", "required"], ToolChoiceSpecific]


# ============================================================
# Messages
# ============================================================

@dataclass
class Message:
    """
    One turn in a conversation.

    Content order is positional within the turn. `tool_calls` is only set
    on assistant turns that paused for tool execution.
    """
    role: Role
    content: List[Content] = field(default_factory=list)
    tool_calls: Optional[List[ToolCall]] = None

    @classmethod
    def system(cls, text: str) -> Message:
        """Create a system message."""
        return cls(role=Role.SYSTEM, content=[TextContent(text=text)])

    @classmethod
    def user(cls, text: str, images: Optional[List[str]] = None) -> Message:
        """Create a user message, optionally with images."""
        content: List[Content] = [TextContent(text=text)]
        for image in images or []:
            content.append(ImageContent(image=image))
        return cls(role=Role.USER, content=content)

    @classmethod
    def assistant(
        cls,
        text: str = "",
        tool_calls: Optional[List[ToolCall]] = None
    ) -> Message:
        """Create an assistant message."""
        content: List[Content] = [TextContent(text=text)] if text else []
        return cls(role=Role.ASSISTANT, content=content, tool_calls=tool_calls or None)

    @classmethod
    def tool_result(cls, tool_call_id: str, result: str) -> Message:
        """Create a tool result message."""
        return cls(
            role=Role.TOOL,
            content=[ToolResultContent(tool_call_id=tool_call_id, result=result)]
        )

    @property
    def text(self) -> str:
        """Concatenated text parts of this message."""
        return "".join(part.text for part in self.content if isinstance(part, TextContent))

    def tool_results(self) -> List[ToolResultContent]:
        """Tool result parts of this message."""
        return [part for part in self.content if isinstance(part, ToolResultContent)]


# ============================================================
# Generation Options
# ============================================================

@dataclass
class GenerationOptions:
    """
    Options bag for a single generation request.

    Everything except `tools` and `tool_choice` is passed through to the
    provider payload without interpretation. `extra` carries vendor-only
    knobs (e.g. presence_penalty, candidateCount) verbatim.
    """
    model: str
    max_tokens: Optional[int] = None
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    top_k: Optional[int] = None
    stop_sequences: Optional[List[str]] = None
    tools: Optional[List[Tool]] = None
    tool_choice: Optional[ToolChoice] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def tools_enabled(self) -> bool:
        """Whether tool calls can occur for this request."""
        return bool(self.tools) and self.tool_choice != "none"


# ============================================================
# Streaming Models
# ============================================================

@dataclass(frozen=True)
class GenerationUsage:
    """
    Token and timing accounting.

    Every field is optional because vendors report different subsets,
    sometimes spread over several frames. Timing fields are milliseconds.
    """
    input_tokens: Optional[int] = None
    output_tokens: Optional[int] = None
    total_tokens: Optional[int] = None
    reasoning_tokens: Optional[int] = None
    cache_tokens: Optional[int] = None
    time_to_first_token: Optional[int] = None
    total_time: Optional[int] = None

    def merge(self, other: Optional[GenerationUsage]) -> GenerationUsage:
        """Overlay the fields set in `other` onto this usage."""
        if other is None:
            return self
        updates = {
            f.name: getattr(other, f.name)
            for f in fields(other)
            if getattr(other, f.name) is not None
        }
        return replace(self, **updates)

    def is_empty(self) -> bool:
        return all(getattr(self, f.name) is None for f in fields(self))

    def to_dict(self) -> Dict[str, int]:
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) is not None
        }


@dataclass(frozen=True)
class ReasoningState:
    """Accumulated reasoning trace plus the increment in this chunk."""
    content: str
    delta: str


@dataclass(frozen=True)
class StreamChunk:
    """
    Incremental unit of a normalized stream.

    `content` is the full text so far and always equals the previous
    chunk's `content` plus this chunk's `delta`. The same holds for
    `reasoning`. `finish_reason` is only set on the terminal chunk.
    """
    content: str
    delta: str = ""
    finish_reason: Optional[FinishReason] = None
    tool_calls: Optional[List[ToolCall]] = None
    reasoning: Optional[ReasoningState] = None
    usage: Optional[GenerationUsage] = None

    @property
    def is_terminal(self) -> bool:
        return self.finish_reason is not None


@dataclass(frozen=True)
class StreamResult:
    """Terminal snapshot of a stream, always derived by folding its chunks."""
    content: str = ""
    reasoning: Optional[str] = None
    tool_calls: Optional[List[ToolCall]] = None
    finish_reason: Optional[FinishReason] = None
    usage: Optional[GenerationUsage] = None

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)

    def to_message(self) -> Message:
        """The assistant turn this result represents, verbatim."""
        return Message.assistant(self.content, tool_calls=list(self.tool_calls or []))


# ============================================================
# Serialization Helpers
# ============================================================

def content_to_dict(part: Content) -> Dict[str, Any]:
    """Convert a content part to a plain dictionary."""
    if isinstance(part, TextContent):
        return {"type": "text", "text": part.text}
    if isinstance(part, ImageContent):
        return {"type": "image", "image": part.image}
    if isinstance(part, AudioContent):
        result: Dict[str, Any] = {"type": "audio", "audio": part.audio}
        if part.format:
            result["format"] = part.format
        return result
    return {"type": "tool_result", "tool_call_id": part.tool_call_id, "result": part.result}


def tool_call_to_dict(call: ToolCall) -> Dict[str, Any]:
    return {"id": call.id, "name": call.name, "arguments": dict(call.arguments)}


def message_to_dict(msg: Message) -> Dict[str, Any]:
    """Convert Message to dictionary for JSON serialization."""
    result: Dict[str, Any] = {
        "role": msg.role.value,
        "content": [content_to_dict(part) for part in msg.content],
    }
    if msg.tool_calls:
        result["tool_calls"] = [tool_call_to_dict(tc) for tc in msg.tool_calls]
    return result


def chunk_to_dict(chunk: StreamChunk) -> Dict[str, Any]:
    """Convert a StreamChunk to a JSON-ready dictionary."""
    result: Dict[str, Any] = {"content": chunk.content, "delta": chunk.delta}
    if chunk.finish_reason is not None:
        result["finish_reason"] = chunk.finish_reason.value
    if chunk.tool_calls is not None:
        result["tool_calls"] = [tool_call_to_dict(tc) for tc in chunk.tool_calls]
    if chunk.reasoning is not None:
        result["reasoning"] = {
            "content": chunk.reasoning.content,
            "delta": chunk.reasoning.delta,
        }
    if chunk.usage is not None:
        result["usage"] = chunk.usage.to_dict()
    return result


def result_to_dict(result: StreamResult) -> Dict[str, Any]:
    """Convert a StreamResult to a JSON-ready dictionary."""
    data: Dict[str, Any] = {
        "content": result.content,
        "finish_reason": result.finish_reason.value if result.finish_reason else None,
    }
    if result.reasoning is not None:
        data["reasoning"] = result.reasoning
    if result.tool_calls is not None:
        data["tool_calls"] = [tool_call_to_dict(tc) for tc in result.tool_calls]
    if result.usage is not None:
        data["usage"] = result.usage.to_dict()
    return data
