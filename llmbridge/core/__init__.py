"""
llmbridge - Core Module

Data models, error taxonomy, configuration and options validation.
"""

from .models import (
    AudioContent,
    Content,
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
    ToolChoice,
    ToolChoiceSpecific,
    ToolResultContent,
)
from .errors import (
    ErrorDetails,
    ErrorType,
    InfraError,
    LLMBridgeException,
    SemanticError,
)
from .config import ProviderConfig, SnapshotMode, StreamSettings, ToolCallEmission
from .schema import validate_options

__all__ = [
    # Models
    "AudioContent",
    "Content",
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
    "ToolChoice",
    "ToolChoiceSpecific",
    "ToolResultContent",
    # Errors
    "ErrorDetails",
    "ErrorType",
    "InfraError",
    "LLMBridgeException",
    "SemanticError",
    # Config
    "ProviderConfig",
    "SnapshotMode",
    "StreamSettings",
    "ToolCallEmission",
    "validate_options",
]
