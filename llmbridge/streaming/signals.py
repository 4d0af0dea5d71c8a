"""
llmbridge - Stream Signals

The internal vocabulary every vendor normalizer translates raw frames
into. Signals are always delta-shaped: a normalizer whose vendor sends
snapshots computes the increment itself.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from ..core.models import FinishReason, GenerationUsage


@dataclass(frozen=True)
class TextDelta:
    """New answer text."""
    text: str


@dataclass(frozen=True)
class ReasoningDelta:
    """New reasoning-channel text."""
    text: str


@dataclass(frozen=True)
class ToolCallFragment:
    """
    A piece of a tool call.

    `call_id` may be omitted on follow-up fragments for vendors that only
    tag the first one; `index` then identifies the call. `arguments` is
    set instead of `arguments_delta` when the vendor delivers already
    parsed arguments. `complete` marks the end of the call.
    """
    call_id: Optional[str] = None
    index: Optional[int] = None
    name: Optional[str] = None
    arguments_delta: str = ""
    arguments: Optional[Dict[str, Any]] = None
    complete: bool = False


@dataclass(frozen=True)
class FinishSignal:
    """End of the turn. `message` explains error finishes."""
    reason: FinishReason
    message: Optional[str] = None


@dataclass(frozen=True)
class UsageSignal:
    """Partial usage fields, merged into the running snapshot."""
    usage: GenerationUsage


Signal = Union[TextDelta, ReasoningDelta, ToolCallFragment, FinishSignal, UsageSignal]
