"""
llmbridge - Tool Call Assembly

Tool calls arrive in pieces:
1. An opening fragment with the call id and function name
2. Zero or more fragments with partial arguments JSON
3. A completion marker (explicit, or implied by the end of the turn)

The assembler keeps one builder per in-flight call, keyed by call id.
Vendors that only tag the first fragment with an id identify follow-ups
by index; the index is resolved to the id recorded when the call opened.
A finalized call is removed from the in-flight set and never changes
again.
"""

import json
import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from ..core.models import ToolCall
from ..observability.logging import get_logger
from .signals import ToolCallFragment

logger = get_logger(__name__)


def generate_call_id() -> str:
    """Identifier for vendors that do not assign one."""
    return f"call_{uuid.uuid4().hex[:24]}"


def parse_arguments(text: str) -> Tuple[Dict[str, Any], bool]:
    """
    Best-effort parse of an accumulated arguments buffer.

    Returns:
        (arguments, degraded). An empty buffer is a call with no
        arguments. Malformed JSON, or JSON that is not an object,
        degrades to an empty dict.
    """
    if not text.strip():
        return {}, False

    try:
        value = json.loads(text)
    except json.JSONDecodeError:
        return {}, True

    if not isinstance(value, dict):
        return {}, True

    return value, False


@dataclass
class ToolCallBuilder:
    """In-flight state of one tool call."""
    call_id: str
    index: Optional[int] = None
    name: Optional[str] = None
    arguments_buffer: str = ""
    parsed_arguments: Optional[Dict[str, Any]] = None

    def update(self, fragment: ToolCallFragment):
        """Merge a fragment into the builder."""
        if fragment.name:
            self.name = fragment.name
        if fragment.arguments is not None:
            self.parsed_arguments = dict(fragment.arguments)
        if fragment.arguments_delta:
            self.arguments_buffer += fragment.arguments_delta

    def build(self) -> Tuple[ToolCall, bool]:
        """
        Produce the finalized call.

        Returns:
            (tool_call, degraded)
        """
        if self.parsed_arguments is not None:
            arguments, degraded = self.parsed_arguments, False
        else:
            arguments, degraded = parse_arguments(self.arguments_buffer)
        return ToolCall(id=self.call_id, name=self.name or "", arguments=arguments), degraded


class ToolCallAssembler:
    """
    Reassembles tool calls from fragments.

    Multiple calls may be in flight at once and their fragments may
    interleave; each is tracked under its own id.
    """

    def __init__(self):
        self._builders: Dict[str, ToolCallBuilder] = {}
        self._index_to_id: Dict[int, str] = {}
        self._finalized_ids: set = set()
        self._completed: List[ToolCall] = []
        self.degraded_count = 0
        self.dropped_count = 0

    def _resolve_id(self, fragment: ToolCallFragment) -> str:
        if fragment.call_id:
            if fragment.index is not None:
                self._index_to_id.setdefault(fragment.index, fragment.call_id)
            return fragment.call_id

        if fragment.index is not None:
            if fragment.index not in self._index_to_id:
                self._index_to_id[fragment.index] = generate_call_id()
            return self._index_to_id[fragment.index]

        # Untagged fragment continues the most recently opened call
        if self._builders:
            return next(reversed(self._builders))
        return generate_call_id()

    def add(self, fragment: ToolCallFragment) -> List[ToolCall]:
        """
        Apply a fragment.

        Returns:
            Calls finalized by this fragment (empty unless it completes one)
        """
        call_id = self._resolve_id(fragment)

        if call_id in self._finalized_ids:
            logger.debug("Ignoring fragment for finalized tool call", tool_call_id=call_id)
            return []

        builder = self._builders.get(call_id)
        if builder is None:
            builder = ToolCallBuilder(call_id=call_id, index=fragment.index)
            self._builders[call_id] = builder

        builder.update(fragment)

        if fragment.complete:
            call = self._finalize(call_id)
            return [call] if call else []
        return []

    def complete(self, call_id: str) -> Optional[ToolCall]:
        """Finalize one in-flight call by id."""
        if call_id not in self._builders:
            return None
        return self._finalize(call_id)

    def complete_index(self, index: int) -> Optional[ToolCall]:
        """Finalize one in-flight call by vendor index."""
        call_id = self._index_to_id.get(index)
        if call_id is None:
            return None
        return self.complete(call_id)

    def finalize_pending(self) -> List[ToolCall]:
        """
        Force-finalize every in-flight call, in the order they opened.

        Used when the turn ends while calls are still open.
        """
        finalized = []
        for call_id in list(self._builders.keys()):
            call = self._finalize(call_id)
            if call:
                finalized.append(call)
        return finalized

    def _finalize(self, call_id: str) -> Optional[ToolCall]:
        builder = self._builders.pop(call_id)
        self._finalized_ids.add(call_id)

        if not builder.name:
            self.dropped_count += 1
            logger.warning(
                "Dropping tool call without a function name",
                tool_call_id=call_id,
                arguments_length=len(builder.arguments_buffer),
            )
            return None

        call, degraded = builder.build()
        if degraded:
            self.degraded_count += 1
            logger.warning(
                "Tool call arguments were not valid JSON, using empty arguments",
                tool_call_id=call_id,
                tool_name=builder.name,
                arguments_length=len(builder.arguments_buffer),
            )

        self._completed.append(call)
        return call

    @property
    def completed(self) -> List[ToolCall]:
        """All finalized calls of the turn, in finalization order."""
        return list(self._completed)

    @property
    def pending_count(self) -> int:
        return len(self._builders)

    def has_calls(self) -> bool:
        return bool(self._completed) or bool(self._builders)
