"""
llmbridge - Stream Accumulator

Folds normalized signals into outward-facing StreamChunks, one signal at
a time and strictly in arrival order.

Transition rules:
- TextDelta: append to content, emit a chunk with the delta
- ReasoningDelta: append to the reasoning channel, emit a chunk
- ToolCallFragment: route to the assembler, emit a chunk when a call completes
  (dropped without a chunk when the request did not enable tools)
- UsageSignal: merge into the usage snapshot, no chunk
- FinishSignal: record the reason, force-finalize open tool calls, no chunk

The terminal chunk is produced by close(), after the raw stream ended or
an error finish arrived, so usage reported after the finish still lands
on it.
"""

import time
from typing import Callable, List, Optional

from ..core.config import StreamSettings, ToolCallEmission
from ..core.models import (
    FinishReason,
    GenerationUsage,
    ReasoningState,
    StreamChunk,
    ToolCall,
)
from ..observability.logging import get_logger
from .signals import (
    FinishSignal,
    ReasoningDelta,
    Signal,
    TextDelta,
    ToolCallFragment,
    UsageSignal,
)
from .tool_calls import ToolCallAssembler

logger = get_logger(__name__)


class StreamAccumulator:
    """
    Running state of one stream.

    Owned by exactly one stream; never share an instance between
    concurrent generations.
    """

    def __init__(
        self,
        settings: Optional[StreamSettings] = None,
        clock: Callable[[], float] = time.perf_counter,
        tools_enabled: bool = True,
    ):
        self.settings = settings or StreamSettings()
        self.tools_enabled = tools_enabled
        self._clock = clock
        self._started_at = clock()
        self._first_token_at: Optional[float] = None

        self.content = ""
        self.reasoning = ""
        self.assembler = ToolCallAssembler()
        self.finish_reason: Optional[FinishReason] = None
        self.finish_message: Optional[str] = None
        self.usage = GenerationUsage()
        self.closed = False
        self.chunk_count = 0
        self.ignored_fragments = 0

        self._pending_tool_calls: List[ToolCall] = []

    @property
    def failed(self) -> bool:
        """Whether an error finish was received."""
        return self.finish_reason == FinishReason.ERROR

    @property
    def time_to_first_token_ms(self) -> Optional[int]:
        if self._first_token_at is None:
            return None
        return int((self._first_token_at - self._started_at) * 1000)

    def apply(self, signal: Signal) -> Optional[StreamChunk]:
        """
        Apply one signal.

        Returns:
            The chunk this signal produces, or None
        """
        if self.closed:
            raise RuntimeError("Stream accumulator is closed")

        if isinstance(signal, UsageSignal):
            self.usage = self.usage.merge(signal.usage)
            return None

        if isinstance(signal, FinishSignal):
            self._on_finish(signal)
            return None

        if self.finish_reason is not None:
            logger.debug(
                "Ignoring signal after finish",
                signal_type=type(signal).__name__,
                finish_reason=self.finish_reason.value,
            )
            return None

        if isinstance(signal, TextDelta):
            if not signal.text:
                return None
            self._mark_first_token()
            self.content += signal.text
            return self._emit(delta=signal.text)

        if isinstance(signal, ReasoningDelta):
            if not signal.text:
                return None
            self._mark_first_token()
            self.reasoning += signal.text
            return self._emit(reasoning=ReasoningState(content=self.reasoning, delta=signal.text))

        if isinstance(signal, ToolCallFragment):
            if not self.tools_enabled:
                self.ignored_fragments += 1
                logger.debug(
                    "Ignoring tool-call fragment, tools are not enabled for this request",
                    tool_call_id=signal.call_id,
                )
                return None
            self._mark_first_token()
            finalized = self.assembler.add(signal)
            if not finalized:
                return None
            return self._emit(tool_calls=self._tool_call_set(finalized))

        raise TypeError(f"Unknown signal type: {type(signal).__name__}")

    def close(self) -> StreamChunk:
        """
        Produce the terminal chunk.

        A stream that ended without a finish signal finishes with STOP.
        """
        if self.closed:
            raise RuntimeError("Stream accumulator is closed")

        if self.finish_reason is None:
            logger.debug("Stream ended without a finish signal, assuming stop")
            self.finish_reason = FinishReason.STOP
            self._pending_tool_calls.extend(self.assembler.finalize_pending())

        if self.settings.track_timing:
            self.usage = self.usage.merge(GenerationUsage(
                time_to_first_token=self.time_to_first_token_ms,
                total_time=int((self._clock() - self._started_at) * 1000),
            ))

        tool_calls = None
        if self._pending_tool_calls:
            tool_calls = self._tool_call_set(self._pending_tool_calls)

        chunk = self._emit(
            finish_reason=self.finish_reason,
            tool_calls=tool_calls,
            usage=None if self.usage.is_empty() else self.usage,
        )
        self.closed = True
        return chunk

    def _on_finish(self, signal: FinishSignal):
        if self.finish_reason is not None and signal.reason != FinishReason.ERROR:
            logger.debug(
                "Ignoring repeated finish signal",
                finish_reason=signal.reason.value,
            )
            return

        self.finish_reason = signal.reason
        self.finish_message = signal.message

        pending = self.assembler.finalize_pending()
        if pending:
            logger.debug(
                "Force-finalized open tool calls at finish",
                tool_call_count=len(pending),
            )
            self._pending_tool_calls.extend(pending)

    def _tool_call_set(self, finalized: List[ToolCall]) -> List[ToolCall]:
        if self.settings.tool_call_emission == ToolCallEmission.NEW:
            return list(finalized)
        return self.assembler.completed

    def _mark_first_token(self):
        if self._first_token_at is None:
            self._first_token_at = self._clock()

    def _emit(self, delta: str = "", **fields) -> StreamChunk:
        self.chunk_count += 1
        return StreamChunk(content=self.content, delta=delta, **fields)
