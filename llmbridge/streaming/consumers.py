"""
llmbridge - Stream Consumers

Ways to consume a chunk sequence:
- fold_chunks / collect_stream: reduce to a StreamResult
- process_stream: dispatch chunks to callbacks, then reduce
- print_stream: write text to a file as it arrives
- filter_stream / map_stream: pass-through combinators

Results are always built from the accumulated fields the chunks carry,
never by re-summing deltas.
"""

import inspect
import sys
from dataclasses import dataclass
from typing import (
    Any,
    AsyncIterator,
    Awaitable,
    Callable,
    Dict,
    Iterable,
    List,
    Optional,
    TextIO,
    TypeVar,
    Union,
)

from ..core.models import (
    FinishReason,
    GenerationUsage,
    ReasoningState,
    StreamChunk,
    StreamResult,
    ToolCall,
)

T = TypeVar("T")


async def _maybe_await(value):
    if inspect.isawaitable(value):
        return await value
    return value


async def _close(stream: AsyncIterator[Any]):
    aclose = getattr(stream, "aclose", None)
    if aclose is not None:
        await aclose()


class StreamFolder:
    """Incremental fold of chunks into a StreamResult."""

    def __init__(self):
        self.content = ""
        self.reasoning: Optional[str] = None
        self.finish_reason: Optional[FinishReason] = None
        self.usage: Optional[GenerationUsage] = None
        self._tool_calls: Dict[str, ToolCall] = {}

    def add(self, chunk: StreamChunk):
        self.content = chunk.content
        if chunk.reasoning is not None:
            self.reasoning = chunk.reasoning.content
        # Keyed by id so full-set and new-only emission fold the same way
        for call in chunk.tool_calls or []:
            self._tool_calls[call.id] = call
        if chunk.finish_reason is not None:
            self.finish_reason = chunk.finish_reason
        if chunk.usage is not None:
            self.usage = chunk.usage

    def result(self) -> StreamResult:
        return StreamResult(
            content=self.content,
            reasoning=self.reasoning,
            tool_calls=list(self._tool_calls.values()) or None,
            finish_reason=self.finish_reason,
            usage=self.usage,
        )


def fold_chunks(chunks: Iterable[StreamChunk]) -> StreamResult:
    """Reduce a complete chunk sequence to its StreamResult."""
    folder = StreamFolder()
    for chunk in chunks:
        folder.add(chunk)
    return folder.result()


async def collect_stream(stream: AsyncIterator[StreamChunk]) -> StreamResult:
    """
    Consume a stream and return its StreamResult.

    Example:
        >>> result = await collect_stream(provider.generate(messages, options))
        >>> print(result.content)
    """
    folder = StreamFolder()
    async for chunk in stream:
        folder.add(chunk)
    return folder.result()


Handler = Callable[[Any], Union[None, Awaitable[None]]]


@dataclass
class StreamHandlers:
    """
    Callbacks for process_stream. Each may be sync or async.

    - on_chunk: every chunk
    - on_delta: new text of a chunk (non-empty deltas only)
    - on_content: accumulated text, when it changed
    - on_reasoning: ReasoningState, when the reasoning channel changed
    - on_tool_calls: tool calls carried by a chunk
    - on_finish: the finish reason of the terminal chunk
    - on_usage: usage carried by a chunk
    """
    on_chunk: Optional[Callable[[StreamChunk], Any]] = None
    on_delta: Optional[Callable[[str], Any]] = None
    on_content: Optional[Callable[[str], Any]] = None
    on_reasoning: Optional[Callable[[ReasoningState], Any]] = None
    on_tool_calls: Optional[Callable[[List[ToolCall]], Any]] = None
    on_finish: Optional[Callable[[FinishReason], Any]] = None
    on_usage: Optional[Callable[[GenerationUsage], Any]] = None

    async def dispatch(self, chunk: StreamChunk):
        """Invoke the applicable handlers for one chunk."""
        if self.on_chunk:
            await _maybe_await(self.on_chunk(chunk))
        if chunk.delta:
            if self.on_delta:
                await _maybe_await(self.on_delta(chunk.delta))
            if self.on_content:
                await _maybe_await(self.on_content(chunk.content))
        if chunk.reasoning is not None and self.on_reasoning:
            await _maybe_await(self.on_reasoning(chunk.reasoning))
        if chunk.tool_calls and self.on_tool_calls:
            await _maybe_await(self.on_tool_calls(chunk.tool_calls))
        if chunk.usage is not None and self.on_usage:
            await _maybe_await(self.on_usage(chunk.usage))
        if chunk.finish_reason is not None and self.on_finish:
            await _maybe_await(self.on_finish(chunk.finish_reason))


async def process_stream(
    stream: AsyncIterator[StreamChunk],
    handlers: Optional[StreamHandlers] = None,
    **callbacks: Handler,
) -> StreamResult:
    """
    Dispatch each chunk to handlers in order, then return the StreamResult.

    Handlers can be passed as a StreamHandlers or as keyword arguments:

        result = await process_stream(
            stream,
            on_delta=lambda d: print(d, end=""),
            on_finish=lambda reason: print(f"\\n[{reason.value}]"),
        )
    """
    if handlers is None:
        handlers = StreamHandlers(**callbacks)
    elif callbacks:
        raise TypeError("Pass either a StreamHandlers or keyword callbacks, not both")

    folder = StreamFolder()
    async for chunk in stream:
        await handlers.dispatch(chunk)
        folder.add(chunk)
    return folder.result()


async def print_stream(
    stream: AsyncIterator[StreamChunk],
    file: Optional[TextIO] = None,
    show_reasoning: bool = False,
) -> StreamResult:
    """Write text deltas to `file` (stdout by default) and return the StreamResult."""
    out = file or sys.stdout

    def write_delta(delta: str):
        out.write(delta)
        out.flush()

    def write_reasoning(reasoning: ReasoningState):
        out.write(reasoning.delta)
        out.flush()

    handlers = StreamHandlers(
        on_delta=write_delta,
        on_reasoning=write_reasoning if show_reasoning else None,
    )
    result = await process_stream(stream, handlers)
    out.write("\n")
    out.flush()
    return result


async def filter_stream(
    stream: AsyncIterator[StreamChunk],
    predicate: Callable[[StreamChunk], Union[bool, Awaitable[bool]]],
) -> AsyncIterator[StreamChunk]:
    """Yield only the chunks for which `predicate` is true."""
    try:
        async for chunk in stream:
            if await _maybe_await(predicate(chunk)):
                yield chunk
    finally:
        await _close(stream)


async def map_stream(
    stream: AsyncIterator[StreamChunk],
    transform: Callable[[StreamChunk], Union[T, Awaitable[T]]],
) -> AsyncIterator[T]:
    """Yield `transform(chunk)` for every chunk."""
    try:
        async for chunk in stream:
            yield await _maybe_await(transform(chunk))
    finally:
        await _close(stream)
