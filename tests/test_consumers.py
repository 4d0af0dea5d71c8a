"""
llmbridge - Stream Consumer Tests

Verifies:
- Fold uses accumulated fields, never re-sums deltas
- Fold is a pure function of the chunk sequence
- Handlers fire once per applicable chunk, in order
- Combinators pass chunks through one at a time
"""

import io

import pytest

from llmbridge.core.models import (
    FinishReason,
    GenerationUsage,
    ReasoningState,
    StreamChunk,
    StreamResult,
    ToolCall,
)
from llmbridge.streaming.consumers import (
    StreamHandlers,
    collect_stream,
    filter_stream,
    fold_chunks,
    map_stream,
    print_stream,
    process_stream,
)


CALL_A = ToolCall(id="a", name="one", arguments={"x": 1})
CALL_B = ToolCall(id="b", name="two", arguments={})

CHUNKS = [
    StreamChunk(content="", reasoning=ReasoningState(content="Hmm", delta="Hmm")),
    StreamChunk(content="Hi", delta="Hi"),
    StreamChunk(content="Hi there", delta=" there"),
    StreamChunk(content="Hi there", tool_calls=[CALL_A]),
    StreamChunk(
        content="Hi there",
        finish_reason=FinishReason.TOOL_USE,
        tool_calls=[CALL_A, CALL_B],
        usage=GenerationUsage(input_tokens=3, output_tokens=4),
    ),
]


async def stream_of(chunks):
    for chunk in chunks:
        yield chunk


class ClosableStream:
    """Async iterator that records aclose()."""

    def __init__(self, chunks):
        self._it = iter(chunks)
        self.closed = False

    def __aiter__(self):
        return self

    async def __anext__(self):
        try:
            return next(self._it)
        except StopIteration:
            raise StopAsyncIteration

    async def aclose(self):
        self.closed = True


# ============================================================
# Fold
# ============================================================

class TestFoldChunks:

    def test_fold(self):
        result = fold_chunks(CHUNKS)

        assert result == StreamResult(
            content="Hi there",
            reasoning="Hmm",
            tool_calls=[CALL_A, CALL_B],
            finish_reason=FinishReason.TOOL_USE,
            usage=GenerationUsage(input_tokens=3, output_tokens=4),
        )

    def test_fold_is_idempotent(self):
        assert fold_chunks(CHUNKS) == fold_chunks(CHUNKS)

    def test_fold_uses_accumulated_content(self):
        """A chunk's content wins over the sum of deltas."""
        result = fold_chunks([
            StreamChunk(content="abc", delta="abc"),
            StreamChunk(content="abcdef", delta="def"),
            StreamChunk(content="abcdef", finish_reason=FinishReason.STOP),
        ])
        assert result.content == "abcdef"

    def test_new_only_emission_folds_the_same(self):
        full = fold_chunks([
            StreamChunk(content="", tool_calls=[CALL_A]),
            StreamChunk(content="", tool_calls=[CALL_A, CALL_B]),
        ])
        new_only = fold_chunks([
            StreamChunk(content="", tool_calls=[CALL_A]),
            StreamChunk(content="", tool_calls=[CALL_B]),
        ])
        assert full.tool_calls == new_only.tool_calls

    def test_empty_sequence(self):
        result = fold_chunks([])
        assert result.content == ""
        assert result.finish_reason is None
        assert result.tool_calls is None

    def test_result_to_message(self):
        message = fold_chunks(CHUNKS).to_message()
        assert message.text == "Hi there"
        assert message.tool_calls == [CALL_A, CALL_B]

    @pytest.mark.asyncio
    async def test_collect_stream(self):
        assert await collect_stream(stream_of(CHUNKS)) == fold_chunks(CHUNKS)


# ============================================================
# Handlers
# ============================================================

class TestProcessStream:

    @pytest.mark.asyncio
    async def test_handlers_fire_in_order(self):
        events = []

        result = await process_stream(
            stream_of(CHUNKS),
            on_delta=lambda d: events.append(("delta", d)),
            on_content=lambda c: events.append(("content", c)),
            on_reasoning=lambda r: events.append(("reasoning", r.content)),
            on_tool_calls=lambda calls: events.append(("tools", [c.id for c in calls])),
            on_usage=lambda u: events.append(("usage", u.output_tokens)),
            on_finish=lambda reason: events.append(("finish", reason)),
        )

        assert events == [
            ("reasoning", "Hmm"),
            ("delta", "Hi"),
            ("content", "Hi"),
            ("delta", " there"),
            ("content", "Hi there"),
            ("tools", ["a"]),
            ("tools", ["a", "b"]),
            ("usage", 4),
            ("finish", FinishReason.TOOL_USE),
        ]
        assert result == fold_chunks(CHUNKS)

    @pytest.mark.asyncio
    async def test_async_handlers(self):
        seen = []

        async def on_chunk(chunk):
            seen.append(chunk.content)

        await process_stream(stream_of(CHUNKS), StreamHandlers(on_chunk=on_chunk))

        assert len(seen) == len(CHUNKS)

    @pytest.mark.asyncio
    async def test_handlers_and_callbacks_are_exclusive(self):
        with pytest.raises(TypeError):
            await process_stream(stream_of(CHUNKS), StreamHandlers(), on_delta=print)

    @pytest.mark.asyncio
    async def test_handler_error_propagates(self):
        def boom(_):
            raise ValueError("handler failed")

        with pytest.raises(ValueError):
            await process_stream(stream_of(CHUNKS), on_delta=boom)


class TestPrintStream:

    @pytest.mark.asyncio
    async def test_writes_deltas(self):
        out = io.StringIO()

        result = await print_stream(stream_of(CHUNKS), file=out)

        assert out.getvalue() == "Hi there\n"
        assert result.content == "Hi there"

    @pytest.mark.asyncio
    async def test_show_reasoning(self):
        out = io.StringIO()
        await print_stream(stream_of(CHUNKS), file=out, show_reasoning=True)
        assert out.getvalue() == "HmmHi there\n"


# ============================================================
# Combinators
# ============================================================

class TestCombinators:

    @pytest.mark.asyncio
    async def test_filter_stream(self):
        deltas = [c async for c in filter_stream(stream_of(CHUNKS), lambda c: bool(c.delta))]
        assert [c.delta for c in deltas] == ["Hi", " there"]

    @pytest.mark.asyncio
    async def test_async_predicate(self):
        async def is_terminal(chunk):
            return chunk.is_terminal

        [last] = [c async for c in filter_stream(stream_of(CHUNKS), is_terminal)]
        assert last.finish_reason == FinishReason.TOOL_USE

    @pytest.mark.asyncio
    async def test_map_stream(self):
        contents = [c async for c in map_stream(stream_of(CHUNKS), lambda c: len(c.content))]
        assert contents == [0, 2, 8, 8, 8]

    @pytest.mark.asyncio
    async def test_combinators_close_source(self):
        source = ClosableStream(CHUNKS)
        mapped = map_stream(source, lambda c: c.delta)

        await mapped.__anext__()
        await mapped.aclose()

        assert source.closed
