"""
llmbridge - Stream Pipeline

raw frames -> normalizer -> accumulator -> StreamChunks

Consumption is a sequential pull: one frame is requested from the source
only after every chunk of the previous frame has been handed to the
consumer. Abandoning iteration closes the frame source, which releases
the underlying HTTP response.
"""

import time
import uuid
from typing import AsyncIterator, List, Optional, Union

from ..core.config import StreamSettings
from ..core.errors import LLMBridgeException
from ..core.models import Provider, StreamChunk
from ..observability.logging import bound_context, get_logger
from ..observability.metrics import get_metrics
from ..observability.tracing import end_generation_span, start_generation_span
from .accumulator import StreamAccumulator
from .normalizer import RawFrame, StreamNormalizer, create_normalizer

logger = get_logger(__name__)


async def _close_source(frames: AsyncIterator[RawFrame]):
    aclose = getattr(frames, "aclose", None)
    if aclose is not None:
        await aclose()


async def stream_chunks(
    frames: AsyncIterator[RawFrame],
    normalizer: StreamNormalizer,
    accumulator: Optional[StreamAccumulator] = None,
    model: str = "",
    tools_enabled: bool = True,
) -> AsyncIterator[StreamChunk]:
    """
    Turn a raw frame source into a chunk sequence.

    Exactly one terminal chunk ends every stream that is not interrupted
    by a transport error. Transport errors propagate unchanged; chunks
    already delivered stay with the consumer.

    Log records emitted while a frame is processed carry the stream's
    stream_id, provider and model. The context is bound per frame and
    released before each chunk is handed over, so the consumer's own
    logging is never tagged with it.

    Args:
        frames: Async iterator of raw frames (decoded SSE data payloads)
        normalizer: Normalizer for the frames' provider
        accumulator: Accumulator to use (a fresh one by default)
        model: Model name, for logs, metrics and tracing
        tools_enabled: Whether the request enabled tools; when False,
            tool-call fragments on the wire are discarded. Ignored when
            an accumulator is passed in.
    """
    if accumulator is None:
        accumulator = StreamAccumulator(normalizer.settings, tools_enabled=tools_enabled)

    provider = normalizer.provider.value
    stream_id = f"strm_{uuid.uuid4().hex[:12]}"
    context = {"stream_id": stream_id, "provider": provider, "model": model}
    metrics = get_metrics()
    span = start_generation_span(provider, model)
    started = time.perf_counter()

    terminal: Optional[StreamChunk] = None
    error: Optional[BaseException] = None

    with bound_context(**context):
        logger.debug("Stream started")

    try:
        with metrics.track_active_stream(provider):
            async for frame in frames:
                with bound_context(**context):
                    chunks = _process_frame(frame, normalizer, accumulator)
                for chunk in chunks:
                    metrics.record_chunk(provider)
                    yield chunk

                if accumulator.failed:
                    break

            with bound_context(**context):
                terminal = accumulator.close()
            metrics.record_chunk(provider)
            yield terminal

    except Exception as e:
        error = e
        code = e.error.code if isinstance(e, LLMBridgeException) else type(e).__name__
        metrics.record_upstream_error(provider, code)
        with bound_context(**context):
            logger.warning(
                "Stream failed",
                error_code=code,
                chunks_delivered=accumulator.chunk_count,
            )
        raise

    finally:
        await _close_source(frames)
        with bound_context(**context):
            _finish_stream(
                span=span,
                accumulator=accumulator,
                terminal=terminal,
                error=error,
                stream_id=stream_id,
                provider=provider,
                model=model,
                duration_seconds=time.perf_counter() - started,
            )


def _process_frame(
    frame: RawFrame,
    normalizer: StreamNormalizer,
    accumulator: StreamAccumulator,
) -> List[StreamChunk]:
    chunks = []
    for signal in normalizer.normalize(frame):
        chunk = accumulator.apply(signal)
        if chunk is not None:
            chunks.append(chunk)
    return chunks


def _finish_stream(
    span,
    accumulator: StreamAccumulator,
    terminal: Optional[StreamChunk],
    error: Optional[BaseException],
    stream_id: str,
    provider: str,
    model: str,
    duration_seconds: float,
):
    """
    Record logs, metrics and the span for a stream that ended or was
    abandoned. Runs inside the stream's log context.
    """
    metrics = get_metrics()
    assembler = accumulator.assembler
    completed = len(assembler.completed)

    metrics.record_tool_calls(
        provider,
        complete=completed - assembler.degraded_count,
        degraded=assembler.degraded_count,
        dropped=assembler.dropped_count,
        ignored=accumulator.ignored_fragments,
    )
    if accumulator.ignored_fragments:
        logger.debug(
            "Discarded tool-call fragments of a request without tools",
            fragments=accumulator.ignored_fragments,
        )

    ttft_ms = accumulator.time_to_first_token_ms
    if ttft_ms is not None:
        metrics.record_time_to_first_token(provider, model, ttft_ms / 1000)

    attributes = {
        "ai.stream_id": stream_id,
        "ai.chunks": accumulator.chunk_count,
        "ai.tool_calls": completed,
    }

    if terminal is not None:
        finish_reason = terminal.finish_reason.value
        metrics.record_stream(provider, model, finish_reason, duration_seconds)
        if terminal.usage is not None:
            metrics.record_usage(provider, model, terminal.usage)
            attributes["ai.usage.input_tokens"] = terminal.usage.input_tokens
            attributes["ai.usage.output_tokens"] = terminal.usage.output_tokens
        attributes["ai.finish_reason"] = finish_reason

        if accumulator.failed:
            logger.warning(
                "Stream finished with error",
                error_message=accumulator.finish_message,
            )
        else:
            logger.debug(
                "Stream finished",
                finish_reason=finish_reason,
                chunks=accumulator.chunk_count,
                duration_ms=round(duration_seconds * 1000, 2),
            )
    elif error is None:
        attributes["ai.abandoned"] = True
        logger.debug(
            "Stream abandoned by consumer",
            chunks_delivered=accumulator.chunk_count,
        )

    end_generation_span(
        span,
        attributes=attributes,
        error=error,
        error_description=accumulator.finish_message if accumulator.failed else None,
    )


def normalize_stream(
    frames: AsyncIterator[RawFrame],
    provider: Union[str, Provider],
    settings: Optional[StreamSettings] = None,
    model: str = "",
    tools_enabled: bool = True,
) -> AsyncIterator[StreamChunk]:
    """
    Build the normalizer and accumulator for a provider and stream chunks.

    Usage:
        async for chunk in normalize_stream(frames, "anthropic"):
            print(chunk.delta, end="")
    """
    settings = settings or StreamSettings()
    normalizer = create_normalizer(provider, settings)
    return stream_chunks(
        frames,
        normalizer,
        StreamAccumulator(settings, tools_enabled=tools_enabled),
        model=model,
    )
