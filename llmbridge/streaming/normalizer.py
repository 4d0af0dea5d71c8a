"""
llmbridge - Stream Normalizers

Translates each provider's raw streaming frames into the shared signal
vocabulary (see signals.py).

One normalizer instance per stream. Normalizers are stateful where the
wire format requires it (open tool-call indices, content-block kinds,
snapshot lengths), and every text signal they emit is a delta even when
the wire carries a snapshot.

Frame handling is split into three independent extractions:
1. Content (text, reasoning, tool-call fragments)
2. Usage
3. Finish
A frame whose content is malformed still reports its usage; the finish
it carried is replaced by an error finish.
"""

import json
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Union

from ..core.config import SnapshotMode, StreamSettings, parse_provider
from ..core.models import FinishReason, GenerationUsage, Provider
from ..observability.logging import get_logger
from .signals import (
    FinishSignal,
    ReasoningDelta,
    Signal,
    TextDelta,
    ToolCallFragment,
    UsageSignal,
)
from .tool_calls import generate_call_id, parse_arguments

logger = get_logger(__name__)

RawFrame = Union[str, bytes, Mapping[str, Any]]

_EXTRACTION_ERRORS = (TypeError, AttributeError, KeyError, ValueError, IndexError)


def _usage_signal(source: Mapping[str, Any], field_map: Dict[str, str]) -> List[Signal]:
    """Build a usage signal from the integer fields named in `field_map`."""
    values = {}
    for wire_name, field_name in field_map.items():
        value = source.get(wire_name)
        if isinstance(value, int) and not isinstance(value, bool):
            values[field_name] = value
    if not values:
        return []
    return [UsageSignal(GenerationUsage(**values))]


def _optional_str(value: Any, what: str) -> Optional[str]:
    """`value` if it is a string or None, else TypeError."""
    if value is None or isinstance(value, str):
        return value
    raise TypeError(f"{what} is not a string")


def _arguments_fields(value: Any, what: str) -> Dict[str, Any]:
    """
    ToolCallFragment keyword arguments for a wire `arguments` value.

    Arguments normally stream as JSON text; some compatible servers send
    the parsed object instead.
    """
    if isinstance(value, dict):
        return {"arguments": value}
    return {"arguments_delta": _optional_str(value, what) or ""}


class StreamNormalizer(ABC):
    """
    Base class for provider normalizers.

    Subclasses implement the three extractions; `normalize` handles frame
    decoding and the malformed-frame policy.
    """

    provider: Provider

    def __init__(self, settings: Optional[StreamSettings] = None):
        self.settings = settings or StreamSettings()
        self.frames_seen = 0

    def normalize(self, frame: RawFrame) -> List[Signal]:
        """
        Translate one raw frame into signals.

        Args:
            frame: Decoded mapping, or the raw JSON text of one frame

        Returns:
            Signals in the order they must be applied
        """
        self.frames_seen += 1

        data, error = self._decode(frame)
        if error is not None:
            logger.warning(
                "Unparseable stream frame",
                provider=self.provider.value,
                reason=error,
            )
            return [FinishSignal(FinishReason.ERROR, error)]
        if data is None:
            return []

        vendor_error = self._vendor_error(data)
        if vendor_error is not None:
            logger.warning(
                "Provider reported an error mid-stream",
                provider=self.provider.value,
                error_message=vendor_error,
            )
            return [FinishSignal(FinishReason.ERROR, vendor_error)]

        content, content_error = self._extract(self._content_signals, data)
        usage, usage_error = self._extract(self._usage_signals, data)
        finish, finish_error = self._extract(self._finish_signals, data)

        problems = [e for e in (content_error, usage_error, finish_error) if e]
        if problems:
            message = f"Malformed {self.provider.value} frame: {'; '.join(problems)}"
            logger.warning(message, provider=self.provider.value)
            return content + usage + [FinishSignal(FinishReason.ERROR, message)]

        return content + usage + finish

    def _decode(self, frame: RawFrame) -> Tuple[Optional[Dict[str, Any]], Optional[str]]:
        if isinstance(frame, Mapping):
            return dict(frame), None

        if isinstance(frame, bytes):
            try:
                frame = frame.decode("utf-8")
            except UnicodeDecodeError:
                return None, "Frame is not valid UTF-8"

        if not isinstance(frame, str):
            return None, f"Unexpected frame type: {type(frame).__name__}"

        text = frame.strip()
        if not text or text == "[DONE]":
            return None, None

        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            return None, f"Invalid JSON in stream frame: {e.msg}"

        if not isinstance(data, dict):
            return None, f"Unexpected frame shape: {type(data).__name__}"

        return data, None

    def _extract(
        self,
        extractor: Callable[[Dict[str, Any]], List[Signal]],
        data: Dict[str, Any],
    ) -> Tuple[List[Signal], Optional[str]]:
        try:
            return extractor(data), None
        except _EXTRACTION_ERRORS as e:
            return [], f"{type(e).__name__}: {e}"

    def _vendor_error(self, data: Dict[str, Any]) -> Optional[str]:
        """Error message if the frame is a provider error payload."""
        error = data.get("error")
        if error is None:
            return None
        if isinstance(error, dict):
            return str(error.get("message") or error.get("type") or "Provider error")
        return str(error)

    @abstractmethod
    def _content_signals(self, data: Dict[str, Any]) -> List[Signal]:
        """Text, reasoning and tool-call signals of a frame."""

    @abstractmethod
    def _usage_signals(self, data: Dict[str, Any]) -> List[Signal]:
        """Usage signals of a frame."""

    @abstractmethod
    def _finish_signals(self, data: Dict[str, Any]) -> List[Signal]:
        """Completion markers and the finish signal of a frame."""


# ============================================================
# OpenAI
# ============================================================

class OpenAINormalizer(StreamNormalizer):
    """
    Chat-completions stream.

    Tool-call fragments are identified by `index`; the `id` only appears
    on the first fragment of each call. Calls stay open until the choice
    reports a finish reason.
    """

    provider = Provider.OPENAI

    FINISH_MAP = {
        "stop": FinishReason.STOP,
        "length": FinishReason.LENGTH,
        "tool_calls": FinishReason.TOOL_USE,
        "function_call": FinishReason.TOOL_USE,
        "content_filter": FinishReason.STOP,
    }

    USAGE_FIELDS = {
        "prompt_tokens": "input_tokens",
        "completion_tokens": "output_tokens",
        "total_tokens": "total_tokens",
    }

    def __init__(self, settings: Optional[StreamSettings] = None):
        super().__init__(settings)
        self._open_indices: List[int] = []

    def _choice(self, data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        choices = data.get("choices") or []
        if not isinstance(choices, list):
            raise TypeError("choices is not a list")
        if not choices:
            return None
        if not isinstance(choices[0], dict):
            raise TypeError("choice is not an object")
        return choices[0]

    def _content_signals(self, data: Dict[str, Any]) -> List[Signal]:
        choice = self._choice(data)
        if choice is None:
            return []

        delta = choice.get("delta") or {}
        signals: List[Signal] = []

        reasoning = delta.get("reasoning")
        if reasoning is None:
            reasoning = delta.get("reasoning_content")
        if reasoning:
            if not isinstance(reasoning, str):
                raise TypeError("reasoning delta is not a string")
            signals.append(ReasoningDelta(reasoning))

        content = delta.get("content")
        if content:
            if not isinstance(content, str):
                raise TypeError("content delta is not a string")
            signals.append(TextDelta(content))

        fragments: List[ToolCallFragment] = []
        for tc in delta.get("tool_calls") or []:
            index = tc.get("index", 0)
            if not isinstance(index, int) or isinstance(index, bool):
                raise TypeError("tool call index is not an integer")
            function = tc.get("function") or {}
            fragments.append(ToolCallFragment(
                call_id=_optional_str(tc.get("id"), "tool call id"),
                index=index,
                name=_optional_str(function.get("name"), "function name"),
                **_arguments_fields(function.get("arguments"), "function arguments"),
            ))

        # Legacy single function call
        function_call = delta.get("function_call")
        if function_call:
            fragments.append(ToolCallFragment(
                index=0,
                name=_optional_str(function_call.get("name"), "function_call name"),
                **_arguments_fields(function_call.get("arguments"), "function_call arguments"),
            ))

        # Only a fully validated frame opens calls
        for fragment in fragments:
            if fragment.index not in self._open_indices:
                self._open_indices.append(fragment.index)

        return signals + fragments

    def _usage_signals(self, data: Dict[str, Any]) -> List[Signal]:
        usage = data.get("usage")
        if not usage:
            return []

        signals = _usage_signal(usage, self.USAGE_FIELDS)
        details = _usage_signal(
            usage.get("completion_tokens_details") or {},
            {"reasoning_tokens": "reasoning_tokens"},
        )
        cached = _usage_signal(
            usage.get("prompt_tokens_details") or {},
            {"cached_tokens": "cache_tokens"},
        )
        return signals + details + cached

    def _finish_signals(self, data: Dict[str, Any]) -> List[Signal]:
        choice = self._choice(data)
        if choice is None:
            return []

        finish_reason = choice.get("finish_reason")
        if not finish_reason:
            return []

        signals: List[Signal] = [
            ToolCallFragment(index=index, complete=True)
            for index in self._open_indices
        ]
        self._open_indices = []
        signals.append(FinishSignal(self.FINISH_MAP.get(finish_reason, FinishReason.STOP)))
        return signals


# ============================================================
# OpenAI Responses
# ============================================================

class OpenAIResponsesNormalizer(StreamNormalizer):
    """
    Responses API stream.

    Every frame is a typed event. A function call opens with an
    `output_item.added` event that carries its `call_id`; argument events
    may only name the call by `output_index`, which is resolved through
    the id recorded when the call opened. The call completes with
    `function_call_arguments.done`, whose full arguments text wins over
    the streamed fragments.
    """

    provider = Provider.OPENAI_RESPONSES

    STATUS_MAP = {
        "completed": FinishReason.STOP,
        "incomplete": FinishReason.LENGTH,
        "failed": FinishReason.ERROR,
        "tool_calls_required": FinishReason.TOOL_USE,
    }

    TERMINAL_EVENTS = {
        "response.completed": "completed",
        "response.incomplete": "incomplete",
        "response.failed": "failed",
    }

    TEXT_EVENTS = {"response.output_text.delta"}
    REASONING_EVENTS = {"response.reasoning_summary_text.delta", "response.reasoning_text.delta"}

    USAGE_FIELDS = {
        "input_tokens": "input_tokens",
        "output_tokens": "output_tokens",
        "total_tokens": "total_tokens",
    }

    def __init__(self, settings: Optional[StreamSettings] = None):
        super().__init__(settings)
        self._call_ids: Dict[int, str] = {}
        # call id -> arguments text streamed so far, for calls still open
        self._open_calls: Dict[str, str] = {}
        self._saw_function_call = False

    def _vendor_error(self, data: Dict[str, Any]) -> Optional[str]:
        if data.get("type") != "error":
            return super()._vendor_error(data)
        error = data.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        return str(data.get("message") or data.get("code") or "Provider error")

    def _resolve_call(self, data: Dict[str, Any]) -> Optional[str]:
        call_id = _optional_str(data.get("call_id"), "call_id")
        if call_id:
            return call_id
        return self._call_ids.get(data.get("output_index"))

    def _content_signals(self, data: Dict[str, Any]) -> List[Signal]:
        event_type = data.get("type")

        if event_type in self.TEXT_EVENTS:
            text = _optional_str(data["delta"], "text delta")
            return [TextDelta(text)] if text else []

        if event_type in self.REASONING_EVENTS:
            text = _optional_str(data["delta"], "reasoning delta")
            return [ReasoningDelta(text)] if text else []

        if event_type == "response.output_item.added":
            item = data["item"]
            if item.get("type") != "function_call":
                return []
            call_id = _optional_str(item["call_id"], "function_call call_id")
            name = _optional_str(item.get("name"), "function_call name")
            arguments = _optional_str(item.get("arguments"), "function_call arguments") or ""
            output_index = data.get("output_index")
            if output_index is not None:
                self._call_ids[output_index] = call_id
            self._open_calls[call_id] = arguments
            self._saw_function_call = True
            return [ToolCallFragment(
                call_id=call_id,
                index=output_index,
                name=name,
                arguments_delta=arguments,
            )]

        if event_type == "response.function_call_arguments.delta":
            delta = _optional_str(data["delta"], "arguments delta") or ""
            call_id = self._resolve_call(data)
            if call_id not in self._open_calls:
                logger.debug("Ignoring arguments for an unknown function call", output_index=data.get("output_index"))
                return []
            self._open_calls[call_id] += delta
            return [ToolCallFragment(call_id=call_id, arguments_delta=delta)] if delta else []

        if event_type == "response.function_call_arguments.done":
            final = _optional_str(data.get("arguments"), "arguments")
            return self._complete_call(self._resolve_call(data), final)

        if event_type == "response.output_item.done":
            item = data["item"]
            if item.get("type") != "function_call":
                return []
            call_id = _optional_str(item.get("call_id"), "function_call call_id")
            final = _optional_str(item.get("arguments"), "function_call arguments")
            return self._complete_call(call_id, final)

        return []

    def _complete_call(self, call_id: Optional[str], final: Optional[str]) -> List[Signal]:
        """Close an open call, reconciling its streamed arguments with the final text."""
        if call_id not in self._open_calls:
            return []

        streamed = self._open_calls.pop(call_id)
        if not final or final == streamed:
            return [ToolCallFragment(call_id=call_id, complete=True)]

        if final.startswith(streamed):
            return [ToolCallFragment(call_id=call_id, arguments_delta=final[len(streamed):], complete=True)]

        arguments, degraded = parse_arguments(final)
        if degraded:
            logger.warning(
                "Final function call arguments are not valid JSON, keeping streamed arguments",
                tool_call_id=call_id,
                arguments_length=len(final),
            )
            return [ToolCallFragment(call_id=call_id, complete=True)]
        return [ToolCallFragment(call_id=call_id, arguments=arguments, complete=True)]

    def _response(self, data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        if data.get("type") not in self.TERMINAL_EVENTS:
            return None
        response = data.get("response") or {}
        if not isinstance(response, dict):
            raise TypeError("response is not an object")
        return response

    def _usage_signals(self, data: Dict[str, Any]) -> List[Signal]:
        response = self._response(data)
        if not response:
            return []

        usage = response.get("usage") or {}
        signals = _usage_signal(usage, self.USAGE_FIELDS)
        details = _usage_signal(
            usage.get("output_tokens_details") or {},
            {"reasoning_tokens": "reasoning_tokens"},
        )
        cached = _usage_signal(
            usage.get("input_tokens_details") or {},
            {"cached_tokens": "cache_tokens"},
        )
        return signals + details + cached

    def _finish_signals(self, data: Dict[str, Any]) -> List[Signal]:
        response = self._response(data)
        if response is None:
            return []

        # Calls the provider never closed are completed with the response
        signals: List[Signal] = [
            ToolCallFragment(call_id=call_id, complete=True)
            for call_id in self._open_calls
        ]
        self._open_calls = {}

        status = response.get("status") or self.TERMINAL_EVENTS[data["type"]]
        reason = self.STATUS_MAP.get(status, FinishReason.STOP)
        if reason == FinishReason.STOP and self._saw_function_call:
            reason = FinishReason.TOOL_USE

        message = None
        if reason == FinishReason.ERROR:
            error = response.get("error") or {}
            message = str(error.get("message") or "Response failed") if isinstance(error, dict) else str(error)

        signals.append(FinishSignal(reason, message))
        return signals


# ============================================================
# Anthropic
# ============================================================

class AnthropicNormalizer(StreamNormalizer):
    """
    Messages stream.

    Content arrives in indexed blocks that may interleave; each block is
    text, thinking, or a tool use whose arguments stream as JSON text
    until the block stops.
    """

    provider = Provider.ANTHROPIC

    STOP_REASON_MAP = {
        "end_turn": FinishReason.STOP,
        "max_tokens": FinishReason.LENGTH,
        "stop_sequence": FinishReason.STOP,
        "tool_use": FinishReason.TOOL_USE,
        "pause_turn": FinishReason.STOP,
        "refusal": FinishReason.ERROR,
    }

    START_USAGE_FIELDS = {
        "input_tokens": "input_tokens",
        "cache_read_input_tokens": "cache_tokens",
    }

    DELTA_USAGE_FIELDS = {
        "input_tokens": "input_tokens",
        "output_tokens": "output_tokens",
        "cache_read_input_tokens": "cache_tokens",
    }

    def __init__(self, settings: Optional[StreamSettings] = None):
        super().__init__(settings)
        self._tool_blocks: Dict[int, str] = {}

    def _vendor_error(self, data: Dict[str, Any]) -> Optional[str]:
        if data.get("type") != "error":
            return None
        error = data.get("error") or {}
        if isinstance(error, dict):
            return str(error.get("message") or error.get("type") or "Provider error")
        return str(error)

    def _content_signals(self, data: Dict[str, Any]) -> List[Signal]:
        event_type = data.get("type")

        if event_type == "content_block_start":
            index = data.get("index", 0)
            block = data["content_block"]
            block_type = block.get("type")

            if block_type == "tool_use":
                name = _optional_str(block.get("name"), "tool_use name")
                tool_input = block.get("input")
                if tool_input is not None and not isinstance(tool_input, dict):
                    raise TypeError("tool_use input is not an object")
                call_id = _optional_str(block.get("id"), "tool_use id") or generate_call_id()
                self._tool_blocks[index] = call_id
                return [ToolCallFragment(
                    call_id=call_id,
                    name=name,
                    arguments=tool_input if tool_input else None,
                )]
            if block_type == "text" and block.get("text"):
                return [TextDelta(_optional_str(block["text"], "text block"))]
            if block_type == "thinking" and block.get("thinking"):
                return [ReasoningDelta(_optional_str(block["thinking"], "thinking block"))]
            return []

        if event_type == "content_block_delta":
            index = data.get("index", 0)
            delta = data["delta"]
            delta_type = delta.get("type")

            if delta_type == "text_delta":
                text = _optional_str(delta["text"], "text delta")
                return [TextDelta(text)] if text else []
            if delta_type == "thinking_delta":
                thinking = _optional_str(delta["thinking"], "thinking delta")
                return [ReasoningDelta(thinking)] if thinking else []
            if delta_type == "input_json_delta":
                return [ToolCallFragment(
                    call_id=self._tool_blocks[index],
                    arguments_delta=_optional_str(delta.get("partial_json"), "partial_json") or "",
                )]
            return []

        if event_type == "content_block_stop":
            call_id = self._tool_blocks.pop(data.get("index", 0), None)
            if call_id is None:
                return []
            return [ToolCallFragment(call_id=call_id, complete=True)]

        return []

    def _usage_signals(self, data: Dict[str, Any]) -> List[Signal]:
        event_type = data.get("type")

        if event_type == "message_start":
            usage = (data.get("message") or {}).get("usage") or {}
            return _usage_signal(usage, self.START_USAGE_FIELDS)

        if event_type == "message_delta":
            return _usage_signal(data.get("usage") or {}, self.DELTA_USAGE_FIELDS)

        return []

    def _finish_signals(self, data: Dict[str, Any]) -> List[Signal]:
        if data.get("type") != "message_delta":
            return []

        stop_reason = (data.get("delta") or {}).get("stop_reason")
        if not stop_reason:
            return []

        # Blocks left open by the provider are completed with the turn
        signals: List[Signal] = [
            ToolCallFragment(call_id=call_id, complete=True)
            for call_id in self._tool_blocks.values()
        ]
        self._tool_blocks = {}

        reason = self.STOP_REASON_MAP.get(stop_reason, FinishReason.STOP)
        message = f"Provider stopped with {stop_reason}" if reason == FinishReason.ERROR else None
        signals.append(FinishSignal(reason, message))
        return signals


# ============================================================
# Google
# ============================================================

class GoogleNormalizer(StreamNormalizer):
    """
    streamGenerateContent stream.

    A frame's text is the concatenation of its text parts, taken per
    channel (answer text and thought text), and is diffed once per frame
    against what the channel has already produced.

    In AUTO mode a channel's shape is decided by the first frame after
    text has been seen that differs from the accumulated text: one that
    extends it makes the channel a snapshot channel, anything else a
    delta channel. A frame that repeats the accumulated text exactly adds
    nothing and decides nothing.

    Function calls always arrive whole.
    """

    provider = Provider.GOOGLE

    FINISH_MAP = {
        "STOP": FinishReason.STOP,
        "MAX_TOKENS": FinishReason.LENGTH,
        "SAFETY": FinishReason.STOP,
        "RECITATION": FinishReason.STOP,
        "OTHER": FinishReason.STOP,
    }

    USAGE_FIELDS = {
        "promptTokenCount": "input_tokens",
        "candidatesTokenCount": "output_tokens",
        "totalTokenCount": "total_tokens",
        "thoughtsTokenCount": "reasoning_tokens",
        "cachedContentTokenCount": "cache_tokens",
    }

    def __init__(self, settings: Optional[StreamSettings] = None):
        super().__init__(settings)
        self._seen: Dict[str, str] = {"text": "", "thought": ""}
        self._modes: Dict[str, SnapshotMode] = {
            "text": self.settings.snapshot_mode,
            "thought": self.settings.snapshot_mode,
        }
        self._saw_function_call = False

    def _diff(self, channel: str, text: str) -> str:
        """Increment a frame's text adds to its channel."""
        seen = self._seen[channel]
        mode = self._modes[channel]

        if mode == SnapshotMode.AUTO and seen:
            if text == seen:
                return ""
            mode = SnapshotMode.SNAPSHOT if text.startswith(seen) else SnapshotMode.DELTA
            self._modes[channel] = mode
            logger.debug("Resolved text channel shape", channel=channel, mode=mode.value)

        if mode == SnapshotMode.SNAPSHOT:
            if text.startswith(seen):
                delta = text[len(seen):]
            else:
                # Content never shrinks, so a rewritten snapshot only contributes its tail
                logger.warning(
                    "Snapshot does not extend accumulated text",
                    channel=channel,
                    seen_length=len(seen),
                    snapshot_length=len(text),
                )
                delta = text[len(seen):] if len(text) > len(seen) else ""
        else:
            delta = text

        self._seen[channel] = seen + delta
        return delta

    def _candidate(self, data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        candidates = data.get("candidates") or []
        if not isinstance(candidates, list):
            raise TypeError("candidates is not a list")
        if not candidates:
            return None
        if not isinstance(candidates[0], dict):
            raise TypeError("candidate is not an object")
        return candidates[0]

    def _content_signals(self, data: Dict[str, Any]) -> List[Signal]:
        candidate = self._candidate(data)
        if candidate is None:
            return []

        parts = (candidate.get("content") or {}).get("parts") or []

        # Channel text of this frame, and the output order: a channel sits
        # where its first part appeared
        texts: Dict[str, List[str]] = {}
        order: List[Union[str, ToolCallFragment]] = []

        for part in parts:
            if "functionCall" in part:
                fc = part["functionCall"]
                args = fc.get("args") or {}
                if not isinstance(args, dict):
                    raise TypeError("functionCall args is not an object")
                order.append(ToolCallFragment(
                    call_id=_optional_str(fc.get("id"), "functionCall id") or generate_call_id(),
                    name=_optional_str(fc["name"], "functionCall name"),
                    arguments=args,
                    complete=True,
                ))
            elif "text" in part:
                text = part["text"]
                if not isinstance(text, str):
                    raise TypeError("text part is not a string")
                channel = "thought" if part.get("thought") else "text"
                if channel not in texts:
                    texts[channel] = []
                    order.append(channel)
                texts[channel].append(text)

        signals: List[Signal] = []
        for entry in order:
            if isinstance(entry, ToolCallFragment):
                self._saw_function_call = True
                signals.append(entry)
                continue
            delta = self._diff(entry, "".join(texts[entry]))
            if delta:
                signals.append(ReasoningDelta(delta) if entry == "thought" else TextDelta(delta))

        return signals

    def _usage_signals(self, data: Dict[str, Any]) -> List[Signal]:
        usage = data.get("usageMetadata")
        if not usage:
            return []
        return _usage_signal(usage, self.USAGE_FIELDS)

    def _finish_signals(self, data: Dict[str, Any]) -> List[Signal]:
        candidate = self._candidate(data)
        if candidate is None:
            return []

        finish_reason = candidate.get("finishReason")
        if not finish_reason:
            return []

        reason = self.FINISH_MAP.get(finish_reason, FinishReason.STOP)
        if reason == FinishReason.STOP and self._saw_function_call:
            reason = FinishReason.TOOL_USE
        return [FinishSignal(reason)]


# ============================================================
# Factory
# ============================================================

NORMALIZERS = {
    Provider.OPENAI: OpenAINormalizer,
    Provider.OPENAI_RESPONSES: OpenAIResponsesNormalizer,
    Provider.ANTHROPIC: AnthropicNormalizer,
    Provider.GOOGLE: GoogleNormalizer,
}


def create_normalizer(
    provider: Union[str, Provider],
    settings: Optional[StreamSettings] = None,
) -> StreamNormalizer:
    """
    Create the normalizer for a provider.

    Raises:
        UnsupportedProviderError: if the provider is unknown
    """
    return NORMALIZERS[parse_provider(provider)](settings)
