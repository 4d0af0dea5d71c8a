"""
llmbridge - Scripted Adapter

Offline adapter for local development and tests. Each call to
stream_frames replays the next scripted frame list instead of calling a
provider.
"""

import json
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, Iterable, List, Optional, Sequence, Union

from ..core.config import parse_provider
from ..core.errors import LLMBridgeException, StreamInterruptedError
from ..core.models import GenerationOptions, Message, Provider
from ..observability.logging import get_logger

logger = get_logger(__name__)

ScriptFrame = Union[str, bytes, Dict[str, Any]]


@dataclass
class RecordedRequest:
    """A request the scripted adapter received."""
    messages: List[Message]
    options: GenerationOptions
    request_id: str = ""


@dataclass
class Script:
    """
    Frames for one generation.

    When `error` is set, it is raised after `fail_after` frames were
    delivered (all of them when `fail_after` is None).
    """
    frames: List[ScriptFrame] = field(default_factory=list)
    error: Optional[LLMBridgeException] = None
    fail_after: Optional[int] = None


class ScriptedAdapter:
    """
    Adapter that replays canned frames in the given provider's format.

    Example:
        adapter = ScriptedAdapter("openai", [[
            {"choices": [{"delta": {"content": "Hi"}}]},
            {"choices": [{"delta": {}, "finish_reason": "stop"}]},
        ]])
    """

    def __init__(
        self,
        provider: Union[str, Provider],
        scripts: Iterable[Union[Script, Sequence[ScriptFrame]]] = (),
    ):
        self.provider = parse_provider(provider)
        self._scripts: List[Script] = [
            s if isinstance(s, Script) else Script(frames=list(s)) for s in scripts
        ]
        self.requests: List[RecordedRequest] = []
        self.frames_delivered = 0
        self.streams_closed = 0
        self.closed = False

    def add_script(
        self,
        frames: Sequence[ScriptFrame],
        error: Optional[LLMBridgeException] = None,
        fail_after: Optional[int] = None,
    ):
        self._scripts.append(Script(frames=list(frames), error=error, fail_after=fail_after))

    @property
    def remaining(self) -> int:
        return len(self._scripts)

    async def stream_frames(
        self,
        messages: List[Message],
        options: GenerationOptions,
        request_id: str = "",
    ) -> AsyncIterator[str]:
        self.requests.append(RecordedRequest(list(messages), options, request_id))
        if not self._scripts:
            raise StreamInterruptedError(self.provider.value, "No scripted response left")

        script = self._scripts.pop(0)
        logger.debug("Replaying scripted stream", provider=self.provider.value, frames=len(script.frames))

        try:
            for position, frame in enumerate(script.frames):
                if script.error is not None and script.fail_after == position:
                    raise script.error
                self.frames_delivered += 1
                yield json.dumps(frame) if isinstance(frame, dict) else frame

            if script.error is not None:
                raise script.error
        finally:
            self.streams_closed += 1

    async def close(self):
        self.closed = True

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
