"""
llmbridge - Provider Adapter Base

An adapter is the raw event source of a generation: it converts the
unified conversation into a provider request, sends it, and yields the
provider's raw stream frames untouched.

Each adapter is responsible for:
1. Converting llmbridge messages and options -> provider payload
2. Making the streaming HTTP call
3. Mapping HTTP and transport failures to llmbridge exceptions
Interpreting the frames is the normalizers' job.
"""

import re
import uuid
from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple

import httpx

from ..core.config import ProviderConfig
from ..core.errors import LLMBridgeException, error_from_exception, error_from_response
from ..core.models import GenerationOptions, Message, Provider
from ..observability.logging import get_logger
from ..streaming.sse import aiter_sse_events

logger = get_logger(__name__)

_DATA_URL_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?:;[^,]*)?;base64,(?P<data>.*)$", re.DOTALL)

_IMAGE_SIGNATURES = (
    ("/9j/", "image/jpeg"),
    ("iVBORw0KGgo", "image/png"),
    ("R0lGOD", "image/gif"),
    ("UklGR", "image/webp"),
)


def parse_data_url(value: str) -> Optional[Tuple[str, str]]:
    """Split a base64 data URL into (mime type, data). None if not a data URL."""
    match = _DATA_URL_RE.match(value)
    if not match:
        return None
    return match.group("mime") or "application/octet-stream", match.group("data")


def detect_image_mime_type(data: str) -> str:
    """Guess the image type of raw base64 data from its leading bytes."""
    for prefix, mime in _IMAGE_SIGNATURES:
        if data.startswith(prefix):
            return mime
    return "image/jpeg"


def split_image(image: str) -> Tuple[str, str]:
    """(mime type, base64 data) of an image given as data URL or raw base64."""
    parsed = parse_data_url(image)
    if parsed:
        return parsed
    return detect_image_mime_type(image), image


def split_audio(audio: str, fmt: Optional[str]) -> Tuple[str, str]:
    """(format, base64 data) of audio given as data URL or raw base64."""
    parsed = parse_data_url(audio)
    if parsed:
        mime, data = parsed
        return fmt or mime.split("/")[-1], data
    return fmt or "wav", audio


def is_remote_url(value: str) -> bool:
    return value.startswith("http://") or value.startswith("https://")


class BaseAdapter(ABC):
    """
    Abstract base class for provider adapters.

    Subclasses implement:
    - build_payload: llmbridge request -> provider JSON body
    - _endpoint: request path for a model
    - _headers: authentication headers
    """

    provider: Provider
    DEFAULT_BASE_URL: str = ""

    def __init__(self, config: ProviderConfig, client: Optional[httpx.AsyncClient] = None):
        self.config = config
        self.base_url = (config.base_url or self.DEFAULT_BASE_URL).rstrip("/")
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=config.timeout)

    @abstractmethod
    def build_payload(self, messages: List[Message], options: GenerationOptions) -> Dict[str, Any]:
        """Build the provider request body."""

    @abstractmethod
    def _endpoint(self, options: GenerationOptions) -> str:
        """Request path, relative to the base URL."""

    @abstractmethod
    def _headers(self) -> Dict[str, str]:
        """Authentication and content headers."""

    async def stream_frames(
        self,
        messages: List[Message],
        options: GenerationOptions,
        request_id: str = "",
    ) -> AsyncIterator[str]:
        """
        Send the request and yield the raw SSE `data` payload of every event.

        Raises:
            LLMBridgeException: HTTP status >= 400 or a transport failure.
                Failures after the first frame propagate the same way.
        """
        request_id = request_id or f"req_{uuid.uuid4().hex[:24]}"
        payload = self.build_payload(messages, options)
        url = f"{self.base_url}{self._endpoint(options)}"

        logger.debug(
            "Opening provider stream",
            provider=self.provider.value,
            model=options.model,
            request_id=request_id,
        )

        try:
            async with self.client.stream(
                "POST",
                url,
                json=payload,
                headers=self._headers(),
            ) as response:
                if response.status_code >= 400:
                    body = await response.aread()
                    raise error_from_response(
                        self.provider.value,
                        response.status_code,
                        body,
                        response.headers,
                        request_id,
                    )

                async for event in aiter_sse_events(response.aiter_lines()):
                    yield event.data

        except LLMBridgeException:
            raise

        except httpx.HTTPError as e:
            raise error_from_exception(self.provider.value, e, request_id) from e

    async def close(self):
        """Close the HTTP client if this adapter created it."""
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
