"""
llmbridge - Client

Entry points that tie an adapter (raw frame source) to the streaming
pipeline:

    provider = create_provider("anthropic")
    async for chunk in provider.generate(messages, {"model": "claude-sonnet-4-5"}):
        print(chunk.delta, end="")
"""

import uuid
from typing import Any, AsyncIterator, Dict, List, Mapping, Optional, Union

import httpx

from .adapters import ScriptedAdapter, get_adapter
from .adapters.base import BaseAdapter
from .core.config import ProviderConfig, StreamSettings, available_providers
from .core.models import GenerationOptions, Message, Provider, StreamChunk
from .core.schema import validate_options
from .observability.logging import get_logger
from .streaming.accumulator import StreamAccumulator
from .streaming.normalizer import create_normalizer
from .streaming.pipeline import stream_chunks

logger = get_logger(__name__)

Options = Union[GenerationOptions, Mapping[str, Any]]


class LLMProvider:
    """
    Handle for one provider: an adapter plus stream settings.

    Every call to generate() gets its own normalizer and accumulator, so
    concurrent generations on one provider share no state.
    """

    def __init__(
        self,
        adapter: Union[BaseAdapter, ScriptedAdapter],
        settings: Optional[StreamSettings] = None,
        default_options: Optional[Mapping[str, Any]] = None,
    ):
        self.adapter = adapter
        self.settings = settings or StreamSettings()
        self.default_options: Dict[str, Any] = dict(default_options or {})

    @property
    def provider(self) -> Provider:
        return self.adapter.provider

    def _resolve_options(self, options: Optional[Options]) -> GenerationOptions:
        if options is None:
            return validate_options(self.default_options)
        if isinstance(options, GenerationOptions):
            return validate_options(options)
        return validate_options({**self.default_options, **options})

    def generate(
        self,
        messages: List[Message],
        options: Optional[Options] = None,
    ) -> AsyncIterator[StreamChunk]:
        """
        Stream one generation as StreamChunks.

        Options are validated immediately; the request is sent on the
        first pull. Tool calls are only assembled when the options declare
        tools and tool_choice is not "none".

        Raises:
            InvalidOptionsError: if the options fail validation
        """
        resolved = self._resolve_options(options)
        request_id = f"req_{uuid.uuid4().hex[:24]}"
        frames = self.adapter.stream_frames(list(messages), resolved, request_id=request_id)
        normalizer = create_normalizer(self.provider, self.settings)
        accumulator = StreamAccumulator(self.settings, tools_enabled=resolved.tools_enabled)
        return stream_chunks(frames, normalizer, accumulator, model=resolved.model)

    async def close(self):
        await self.adapter.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def __repr__(self) -> str:
        return f"LLMProvider(provider={self.provider.value!r})"


def create_provider(
    provider: Union[str, Provider],
    api_key: Optional[str] = None,
    base_url: Optional[str] = None,
    timeout: Optional[float] = None,
    settings: Optional[StreamSettings] = None,
    client: Optional[httpx.AsyncClient] = None,
    **default_options: Any
) -> LLMProvider:
    """
    Create a provider handle.

    Args:
        provider: "openai", "openai_responses", "anthropic" or "google"
        api_key: API key (defaults to the provider's env var)
        base_url: Override the API base URL
        timeout: Request timeout in seconds
        settings: Stream settings (defaults to StreamSettings.from_env())
        client: Shared httpx.AsyncClient
        **default_options: Generation options applied to every call,
            e.g. model="gpt-4o-mini"

    Raises:
        UnsupportedProviderError: unknown provider name
        MissingAPIKeyError: no API key given or found in the environment
    """
    config = ProviderConfig.from_env(provider, api_key=api_key, base_url=base_url, timeout=timeout)
    return LLMProvider(
        get_adapter(config, client=client),
        settings=settings or StreamSettings.from_env(),
        default_options=default_options,
    )


def get_available_provider(**default_options: Any) -> Optional[LLMProvider]:
    """
    First provider with an API key in the environment.

    Checked in order: OpenAI, Anthropic, Google. Returns None when no key
    is set.
    """
    found = available_providers()
    if not found:
        return None

    provider, api_key = next(iter(found.items()))
    logger.debug("Using provider from environment", provider=provider.value)
    return create_provider(provider, api_key=api_key, **default_options)


async def generate(
    provider: Union[LLMProvider, str, Provider],
    messages: List[Message],
    options: Optional[Options] = None,
    **provider_kwargs: Any
) -> AsyncIterator[StreamChunk]:
    """
    Convenience generator over a provider handle or provider name.

    A handle created here from a name is closed when the stream ends.

    Usage:
        async for chunk in generate("openai", [Message.user("Hi")], {"model": "gpt-4o-mini"}):
            print(chunk.delta, end="")
    """
    owned = not isinstance(provider, LLMProvider)
    handle = create_provider(provider, **provider_kwargs) if owned else provider

    stream = handle.generate(messages, options)
    try:
        async for chunk in stream:
            yield chunk
    finally:
        await stream.aclose()
        if owned:
            await handle.close()
