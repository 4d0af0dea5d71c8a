"""
llmbridge Adapters Module

Provider-specific adapters that translate the unified conversation into
each provider's native streaming request and yield its raw frames.
"""

from typing import Optional

import httpx

from .base import BaseAdapter
from .openai_adapter import OpenAIAdapter
from .openai_responses_adapter import OpenAIResponsesAdapter
from .anthropic_adapter import AnthropicAdapter
from .google_adapter import GoogleAdapter
from .stub_adapter import ScriptedAdapter, Script
from ..core.config import ProviderConfig
from ..core.models import Provider

__all__ = [
    "BaseAdapter",
    "OpenAIAdapter",
    "OpenAIResponsesAdapter",
    "AnthropicAdapter",
    "GoogleAdapter",
    "ScriptedAdapter",
    "Script",
    "get_adapter",
]

ADAPTERS = {
    Provider.OPENAI: OpenAIAdapter,
    Provider.OPENAI_RESPONSES: OpenAIResponsesAdapter,
    Provider.ANTHROPIC: AnthropicAdapter,
    Provider.GOOGLE: GoogleAdapter,
}


def get_adapter(config: ProviderConfig, client: Optional[httpx.AsyncClient] = None) -> BaseAdapter:
    """
    Factory function to get the appropriate adapter for a provider.

    Args:
        config: Provider configuration with API key
        client: Shared HTTP client (the adapter creates and owns one if omitted)

    Returns:
        Configured adapter instance
    """
    return ADAPTERS[config.provider](config, client=client)
