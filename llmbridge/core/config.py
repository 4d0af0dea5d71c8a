"""
llmbridge - Configuration

Provider credentials and stream settings, resolved from explicit
arguments first and environment variables second.
"""

import os
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

from .errors import MissingAPIKeyError, UnsupportedProviderError
from .models import Provider


API_KEY_ENV_VARS: Dict[Provider, str] = {
    Provider.OPENAI: "OPENAI_API_KEY",
    Provider.OPENAI_RESPONSES: "OPENAI_API_KEY",
    Provider.ANTHROPIC: "ANTHROPIC_API_KEY",
    Provider.GOOGLE: "GOOGLE_API_KEY",
}

# Providers picked up from the environment, in preference order
AUTO_DETECT_ORDER = (Provider.OPENAI, Provider.ANTHROPIC, Provider.GOOGLE)

OPENAI_FAMILY = (Provider.OPENAI, Provider.OPENAI_RESPONSES)

DEFAULT_TIMEOUT = 60.0


def _is_truthy(value: Optional[str]) -> bool:
    """Check if environment variable is truthy."""
    if value is None:
        return False
    return value.lower() in ("1", "true", "yes", "on")


def parse_provider(provider: str) -> Provider:
    """Resolve a provider name, raising UnsupportedProviderError if unknown."""
    if isinstance(provider, Provider):
        return provider
    try:
        return Provider(provider.lower().strip())
    except ValueError:
        raise UnsupportedProviderError(provider)


class ToolCallEmission(str, Enum):
    """Which tool calls a tool-call chunk carries."""

    FULL = "full"  # every finalized call of the turn so far
    NEW = "new"    # only the calls finalized by this signal


class SnapshotMode(str, Enum):
    """How the Google normalizer interprets text parts."""

    AUTO = "auto"          # snapshot if the part extends the accumulated text
    SNAPSHOT = "snapshot"  # every part is the full text so far
    DELTA = "delta"        # every part is an increment


@dataclass
class ProviderConfig:
    """Credentials and transport settings for one provider."""
    provider: Provider
    api_key: str
    base_url: Optional[str] = None
    timeout: float = DEFAULT_TIMEOUT
    organization: Optional[str] = None
    api_version: Optional[str] = None

    @classmethod
    def from_env(
        cls,
        provider: str,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> "ProviderConfig":
        """
        Build a config, filling unset fields from the environment.

        Reads `<PROVIDER>_API_KEY`, `LLMBRIDGE_<PROVIDER>_BASE_URL` and
        `LLMBRIDGE_TIMEOUT`.
        """
        resolved = parse_provider(provider)
        env_var = API_KEY_ENV_VARS[resolved]

        key = api_key or os.getenv(env_var, "").strip()
        if not key:
            raise MissingAPIKeyError(resolved.value, env_var)

        if base_url is None:
            base_url = os.getenv(f"LLMBRIDGE_{resolved.name}_BASE_URL") or None

        if timeout is None:
            timeout = float(os.getenv("LLMBRIDGE_TIMEOUT", DEFAULT_TIMEOUT))

        return cls(
            provider=resolved,
            api_key=key,
            base_url=base_url,
            timeout=timeout,
            organization=os.getenv("OPENAI_ORGANIZATION") if resolved in OPENAI_FAMILY else None,
        )


@dataclass
class StreamSettings:
    """Policies of the stream accumulator and normalizers."""
    tool_call_emission: ToolCallEmission = ToolCallEmission.FULL
    track_timing: bool = False
    snapshot_mode: SnapshotMode = SnapshotMode.AUTO

    @classmethod
    def from_env(cls) -> "StreamSettings":
        """
        Read settings from `LLMBRIDGE_TOOL_CALL_EMISSION`,
        `LLMBRIDGE_TRACK_TIMING` and `LLMBRIDGE_SNAPSHOT_MODE`.
        """
        emission = os.getenv("LLMBRIDGE_TOOL_CALL_EMISSION", "full").lower().strip()
        snapshot = os.getenv("LLMBRIDGE_SNAPSHOT_MODE", "auto").lower().strip()
        try:
            return cls(
                tool_call_emission=ToolCallEmission(emission),
                track_timing=_is_truthy(os.getenv("LLMBRIDGE_TRACK_TIMING")),
                snapshot_mode=SnapshotMode(snapshot),
            )
        except ValueError as e:
            raise ValueError(f"Invalid llmbridge stream setting: {e}")


def available_providers() -> Dict[Provider, str]:
    """Providers with an API key present in the environment, in preference order."""
    found: Dict[Provider, str] = {}
    for provider in AUTO_DETECT_ORDER:
        value = os.getenv(API_KEY_ENV_VARS[provider], "").strip()
        if value:
            found[provider] = value
    return found
