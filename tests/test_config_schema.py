"""
llmbridge - Configuration and Options Validation Tests
"""

import pytest

from llmbridge.core.config import (
    ProviderConfig,
    SnapshotMode,
    StreamSettings,
    ToolCallEmission,
    available_providers,
    parse_provider,
)
from llmbridge.core.errors import InvalidOptionsError, MissingAPIKeyError, UnsupportedProviderError
from llmbridge.core.models import GenerationOptions, Provider, Tool, ToolChoiceSpecific
from llmbridge.core.schema import validate_options


@pytest.fixture
def clean_env(monkeypatch):
    for name in (
        "OPENAI_API_KEY", "ANTHROPIC_API_KEY", "GOOGLE_API_KEY", "OPENAI_ORGANIZATION",
        "LLMBRIDGE_OPENAI_BASE_URL", "LLMBRIDGE_TIMEOUT", "LLMBRIDGE_TOOL_CALL_EMISSION",
        "LLMBRIDGE_TRACK_TIMING", "LLMBRIDGE_SNAPSHOT_MODE",
    ):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


# ============================================================
# Provider Config
# ============================================================

class TestProviderConfig:

    def test_parse_provider(self):
        assert parse_provider(" Anthropic ") == Provider.ANTHROPIC
        assert parse_provider(Provider.GOOGLE) == Provider.GOOGLE
        with pytest.raises(UnsupportedProviderError):
            parse_provider("cohere")

    def test_from_env(self, clean_env):
        clean_env.setenv("OPENAI_API_KEY", "sk-env")
        clean_env.setenv("OPENAI_ORGANIZATION", "org-1")
        clean_env.setenv("LLMBRIDGE_OPENAI_BASE_URL", "http://proxy/v1")
        clean_env.setenv("LLMBRIDGE_TIMEOUT", "12.5")

        config = ProviderConfig.from_env("openai")

        assert config.api_key == "sk-env"
        assert config.organization == "org-1"
        assert config.base_url == "http://proxy/v1"
        assert config.timeout == 12.5

    def test_explicit_arguments_win(self, clean_env):
        clean_env.setenv("ANTHROPIC_API_KEY", "env-key")

        config = ProviderConfig.from_env("anthropic", api_key="arg-key", timeout=3)

        assert config.api_key == "arg-key"
        assert config.timeout == 3
        assert config.organization is None

    def test_missing_key(self, clean_env):
        with pytest.raises(MissingAPIKeyError) as exc_info:
            ProviderConfig.from_env("google")
        assert "GOOGLE_API_KEY" in exc_info.value.error.message

    def test_available_providers_in_order(self, clean_env):
        clean_env.setenv("GOOGLE_API_KEY", "g")
        clean_env.setenv("ANTHROPIC_API_KEY", "a")
        clean_env.setenv("OPENAI_API_KEY", "  ")

        assert list(available_providers()) == [Provider.ANTHROPIC, Provider.GOOGLE]

    def test_responses_api_shares_the_openai_key(self, clean_env):
        clean_env.setenv("OPENAI_API_KEY", "sk-env")
        clean_env.setenv("OPENAI_ORGANIZATION", "org-1")

        config = ProviderConfig.from_env("openai_responses")

        assert config.provider == Provider.OPENAI_RESPONSES
        assert config.api_key == "sk-env"
        assert config.organization == "org-1"
        assert list(available_providers()) == [Provider.OPENAI]


class TestStreamSettings:

    def test_defaults(self, clean_env):
        settings = StreamSettings.from_env()
        assert settings.tool_call_emission == ToolCallEmission.FULL
        assert settings.track_timing is False
        assert settings.snapshot_mode == SnapshotMode.AUTO

    def test_from_env(self, clean_env):
        clean_env.setenv("LLMBRIDGE_TOOL_CALL_EMISSION", "NEW")
        clean_env.setenv("LLMBRIDGE_TRACK_TIMING", "yes")
        clean_env.setenv("LLMBRIDGE_SNAPSHOT_MODE", "delta")

        settings = StreamSettings.from_env()

        assert settings.tool_call_emission == ToolCallEmission.NEW
        assert settings.track_timing is True
        assert settings.snapshot_mode == SnapshotMode.DELTA

    def test_invalid_value(self, clean_env):
        clean_env.setenv("LLMBRIDGE_TOOL_CALL_EMISSION", "sometimes")
        with pytest.raises(ValueError):
            StreamSettings.from_env()


# ============================================================
# Options Validation
# ============================================================

class TestValidateOptions:

    def test_minimal(self):
        options = validate_options({"model": "gpt-4o"})
        assert options == GenerationOptions(model="gpt-4o")

    def test_camel_case_and_extras(self):
        options = validate_options({
            "model": "gemini-2.0-flash",
            "maxTokens": 100,
            "topK": 5,
            "stop_sequences": "END",
            "candidateCount": 1,
        })

        assert options.max_tokens == 100
        assert options.top_k == 5
        assert options.stop_sequences == ["END"]
        assert options.extra == {"candidateCount": 1}

    def test_tools_and_specific_choice(self):
        options = validate_options({
            "model": "claude",
            "tools": [Tool(name="lookup"), {"name": "search", "parameters": {"type": "object"}}],
            "tool_choice": {"name": "search"},
        })

        assert [t.name for t in options.tools] == ["lookup", "search"]
        assert options.tool_choice == ToolChoiceSpecific(name="search")
        assert options.tools_enabled

    def test_generation_options_round_trip(self):
        original = GenerationOptions(
            model="gpt-4o",
            temperature=0.3,
            tools=[Tool(name="lookup")],
            tool_choice=ToolChoiceSpecific(name="lookup"),
            extra={"seed": 7},
        )
        assert validate_options(original) == original

    def test_overrides(self):
        assert validate_options({"model": "a"}, model="b").model == "b"

    @pytest.mark.parametrize("options", [
        {},
        {"model": ""},
        {"model": "m", "temperature": 2.5},
        {"model": "m", "top_p": -0.1},
        {"model": "m", "max_tokens": 0},
        {"model": "m", "tool_choice": "sometimes"},
        {"model": "m", "tool_choice": "required"},
        {"model": "m", "tools": [{"name": "a"}], "tool_choice": {"name": "b"}},
        {"model": "m", "tools": [{"name": "a"}, {"name": "a"}]},
        {"model": "m", "tools": [{"name": "bad name"}]},
    ])
    def test_invalid(self, options):
        with pytest.raises(InvalidOptionsError) as exc_info:
            validate_options(options)

        assert exc_info.value.error.code == "invalid_options"
        assert exc_info.value.error.details["errors"]

    def test_tool_choice_none_disables_tools(self):
        options = validate_options({"model": "m", "tools": [{"name": "a"}], "tool_choice": "none"})
        assert not options.tools_enabled
