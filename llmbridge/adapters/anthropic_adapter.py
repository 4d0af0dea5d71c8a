"""
llmbridge - Anthropic Provider Adapter

Streams the Messages API (`/messages` with `stream: true`).
"""

from typing import Any, Dict, List, Optional, Tuple

from .base import BaseAdapter, is_remote_url, split_image
from ..core.errors import UnsupportedContentError
from ..core.models import (
    AudioContent,
    GenerationOptions,
    ImageContent,
    Message,
    Provider,
    Role,
    TextContent,
    ToolChoiceSpecific,
)


class AnthropicAdapter(BaseAdapter):
    """
    Adapter for the Anthropic Messages API.

    Supports:
    - Text and vision input (audio is rejected)
    - Tool use
    - Extended thinking, passed through `extra`
    """

    provider = Provider.ANTHROPIC
    DEFAULT_BASE_URL = "https://api.anthropic.com/v1"
    API_VERSION = "2023-06-01"
    DEFAULT_MAX_TOKENS = 4096

    def _headers(self) -> Dict[str, str]:
        return {
            "x-api-key": self.config.api_key,
            "anthropic-version": self.config.api_version or self.API_VERSION,
            "Content-Type": "application/json",
        }

    def _endpoint(self, options: GenerationOptions) -> str:
        return "/messages"

    def build_payload(self, messages: List[Message], options: GenerationOptions) -> Dict[str, Any]:
        """Build Anthropic-specific chat payload."""
        system_content, conversation = self._extract_system_message(messages)

        payload: Dict[str, Any] = {
            "model": options.model,
            "messages": self._convert_messages(conversation),
            # Anthropic requires max_tokens
            "max_tokens": options.max_tokens or self.DEFAULT_MAX_TOKENS,
            "stream": True,
        }

        if system_content:
            payload["system"] = system_content
        if options.temperature is not None:
            payload["temperature"] = options.temperature
        if options.top_p is not None:
            payload["top_p"] = options.top_p
        if options.top_k is not None:
            payload["top_k"] = options.top_k
        if options.stop_sequences:
            payload["stop_sequences"] = options.stop_sequences

        if options.tools:
            payload["tools"] = [
                {
                    "name": tool.name,
                    "description": tool.description,
                    "input_schema": tool.parameters or {"type": "object", "properties": {}},
                }
                for tool in options.tools
            ]
            if options.tool_choice:
                payload["tool_choice"] = self._convert_tool_choice(options.tool_choice)

        payload.update(options.extra)
        return payload

    def _extract_system_message(self, messages: List[Message]) -> Tuple[Optional[str], List[Message]]:
        """
        Extract system messages from the message list.
        Anthropic takes the system prompt as a separate parameter.
        """
        system_parts = [msg.text for msg in messages if msg.role == Role.SYSTEM]
        conversation = [msg for msg in messages if msg.role != Role.SYSTEM]
        return "\n".join(system_parts) or None, conversation

    def _convert_messages(self, messages: List[Message]) -> List[Dict[str, Any]]:
        """
        Convert unified messages to Anthropic format.

        Consecutive messages mapping to the same role are merged, since
        tool results travel as user turns.
        """
        result: List[Dict[str, Any]] = []

        for msg in messages:
            if msg.role == Role.TOOL:
                role = "user"
                blocks = [
                    {"type": "tool_result", "tool_use_id": part.tool_call_id, "content": part.result}
                    for part in msg.tool_results()
                ]
            elif msg.role == Role.ASSISTANT:
                role = "assistant"
                blocks = self._content_blocks(msg)
                for tc in msg.tool_calls or []:
                    blocks.append({
                        "type": "tool_use",
                        "id": tc.id,
                        "name": tc.name,
                        "input": tc.arguments,
                    })
            else:
                role = "user"
                blocks = self._content_blocks(msg)

            if not blocks:
                continue

            if result and result[-1]["role"] == role:
                result[-1]["content"].extend(blocks)
            else:
                result.append({"role": role, "content": blocks})

        return result

    def _content_blocks(self, msg: Message) -> List[Dict[str, Any]]:
        blocks: List[Dict[str, Any]] = []
        for part in msg.content:
            if isinstance(part, TextContent):
                if part.text:
                    blocks.append({"type": "text", "text": part.text})
            elif isinstance(part, ImageContent):
                if is_remote_url(part.image):
                    blocks.append({"type": "image", "source": {"type": "url", "url": part.image}})
                else:
                    media_type, data = split_image(part.image)
                    blocks.append({
                        "type": "image",
                        "source": {"type": "base64", "media_type": media_type, "data": data},
                    })
            elif isinstance(part, AudioContent):
                raise UnsupportedContentError(self.provider.value, "audio")
        return blocks

    def _convert_tool_choice(self, tool_choice: Any) -> Dict[str, Any]:
        """Convert tool choice to Anthropic format."""
        if isinstance(tool_choice, ToolChoiceSpecific):
            return {"type": "tool", "name": tool_choice.name}
        if tool_choice == "required":
            return {"type": "any"}
        return {"type": tool_choice}
