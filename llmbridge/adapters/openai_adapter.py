"""
llmbridge - OpenAI Provider Adapter

Streams chat completions (`/chat/completions` with `stream: true`).
"""

import json
from typing import Any, Dict, List, Optional

from .base import BaseAdapter, is_remote_url, split_audio, split_image
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
from ..observability.logging import get_logger

logger = get_logger(__name__)


class OpenAIAdapter(BaseAdapter):
    """
    Adapter for the OpenAI chat completions API.

    Supports:
    - Text, vision (image_url) and audio (input_audio) input
    - Tool/Function calling
    - Usage reporting in the stream (stream_options.include_usage)
    """

    provider = Provider.OPENAI
    DEFAULT_BASE_URL = "https://api.openai.com/v1"

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self.config.api_key}",
            "Content-Type": "application/json",
        }
        if self.config.organization:
            headers["OpenAI-Organization"] = self.config.organization
        return headers

    def _endpoint(self, options: GenerationOptions) -> str:
        return "/chat/completions"

    def build_payload(self, messages: List[Message], options: GenerationOptions) -> Dict[str, Any]:
        """Build OpenAI-specific chat payload."""
        payload: Dict[str, Any] = {
            "model": options.model,
            "messages": self._convert_messages(messages),
            "stream": True,
            "stream_options": {"include_usage": True},
        }

        if options.max_tokens is not None:
            payload["max_tokens"] = options.max_tokens
        if options.temperature is not None:
            payload["temperature"] = options.temperature
        if options.top_p is not None:
            payload["top_p"] = options.top_p
        if options.top_k is not None:
            logger.debug("top_k is not supported by OpenAI, ignoring", top_k=options.top_k)
        if options.stop_sequences:
            payload["stop"] = options.stop_sequences

        if options.tools:
            payload["tools"] = [
                {
                    "type": "function",
                    "function": {
                        "name": tool.name,
                        "description": tool.description,
                        "parameters": tool.parameters or {"type": "object", "properties": {}},
                    },
                }
                for tool in options.tools
            ]
            if options.tool_choice:
                payload["tool_choice"] = self._convert_tool_choice(options.tool_choice)

        payload.update(options.extra)
        return payload

    def _convert_messages(self, messages: List[Message]) -> List[Dict[str, Any]]:
        """Convert unified messages to OpenAI format."""
        result: List[Dict[str, Any]] = []

        for msg in messages:
            if msg.role == Role.SYSTEM:
                result.append({"role": "system", "content": msg.text})

            elif msg.role == Role.TOOL:
                # One message per result
                for part in msg.tool_results():
                    result.append({
                        "role": "tool",
                        "tool_call_id": part.tool_call_id,
                        "content": part.result,
                    })

            elif msg.role == Role.ASSISTANT:
                openai_msg: Dict[str, Any] = {
                    "role": "assistant",
                    "content": msg.text or None,
                }
                if msg.tool_calls:
                    openai_msg["tool_calls"] = [
                        {
                            "id": tc.id,
                            "type": "function",
                            "function": {
                                "name": tc.name,
                                "arguments": json.dumps(tc.arguments),
                            },
                        }
                        for tc in msg.tool_calls
                    ]
                result.append(openai_msg)

            else:
                result.append({"role": "user", "content": self._convert_user_content(msg)})

        return result

    def _convert_user_content(self, msg: Message) -> Any:
        if all(isinstance(part, TextContent) for part in msg.content):
            return msg.text

        parts: List[Dict[str, Any]] = []
        for part in msg.content:
            if isinstance(part, TextContent):
                parts.append({"type": "text", "text": part.text})
            elif isinstance(part, ImageContent):
                if is_remote_url(part.image) or part.image.startswith("data:"):
                    url = part.image
                else:
                    mime, data = split_image(part.image)
                    url = f"data:{mime};base64,{data}"
                parts.append({"type": "image_url", "image_url": {"url": url}})
            elif isinstance(part, AudioContent):
                fmt, data = split_audio(part.audio, part.format)
                parts.append({"type": "input_audio", "input_audio": {"data": data, "format": fmt}})
        return parts

    def _convert_tool_choice(self, tool_choice: Any) -> Any:
        """Convert tool choice to OpenAI format."""
        if isinstance(tool_choice, ToolChoiceSpecific):
            return {"type": "function", "function": {"name": tool_choice.name}}
        return tool_choice
