"""
llmbridge - OpenAI Responses Provider Adapter

Streams the Responses API (`/responses` with `stream: true`).

The conversation is sent as a flat list of input items: role messages
for text and images, `function_call` items for the assistant's tool
calls and `function_call_output` items for their results.
"""

import json
from typing import Any, Dict, List

from .base import is_remote_url, split_image
from .openai_adapter import OpenAIAdapter
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
from ..observability.logging import get_logger

logger = get_logger(__name__)


class OpenAIResponsesAdapter(OpenAIAdapter):
    """
    Adapter for the OpenAI Responses API.

    Shares authentication and base URL handling with the chat
    completions adapter.
    """

    provider = Provider.OPENAI_RESPONSES

    def _endpoint(self, options: GenerationOptions) -> str:
        return "/responses"

    def build_payload(self, messages: List[Message], options: GenerationOptions) -> Dict[str, Any]:
        """Build the Responses API payload."""
        payload: Dict[str, Any] = {
            "model": options.model,
            "input": self._convert_input(messages),
            "stream": True,
        }

        if options.max_tokens is not None:
            payload["max_output_tokens"] = options.max_tokens
        if options.temperature is not None:
            payload["temperature"] = options.temperature
        if options.top_p is not None:
            payload["top_p"] = options.top_p
        if options.top_k is not None:
            logger.debug("top_k is not supported by the Responses API, ignoring", top_k=options.top_k)
        if options.stop_sequences:
            logger.debug(
                "stop sequences are not supported by the Responses API, ignoring",
                stop_sequences=options.stop_sequences,
            )

        if options.tools:
            payload["tools"] = [
                {
                    "type": "function",
                    "name": tool.name,
                    "description": tool.description,
                    "parameters": tool.parameters or {"type": "object", "properties": {}},
                }
                for tool in options.tools
            ]
            if options.tool_choice:
                payload["tool_choice"] = self._convert_tool_choice(options.tool_choice)

        payload.update(options.extra)
        return payload

    def _convert_input(self, messages: List[Message]) -> List[Dict[str, Any]]:
        """Convert unified messages to Responses API input items."""
        items: List[Dict[str, Any]] = []

        for msg in messages:
            if msg.role == Role.SYSTEM:
                items.append({
                    "role": "system",
                    "content": [{"type": "input_text", "text": msg.text}],
                })

            elif msg.role == Role.TOOL:
                for part in msg.tool_results():
                    items.append({
                        "type": "function_call_output",
                        "call_id": part.tool_call_id,
                        "output": part.result,
                    })

            elif msg.role == Role.ASSISTANT:
                if msg.text:
                    items.append({
                        "role": "assistant",
                        "content": [{"type": "output_text", "text": msg.text}],
                    })
                for tc in msg.tool_calls or []:
                    items.append({
                        "type": "function_call",
                        "call_id": tc.id,
                        "name": tc.name,
                        "arguments": json.dumps(tc.arguments),
                    })

            else:
                items.append({"role": "user", "content": self._convert_parts(msg)})

        return items

    def _convert_parts(self, msg: Message) -> List[Dict[str, Any]]:
        parts: List[Dict[str, Any]] = []
        for part in msg.content:
            if isinstance(part, TextContent):
                parts.append({"type": "input_text", "text": part.text})
            elif isinstance(part, ImageContent):
                if is_remote_url(part.image) or part.image.startswith("data:"):
                    url = part.image
                else:
                    mime, data = split_image(part.image)
                    url = f"data:{mime};base64,{data}"
                parts.append({"type": "input_image", "image_url": url})
            elif isinstance(part, AudioContent):
                raise UnsupportedContentError(self.provider.value, "audio")
        return parts

    def _convert_tool_choice(self, tool_choice: Any) -> Any:
        """Convert tool choice to the Responses API format."""
        if isinstance(tool_choice, ToolChoiceSpecific):
            return {"type": "function", "name": tool_choice.name}
        return tool_choice
