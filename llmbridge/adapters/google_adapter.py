"""
llmbridge - Google Provider Adapter

Streams Gemini `streamGenerateContent` with `alt=sse`.
"""

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


class GoogleAdapter(BaseAdapter):
    """
    Adapter for the Gemini generateContent API.

    Supports:
    - Text, image and audio input (inlineData / fileData)
    - Function calling
    """

    provider = Provider.GOOGLE
    DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"

    TOOL_CHOICE_MODES = {
        "auto": "AUTO",
        "required": "ANY",
        "none": "NONE",
    }

    def _headers(self) -> Dict[str, str]:
        return {
            "x-goog-api-key": self.config.api_key,
            "Content-Type": "application/json",
        }

    def _endpoint(self, options: GenerationOptions) -> str:
        model = options.model
        if model.startswith("models/"):
            model = model[len("models/"):]
        return f"/models/{model}:streamGenerateContent?alt=sse"

    def build_payload(self, messages: List[Message], options: GenerationOptions) -> Dict[str, Any]:
        """Build Gemini-specific chat payload."""
        payload: Dict[str, Any] = {
            "contents": self._convert_messages(messages),
        }

        system_instruction = self._extract_system_instruction(messages)
        if system_instruction:
            payload["systemInstruction"] = {"parts": [{"text": system_instruction}]}

        generation_config: Dict[str, Any] = {}
        if options.temperature is not None:
            generation_config["temperature"] = options.temperature
        if options.max_tokens is not None:
            generation_config["maxOutputTokens"] = options.max_tokens
        if options.top_p is not None:
            generation_config["topP"] = options.top_p
        if options.top_k is not None:
            generation_config["topK"] = options.top_k
        if options.stop_sequences:
            generation_config["stopSequences"] = options.stop_sequences
        if generation_config:
            payload["generationConfig"] = generation_config

        if options.tools:
            payload["tools"] = [{
                "functionDeclarations": [
                    {
                        "name": tool.name,
                        "description": tool.description,
                        "parameters": tool.parameters or {"type": "object", "properties": {}},
                    }
                    for tool in options.tools
                ]
            }]
            if options.tool_choice:
                payload["toolConfig"] = {
                    "functionCallingConfig": self._convert_tool_choice(options.tool_choice)
                }

        payload.update(options.extra)
        return payload

    def _extract_system_instruction(self, messages: List[Message]) -> Optional[str]:
        system_parts = [msg.text for msg in messages if msg.role == Role.SYSTEM]
        return "\n".join(system_parts) or None

    def _convert_messages(self, messages: List[Message]) -> List[Dict[str, Any]]:
        """
        Convert unified messages to Gemini format.

        Function responses are matched by function name, so the name of
        each call is remembered from the assistant turn that made it.
        """
        result: List[Dict[str, Any]] = []
        call_names: Dict[str, str] = {}

        for msg in messages:
            if msg.role == Role.SYSTEM:
                continue

            if msg.role == Role.TOOL:
                role = "user"
                parts = [
                    {
                        "functionResponse": {
                            "name": call_names.get(part.tool_call_id, part.tool_call_id),
                            "response": {"content": part.result},
                        }
                    }
                    for part in msg.tool_results()
                ]
            elif msg.role == Role.ASSISTANT:
                role = "model"
                parts = self._content_parts(msg)
                for tc in msg.tool_calls or []:
                    call_names[tc.id] = tc.name
                    parts.append({"functionCall": {"name": tc.name, "args": tc.arguments}})
            else:
                role = "user"
                parts = self._content_parts(msg)

            if not parts:
                continue

            if result and result[-1]["role"] == role:
                result[-1]["parts"].extend(parts)
            else:
                result.append({"role": role, "parts": parts})

        return result

    def _content_parts(self, msg: Message) -> List[Dict[str, Any]]:
        parts: List[Dict[str, Any]] = []
        for part in msg.content:
            if isinstance(part, TextContent):
                if part.text:
                    parts.append({"text": part.text})
            elif isinstance(part, ImageContent):
                if is_remote_url(part.image):
                    parts.append({"fileData": {"fileUri": part.image, "mimeType": "image/jpeg"}})
                else:
                    mime, data = split_image(part.image)
                    parts.append({"inlineData": {"mimeType": mime, "data": data}})
            elif isinstance(part, AudioContent):
                fmt, data = split_audio(part.audio, part.format)
                parts.append({"inlineData": {"mimeType": f"audio/{fmt}", "data": data}})
        return parts

    def _convert_tool_choice(self, tool_choice: Any) -> Dict[str, Any]:
        """Convert tool choice to a Gemini functionCallingConfig."""
        if isinstance(tool_choice, ToolChoiceSpecific):
            return {"mode": "ANY", "allowedFunctionNames": [tool_choice.name]}
        return {"mode": self.TOOL_CHOICE_MODES[tool_choice]}
