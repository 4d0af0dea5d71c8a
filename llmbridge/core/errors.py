"""
llmbridge - Error Definitions

Error taxonomy with infra vs semantic classification.

Infra errors come from the transport (connection failures, timeouts,
upstream 5xx, rate limits) and are raised out of the chunk stream.
Semantic errors mean the caller must change something (bad key, bad
options, unknown tool).
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional

import httpx


class ErrorType(str, Enum):
    """Error classification."""
    INFRA = "infra_error"
    SEMANTIC = "semantic_error"


@dataclass
class ErrorDetails:
    """Full error information."""
    code: str
    message: str
    type: ErrorType

    provider: Optional[str] = None
    param: Optional[str] = None
    request_id: str = ""
    provider_request_id: Optional[str] = None

    retryable: bool = False
    retry_after: Optional[int] = None

    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "code": self.code,
            "message": self.message,
            "type": self.type.value,
            "retryable": self.retryable,
        }

        if self.provider:
            result["provider"] = self.provider
        if self.param:
            result["param"] = self.param
        if self.request_id:
            result["request_id"] = self.request_id
        if self.provider_request_id:
            result["provider_request_id"] = self.provider_request_id
        if self.retry_after is not None:
            result["retry_after"] = self.retry_after
        if self.details:
            result["details"] = self.details

        return {"error": result}


class LLMBridgeException(Exception):
    """Base exception for all llmbridge errors."""

    def __init__(self, error: ErrorDetails, status_code: int = 500):
        self.error = error
        self.status_code = status_code
        super().__init__(error.message)


# ============================================================
# Infra Errors (transport failures)
# ============================================================

class InfraError(LLMBridgeException):
    """Base class for transport errors raised out of a stream."""
    pass


class ConnectionTimeoutError(InfraError):
    """Failed to connect to provider."""

    def __init__(self, provider: str, request_id: str = ""):
        super().__init__(
            ErrorDetails(
                code="connection_timeout",
                message=f"Failed to connect to {provider} API within timeout",
                type=ErrorType.INFRA,
                provider=provider,
                request_id=request_id,
                retryable=True,
                retry_after=5
            ),
            status_code=504
        )


class ReadTimeoutError(InfraError):
    """Provider stopped sending frames within the read timeout."""

    def __init__(self, provider: str, request_id: str = ""):
        super().__init__(
            ErrorDetails(
                code="read_timeout",
                message=f"{provider} did not respond within timeout",
                type=ErrorType.INFRA,
                provider=provider,
                request_id=request_id,
                retryable=True,
                retry_after=10
            ),
            status_code=504
        )


class UpstreamError(InfraError):
    """Provider returned a server error."""

    def __init__(
        self,
        provider: str,
        status_code: int,
        message: str = "",
        request_id: str = "",
        provider_request_id: str = ""
    ):
        super().__init__(
            ErrorDetails(
                code=f"upstream_{status_code}" if status_code >= 500 else "upstream_error",
                message=message or f"{provider} returned error {status_code}",
                type=ErrorType.INFRA,
                provider=provider,
                request_id=request_id,
                provider_request_id=provider_request_id or None,
                retryable=True,
                retry_after=30
            ),
            status_code=502 if status_code == 500 else status_code
        )


class RateLimitedError(InfraError):
    """Rate limit exceeded."""

    def __init__(
        self,
        provider: str,
        retry_after: int = 60,
        request_id: str = ""
    ):
        super().__init__(
            ErrorDetails(
                code="rate_limited",
                message=f"{provider} rate limit exceeded. Retry after {retry_after} seconds.",
                type=ErrorType.INFRA,
                provider=provider,
                request_id=request_id,
                retryable=True,
                retry_after=retry_after
            ),
            status_code=429
        )


class StreamInterruptedError(InfraError):
    """The connection dropped while frames were still being received."""

    def __init__(self, provider: str, message: str = "", request_id: str = ""):
        super().__init__(
            ErrorDetails(
                code="stream_interrupted",
                message=message or "Connection lost while streaming",
                type=ErrorType.INFRA,
                provider=provider,
                request_id=request_id,
                retryable=False
            ),
            status_code=502
        )


# ============================================================
# Semantic Errors (caller must fix)
# ============================================================

class SemanticError(LLMBridgeException):
    """Base class for errors the caller must fix."""
    pass


class ProviderAuthError(SemanticError):
    """The provider rejected the credentials."""

    def __init__(self, provider: str, message: str = "", request_id: str = ""):
        super().__init__(
            ErrorDetails(
                code="provider_auth_error",
                message=f"{provider} authentication failed: {message}".rstrip(": "),
                type=ErrorType.SEMANTIC,
                provider=provider,
                request_id=request_id
            ),
            status_code=401
        )


class MissingAPIKeyError(SemanticError):
    """No API key configured for the provider."""

    def __init__(self, provider: str, env_var: str):
        super().__init__(
            ErrorDetails(
                code="missing_api_key",
                message=f"No API key for {provider}. Set {env_var} or pass api_key explicitly.",
                type=ErrorType.SEMANTIC,
                provider=provider,
                param="api_key"
            ),
            status_code=401
        )


class InvalidRequestError(SemanticError):
    """The request was rejected as malformed."""

    def __init__(
        self,
        message: str,
        param: str = "",
        provider: Optional[str] = None,
        request_id: str = ""
    ):
        super().__init__(
            ErrorDetails(
                code="invalid_request",
                message=message,
                type=ErrorType.SEMANTIC,
                provider=provider,
                param=param or None,
                request_id=request_id
            ),
            status_code=400
        )


class InvalidOptionsError(SemanticError):
    """Generation options failed validation."""

    def __init__(self, message: str, errors: Optional[list] = None):
        super().__init__(
            ErrorDetails(
                code="invalid_options",
                message=message,
                type=ErrorType.SEMANTIC,
                details={"errors": errors} if errors else {}
            ),
            status_code=400
        )


class UnsupportedProviderError(SemanticError):
    """No normalizer or adapter exists for the requested provider."""

    def __init__(self, provider: str):
        super().__init__(
            ErrorDetails(
                code="unsupported_provider",
                message=f"Unsupported provider: {provider}",
                type=ErrorType.SEMANTIC,
                param="provider",
                details={"supported": ["openai", "openai_responses", "anthropic", "google"]}
            ),
            status_code=400
        )


class UnsupportedContentError(SemanticError):
    """A content part cannot be expressed in the provider's format."""

    def __init__(self, provider: str, content_type: str):
        super().__init__(
            ErrorDetails(
                code="unsupported_content",
                message=f"{content_type} content is not supported by the {provider} provider",
                type=ErrorType.SEMANTIC,
                provider=provider,
                param="messages"
            ),
            status_code=400
        )


class UnknownToolError(SemanticError):
    """The model called a tool nobody registered."""

    def __init__(self, tool_name: str, tool_call_id: str = ""):
        super().__init__(
            ErrorDetails(
                code="unknown_tool",
                message=f"No tool registered under the name: {tool_name}",
                type=ErrorType.SEMANTIC,
                details={"tool_name": tool_name, "tool_call_id": tool_call_id}
            ),
            status_code=400
        )


class ToolExecutionError(SemanticError):
    """A user tool raised while handling a tool call."""

    def __init__(self, tool_name: str, tool_call_id: str, cause: Exception):
        self.cause = cause
        super().__init__(
            ErrorDetails(
                code="tool_execution_failed",
                message=f"Tool execution failed: {tool_name}: {cause}",
                type=ErrorType.SEMANTIC,
                details={"tool_name": tool_name, "tool_call_id": tool_call_id}
            ),
            status_code=500
        )


class ToolCallCorrelationError(SemanticError):
    """A tool result does not reference a call of the preceding assistant turn."""

    def __init__(self, tool_call_id: str, known_ids: list):
        super().__init__(
            ErrorDetails(
                code="tool_call_correlation",
                message=f"Tool result references unknown tool call id: {tool_call_id}",
                type=ErrorType.SEMANTIC,
                param="tool_call_id",
                details={"tool_call_id": tool_call_id, "known_ids": known_ids}
            ),
            status_code=400
        )


class MissingToolResultError(SemanticError):
    """Some tool calls of an assistant turn have no result yet."""

    def __init__(self, missing_ids: list):
        super().__init__(
            ErrorDetails(
                code="missing_tool_result",
                message=f"No tool result for tool call ids: {', '.join(missing_ids)}",
                type=ErrorType.SEMANTIC,
                param="tool_call_id",
                details={"missing_ids": missing_ids}
            ),
            status_code=400
        )


# ============================================================
# Provider error mapping
# ============================================================

_REQUEST_ID_HEADERS = ("x-request-id", "request-id", "x-goog-request-id")


def extract_error_message(provider: str, body: bytes) -> str:
    """
    Pull the human-readable message out of a vendor error body.

    OpenAI:    {"error": {"message": ..., "type": ..., "code": ...}}
    Anthropic: {"type": "error", "error": {"type": ..., "message": ...}}
    Google:    {"error": {"code": 400, "message": ..., "status": ...}}
    """
    try:
        data = json.loads(body)
    except (ValueError, TypeError):
        return body.decode("utf-8", errors="replace").strip()

    if isinstance(data, list) and data:
        data = data[0]
    if not isinstance(data, dict):
        return str(data)

    error = data.get("error")
    if isinstance(error, dict):
        message = error.get("message") or ""
        kind = error.get("type") or error.get("status") or ""
        if provider == "anthropic" and kind:
            return f"{kind} - {message}"
        return message or json.dumps(error)
    if isinstance(error, str):
        return error
    return json.dumps(data)


def error_from_response(
    provider: str,
    status_code: int,
    body: bytes,
    headers: Optional[Mapping[str, str]] = None,
    request_id: str = ""
) -> LLMBridgeException:
    """Convert a failed HTTP response into a canonical exception."""
    message = extract_error_message(provider, body)
    headers = headers or {}
    provider_req_id = next(
        (headers[h] for h in _REQUEST_ID_HEADERS if h in headers), ""
    )

    if status_code in (401, 403):
        return ProviderAuthError(provider, message, request_id)

    if status_code == 429:
        retry_after = 60
        if "retry-after" in headers:
            try:
                retry_after = int(headers["retry-after"])
            except ValueError:
                pass
        return RateLimitedError(provider, retry_after, request_id=request_id)

    if status_code >= 500:
        return UpstreamError(provider, status_code, message, request_id, provider_req_id)

    return InvalidRequestError(message, provider=provider, request_id=request_id)


def error_from_exception(
    provider: str,
    error: Exception,
    request_id: str = ""
) -> LLMBridgeException:
    """Convert an httpx transport exception into a canonical exception."""
    if isinstance(error, LLMBridgeException):
        return error

    if isinstance(error, httpx.TimeoutException):
        if isinstance(error, httpx.ConnectTimeout):
            return ConnectionTimeoutError(provider, request_id)
        return ReadTimeoutError(provider, request_id)

    if isinstance(error, httpx.ConnectError):
        return ConnectionTimeoutError(provider, request_id)

    if isinstance(error, (httpx.RemoteProtocolError, httpx.ReadError)):
        return StreamInterruptedError(provider, str(error), request_id)

    return InfraError(
        ErrorDetails(
            code="unknown_error",
            message=str(error),
            type=ErrorType.INFRA,
            provider=provider,
            request_id=request_id,
            retryable=True
        ),
        status_code=500
    )
