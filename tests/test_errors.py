"""
llmbridge - Error Mapping Tests

Verifies:
- HTTP status -> canonical exception
- httpx transport exception -> canonical exception
- Vendor error bodies -> readable messages
"""

import httpx
import pytest

from llmbridge.core.errors import (
    ConnectionTimeoutError,
    ErrorType,
    InfraError,
    InvalidRequestError,
    LLMBridgeException,
    ProviderAuthError,
    RateLimitedError,
    ReadTimeoutError,
    SemanticError,
    StreamInterruptedError,
    ToolExecutionError,
    UpstreamError,
    error_from_exception,
    error_from_response,
    extract_error_message,
)


# ============================================================
# Response Mapping
# ============================================================

class TestErrorFromResponse:

    @pytest.mark.parametrize("status,expected", [
        (401, ProviderAuthError),
        (403, ProviderAuthError),
        (429, RateLimitedError),
        (500, UpstreamError),
        (529, UpstreamError),
        (400, InvalidRequestError),
        (404, InvalidRequestError),
    ])
    def test_status_mapping(self, status, expected):
        assert isinstance(error_from_response("openai", status, b"{}"), expected)

    def test_rate_limit_retry_after(self):
        error = error_from_response("openai", 429, b"{}", {"retry-after": "7"})
        assert error.error.retry_after == 7
        assert error.error.retryable

    def test_rate_limit_default_retry_after(self):
        assert error_from_response("openai", 429, b"{}", {"retry-after": "soon"}).error.retry_after == 60

    def test_upstream_error_details(self):
        error = error_from_response(
            "anthropic",
            529,
            b'{"type": "error", "error": {"type": "overloaded_error", "message": "Overloaded"}}',
            {"request-id": "req_vendor"},
            request_id="req_local",
        )

        assert error.error.code == "upstream_529"
        assert error.error.message == "overloaded_error - Overloaded"
        assert error.error.provider_request_id == "req_vendor"
        assert error.error.request_id == "req_local"

    def test_invalid_request_carries_message(self):
        error = error_from_response("google", 400, b'{"error": {"code": 400, "message": "Bad model", "status": "INVALID_ARGUMENT"}}')
        assert error.error.message == "Bad model"
        assert error.error.type == ErrorType.SEMANTIC


class TestExtractErrorMessage:

    def test_openai_body(self):
        assert extract_error_message("openai", b'{"error": {"message": "Invalid key", "type": "auth"}}') == "Invalid key"

    def test_google_list_body(self):
        assert extract_error_message("google", b'[{"error": {"message": "Quota"}}]') == "Quota"

    def test_plain_text_body(self):
        assert extract_error_message("openai", b"Bad Gateway\n") == "Bad Gateway"

    def test_string_error(self):
        assert extract_error_message("openai", b'{"error": "nope"}') == "nope"


# ============================================================
# Exception Mapping
# ============================================================

class TestErrorFromException:

    @pytest.mark.parametrize("error,expected", [
        (httpx.ConnectTimeout("t"), ConnectionTimeoutError),
        (httpx.ConnectError("c"), ConnectionTimeoutError),
        (httpx.ReadTimeout("r"), ReadTimeoutError),
        (httpx.PoolTimeout("p"), ReadTimeoutError),
        (httpx.RemoteProtocolError("x"), StreamInterruptedError),
        (httpx.ReadError("x"), StreamInterruptedError),
    ])
    def test_transport_mapping(self, error, expected):
        mapped = error_from_exception("openai", error, "req_1")
        assert isinstance(mapped, expected)
        assert mapped.error.request_id == "req_1"

    def test_unknown_error(self):
        mapped = error_from_exception("openai", httpx.DecodingError("bad gzip"))
        assert type(mapped) is InfraError
        assert mapped.error.code == "unknown_error"

    def test_llmbridge_exception_passes_through(self):
        original = StreamInterruptedError("openai")
        assert error_from_exception("openai", original) is original


# ============================================================
# Error Shape
# ============================================================

class TestErrorShape:

    def test_infra_and_semantic_split(self):
        assert issubclass(StreamInterruptedError, InfraError)
        assert issubclass(ProviderAuthError, SemanticError)
        assert issubclass(InfraError, LLMBridgeException)

    def test_to_dict(self):
        body = RateLimitedError("openai", retry_after=5, request_id="req_1").error.to_dict()

        assert body == {
            "error": {
                "code": "rate_limited",
                "message": "openai rate limit exceeded. Retry after 5 seconds.",
                "type": "infra_error",
                "retryable": True,
                "provider": "openai",
                "request_id": "req_1",
                "retry_after": 5,
            }
        }

    def test_tool_execution_error_keeps_cause(self):
        cause = KeyError("city")
        error = ToolExecutionError("get_weather", "call_1", cause)
        assert error.cause is cause
        assert error.error.details == {"tool_name": "get_weather", "tool_call_id": "call_1"}
