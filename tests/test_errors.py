import anthropic
import httpx
import openai
import pytest
from google.genai import errors as genai_errors

from unichat.errors import ErrorKind, UnichatError, normalize_error, unsupported
from unichat.types import ProviderKind

REQUEST = httpx.Request("POST", "https://api.example.test/v1/chat")


def http_response(status: int) -> httpx.Response:
    return httpx.Response(status, request=REQUEST)


class TestSdkExceptions:

    def test_openai_rate_limit(self):
        exc = openai.RateLimitError("Too many requests", response=http_response(429), body=None)
        error = normalize_error(exc, ProviderKind.OPENAI)
        assert error.kind is ErrorKind.RATE_LIMITED
        assert error.status == 429
        assert error.provider == "openai"
        assert error.raw is exc

    def test_anthropic_bad_request(self):
        exc = anthropic.BadRequestError("max_tokens too large", response=http_response(400), body=None)
        error = normalize_error(exc, ProviderKind.ANTHROPIC)
        assert error.kind is ErrorKind.BAD_REQUEST
        assert error.status == 400
        assert "max_tokens" in error.message

    def test_anthropic_server_error(self):
        exc = anthropic.InternalServerError("overloaded", response=http_response(529), body=None)
        assert normalize_error(exc).kind is ErrorKind.API_ERROR

    def test_openai_connection_error(self):
        exc = openai.APIConnectionError(request=REQUEST)
        assert normalize_error(exc).kind is ErrorKind.CONNECTION_FAILED

    def test_httpx_transport_error(self):
        exc = httpx.ConnectTimeout("timed out")
        assert normalize_error(exc).kind is ErrorKind.CONNECTION_FAILED

    def test_gemini_api_error(self):
        exc = genai_errors.APIError(429, {"error": {"code": 429, "message": "quota", "status": "RESOURCE_EXHAUSTED"}})
        error = normalize_error(exc, ProviderKind.GEMINI)
        assert error.kind is ErrorKind.RATE_LIMITED
        assert error.status == 429


class TestGenericShapes:

    @pytest.mark.parametrize("status,kind", [
        (400, ErrorKind.BAD_REQUEST),
        (422, ErrorKind.BAD_REQUEST),
        (429, ErrorKind.RATE_LIMITED),
        (500, ErrorKind.API_ERROR),
        (503, ErrorKind.API_ERROR),
    ])
    def test_status_mapping(self, status, kind):
        error = normalize_error({"status": status, "data": {"message": "boom"}})
        assert error.kind is kind
        assert error.status == status
        assert error.message == "boom"

    def test_nested_error_message(self):
        error = normalize_error({"status": 400, "data": {"error": {"message": "bad field"}}})
        assert error.message == "bad field"

    def test_unknown(self):
        error = normalize_error(ValueError("something odd"))
        assert error.kind is ErrorKind.UNKNOWN
        assert error.message == "something odd"

    def test_passthrough_fills_provider(self):
        original = UnichatError(ErrorKind.BAD_REQUEST, "nope")
        error = normalize_error(original, ProviderKind.MISTRAL)
        assert error is original
        assert error.provider == "mistral"


class TestUnichatError:

    def test_str(self):
        assert str(UnichatError(ErrorKind.RATE_LIMITED, "slow down", status=429)) == "RateLimited (429): slow down"
        assert str(unsupported("Model 'x' is currently not supported")) == (
            "Unsupported: Model 'x' is currently not supported"
        )

    def test_is_raisable(self):
        with pytest.raises(UnichatError) as excinfo:
            raise unsupported("no key", provider="xai")
        assert excinfo.value.kind is ErrorKind.UNSUPPORTED
        assert excinfo.value.provider == "xai"
