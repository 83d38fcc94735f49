"""
Unified error taxonomy for provider failures.

Every failure surfaced by the client is a :class:`UnichatError` carrying a
normalized :class:`ErrorKind`. Provider SDK exceptions are classified by type
first; exceptions without a typed hierarchy are inspected for a generic
``{status, data.message}`` shape; anything else becomes ``UNKNOWN`` with the
original message preserved.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

import anthropic
import httpx
import openai
from google.genai import errors as genai_errors

from .types import ProviderKind


class ErrorKind(str, Enum):
    """
    Normalized failure categories.
    """

    RATE_LIMITED = "RateLimited"
    CONNECTION_FAILED = "ConnectionFailed"
    BAD_REQUEST = "BadRequest"
    API_ERROR = "ApiError"
    UNSUPPORTED = "Unsupported"
    MALFORMED_TOOL_ARGUMENTS = "MalformedToolArguments"
    UNKNOWN = "Unknown"


@dataclass(eq=False)
class UnichatError(Exception):
    """
    A provider or configuration failure with a normalized kind.

    Attributes:
        kind: Normalized :class:`ErrorKind`.
        message: Human-readable description.
        status: HTTP status reported by the provider, when known.
        provider: Provider kind the failure came from, when known.
        raw: The original exception, kept for diagnostics.
    """

    kind: ErrorKind
    message: str
    status: Optional[int] = None
    provider: Optional[str] = None
    raw: Optional[BaseException] = None

    def __str__(self) -> str:
        status = f" ({self.status})" if self.status is not None else ""
        return f"{self.kind.value}{status}: {self.message}"


# Typed SDK exceptions, checked in order. Subclasses must precede their bases.
_SDK_EXCEPTION_MAP = (
    (openai.RateLimitError, ErrorKind.RATE_LIMITED),
    (anthropic.RateLimitError, ErrorKind.RATE_LIMITED),
    (openai.APIConnectionError, ErrorKind.CONNECTION_FAILED),
    (anthropic.APIConnectionError, ErrorKind.CONNECTION_FAILED),
    (httpx.TransportError, ErrorKind.CONNECTION_FAILED),
    (openai.BadRequestError, ErrorKind.BAD_REQUEST),
    (anthropic.BadRequestError, ErrorKind.BAD_REQUEST),
    (openai.UnprocessableEntityError, ErrorKind.BAD_REQUEST),
    (anthropic.UnprocessableEntityError, ErrorKind.BAD_REQUEST),
    (openai.APIError, ErrorKind.API_ERROR),
    (anthropic.APIError, ErrorKind.API_ERROR),
)

_STATUS_MAP: Dict[int, ErrorKind] = {
    400: ErrorKind.BAD_REQUEST,
    422: ErrorKind.BAD_REQUEST,
    429: ErrorKind.RATE_LIMITED,
}


def _lookup(obj: Any, name: str) -> Any:
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def _valid_status(value: Any) -> Optional[int]:
    if isinstance(value, int) and not isinstance(value, bool) and 100 <= value < 600:
        return value
    return None


def _extract_status(raw: Any) -> Optional[int]:
    """
    Find an HTTP status on the error or on its ``response``.
    """
    for attr in ("status_code", "status", "code"):
        status = _valid_status(_lookup(raw, attr))
        if status is not None:
            return status
    response = _lookup(raw, "response")
    if response is not None:
        for attr in ("status_code", "status"):
            status = _valid_status(_lookup(response, attr))
            if status is not None:
                return status
    return None


def _extract_message(raw: Any) -> Optional[str]:
    """
    Find ``data.message`` (or ``data.error.message``) on the error or its response.
    """
    for holder in (raw, _lookup(raw, "response")):
        if holder is None:
            continue
        data = _lookup(holder, "data")
        if data is None:
            continue
        message = _lookup(data, "message")
        if message:
            return str(message)
        error = _lookup(data, "error")
        if error is not None and _lookup(error, "message"):
            return str(_lookup(error, "message"))
    if isinstance(raw, dict) and raw.get("message"):
        return str(raw["message"])
    return None


def _classify_status(status: int) -> ErrorKind:
    return _STATUS_MAP.get(status, ErrorKind.API_ERROR)


def normalize_error(raw: Any, kind: Optional[ProviderKind] = None) -> UnichatError:
    """
    Map a provider failure onto a :class:`UnichatError`.

    Precedence:
        1. ``UnichatError`` passthrough.
        2. Typed SDK exceptions (openai, anthropic, httpx transport, google-genai).
        3. Generic ``{status, data.message}`` shape.
        4. ``UNKNOWN`` carrying the original message.
    """
    provider = kind.value if kind is not None else None

    if isinstance(raw, UnichatError):
        if raw.provider is None:
            raw.provider = provider
        return raw

    if isinstance(raw, BaseException):
        for exc_type, error_kind in _SDK_EXCEPTION_MAP:
            if isinstance(raw, exc_type):
                return UnichatError(
                    kind=error_kind,
                    message=str(getattr(raw, "message", None) or raw),
                    status=_extract_status(raw),
                    provider=provider,
                    raw=raw,
                )
        if isinstance(raw, genai_errors.APIError):
            status = _valid_status(raw.code)
            return UnichatError(
                kind=_classify_status(status) if status is not None else ErrorKind.API_ERROR,
                message=str(raw.message or raw),
                status=status,
                provider=provider,
                raw=raw,
            )

    status = _extract_status(raw)
    if status is not None:
        return UnichatError(
            kind=_classify_status(status),
            message=_extract_message(raw) or str(raw),
            status=status,
            provider=provider,
            raw=raw if isinstance(raw, BaseException) else None,
        )

    return UnichatError(
        kind=ErrorKind.UNKNOWN,
        message=_extract_message(raw) or str(raw),
        provider=provider,
        raw=raw if isinstance(raw, BaseException) else None,
    )


def unsupported(message: str, provider: Optional[str] = None) -> UnichatError:
    """
    Build a configuration error raised before any network call.
    """
    return UnichatError(kind=ErrorKind.UNSUPPORTED, message=message, provider=provider)


__all__ = ["ErrorKind", "UnichatError", "normalize_error", "unsupported"]
