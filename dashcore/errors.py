from __future__ import annotations

from enum import Enum
from typing import Any, List, Optional


GENERIC_ERROR_MESSAGE = "An unexpected error occurred"


class ErrorKind(str, Enum):
    MALFORMED_ENVELOPE = "MalformedEnvelope"
    UPSTREAM_FAILURE = "UpstreamFailure"
    ENGINE_UNAVAILABLE = "EngineUnavailable"
    RENDER_FAULT = "RenderFault"


class DashboardError(Exception):
    kind: ErrorKind = ErrorKind.RENDER_FAULT

    def __init__(self, message: str = "", *, messages: Optional[List[str]] = None):
        self.messages: List[str] = list(messages or ([message] if message else []))
        super().__init__(message or (self.messages[0] if self.messages else GENERIC_ERROR_MESSAGE))


class MalformedEnvelope(DashboardError):
    kind = ErrorKind.MALFORMED_ENVELOPE


class UpstreamFailure(DashboardError):
    """Transport/HTTP-level failure, or an envelope that declared ``success: false``."""

    kind = ErrorKind.UPSTREAM_FAILURE

    def __init__(self, message: str = "", *, messages: Optional[List[str]] = None, status: Optional[int] = None):
        super().__init__(message, messages=messages)
        self.status = status

    @classmethod
    def wrap(cls, exc: BaseException) -> "UpstreamFailure":
        if isinstance(exc, UpstreamFailure):
            return exc
        failure = cls(messages=error_messages(exc), status=getattr(exc, "status", None))
        failure.__cause__ = exc
        return failure


class EngineUnavailable(DashboardError):
    kind = ErrorKind.ENGINE_UNAVAILABLE


class RenderFault(DashboardError):
    kind = ErrorKind.RENDER_FAULT


def kind_of(exc: BaseException) -> ErrorKind:
    if isinstance(exc, DashboardError):
        return exc.kind
    return ErrorKind.RENDER_FAULT


def _response_body(exc: Any) -> Any:
    response = getattr(exc, "response", None)
    if response is None:
        return None
    body = getattr(response, "data", None)
    if body is not None:
        return body
    json_fn = getattr(response, "json", None)
    if callable(json_fn):
        try:
            return json_fn()
        except Exception:
            return None
    return None


def body_messages(body: Any) -> List[str]:
    """Messages from an error response body: errors[], then message, then error.message."""

    if not isinstance(body, dict):
        return []
    errors = body.get("errors", body.get("Errors"))
    if isinstance(errors, list) and errors:
        return [item for item in errors if isinstance(item, str) and item]
    message = body.get("message") or body.get("Message")
    if isinstance(message, str) and message:
        return [message]
    nested = body.get("error")
    if isinstance(nested, dict) and isinstance(nested.get("message"), str) and nested["message"]:
        return [nested["message"]]
    return []


def error_messages(exc: Any) -> List[str]:
    """Collect every user-facing message carried by an error, most specific first."""

    if exc is None:
        return [GENERIC_ERROR_MESSAGE]
    if isinstance(exc, str):
        return [exc] if exc else [GENERIC_ERROR_MESSAGE]

    messages: List[str] = []

    def _add(value: Any) -> None:
        if isinstance(value, str) and value and value not in messages:
            messages.append(value)

    for item in body_messages(_response_body(exc)):
        _add(item)

    for item in getattr(exc, "messages", None) or []:
        _add(item)
    errors_attr = getattr(exc, "errors", None)
    if isinstance(errors_attr, list):
        for item in errors_attr:
            _add(item)

    if isinstance(exc, BaseException) and exc.args:
        _add(str(exc))

    return messages or [GENERIC_ERROR_MESSAGE]


def error_message(exc: Any) -> str:
    return error_messages(exc)[0]
