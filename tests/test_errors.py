from __future__ import annotations

from types import SimpleNamespace

from dashcore.errors import (
    GENERIC_ERROR_MESSAGE,
    EngineUnavailable,
    ErrorKind,
    RenderFault,
    UpstreamFailure,
    error_message,
    error_messages,
    kind_of,
)


def test_kinds():
    assert kind_of(UpstreamFailure("x")) is ErrorKind.UPSTREAM_FAILURE
    assert kind_of(EngineUnavailable("x")) is ErrorKind.ENGINE_UNAVAILABLE
    assert kind_of(RenderFault("x")) is ErrorKind.RENDER_FAULT
    assert kind_of(ValueError("x")) is ErrorKind.RENDER_FAULT


def test_messages_prefer_response_body():
    exc = RuntimeError("Request failed with status code 400")
    exc.response = SimpleNamespace(data={"errors": ["Name is required", "Email is invalid"]})
    assert error_messages(exc) == ["Name is required", "Email is invalid", "Request failed with status code 400"]
    assert error_message(exc) == "Name is required"


def test_messages_from_nested_error_object():
    exc = RuntimeError()
    exc.response = SimpleNamespace(data={"error": {"message": "Token expired"}})
    assert error_message(exc) == "Token expired"


def test_messages_fallback_to_generic():
    assert error_message(None) == GENERIC_ERROR_MESSAGE
    assert error_message(RuntimeError()) == GENERIC_ERROR_MESSAGE
    assert error_message("plain text") == "plain text"


def test_upstream_failure_carries_messages():
    failure = UpstreamFailure(messages=["DB timeout", "retry later"])
    assert str(failure) == "DB timeout"
    assert error_messages(failure) == ["DB timeout", "retry later"]


def test_wrap_keeps_cause_and_status():
    original = ConnectionError("connection refused")
    wrapped = UpstreamFailure.wrap(original)
    assert isinstance(wrapped, UpstreamFailure)
    assert wrapped.__cause__ is original
    assert error_message(wrapped) == "connection refused"
    assert UpstreamFailure.wrap(wrapped) is wrapped
