"""Tests for the error taxonomy."""

from vidflow.common.errors import (
    ClientError,
    DatabaseError,
    ErrorCode,
    ErrorSeverity,
    FinalizeError,
    ServerError,
    ThumbnailError,
    VidflowError,
)


def test_subclass_defaults():
    error = ServerError("boom")

    assert error.error_code == ErrorCode.SERVER_ERROR
    assert error.should_retry is True
    assert error.source == "ServerError"
    assert str(error) == "boom"

    assert ClientError("nope").should_retry is False
    assert FinalizeError("x").severity == ErrorSeverity.critical
    assert DatabaseError("x").should_retry is True


def test_explicit_arguments_override_defaults():
    error = ServerError("boom", should_retry=False, error_code=ErrorCode.NETWORK_ERROR)

    assert error.should_retry is False
    assert error.error_code == ErrorCode.NETWORK_ERROR


def test_wrap_inherits_retry_hint_and_chains_cause():
    cause = ClientError("404", context={"url": "https://cdn.example.com/a.ts"})

    error = ThumbnailError.wrap(cause, "Failed to generate thumbnail", context={"video_id": "v1"})

    assert isinstance(error, ThumbnailError)
    assert error.__cause__ is cause
    assert error.should_retry is False


def test_wrap_of_foreign_exception_uses_class_default():
    error = DatabaseError.wrap(RuntimeError("gone"), "db down")

    assert error.should_retry is True
    assert error.flattened_context()["original_error"] == "RuntimeError: gone"


def test_flattened_context_outer_wins():
    inner = ServerError("inner", context={"url": "u", "video_id": "inner"})
    outer = VidflowError("outer", context={"video_id": "outer"})
    outer.__cause__ = inner

    assert outer.flattened_context() == {"url": "u", "video_id": "outer"}


def test_to_response():
    response = ClientError("not found").to_response()

    assert response == {
        "error": "not found",
        "error_code": "CLIENT_ERROR",
        "severity": "medium",
        "should_retry": False,
    }
