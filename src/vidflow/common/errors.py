"""Typed error taxonomy shared by dispatch, streaming and task handlers.

Every error carries a machine-readable code, a severity and a retry hint so the
HTTP layer can decide whether Cloud Tasks should redeliver the task.
"""

from __future__ import annotations

import time
from enum import Enum
from typing import Any


class ErrorSeverity(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"
    critical = "critical"


class ErrorCode(str, Enum):
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"

    NETWORK_ERROR = "NETWORK_ERROR"
    NETWORK_TIMEOUT = "NETWORK_TIMEOUT"
    SERVER_ERROR = "SERVER_ERROR"
    CLIENT_ERROR = "CLIENT_ERROR"
    EMPTY_RESPONSE = "EMPTY_RESPONSE"

    DB_ERROR = "DB_ERROR"
    DISPATCH_FAILED = "DISPATCH_FAILED"

    VIDEO_NOT_FOUND = "VIDEO_NOT_FOUND"
    VIDEO_TOO_LARGE = "VIDEO_TOO_LARGE"
    VIDEO_PROCESSING_FAILED = "VIDEO_PROCESSING_FAILED"
    CONVERSION_FAILED = "VIDEO_CONVERSION_FAILED"
    VIDEO_TAKE_SCREENSHOT_FAILED = "VIDEO_TAKE_SCREENSHOT_FAILED"
    INVALID_LENGTH = "VIDEO_INVALID_LENGTH"
    STORAGE_UPLOAD_FAILED = "STORAGE_UPLOAD_FAILED"
    FIX_DURATION_ERROR = "FIX_DURATION_ERROR"
    FIX_THUMBNAIL_ERROR = "FIX_THUMBNAIL_ERROR"


class VidflowError(Exception):
    """Base class for all errors raised by vidflow.

    Args:
        message: Human readable description
        error_code: Machine readable code
        severity: How loudly the error should be reported
        should_retry: Whether redelivering the same work may succeed
        context: Identifiers useful in logs (urls, ids, paths)
        source: Module or operation that raised the error
    """

    default_code: ErrorCode = ErrorCode.VIDEO_PROCESSING_FAILED
    default_severity: ErrorSeverity = ErrorSeverity.medium
    default_retry: bool = False

    def __init__(
        self,
        message: str,
        *,
        error_code: ErrorCode | None = None,
        severity: ErrorSeverity | None = None,
        should_retry: bool | None = None,
        context: dict[str, Any] | None = None,
        source: str | None = None,
    ):
        super().__init__(message)
        self.message: str = message
        self.error_code: ErrorCode = error_code or self.default_code
        self.severity: ErrorSeverity = severity or self.default_severity
        self.should_retry: bool = self.default_retry if should_retry is None else should_retry
        self.context: dict[str, Any] = dict(context or {})
        self.source: str = source or type(self).__name__
        self.timestamp: float = time.time()

    def flattened_context(self) -> dict[str, Any]:
        """Merge this error's context with the contexts of chained vidflow errors.

        Outer contexts win on key conflicts. Non-vidflow causes contribute their
        type and message under ``original_error``.
        """
        merged: dict[str, Any] = {}
        chain: list[BaseException] = []
        current: BaseException | None = self
        while current is not None and current not in chain:
            chain.append(current)
            current = current.__cause__

        for error in reversed(chain):
            if isinstance(error, VidflowError):
                merged.update(error.context)
            else:
                merged["original_error"] = f"{type(error).__name__}: {error}"
        return merged

    def to_response(self) -> dict[str, Any]:
        return {
            "error": self.message,
            "error_code": self.error_code.value,
            "severity": self.severity.value,
            "should_retry": self.should_retry,
        }

    @classmethod
    def wrap(cls, exc: BaseException, message: str, **kwargs: Any) -> "VidflowError":
        """Build an error of this class that inherits the retry hint of ``exc``."""
        if isinstance(exc, VidflowError):
            _ = kwargs.setdefault("should_retry", exc.should_retry)
        error = cls(message, **kwargs)
        error.__cause__ = exc
        return error


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class ConfigurationError(VidflowError):
    default_code: ErrorCode = ErrorCode.CONFIGURATION_ERROR
    default_severity: ErrorSeverity = ErrorSeverity.high


# ---------------------------------------------------------------------------
# HTTP fetch
# ---------------------------------------------------------------------------


class FetchError(VidflowError):
    """Base class for failures of outbound HTTP requests."""

    default_code: ErrorCode = ErrorCode.NETWORK_ERROR
    default_retry: bool = True


class NetworkError(FetchError):
    pass


class FetchTimeoutError(FetchError):
    default_code: ErrorCode = ErrorCode.NETWORK_TIMEOUT


class ServerError(FetchError):
    default_code: ErrorCode = ErrorCode.SERVER_ERROR


class ClientError(FetchError):
    default_code: ErrorCode = ErrorCode.CLIENT_ERROR
    default_retry: bool = False


# ---------------------------------------------------------------------------
# Media pipeline
# ---------------------------------------------------------------------------


class EmptyContentError(VidflowError):
    default_code: ErrorCode = ErrorCode.INVALID_LENGTH


class ManifestValidationError(VidflowError):
    default_code: ErrorCode = ErrorCode.VIDEO_PROCESSING_FAILED


class SegmentFetchError(VidflowError):
    default_code: ErrorCode = ErrorCode.EMPTY_RESPONSE
    default_severity: ErrorSeverity = ErrorSeverity.high


class SegmentTooLargeError(VidflowError):
    default_code: ErrorCode = ErrorCode.VIDEO_TOO_LARGE
    default_severity: ErrorSeverity = ErrorSeverity.high


class StorageUploadError(VidflowError):
    default_code: ErrorCode = ErrorCode.STORAGE_UPLOAD_FAILED
    default_severity: ErrorSeverity = ErrorSeverity.high
    default_retry: bool = True


class ThumbnailError(VidflowError):
    default_code: ErrorCode = ErrorCode.VIDEO_TAKE_SCREENSHOT_FAILED
    default_severity: ErrorSeverity = ErrorSeverity.low


class VideoNotFoundError(VidflowError):
    default_code: ErrorCode = ErrorCode.VIDEO_NOT_FOUND


class ImportPlatformError(VidflowError):
    """Publishing a video hosted on a known platform failed."""

    default_code: ErrorCode = ErrorCode.CONVERSION_FAILED
    default_severity: ErrorSeverity = ErrorSeverity.critical


# ---------------------------------------------------------------------------
# Persistence / dispatch
# ---------------------------------------------------------------------------


class DatabaseError(VidflowError):
    default_code: ErrorCode = ErrorCode.DB_ERROR
    default_severity: ErrorSeverity = ErrorSeverity.high
    default_retry: bool = True


class DispatchError(VidflowError):
    default_code: ErrorCode = ErrorCode.DISPATCH_FAILED
    default_severity: ErrorSeverity = ErrorSeverity.high
    default_retry: bool = True


class FinalizeError(VidflowError):
    default_code: ErrorCode = ErrorCode.SERVER_ERROR
    default_severity: ErrorSeverity = ErrorSeverity.critical
    default_retry: bool = True


class PayloadValidationError(VidflowError):
    """A queued task carried a payload its handler cannot accept."""

    default_code: ErrorCode = ErrorCode.CLIENT_ERROR
