"""
Custom exceptions for memory pages.

Image ingestion errors are returned inside an IngestResult rather than
raised to callers. Remote store errors are caught by the sync engine and
turned into the degraded-mode fallback. PageNotFoundError is the one
error that reaches callers of the sync engine.
"""

from __future__ import annotations

from enum import Enum


class MemoryPagesError(Exception):
    """Base exception for all memory pages errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class IngestErrorKind(Enum):
    """Reasons an uploaded image is rejected."""

    UNSUPPORTED_TYPE = "unsupported_type"
    TOO_LARGE = "too_large"
    SIGNATURE_MISMATCH = "signature_mismatch"
    COMPRESSION_FAILED = "compression_failed"


class ImageIngestError(MemoryPagesError):
    """Base class for image ingestion rejections.

    The message is meant to be shown to the user next to the upload
    control, so it names the rejection reason in plain words.
    """

    kind: IngestErrorKind

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, details)


class UnsupportedTypeError(ImageIngestError):
    """Raised when the declared MIME type is not a supported image type."""

    kind = IngestErrorKind.UNSUPPORTED_TYPE

    def __init__(self, declared_type: str):
        super().__init__(
            "Invalid file type. Please upload JPEG, PNG, GIF, or WebP images.",
            {"declared_type": declared_type},
        )
        self.declared_type = declared_type


class TooLargeError(ImageIngestError):
    """Raised when the upload exceeds the inline storage bound."""

    kind = IngestErrorKind.TOO_LARGE

    def __init__(self, size_bytes: int, max_bytes: int):
        super().__init__(
            f"File too large. Please upload images smaller than {max_bytes // (1024 * 1024)}MB.",
            {"size_bytes": size_bytes, "max_bytes": max_bytes},
        )
        self.size_bytes = size_bytes
        self.max_bytes = max_bytes


class SignatureMismatchError(ImageIngestError):
    """Raised when the leading bytes match no known image signature."""

    kind = IngestErrorKind.SIGNATURE_MISMATCH

    def __init__(self, header: str):
        super().__init__("Invalid image file format detected.", {"header": header})
        self.header = header


class CompressionFailedError(ImageIngestError):
    """Raised when the image cannot be decoded, resized or re-encoded."""

    kind = IngestErrorKind.COMPRESSION_FAILED

    def __init__(self, reason: str, cause: Exception | None = None):
        details = {"reason": reason}
        if cause:
            details["cause"] = str(cause)
        super().__init__("Failed to process image. Please try a different file.", details)
        self.reason = reason
        self.cause = cause


class RemoteUnavailableError(MemoryPagesError):
    """Raised when the page store cannot complete a request.

    Covers connection failures, timeouts and non-2xx responses other
    than 404.
    """

    def __init__(
        self,
        operation: str,
        status: int | None = None,
        cause: Exception | None = None,
    ):
        details: dict = {"operation": operation}
        if status is not None:
            details["status"] = status
        if cause:
            details["cause"] = str(cause)
        message = f"Page store unavailable during {operation}"
        if status is not None:
            message += f" (HTTP {status})"
        super().__init__(message, details)
        self.operation = operation
        self.status = status
        self.cause = cause


class MalformedResponseError(RemoteUnavailableError):
    """Raised when the page store answers with an unexpected body shape."""

    def __init__(self, operation: str, reason: str):
        super().__init__(operation)
        self.message = f"Malformed page store response during {operation}: {reason}"
        self.args = (self.message,)
        self.details["reason"] = reason
        self.reason = reason


class PageNotFoundError(MemoryPagesError):
    """Raised when a page id is unknown."""

    def __init__(self, page_id: int | str):
        super().__init__(f"Page not found: {page_id}", {"page_id": page_id})
        self.page_id = page_id


class PersistFailureError(MemoryPagesError):
    """Raised when the local cache snapshot cannot be written."""

    def __init__(self, path: str, cause: Exception | None = None):
        details = {"path": path}
        if cause:
            details["cause"] = str(cause)
        super().__init__(f"Failed to persist local cache: {path}", details)
        self.path = path
        self.cause = cause
