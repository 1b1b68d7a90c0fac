"""
PdfDrop — Structured error catalog.

Every error has a code, human message, suggested fix and HTTP status.
No raw exceptions, stack traces or filesystem paths leak to the client.
"""

from __future__ import annotations

from typing import Any


class PdfDropError(Exception):
    """Base error with structured code + suggestion."""

    status_code: int = 500

    def __init__(self, code: str, message: str, suggestion: str = "", detail: Any = None):
        self.code = code
        self.message = message
        self.suggestion = suggestion
        self.detail = detail
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "error_code": self.code,
            "message": self.message,
        }
        if self.suggestion:
            d["suggestion"] = self.suggestion
        if self.detail:
            d["detail"] = self.detail
        return d


class UnsupportedInputTypeError(PdfDropError):
    status_code = 400

    def __init__(self, received: str, supported: list[str] | None = None):
        super().__init__(
            code="UNSUPPORTED_INPUT_TYPE",
            message=f"Unsupported file type: {received or 'unknown'}",
            suggestion="Upload a JPEG, PNG, GIF, WebP, BMP, TIFF or HEIC image.",
            detail={"supported_types": supported} if supported else None,
        )


class CorruptInputError(PdfDropError):
    status_code = 422

    def __init__(self, reason: str = ""):
        super().__init__(
            code="CORRUPT_INPUT",
            message="The image could not be decoded" + (f": {reason}" if reason else ""),
            suggestion="Re-export the image from its source application and upload it again.",
        )


class HeicTranscodeFailedError(PdfDropError):
    status_code = 422

    def __init__(self, reason: str = ""):
        super().__init__(
            code="HEIC_TRANSCODE_FAILED",
            message="Failed to convert HEIC image" + (f": {reason}" if reason else ""),
            suggestion=(
                "Convert the photo to JPEG first: open it in Photos, "
                "Share → Save as JPEG, then upload the JPEG."
            ),
        )


class EncodingFailedError(PdfDropError):
    status_code = 500

    def __init__(self, message: str = "PDF encoding failed", code: str = "ENCODING_FAILED"):
        super().__init__(
            code=code,
            message=message,
            suggestion="This is a server-side problem. Submit the image again.",
        )


class EncodingTimeoutError(EncodingFailedError):
    status_code = 504

    def __init__(self, timeout_s: float):
        super().__init__(
            message=f"PDF encoding timed out after {timeout_s:g}s",
            code="ENCODING_TIMEOUT",
        )


class CorruptedOutputError(PdfDropError):
    status_code = 500

    def __init__(self, size_bytes: int, minimum: int, failed_checks: list[str] | None = None):
        if failed_checks:
            message = f"Produced PDF failed verification: {', '.join(failed_checks)}"
        else:
            message = f"Produced PDF is corrupt or empty ({size_bytes} bytes, minimum {minimum})"
        super().__init__(
            code="CORRUPTED_OUTPUT",
            message=message,
            suggestion="Submit the image again. The broken output has been discarded.",
            detail={"failed_checks": failed_checks} if failed_checks else None,
        )


class StorageError(PdfDropError):
    status_code = 500

    def __init__(self, reason: str = ""):
        super().__init__(
            code="STORAGE_FAILED",
            message="Could not store the converted PDF" + (f": {reason}" if reason else ""),
            suggestion="Try again later. Nothing was kept from this attempt.",
        )


class ConversionNotFoundError(PdfDropError):
    status_code = 404

    def __init__(self, record_id: str):
        super().__init__(
            code="NOT_FOUND",
            message=f"Conversion not found: {record_id}",
            suggestion="Converted PDFs can be downloaded once. Convert the image again.",
        )


class ForbiddenError(PdfDropError):
    status_code = 403

    def __init__(self, record_id: str):
        super().__init__(
            code="FORBIDDEN",
            message=f"Conversion {record_id} belongs to another user",
        )


class UploadTooLargeError(PdfDropError):
    status_code = 413

    def __init__(self, filename: str, size_mb: float, limit_mb: float):
        super().__init__(
            code="UPLOAD_TOO_LARGE",
            message=f"File exceeds {limit_mb:g}MB limit: {filename} ({size_mb:.1f}MB)",
            suggestion="Compress or resize the image before uploading.",
        )


class AuthenticationError(PdfDropError):
    status_code = 401

    def __init__(self, message: str = "Invalid or expired token."):
        super().__init__(
            code="UNAUTHORIZED",
            message=message,
            suggestion="Log in again to obtain a fresh token.",
        )
