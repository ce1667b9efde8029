"""
Error taxonomy for folio-sign.

Every failure raised by the core carries:
- a stable machine `code` (returned to clients next to the message)
- the HTTP status the API layer maps it to
- a `context` dict with whatever is needed to debug the failure
  without replaying the UI session (page requested vs. page count,
  payload lengths, ...)
"""
from __future__ import annotations

from typing import Any, Dict, Optional


class FolioSignError(Exception):
    """Base class for all domain errors."""

    code: str = "error"
    status_code: int = 500

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = context

    def to_payload(self) -> Dict[str, Any]:
        return {"message": self.message, "code": self.code}


# ---------- input validation (user-facing, actionable) ----------

class InvalidBase64Error(FolioSignError):
    code = "invalid-base64"
    status_code = 400

    def __init__(self, original_length: int, cleaned_length: int, reason: Optional[str] = None) -> None:
        message = "Invalid base64 format"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(
            message,
            original_length=original_length,
            cleaned_length=cleaned_length,
        )


class UnsupportedImageError(FolioSignError):
    code = "unsupported-or-corrupt-image"
    status_code = 400


class PageOutOfRangeError(FolioSignError):
    code = "page-out-of-range"
    status_code = 400

    def __init__(self, page: int, page_count: int) -> None:
        super().__init__(
            f"Page {page} does not exist. Document has {page_count} pages.",
            page=page,
            page_count=page_count,
        )
        self.page = page
        self.page_count = page_count


class InvalidPlacementError(FolioSignError):
    code = "invalid-placement"
    status_code = 400


class InvalidSignatureInputError(FolioSignError):
    code = "invalid-signature-input"
    status_code = 400


class NoSignatureError(FolioSignError):
    code = "no-signature"
    status_code = 400

    def __init__(self, message: str = "No signature available") -> None:
        super().__init__(message)


class InvalidUploadError(FolioSignError):
    code = "invalid-upload"
    status_code = 400


# ---------- not found ----------

class DocumentNotFoundError(FolioSignError):
    code = "document-not-found"
    status_code = 404


class BlobNotFoundError(FolioSignError):
    code = "blob-not-found"
    status_code = 404

    def __init__(self, key: str) -> None:
        super().__init__(f"Stored file not found for key {key}", key=key)
        self.key = key


# ---------- access / concurrency ----------

class PermissionDeniedError(FolioSignError):
    code = "permission-denied"
    status_code = 403


class AuthenticationRequiredError(FolioSignError):
    code = "authentication-required"
    status_code = 401


class ConcurrentModificationError(FolioSignError):
    code = "conflict"
    status_code = 409

    def __init__(self, doc_id: str, expected_version: int) -> None:
        super().__init__(
            f"Document {doc_id} was modified concurrently (expected version {expected_version})",
            doc_id=doc_id,
            expected_version=expected_version,
        )


# ---------- downstream / infrastructure ----------

class DocumentProcessingError(FolioSignError):
    code = "decode-or-serialize-failure"
    status_code = 500


class StorageError(FolioSignError):
    code = "storage-failure"
    status_code = 502
