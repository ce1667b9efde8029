"""
Validation utilities for folio-sign.
Ensures data integrity and provides clear error messages.
"""
import math
from typing import Optional, Tuple

from .errors import InvalidPlacementError, InvalidUploadError, PageOutOfRangeError

PDF_MIME = "application/pdf"
DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


def validate_page_number(page: int, page_count: int) -> int:
    """
    Validate a 1-based page number against the document's page count.

    Rules:
    - page must be >= 1
    - page must be <= page_count
    - out-of-range values are rejected, never clamped

    Returns:
        The 0-based page index.

    Raises:
        PageOutOfRangeError: naming the requested page and the actual count
    """
    if page < 1 or page > page_count:
        raise PageOutOfRangeError(page, page_count)
    return page - 1


def validate_stamp_geometry(x: float, y: float, width: float, height: float) -> None:
    """
    Validate the viewport-space centre and display size of a stamp.

    Rules:
    - x, y must be finite numbers
    - width, height must be finite and strictly positive

    Stamps hanging partially off the page are accepted as-is.

    Raises:
        InvalidPlacementError: if validation fails
    """
    for name, value in (("x", x), ("y", y)):
        if not math.isfinite(value):
            raise InvalidPlacementError(f"{name} must be a finite number, got {value}")

    for name, value in (("width", width), ("height", height)):
        if not math.isfinite(value) or value <= 0:
            raise InvalidPlacementError(
                f"{name} must be a positive number, got {value}",
                **{name: value},
            )


def split_file_name(name: str) -> Tuple[str, str]:
    """
    Split a display filename into (base_name, extension).

    The extension keeps its leading dot. A leading dot alone
    (".env") is part of the base name, not an extension.
    """
    last_dot = name.rfind(".")
    if last_dot > 0:
        return name[:last_dot], name[last_dot:]
    return name, ""


def validate_upload(
    name: str,
    content_type: Optional[str] = None,
    size: Optional[int] = None,
    max_bytes: Optional[int] = None,
) -> None:
    """
    Validate a document the client is about to upload.

    Rules:
    - name must be non-empty and end with .pdf
    - content_type, when given, must be application/pdf
      (DOCX is recognised but rejected: there is no DOCX page model)
    - size, when given, must be positive and within max_bytes

    Raises:
        InvalidUploadError: if validation fails
    """
    if not name or not name.strip():
        raise InvalidUploadError("File name is required")

    _, ext = split_file_name(name.strip())
    if content_type == DOCX_MIME or ext.lower() == ".docx":
        raise InvalidUploadError(
            "DOCX files cannot be signed yet. Please convert the document to PDF first.",
            name=name,
        )
    if ext.lower() != ".pdf":
        raise InvalidUploadError("Please upload a PDF file", name=name)
    if content_type and content_type != PDF_MIME:
        raise InvalidUploadError(
            f"Unsupported content type {content_type}; expected {PDF_MIME}",
            name=name,
        )

    if size is not None:
        if size <= 0:
            raise InvalidUploadError("File is empty", name=name)
        if max_bytes is not None and size > max_bytes:
            raise InvalidUploadError(
                f"File size must be less than {max_bytes // (1024 * 1024)}MB",
                name=name,
                size=size,
            )
