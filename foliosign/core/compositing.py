# foliosign/core/compositing.py

from __future__ import annotations
import base64
import binascii
import io
import logging
import re
from dataclasses import dataclass
from typing import Optional, Tuple

from pypdf import PdfReader, PdfWriter
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from .errors import (
    DocumentNotFoundError,
    DocumentProcessingError,
    InvalidBase64Error,
)
from .images import ImageFormat, decode_image
from .validation import validate_page_number, validate_stamp_geometry

logger = logging.getLogger(__name__)

_DATA_URI_MIME = re.compile(r"data:image/([^;,]+)", re.IGNORECASE)
_BASE64_BODY = re.compile(r"^[A-Za-z0-9+/]*={0,2}$")
_WHITESPACE = re.compile(r"\s")


# ---------- Public API -------------------------------------------------------

@dataclass(frozen=True)
class DecodedSignature:
    format: ImageFormat
    data: bytes
    original_length: int
    cleaned_length: int


@dataclass(frozen=True)
class PlacementResult:
    pdf_bytes: bytes
    page_number: int                      # 1-based, as requested
    page_count: int
    rect: Tuple[float, float, float, float]  # (x, y, width, height) in page space
    image_format: ImageFormat


def decode_data_uri(signature: str) -> DecodedSignature:
    """
    Turn a transport string into raw image bytes.

    Accepts `data:image/<type>;base64,<payload>` or a bare base64 payload
    (treated as PNG). Whitespace anywhere in the payload is dropped.

    Raises:
        InvalidBase64Error: payload has characters outside the base64
            alphabet, or bad padding.
    """
    original_length = len(signature or "")
    payload = signature or ""
    subtype: Optional[str] = None

    if payload[:11].lower() == "data:image/":
        marker = payload.find("base64,")
        if marker != -1:
            mime_match = _DATA_URI_MIME.match(payload)
            if mime_match:
                subtype = mime_match.group(1).lower()
            payload = payload[marker + len("base64,"):]

    payload = _WHITESPACE.sub("", payload)
    cleaned_length = len(payload)

    if not _BASE64_BODY.match(payload):
        raise InvalidBase64Error(original_length, cleaned_length)

    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidBase64Error(original_length, cleaned_length, reason=str(e)) from e

    return DecodedSignature(
        format=ImageFormat.from_subtype(subtype),
        data=data,
        original_length=original_length,
        cleaned_length=cleaned_length,
    )


def to_page_space(
    viewport_x: float,
    viewport_y: float,
    display_width: float,
    display_height: float,
    page_height: float,
) -> Tuple[float, float]:
    """
    Map the centre of a stamp in top-left-origin page pixels (zoom 1.0)
    to the bottom-left corner of the image in PDF points (origin bottom-left).

        pdf_x = viewport_x - display_width / 2
        pdf_y = page_height - viewport_y - display_height / 2
    """
    pdf_x = viewport_x - display_width / 2
    pdf_y = page_height - viewport_y - display_height / 2
    return pdf_x, pdf_y


def place_signature(
    pdf_bytes: bytes,
    page_number: int,
    viewport_x: float,
    viewport_y: float,
    display_width: float,
    display_height: float,
    signature_data_uri: str,
) -> PlacementResult:
    """
    Draw a signature stamp onto one page of a PDF and return the new bytes.

    The input bytes are never modified; on any failure an error is raised
    and no bytes are returned, so callers can persist the result blindly.

    Args:
        pdf_bytes: Current document bytes.
        page_number: 1-based target page.
        viewport_x, viewport_y: Centre of the stamp, page-relative, top-left
            origin, already divided by the viewer zoom.
        display_width, display_height: Stamp size in the same space. Drawn
            as-is (no DPI rescaling).
        signature_data_uri: `data:image/<png|jpeg>;base64,...` or bare base64.

    Returns:
        PlacementResult with the serialized document and the page-space rect.
    """
    validate_stamp_geometry(viewport_x, viewport_y, display_width, display_height)

    # 1) Decode transport format
    decoded = decode_data_uri(signature_data_uri)

    # 2) Decode / verify the raster (fails fast on Unsupported)
    decode_image(decoded.data, decoded.format)

    # 3) Open target document
    reader = _open_pdf(pdf_bytes)
    try:
        page_count = len(reader.pages)
    except Exception as e:
        raise DocumentNotFoundError(f"Document cannot be parsed: {e}") from e

    # 4) Validate page index (1-based, reject, never clamp)
    page_index = validate_page_number(page_number, page_count)

    # 5) Coordinate transform
    target = reader.pages[page_index]
    page_width = float(target.mediabox.width)
    page_height = float(target.mediabox.height)
    pdf_x, pdf_y = to_page_space(viewport_x, viewport_y, display_width, display_height, page_height)

    logger.info(
        "[compositing] page=%s/%s page_size=(%.2f, %.2f) center=(%.2f, %.2f) "
        "size=(%.2f, %.2f) -> origin=(%.2f, %.2f) type=%s payload=%s/%s",
        page_number, page_count, page_width, page_height,
        viewport_x, viewport_y, display_width, display_height,
        pdf_x, pdf_y, decoded.format.subtype,
        decoded.original_length, decoded.cleaned_length,
    )

    # 6) Draw & serialize
    overlay = _make_overlay(
        page_width=page_width,
        page_height=page_height,
        image_bytes=decoded.data,
        x=pdf_x,
        y=pdf_y,
        width=display_width,
        height=display_height,
    )
    out = _merge_and_serialize(reader, page_index, overlay, page_count)

    return PlacementResult(
        pdf_bytes=out,
        page_number=page_number,
        page_count=page_count,
        rect=(pdf_x, pdf_y, display_width, display_height),
        image_format=decoded.format,
    )


# ---------- Internals --------------------------------------------------------

def _open_pdf(pdf_bytes: bytes) -> PdfReader:
    if not pdf_bytes:
        raise DocumentNotFoundError("Document not found: stored file is empty")
    try:
        return PdfReader(io.BytesIO(pdf_bytes))
    except Exception as e:
        raise DocumentNotFoundError(
            f"Document cannot be parsed: {e}",
            size=len(pdf_bytes),
        ) from e


def _make_overlay(
    *,
    page_width: float,
    page_height: float,
    image_bytes: bytes,
    x: float,
    y: float,
    width: float,
    height: float,
) -> bytes:
    """
    Single-page PDF the size of the target page with only the stamp on it.
    reportlab uses the same bottom-left origin as the target page.
    """
    buf = io.BytesIO()
    try:
        c = canvas.Canvas(buf, pagesize=(page_width, page_height))
        c.drawImage(
            ImageReader(io.BytesIO(image_bytes)),
            x,
            y,
            width=width,
            height=height,
            mask="auto",
        )
        c.save()
    except Exception as e:
        raise DocumentProcessingError(f"Failed to draw signature overlay: {e}") from e
    return buf.getvalue()


def _merge_and_serialize(
    reader: PdfReader,
    page_index: int,
    overlay_pdf: bytes,
    page_count: int,
) -> bytes:
    try:
        writer = PdfWriter(clone_from=reader)
        overlay_page = PdfReader(io.BytesIO(overlay_pdf)).pages[0]
        writer.pages[page_index].merge_page(overlay_page)

        out = io.BytesIO()
        writer.write(out)
    except Exception as e:
        raise DocumentProcessingError(
            f"Failed to write signed document: {e}",
            page_index=page_index,
        ) from e

    if len(writer.pages) != page_count:
        raise DocumentProcessingError(
            f"Page count changed while signing ({page_count} -> {len(writer.pages)})",
            page_count=page_count,
        )
    return out.getvalue()
