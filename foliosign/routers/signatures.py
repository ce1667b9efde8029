# foliosign/routers/signatures.py
"""
Signature capture endpoints.

Each modality returns the same transport shape the sign endpoint consumes:
{dataUri, width, height, format}. Nothing captured -> 400 no-signature.
"""
from __future__ import annotations

import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, File, UploadFile

from foliosign.core.capture import (
    capture_drawn,
    capture_typed,
    capture_uploaded,
    draw_strokes,
    encode_for_transport,
)
from foliosign.core.errors import NoSignatureError
from foliosign.core.images import Bitmap
from foliosign.schemas import DrawnSignatureRequest, SignatureOut, TypedSignatureRequest
from foliosign.settings import Settings, get_settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/signatures", tags=["signatures"])

Config = Annotated[Settings, Depends(get_settings)]


def _out(bitmap: Optional[Bitmap], source: str) -> SignatureOut:
    if bitmap is None:
        raise NoSignatureError(f"No signature available ({source} input was empty)")
    logger.info("[signatures.%s] %sx%s %s", source, bitmap.width, bitmap.height, bitmap.format.mime)
    return SignatureOut(
        data_uri=encode_for_transport(bitmap),
        width=bitmap.width,
        height=bitmap.height,
        format=bitmap.format.subtype,
    )


@router.post("/typed", response_model=SignatureOut, response_model_by_alias=True)
def capture_typed_signature(payload: TypedSignatureRequest, config: Config):
    bitmap = capture_typed(payload.text, payload.color, font_path=config.signature_font_path or None)
    return _out(bitmap, "typed")


@router.post("/drawn", response_model=SignatureOut, response_model_by_alias=True)
def capture_drawn_signature(payload: DrawnSignatureRequest):
    """Replay pointer strokes on a pad and return the ink trimmed to its bounding box."""
    surface = draw_strokes(
        payload.strokes,
        width=payload.width,
        height=payload.height,
        color=payload.color,
        pen_width=payload.pen_width,
    )
    return _out(capture_drawn(surface), "drawn")


@router.post("/upload", response_model=SignatureOut, response_model_by_alias=True)
async def upload_signature(config: Config, file: UploadFile = File(...)):
    data = await file.read()
    bitmap = capture_uploaded(data, file.content_type or "", max_bytes=config.max_signature_bytes)
    return _out(bitmap, "upload")
