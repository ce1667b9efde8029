"""
Raster image types shared by signature capture and the compositing engine.
"""
from __future__ import annotations

import io
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from PIL import Image

from .errors import UnsupportedImageError


class ImageKind(str, Enum):
    PNG = "png"
    JPEG = "jpeg"
    UNSUPPORTED = "unsupported"


# Pillow's format names for the kinds we can embed
_PIL_FORMATS = {ImageKind.PNG: "PNG", ImageKind.JPEG: "JPEG"}


@dataclass(frozen=True)
class ImageFormat:
    """
    Tagged image format: PNG | JPEG | Unsupported(original mime).

    `mime` always holds the mime type as the client named it, so an
    Unsupported value can say exactly what was rejected.
    """
    kind: ImageKind
    mime: str

    @classmethod
    def png(cls) -> "ImageFormat":
        return cls(ImageKind.PNG, "image/png")

    @classmethod
    def jpeg(cls) -> "ImageFormat":
        return cls(ImageKind.JPEG, "image/jpeg")

    @classmethod
    def from_subtype(cls, subtype: Optional[str]) -> "ImageFormat":
        """
        Map the `<type>` of `image/<type>` to a format.

        Missing subtype defaults to PNG; `jpg` is normalised to `jpeg`.
        """
        if not subtype:
            return cls.png()
        sub = subtype.strip().lower()
        if sub == "png":
            return cls.png()
        if sub in ("jpeg", "jpg"):
            return cls.jpeg()
        return cls(ImageKind.UNSUPPORTED, f"image/{sub}")

    @classmethod
    def from_mime(cls, mime: Optional[str]) -> "ImageFormat":
        if not mime:
            return cls.png()
        mime = mime.strip().lower()
        if not mime.startswith("image/"):
            return cls(ImageKind.UNSUPPORTED, mime)
        return cls.from_subtype(mime.split("/", 1)[1])

    @property
    def is_supported(self) -> bool:
        return self.kind is not ImageKind.UNSUPPORTED

    @property
    def subtype(self) -> str:
        return self.mime.split("/", 1)[-1]

    @property
    def pil_format(self) -> str:
        return _PIL_FORMATS[self.kind]


@dataclass(frozen=True)
class Bitmap:
    """A captured signature: encoded bytes plus what we know about them."""
    data: bytes
    width: int
    height: int
    format: ImageFormat
    mode: str = "RGBA"


def bitmap_from_image(img: Image.Image, fmt: Optional[ImageFormat] = None) -> Bitmap:
    """Encode a PIL image as PNG (default) or JPEG and wrap it."""
    fmt = fmt or ImageFormat.png()
    if fmt.kind is ImageKind.JPEG and img.mode not in ("RGB", "L"):
        img = img.convert("RGB")
    buf = io.BytesIO()
    img.save(buf, format=fmt.pil_format)
    return Bitmap(
        data=buf.getvalue(),
        width=img.width,
        height=img.height,
        format=fmt,
        mode=img.mode,
    )


def decode_image(data: bytes, fmt: ImageFormat) -> Image.Image:
    """
    Decode raster bytes with Pillow and check they really are `fmt`.

    Raises:
        UnsupportedImageError: fmt is Unsupported, the bytes don't decode,
            or they decode to a different format than declared.
    """
    if not fmt.is_supported:
        raise UnsupportedImageError(
            f"Unsupported signature image type {fmt.mime}; only PNG and JPEG can be placed",
            mime=fmt.mime,
        )
    try:
        img = Image.open(io.BytesIO(data))
        img.load()
    except (OSError, SyntaxError, ValueError, Image.DecompressionBombError) as e:
        raise UnsupportedImageError(
            f"Failed to process signature image: {e}",
            mime=fmt.mime,
            size=len(data),
        ) from e

    if img.format != fmt.pil_format:
        raise UnsupportedImageError(
            f"Failed to process signature image: declared {fmt.mime} but data is {img.format or 'unknown'}",
            mime=fmt.mime,
            detected=img.format,
        )
    return img
