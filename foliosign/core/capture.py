# foliosign/core/capture.py
"""
Signature capture & encoding.

Three input modalities all end up as a `Bitmap`:
- drawn:    pointer strokes on a DrawingSurface, trimmed to the ink
- typed:    text rendered with a script font on a fixed canvas
- uploaded: a PNG/JPEG file (SVG is rejected; rasterize it client-side)

Each capture returns None when there is nothing to capture; callers must
treat that as "no signature available" and never place empty bytes.
"""
from __future__ import annotations

import base64
import io
import logging
from typing import Iterable, List, Optional, Sequence, Tuple

from PIL import Image, ImageColor, ImageDraw, ImageFont

from .errors import InvalidSignatureInputError, UnsupportedImageError
from .images import Bitmap, ImageFormat, bitmap_from_image

logger = logging.getLogger(__name__)

TYPED_CANVAS_SIZE = (400, 120)
TYPED_FONT_SIZE = 40
TYPED_ORIGIN = (10, 80)  # left / baseline

DEFAULT_MAX_UPLOAD_BYTES = 5 * 1024 * 1024

# Cursive first, then anything slanted, then Pillow's bundled font
_SCRIPT_FONT_CANDIDATES = [
    "Caveat-Regular.ttf",
    "/usr/share/fonts/truetype/caveat/Caveat-Regular.ttf",
    "DancingScript-Regular.ttf",
    "/usr/share/fonts/truetype/dejavu/DejaVuSerif-Italic.ttf",
    "/usr/share/fonts/dejavu/DejaVuSerif-Italic.ttf",
    "DejaVuSans-Oblique.ttf",
    "/usr/share/fonts/truetype/dejavu/DejaVuSans-Oblique.ttf",
]

Point = Tuple[float, float]


def _parse_color(color_hex: str) -> Tuple[int, int, int, int]:
    try:
        r, g, b = ImageColor.getrgb(color_hex)[:3]
    except (ValueError, TypeError) as e:
        raise InvalidSignatureInputError(f"Invalid signature color {color_hex!r}") from e
    return (r, g, b, 255)


class DrawingSurface:
    """
    Off-screen ink surface mirroring the on-screen signature pad.

    Strokes are drawn into a transparent RGBA PIL image so the exported
    PNG keeps only the ink.
    """

    def __init__(
        self,
        width: int = 600,
        height: int = 200,
        pen_color: str = "#000000",
        pen_width: int = 2,
    ) -> None:
        if width <= 0 or height <= 0:
            raise InvalidSignatureInputError(f"Drawing surface must have a positive size, got {width}x{height}")
        self.width = width
        self.height = height
        self.pen_width = max(1, int(pen_width))
        self._fill = _parse_color(pen_color)
        self._last: Optional[Point] = None
        self._ink_points = 0
        self._reset_image()

    def _reset_image(self) -> None:
        self.image = Image.new("RGBA", (self.width, self.height), (0, 0, 0, 0))
        self._draw = ImageDraw.Draw(self.image)

    def _dot(self, x: float, y: float) -> None:
        r = self.pen_width / 2
        self._draw.ellipse([x - r, y - r, x + r, y + r], fill=self._fill)
        self._ink_points += 1

    def press(self, x: float, y: float) -> None:
        self._last = (x, y)
        self._dot(x, y)

    def drag(self, x: float, y: float) -> None:
        if self._last is None:
            self.press(x, y)
            return
        self._draw.line([self._last, (x, y)], fill=self._fill, width=self.pen_width)
        self._last = (x, y)
        self._ink_points += 1

    def release(self) -> None:
        self._last = None

    def stroke(self, points: Sequence[Point]) -> None:
        """Replay one stroke (press, drags, release)."""
        if not points:
            return
        first, *rest = points
        self.press(*first)
        for p in rest:
            self.drag(*p)
        self.release()

    def clear(self) -> None:
        self._last = None
        self._ink_points = 0
        self._reset_image()

    def is_empty(self) -> bool:
        return self._ink_points == 0 or self.image.getchannel("A").getbbox() is None


def capture_drawn(surface: DrawingSurface) -> Optional[Bitmap]:
    """Trimmed PNG of the ink on `surface`, or None when nothing was drawn."""
    if surface.is_empty():
        return None
    bbox = surface.image.getchannel("A").getbbox()
    cropped = surface.image.crop(bbox)
    return bitmap_from_image(cropped)


def draw_strokes(
    strokes: Iterable[Sequence[Point]],
    width: int = 600,
    height: int = 200,
    color: str = "#000000",
    pen_width: int = 2,
) -> DrawingSurface:
    surface = DrawingSurface(width=width, height=height, pen_color=color, pen_width=pen_width)
    for stroke in strokes:
        surface.stroke(stroke)
    return surface


def _load_script_font(size: int, font_path: Optional[str] = None) -> ImageFont.ImageFont:
    candidates: List[str] = [font_path] if font_path else []
    candidates.extend(_SCRIPT_FONT_CANDIDATES)
    for p in candidates:
        try:
            return ImageFont.truetype(p, size=size)
        except OSError:
            continue
    # last resort
    logger.warning("[capture] no script font found, using Pillow default font")
    return ImageFont.load_default(size=size)


def capture_typed(text: str, color_hex: str = "#000000", font_path: Optional[str] = None) -> Optional[Bitmap]:
    """
    Render `text` on a fixed 400x120 transparent canvas, left/baseline
    anchored. Empty or blank text yields None, never a blank bitmap.
    """
    if not text or not text.strip():
        return None
    fill = _parse_color(color_hex)

    img = Image.new("RGBA", TYPED_CANVAS_SIZE, (0, 0, 0, 0))
    draw = ImageDraw.Draw(img)
    font = _load_script_font(TYPED_FONT_SIZE, font_path)
    if isinstance(font, ImageFont.FreeTypeFont):
        draw.text(TYPED_ORIGIN, text, fill=fill, font=font, anchor="ls")
    else:
        # bitmap fonts have no anchor support; place the top at baseline - size
        x, baseline = TYPED_ORIGIN
        draw.text((x, baseline - TYPED_FONT_SIZE), text, fill=fill, font=font)
    return bitmap_from_image(img)


def capture_uploaded(
    file_bytes: bytes,
    mime_type: str,
    max_bytes: int = DEFAULT_MAX_UPLOAD_BYTES,
) -> Optional[Bitmap]:
    """
    Accept an uploaded PNG or JPEG as the signature. The original bytes are
    kept as-is; Pillow is only used to verify them and read the size.

    SVG is refused here so vector data never reaches the compositing engine.
    """
    if not file_bytes:
        return None

    mime = (mime_type or "").strip().lower()
    if not mime.startswith("image/"):
        raise UnsupportedImageError(f"Signature file must be an image, got {mime_type or 'unknown type'}", mime=mime_type)
    if mime.startswith("image/svg"):
        raise UnsupportedImageError(
            "SVG signatures are not supported; please upload a PNG or JPEG",
            mime=mime_type,
        )
    declared = ImageFormat.from_mime(mime)
    if not declared.is_supported:
        raise UnsupportedImageError(f"Unsupported signature image type {mime}; use PNG or JPEG", mime=mime)
    if len(file_bytes) > max_bytes:
        raise InvalidSignatureInputError(
            f"Signature image must be smaller than {max_bytes // (1024 * 1024)}MB",
            size=len(file_bytes),
        )

    try:
        img = Image.open(io.BytesIO(file_bytes))
        img.load()
    except (OSError, SyntaxError, ValueError, Image.DecompressionBombError) as e:
        raise UnsupportedImageError(f"Failed to process signature image: {e}", mime=mime) from e

    # Trust the bytes over the browser-reported mime when they disagree
    if img.format == "PNG":
        fmt = ImageFormat.png()
    elif img.format == "JPEG":
        fmt = ImageFormat.jpeg()
    else:
        raise UnsupportedImageError(
            f"Unsupported signature image data ({img.format}); use PNG or JPEG",
            mime=mime,
            detected=img.format,
        )
    if fmt.kind is not declared.kind:
        logger.info("[capture] upload declared %s but contains %s", mime, fmt.mime)

    return Bitmap(data=file_bytes, width=img.width, height=img.height, format=fmt, mode=img.mode)


def encode_for_transport(bitmap: Bitmap) -> str:
    """`data:image/<png|jpeg>;base64,<...>`"""
    encoded = base64.b64encode(bitmap.data).decode("ascii")
    return f"data:{bitmap.format.mime};base64,{encoded}"


def decode_transport(data_uri: str) -> bytes:
    """Inverse of encode_for_transport (prefix stripped, payload decoded)."""
    _, _, payload = data_uri.partition("base64,")
    return base64.b64decode(payload or data_uri)
