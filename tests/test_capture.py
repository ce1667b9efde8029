"""
Tests for signature capture & encoding.

Run with: pytest tests/test_capture.py -v
"""
import io

import pytest
from PIL import Image

from foliosign.core.capture import (
    TYPED_CANVAS_SIZE,
    DrawingSurface,
    capture_drawn,
    capture_typed,
    capture_uploaded,
    decode_transport,
    draw_strokes,
    encode_for_transport,
)
from foliosign.core.errors import InvalidSignatureInputError, UnsupportedImageError
from foliosign.core.images import ImageKind

from conftest import make_jpeg, make_png


class TestCaptureTyped:
    """Tests for typed signatures."""

    @pytest.mark.parametrize("text", ["", "   ", "\t\n"])
    @pytest.mark.parametrize("color", ["#000000", "#0000FF", "red"])
    def test_blank_text_is_no_signature(self, text, color):
        assert capture_typed(text, color) is None

    def test_renders_fixed_canvas(self):
        bitmap = capture_typed("Jane Doe", "#0000FF")
        assert bitmap is not None
        assert (bitmap.width, bitmap.height) == TYPED_CANVAS_SIZE
        assert bitmap.format.kind is ImageKind.PNG

        img = Image.open(io.BytesIO(bitmap.data))
        assert img.mode == "RGBA"
        # some ink, transparent elsewhere
        assert img.getchannel("A").getbbox() is not None
        assert img.getpixel((TYPED_CANVAS_SIZE[0] - 1, TYPED_CANVAS_SIZE[1] - 1))[3] == 0

    def test_ink_uses_requested_color(self):
        bitmap = capture_typed("Jane Doe", "#0000FF")
        img = Image.open(io.BytesIO(bitmap.data)).convert("RGBA")
        opaque = [p for p in img.getdata() if p[3] == 255]
        assert opaque
        assert all(p[:3] == (0, 0, 255) for p in opaque)

    def test_invalid_color(self):
        with pytest.raises(InvalidSignatureInputError):
            capture_typed("Jane", "not-a-color")


class TestCaptureDrawn:
    """Tests for drawn signatures."""

    def test_empty_surface_is_no_signature(self):
        assert capture_drawn(DrawingSurface()) is None

    def test_cleared_surface_is_no_signature(self):
        surface = draw_strokes([[(10, 10), (100, 50)]])
        surface.clear()
        assert surface.is_empty()
        assert capture_drawn(surface) is None

    def test_trimmed_to_ink(self):
        surface = draw_strokes([[(100, 50), (300, 50)]], pen_width=4)
        bitmap = capture_drawn(surface)
        assert bitmap is not None
        # 200px line with a 4px pen, not the 600x200 pad
        assert 200 <= bitmap.width <= 206
        assert 1 <= bitmap.height <= 6

    def test_single_tap_leaves_a_dot(self):
        surface = DrawingSurface()
        surface.press(50, 50)
        surface.release()
        bitmap = capture_drawn(surface)
        assert bitmap is not None
        assert bitmap.width <= 4 and bitmap.height <= 4

    def test_transport_round_trip(self):
        """encode -> strip prefix -> base64 decode gives the exact bytes back."""
        bitmap = capture_drawn(draw_strokes([[(10, 10), (200, 120), (400, 30)]]))
        uri = encode_for_transport(bitmap)
        assert uri.startswith("data:image/png;base64,")
        assert decode_transport(uri) == bitmap.data

    def test_invalid_surface_size(self):
        with pytest.raises(InvalidSignatureInputError):
            DrawingSurface(width=0, height=200)


class TestCaptureUploaded:
    """Tests for uploaded signature files."""

    def test_png_kept_verbatim(self):
        png = make_png(120, 40)
        bitmap = capture_uploaded(png, "image/png")
        assert bitmap.data == png
        assert (bitmap.width, bitmap.height) == (120, 40)
        assert bitmap.format.kind is ImageKind.PNG

    def test_jpeg(self):
        jpeg = make_jpeg(64, 32)
        bitmap = capture_uploaded(jpeg, "image/jpeg")
        assert bitmap.format.kind is ImageKind.JPEG
        assert bitmap.data == jpeg

    def test_content_wins_over_declared_type(self):
        bitmap = capture_uploaded(make_jpeg(), "image/png")
        assert bitmap.format.kind is ImageKind.JPEG

    def test_empty_file_is_no_signature(self):
        assert capture_uploaded(b"", "image/png") is None

    def test_svg_rejected(self):
        svg = b'<svg xmlns="http://www.w3.org/2000/svg" width="10" height="10"/>'
        with pytest.raises(UnsupportedImageError) as exc:
            capture_uploaded(svg, "image/svg+xml")
        assert "SVG" in exc.value.message

    def test_gif_rejected(self):
        buf = io.BytesIO()
        Image.new("RGB", (4, 4)).save(buf, format="GIF")
        with pytest.raises(UnsupportedImageError):
            capture_uploaded(buf.getvalue(), "image/gif")

    def test_non_image_rejected(self):
        with pytest.raises(UnsupportedImageError):
            capture_uploaded(b"%PDF-1.4", "application/pdf")

    def test_too_large(self):
        with pytest.raises(InvalidSignatureInputError):
            capture_uploaded(make_png(), "image/png", max_bytes=10)

    def test_corrupt_bytes(self):
        with pytest.raises(UnsupportedImageError):
            capture_uploaded(b"\x89PNG garbage", "image/png")
