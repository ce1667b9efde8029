"""
Viewport-to-page resolution.

The viewer renders pages as a vertical stack inside a zoomable, scrollable
container. A click arrives in screen pixels; the compositing engine wants
page-relative pixels at zoom 1.0. This module owns that conversion.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

from .errors import InvalidPlacementError


@dataclass(frozen=True)
class PageBox:
    """Rendered bounding box of one page, in screen pixels."""
    page_number: int  # 1-based
    left: float
    top: float
    width: float
    height: float

    def contains(self, x: float, y: float) -> bool:
        return (
            self.left <= x <= self.left + self.width
            and self.top <= y <= self.top + self.height
        )


@dataclass(frozen=True)
class PagePoint:
    page_number: int
    x: float
    y: float


def _check_zoom(zoom: float) -> None:
    if not zoom or zoom <= 0:
        raise InvalidPlacementError(f"zoom must be positive, got {zoom}")


def resolve_click(
    client_x: float,
    client_y: float,
    page_boxes: Iterable[PageBox],
    zoom: float = 1.0,
) -> Optional[PagePoint]:
    """
    Find the page under a click and express the click in that page's
    own top-left-origin box at zoom 1.0.

    Returns None when the click lands outside every page (gaps, margins).
    """
    _check_zoom(zoom)
    for box in page_boxes:
        if box.contains(client_x, client_y):
            return PagePoint(
                page_number=box.page_number,
                x=(client_x - box.left) / zoom,
                y=(client_y - box.top) / zoom,
            )
    return None


def normalize_size(width: float, height: float, zoom: float = 1.0) -> Tuple[float, float]:
    """Displayed stamp size -> size at zoom 1.0."""
    _check_zoom(zoom)
    return width / zoom, height / zoom
