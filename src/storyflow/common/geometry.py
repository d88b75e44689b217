"""Rectangle helpers shared by the layout engine and the output layer.

Provides conversions into PyMuPDF geometry, degenerate-rectangle checks and
the point-to-pixel mapping used by debug overlays.
"""

from __future__ import annotations

import math
from typing import List, Sequence, Union

import fitz  # type: ignore

from storyflow.errors import GeometryError

RectLike = Union[fitz.Rect, fitz.IRect, Sequence[float]]


def as_rect(value: RectLike) -> fitz.Rect:
    """Coerce a rect-like value (Rect, IRect, 4-sequence) to ``fitz.Rect``.

    Example:
        >>> as_rect((0, 0, 10, 20))
        Rect(0.0, 0.0, 10.0, 20.0)
    """
    if isinstance(value, fitz.Rect):
        return fitz.Rect(value)
    return fitz.Rect(*value)


def is_degenerate(rect: fitz.Rect) -> bool:
    """True if ``rect`` has no usable area: empty, infinite or non-finite."""
    if rect is None:
        return True
    coords = (rect.x0, rect.y0, rect.x1, rect.y1)
    if not all(math.isfinite(c) for c in coords):
        return True
    if rect.is_infinite:
        return True
    return rect.x1 <= rect.x0 or rect.y1 <= rect.y0


def require_usable(rect: fitz.Rect, what: str = "rect") -> fitz.Rect:
    """Return ``rect`` unchanged, or raise GeometryError if it is degenerate."""
    if is_degenerate(rect):
        raise GeometryError(f"Degenerate {what}: {rect}")
    return rect


def top_left(rect: fitz.Rect) -> fitz.Point:
    """Top-left corner of ``rect`` (PyMuPDF coordinates, y grows downwards)."""
    return fitz.Point(rect.x0, rect.y0)


def rect_to_pixels(
    rect: fitz.Rect,
    scale: float,
    transform: fitz.Matrix = fitz.Identity,
) -> List[int]:
    """Convert a rectangle in page points to pixel coordinates.

    The rectangle is first mapped through ``transform`` (the region matrix
    it was drawn with), then multiplied by ``scale`` (typically DPI/72.0).

    Args:
        rect: Rectangle in page coordinates (points).
        scale: Scale factor from points to pixels.
        transform: Optional matrix applied before scaling.

    Returns:
        List of pixel coordinates [px0, py0, px1, py1] ensuring px1 > px0 and py1 > py0.

    Example:
        >>> rect_to_pixels(fitz.Rect(100, 200, 150, 220), 2.0)
        [200, 400, 300, 440]
    """
    mapped = fitz.Rect(rect) * transform
    px0 = int(round(mapped.x0 * scale))
    py0 = int(round(mapped.y0 * scale))
    px1 = int(round(mapped.x1 * scale))
    py1 = int(round(mapped.y1 * scale))

    # Ensure valid bounding box (x1 > x0, y1 > y0)
    if px1 <= px0:
        px1 = px0 + 1
    if py1 <= py0:
        py1 = py0 + 1

    return [px0, py0, px1, py1]
