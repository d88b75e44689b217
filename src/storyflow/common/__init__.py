"""Common utilities shared across storyflow."""

from __future__ import annotations

from .geometry import (
    RectLike,
    as_rect,
    is_degenerate,
    require_usable,
    top_left,
    rect_to_pixels,
)

__all__ = [
    "RectLike",
    "as_rect",
    "is_degenerate",
    "require_usable",
    "top_left",
    "rect_to_pixels",
]
