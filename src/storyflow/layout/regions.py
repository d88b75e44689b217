"""
Module: storyflow.layout.regions

Purpose:
    Stock region generators for paginator.write() and the stabilizer.

Key Functions:
    - page_regions(): Pages of one or more columns from a LayoutConfig
    - fixed_regions(): Same rectangle on every new page

Dependencies:
    - fitz (PyMuPDF): Rect, Matrix
    - storyflow.layout.config: LayoutConfig

Used By:
    - storyflow.controller: render_html pipeline
"""

from __future__ import annotations

from typing import Callable, Optional

import fitz  # type: ignore

from storyflow.common.geometry import RectLike, as_rect, require_usable

from .config import LayoutConfig
from .models import Region


def page_regions(config: LayoutConfig) -> Callable[[int, fitz.Rect], Region]:
    """
    Region generator flowing content through the columns of each page.

    The first column of every page carries the mediabox (starting a new
    page); later columns carry None and share that page.

    Example:
        >>> regions = page_regions(LayoutConfig(columns=2))
        >>> regions(0, fitz.Rect()).mediabox is not None
        True
        >>> regions(1, fitz.Rect()).mediabox is None
        True
    """
    mediabox = config.mediabox
    columns = config.column_rects

    def _region(rect_num: int, filled: fitz.Rect) -> Region:
        column = rect_num % len(columns)
        return Region(
            mediabox=fitz.Rect(mediabox) if column == 0 else None,
            rect=fitz.Rect(columns[column]),
            transform=fitz.Identity,
        )

    return _region


def fixed_regions(
    mediabox: RectLike,
    rect: RectLike,
    transform: Optional[fitz.Matrix] = None,
) -> Callable[[int, fitz.Rect], Region]:
    """
    Region generator placing into the same rectangle on every new page.

    Args:
        mediabox: Page rectangle
        rect: Content rectangle on each page
        transform: Drawing transform (identity if None)
    """
    box = require_usable(as_rect(mediabox), "mediabox")
    where = require_usable(as_rect(rect), "region rect")
    matrix = transform if transform is not None else fitz.Identity

    def _region(rect_num: int, filled: fitz.Rect) -> Region:
        return Region(mediabox=fitz.Rect(box), rect=fitz.Rect(where), transform=matrix)

    return _region
