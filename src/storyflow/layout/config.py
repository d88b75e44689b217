"""
Module: storyflow.layout.config

Purpose:
    Configuration for page geometry.
    Defines page dimensions, margins, and column layout used by the
    stock region generators.

Key Classes:
    - LayoutConfig: Immutable page geometry configuration

Dependencies:
    - fitz (PyMuPDF): paper sizes and Rect
    - dataclasses (std)

Used By:
    - storyflow.layout.regions: Region generators
    - storyflow.controller: render_html pipeline
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

import fitz  # type: ignore


DEFAULT_PAPER = "a4"
DEFAULT_MARGIN_PT = 36.0


@dataclass(frozen=True)
class LayoutConfig:
    """
    Configuration for page geometry (immutable).

    Page size comes from ``paper`` (any name ``fitz.paper_rect`` knows,
    e.g. "a4", "letter", "a5-l") unless both page_width and page_height
    are given. All lengths are in points.

    Attributes:
        paper: Paper name used when no explicit size is given
        page_width: Explicit page width (overrides paper)
        page_height: Explicit page height (overrides paper)
        margin_top: Top margin
        margin_bottom: Bottom margin
        margin_left: Left margin
        margin_right: Right margin
        columns: Number of columns per page
        column_gap: Horizontal gap between columns

    Example:
        >>> config = LayoutConfig(paper="letter", columns=2)
        >>> len(config.column_rects)
        2
    """

    paper: str = DEFAULT_PAPER
    page_width: Optional[float] = None
    page_height: Optional[float] = None

    # Margins
    margin_top: float = DEFAULT_MARGIN_PT
    margin_bottom: float = DEFAULT_MARGIN_PT
    margin_left: float = DEFAULT_MARGIN_PT
    margin_right: float = DEFAULT_MARGIN_PT

    # Columns
    columns: int = 1
    column_gap: float = 18.0

    def __post_init__(self) -> None:
        """Validate configuration on construction."""
        if (self.page_width is None) != (self.page_height is None):
            raise ValueError("page_width and page_height must be given together")
        if self.page_width is not None and self.page_width <= 0:
            raise ValueError(f"page_width must be positive: {self.page_width}")
        if self.page_height is not None and self.page_height <= 0:
            raise ValueError(f"page_height must be positive: {self.page_height}")
        if self.page_width is None and fitz.paper_rect(self.paper).is_empty:
            raise ValueError(f"Unknown paper size: {self.paper!r}")
        if self.columns < 1:
            raise ValueError(f"columns must be at least 1: {self.columns}")
        if self.column_gap < 0:
            raise ValueError(f"column_gap must be non-negative: {self.column_gap}")
        if self.available_width <= 0:
            raise ValueError("Margins exceed page width")
        if self.available_height <= 0:
            raise ValueError("Margins exceed page height")
        if self.column_width <= 0:
            raise ValueError("Column gaps exceed available width")

    @property
    def mediabox(self) -> fitz.Rect:
        """Full page rectangle."""
        if self.page_width is not None:
            return fitz.Rect(0, 0, self.page_width, self.page_height)
        return fitz.paper_rect(self.paper)

    @property
    def available_width(self) -> float:
        """Width available for content (excluding margins)."""
        return self.mediabox.width - self.margin_left - self.margin_right

    @property
    def available_height(self) -> float:
        """Height available for content (excluding margins)."""
        return self.mediabox.height - self.margin_top - self.margin_bottom

    @property
    def content_rect(self) -> fitz.Rect:
        """Page rectangle minus margins."""
        box = self.mediabox
        return fitz.Rect(
            box.x0 + self.margin_left,
            box.y0 + self.margin_top,
            box.x1 - self.margin_right,
            box.y1 - self.margin_bottom,
        )

    @property
    def column_width(self) -> float:
        """Width of a single column."""
        gaps = self.column_gap * (self.columns - 1)
        return (self.available_width - gaps) / self.columns

    @property
    def column_rects(self) -> List[fitz.Rect]:
        """Column rectangles of one page, left to right."""
        content = self.content_rect
        rects = []
        for i in range(self.columns):
            x0 = content.x0 + i * (self.column_width + self.column_gap)
            rects.append(fitz.Rect(x0, content.y0, x0 + self.column_width, content.y1))
        return rects
