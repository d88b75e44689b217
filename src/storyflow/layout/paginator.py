"""
Module: storyflow.layout.paginator

Purpose:
    Drive one placement session across a caller-supplied sequence of
    regions, committing each placed chunk to pages of an output sink
    and tagging every Position with its page and region numbers.

Key Functions:
    - write(): Main pagination loop

Algorithm:
    For region index i = 0, 1, ...:
    1. Ask region_fn(i, previous_filled) for (mediabox, rect, transform)
    2. A mediabox starts a new page: close the open one, begin the next
    3. Place into rect; tag and forward the chunk's Positions
    4. Draw the chunk with transform
    5. Stop once place() reports no more content, closing the last page

    Without a sink the loop still runs to exhaustion (drawing to a null
    device) so that Positions can be collected.

Dependencies:
    - fitz (PyMuPDF): Rect, Matrix
    - storyflow.layout.placement: Placement session
    - storyflow.output.sink: Sink protocol (begin_page/end_page)

Used By:
    - storyflow.layout.stabilizer: Converging and final passes
    - storyflow.controller: write_with_links, render_html
"""

from __future__ import annotations

import logging
from typing import Any, Callable, List, Optional, Sequence

import fitz  # type: ignore

from storyflow.common.geometry import as_rect, is_degenerate
from storyflow.errors import GeometryError

from .models import PaginationResult, Position
from .placement import Placement

logger = logging.getLogger(__name__)

RegionFn = Callable[[int, fitz.Rect], Sequence[Any]]
PositionFn = Callable[[Position], None]
PageFn = Callable[[int, fitz.Rect, Any, bool], None]


def write(
    placement: Placement,
    sink: Any,
    region_fn: RegionFn,
    on_position: Optional[PositionFn] = None,
    on_page: Optional[PageFn] = None,
) -> PaginationResult:
    """
    Place and draw a story into successive regions until it is exhausted.

    Args:
        placement: Session to consume (from its current cursor)
        sink: Object with begin_page(mediabox) -> device and end_page(),
            or None to collect Positions only
        region_fn: Called as region_fn(rect_num, previous_filled) and
            returning (mediabox or None, rect, transform)
        on_position: Receives each tagged Position in content order
        on_page: Called as on_page(page_num, mediabox, device, closing)
            after a page begins and before it ends (sink runs only)

    Returns:
        PaginationResult with page/region counts and collected Positions

    Raises:
        GeometryError: If a region rect is degenerate, or the first
            region does not start a page

    Example:
        >>> sink = DocumentSink()
        >>> result = write(placement, sink, fixed_regions(fitz.paper_rect("a4"), where))
        >>> result.page_count
        3
    """
    positions: List[Position] = []
    device = None
    page_open = False
    mediabox_open: Optional[fitz.Rect] = None
    page_num = 0
    rect_num = 0
    filled = fitz.Rect()

    while True:
        mediabox, rect, transform = region_fn(rect_num, fitz.Rect(filled))
        rect = as_rect(rect)
        if transform is None:
            transform = fitz.Identity

        if mediabox is not None:
            mediabox = as_rect(mediabox)
            if is_degenerate(mediabox):
                raise GeometryError(f"Degenerate mediabox for region {rect_num}: {mediabox}")
            page_num += 1
            if sink is not None:
                if page_open:
                    _close_page(sink, on_page, page_num - 1, mediabox_open, device)
                device = sink.begin_page(mediabox)
                page_open = True
                if on_page is not None:
                    on_page(page_num, mediabox, device, False)
            mediabox_open = mediabox
        elif page_num == 0:
            raise GeometryError("The first region must supply a mediabox")

        if is_degenerate(rect):
            raise GeometryError(f"Degenerate rect for region {rect_num}: {rect}")

        more, filled = placement.place(rect)

        def _tag(position: Position) -> None:
            positions.append(position)
            if on_position is not None:
                on_position(position)

        placement.element_positions(_tag, page_num=page_num, rect_num=rect_num)
        placement.draw(device if sink is not None else None, transform)

        logger.debug(
            f"Region {rect_num} on page {page_num}: filled={filled} more={more}"
        )
        if more and filled.is_empty:
            logger.warning(f"Region {rect_num} on page {page_num} placed no content")

        rect_num += 1
        if not more:
            if sink is not None and page_open:
                _close_page(sink, on_page, page_num, mediabox_open, device)
            break

    logger.info(f"Paginated story onto {page_num} pages using {rect_num} regions")
    return PaginationResult(
        page_count=page_num,
        rect_count=rect_num,
        positions=tuple(positions),
    )


def _close_page(
    sink: Any,
    on_page: Optional[PageFn],
    page_num: int,
    mediabox: Optional[fitz.Rect],
    device: Any,
) -> None:
    """Run the closing page callback and end the sink's open page."""
    if on_page is not None:
        on_page(page_num, mediabox, device, True)
    sink.end_page()
