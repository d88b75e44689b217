"""
Module: storyflow.controller

Purpose:
    One-call pipelines on top of the layout engine.
    Markup → Place/Paginate (or Stabilize) → Links → Save → Overlays

Key Functions:
    - write_with_links(): Paginate a session into an in-memory PDF with links
    - write_stabilized_with_links(): Same for self-referential content
    - measure_html(): Height needed by markup at a given width
    - render_html(): Full pipeline to a PDF file

Key Classes:
    - RenderResult: Complete render result

Dependencies:
    - storyflow.layout: Placement, pagination, stabilization, fit search
    - storyflow.output: Sink, links, debug overlays
    - storyflow.timing: Phase timings

Used By:
    - scripts/generate_toc_demo.py
    - Library callers
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple, Union

import fitz  # type: ignore

from .config import StoryConfig
from .layout import (
    LayoutConfig,
    Placement,
    Position,
    FitResult,
    fit_height,
    page_regions,
    write,
    write_stabilized,
)
from .layout.paginator import PageFn, PositionFn, RegionFn
from .layout.stabilizer import ContentFn
from .output import (
    DocumentSink,
    LinkSpec,
    add_pdf_links,
    insert_links,
    resolve_links,
    save_debug_pages,
)
from .timing import TimingLog, timed_phase

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RenderResult:
    """
    Complete render result (immutable).

    Attributes:
        pdf_path: Path of the written PDF
        page_count: Number of pages written
        positions: Positions of the final layout pass
        links: Links inserted into the PDF
        iterations: Content generations (1 for static markup)
        debug_pages: Overlay images written, if enabled
        timing: Phase timings of the run

    Example:
        >>> result = render_html("<h1>Hi</h1>", Path("out/hi.pdf"))
        >>> print(f"Generated {result.page_count} pages with {len(result.links)} links")
    """
    pdf_path: Path
    page_count: int
    positions: Tuple[Position, ...]
    links: Tuple[LinkSpec, ...]
    iterations: int = 1
    debug_pages: Tuple[Path, ...] = field(default_factory=tuple)
    timing: Optional[TimingLog] = None


def _collector(
    positions: List[Position],
    on_position: Optional[PositionFn],
) -> PositionFn:
    """Position callback that records and then forwards to ``on_position``."""
    def _collect(position: Position) -> None:
        positions.append(position)
        if on_position is not None:
            on_position(position)
    return _collect


def write_with_links(
    placement: Placement,
    region_fn: RegionFn,
    on_position: Optional[PositionFn] = None,
    on_page: Optional[PageFn] = None,
) -> fitz.Document:
    """
    Paginate ``placement`` into an in-memory PDF and add its links.

    Args:
        placement: Session to write
        region_fn: Region generator
        on_position: Also receives every Position
        on_page: Page begin/end callback

    Returns:
        fitz.Document with internal and external links inserted

    Example:
        >>> doc = write_with_links(Placement.from_html(html), fixed_regions(box, where))
        >>> doc.page_count
        2
    """
    positions: List[Position] = []
    sink = DocumentSink()
    write(placement, sink, region_fn, _collector(positions, on_position), on_page)
    sink.close()
    return add_pdf_links(sink.getvalue(), positions)


def write_stabilized_with_links(
    content_fn: ContentFn,
    region_fn: RegionFn,
    on_position: Optional[PositionFn] = None,
    on_page: Optional[PageFn] = None,
    config: Optional[StoryConfig] = None,
    timing: Optional[TimingLog] = None,
) -> fitz.Document:
    """
    Stabilized write into an in-memory PDF, then add its links.

    Args:
        content_fn: Previous Positions -> markup
        region_fn: Region generator
        on_position: Receives the final pass's Positions
        on_page: Page begin/end callback of the final pass
        config: Styling and iteration budget
        timing: Optional TimingLog for per-pass timings

    Returns:
        fitz.Document with links inserted
    """
    positions: List[Position] = []
    sink = DocumentSink()
    write_stabilized(
        sink,
        content_fn,
        region_fn,
        _collector(positions, on_position),
        on_page,
        config=config,
        timing=timing,
    )
    sink.close()
    return add_pdf_links(sink.getvalue(), positions)


def measure_html(
    html: str,
    width: float,
    config: Optional[StoryConfig] = None,
) -> FitResult:
    """
    Smallest height at which ``html`` fits into a box ``width`` wide.

    Args:
        html: Markup to measure
        width: Box width in points
        config: Styling, tolerance and probe budget

    Returns:
        FitResult whose parameter is the height (big_enough False if
        the content cannot fit at this width)
    """
    config = config or StoryConfig()
    placement = Placement.from_config(html, config)
    return fit_height(
        placement,
        width,
        delta=config.fit_delta,
        max_steps=config.max_search_steps,
    )


def render_html(
    content: Union[str, ContentFn],
    output_path: Path,
    layout: Optional[LayoutConfig] = None,
    config: Optional[StoryConfig] = None,
    on_position: Optional[PositionFn] = None,
) -> RenderResult:
    """
    Render markup to a PDF file from start to finish.

    Pipeline:
    1. Lay out content (static markup directly, a content function
       through the stabilizer)
    2. Paginate onto pages/columns from the LayoutConfig
    3. Insert links for every href
    4. Save the PDF
    5. (Optional) Write debug overlays

    Args:
        content: Markup, or a function of previous Positions returning markup
        output_path: Where to write the PDF
        layout: Page geometry
        config: Styling, budgets and diagnostics
        on_position: Receives the final pass's Positions

    Returns:
        RenderResult with path, counts, positions and links

    Raises:
        ContentError: If markup cannot be parsed
        NonConvergenceError: If generated content never stabilizes
        UnresolvedReferenceError: If a "#id" link has no target

    Example:
        >>> result = render_html(html, Path("output/report.pdf"), LayoutConfig(columns=2))
        >>> print(f"Generated {result.page_count} pages")
    """
    layout = layout or LayoutConfig()
    config = config or StoryConfig()
    timing = TimingLog()
    start_time = time.perf_counter()
    regions = page_regions(layout)

    positions: List[Position] = []
    collect = _collector(positions, on_position)
    sink = DocumentSink()

    logger.info(f"Starting render to {output_path}")

    # 1-2. Layout and pagination
    with timed_phase(timing, "layout"):
        if callable(content):
            stabilized = write_stabilized(
                sink, content, regions, collect, config=config, timing=timing
            )
            iterations = stabilized.iterations
        else:
            placement = Placement.from_config(content, config)
            write(placement, sink, regions, collect)
            iterations = 1
    sink.close()

    # 3. Links
    with timed_phase(timing, "links"):
        links = resolve_links(positions)
        document = insert_links(sink.getvalue(), links)

    # 4. Save
    output_path.parent.mkdir(parents=True, exist_ok=True)
    page_count = document.page_count
    with timed_phase(timing, "save"):
        document.save(str(output_path))

    # 5. Debug overlays
    debug_pages: List[Path] = []
    if config.debug_overlay_dir is not None:
        with timed_phase(timing, "debug_overlay"):
            debug_pages = save_debug_pages(
                document, positions, Path(config.debug_overlay_dir), config.debug_dpi
            )
    document.close()

    elapsed = time.perf_counter() - start_time
    logger.info(
        f"Rendered {page_count} pages, {len(links)} links, "
        f"{iterations} iterations in {elapsed:.2f}s"
    )
    logger.debug(timing.summary())

    return RenderResult(
        pdf_path=output_path,
        page_count=page_count,
        positions=tuple(positions),
        links=tuple(links),
        iterations=iterations,
        debug_pages=tuple(debug_pages),
        timing=timing,
    )
