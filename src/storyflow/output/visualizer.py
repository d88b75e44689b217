"""
Module: storyflow.output.visualizer

Purpose:
    Debug visualization for layout runs. Renders written pages and
    draws the rectangle of every placed element on top, to diagnose
    pagination and link placement.

Key Functions:
    - render_page_image(): Rasterize one PDF page to a PIL image
    - visualize_positions(): Draw Position outlines onto a page image
    - save_debug_pages(): Write one overlay PNG per page

Dependencies:
    - fitz (PyMuPDF): Page rendering
    - PIL: Image drawing
    - storyflow.layout.models: Position

Used By:
    - storyflow.controller: render_html when debug_overlay_dir is set

Note:
    Position rectangles are drawn as reported (region-local). Regions
    drawn with a non-identity transform will appear offset.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Iterable, List, Tuple

import fitz  # type: ignore
from PIL import Image, ImageDraw, ImageFont

from storyflow.common.geometry import rect_to_pixels
from storyflow.layout.models import Position

logger = logging.getLogger(__name__)

# Visualization constants
COLORS = {
    "heading": (255, 0, 0, 180),      # Red - h1..h6
    "link": (255, 165, 0, 180),       # Orange - elements with href
    "anchor": (0, 0, 255, 180),       # Blue - elements with id
    "element": (0, 160, 0, 120),      # Green - everything else
}

LABEL_BG_COLOR = (0, 0, 0, 200)      # Black background for labels
LABEL_TEXT_COLOR = (255, 255, 255)    # White text
BOX_LINE_WIDTH = 2
FONT_SIZE = 10


def render_page_image(page: fitz.Page, dpi: int = 72) -> Image.Image:
    """
    Rasterize a page to an RGB image.

    Args:
        page: PyMuPDF page
        dpi: Rendering resolution

    Returns:
        RGB PIL image of the whole page
    """
    matrix = fitz.Matrix(dpi / 72.0, dpi / 72.0)
    pix = page.get_pixmap(matrix=matrix, alpha=False)
    return Image.frombytes("RGB", (pix.width, pix.height), pix.samples)


def _classify(position: Position) -> Tuple[str, str]:
    """Colour key and label text for a Position."""
    if position.heading:
        return "heading", f"h{position.heading} {position.id or ''}".strip()
    if position.href:
        return "link", f"-> {position.href}"
    if position.id:
        return "anchor", f"#{position.id}"
    return "element", ""


def visualize_positions(
    page_image: Image.Image,
    positions: Iterable[Position],
    dpi: int = 72,
) -> Image.Image:
    """
    Draw outlines around the opening record of every placed element.

    Colors:
    - Red: Headings
    - Orange: Links (href)
    - Blue: Anchors (id)
    - Green: Other elements

    Args:
        page_image: Rendered page
        positions: Positions on that page
        dpi: Resolution the page was rendered at

    Returns:
        New image with debug overlays (original unchanged)

    Example:
        >>> img = visualize_positions(render_page_image(doc[0]), page_positions)
        >>> img.save("page_001_debug.png")
    """
    debug_img = page_image.convert("RGBA")
    overlay = Image.new("RGBA", debug_img.size, (255, 255, 255, 0))
    draw = ImageDraw.Draw(overlay)

    try:
        font = ImageFont.truetype("Arial.ttf", FONT_SIZE)
    except (IOError, OSError):
        font = ImageFont.load_default()

    scale = dpi / 72.0
    for position in positions:
        if not position.is_open or position.rect.is_empty:
            continue
        key, label = _classify(position)
        bbox = rect_to_pixels(position.rect, scale)
        _draw_position_box(draw, tuple(bbox), label, COLORS[key], font)

    debug_img = Image.alpha_composite(debug_img, overlay)
    return debug_img.convert("RGB")


def _draw_position_box(
    draw: ImageDraw.ImageDraw,
    bbox: Tuple[int, int, int, int],
    label_text: str,
    color: Tuple[int, int, int, int],
    font: ImageFont.FreeTypeFont,
) -> None:
    """
    Draw a single element box with an optional label.

    Args:
        draw: ImageDraw object
        bbox: (left, top, right, bottom) in pixels
        label_text: Text to display above box (skipped if empty)
        color: RGBA color tuple for box
        font: Font for label text
    """
    x0, y0, x1, y1 = bbox
    draw.rectangle(bbox, outline=color, width=BOX_LINE_WIDTH)
    if not label_text:
        return

    text_bbox = draw.textbbox((0, 0), label_text, font=font)
    text_width = text_bbox[2] - text_bbox[0]
    text_height = text_bbox[3] - text_bbox[1]

    # Position label above box (or below if at top edge)
    label_x = x0
    label_y = y0 - text_height - 4
    if label_y < 0:
        label_y = y1 + 2

    draw.rectangle(
        (label_x, label_y, label_x + text_width + 4, label_y + text_height + 4),
        fill=LABEL_BG_COLOR,
    )
    draw.text((label_x + 2, label_y + 2), label_text, fill=LABEL_TEXT_COLOR, font=font)


def save_debug_pages(
    document: fitz.Document,
    positions: Iterable[Position],
    output_dir: Path,
    dpi: int = 72,
) -> List[Path]:
    """
    Write ``page_NNN_debug.png`` for every page of ``document``.

    Args:
        document: Finished document
        positions: Final Positions (tagged with page_num)
        output_dir: Directory for the images (created if missing)
        dpi: Rendering resolution

    Returns:
        Paths of the written images, in page order
    """
    by_page: Dict[int, List[Position]] = {}
    for position in positions:
        by_page.setdefault(position.page_num, []).append(position)

    output_dir.mkdir(parents=True, exist_ok=True)
    paths: List[Path] = []
    for index, page in enumerate(document):
        page_num = index + 1
        image = render_page_image(page, dpi)
        debug_img = visualize_positions(image, by_page.get(page_num, []), dpi)
        path = output_dir / f"page_{page_num:03d}_debug.png"
        debug_img.save(path, "PNG")
        paths.append(path)

    logger.info(f"Saved {len(paths)} debug pages to {output_dir}")
    return paths
