"""
Generate a demo PDF with a self-referential table of contents.

The contents page lists the page number of every section, so the layout
is repeated until the numbers stop changing. Keeps the PDF, timing data
and debug overlays in a known location for manual review.
"""

import logging
import shutil
from pathlib import Path

from storyflow.config import StoryConfig
from storyflow.controller import render_html
from storyflow.layout import LayoutConfig

# Paths
OUTPUT_DIR = Path(__file__).parent.parent / "workspace" / "toc_demo"

SECTIONS = 8
PARAGRAPH = "<p>" + "Demonstration text flowing across columns and pages. " * 15 + "</p>"


def build_content(positions):
    """Contents page plus body; page numbers come from the previous pass."""
    pages = {p.id: p.page_num for p in positions if p.id and p.is_open}
    rows = "".join(
        f'<li><a href="#sec{i}">Section {i}</a> ... page {pages.get(f"sec{i}", "?")}</li>'
        for i in range(1, SECTIONS + 1)
    )
    body = "".join(
        f'<h2 id="sec{i}">Section {i}</h2>{PARAGRAPH * 4}'
        f'<p><a href="#contents">Back to contents</a></p>'
        for i in range(1, SECTIONS + 1)
    )
    return f'<h1 id="contents">Contents</h1><ul>{rows}</ul>{body}'


def main():
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    if OUTPUT_DIR.exists():
        print(f"[CLEAN] Removing old output: {OUTPUT_DIR}")
        shutil.rmtree(OUTPUT_DIR)
    OUTPUT_DIR.mkdir(parents=True, exist_ok=True)

    layout = LayoutConfig(paper="a5", columns=2)
    config = StoryConfig(debug_overlay_dir=OUTPUT_DIR / "debug")

    print("\n[RENDER] Laying out contents until page numbers are stable...")
    result = render_html(build_content, OUTPUT_DIR / "toc_demo.pdf", layout, config)

    print(f"[OK] Converged after {result.iterations} iterations")
    print(f"[OK] {result.page_count} pages, {len(result.links)} links")
    print(f"[OK] PDF: {result.pdf_path}")
    print(f"[OK] {len(result.debug_pages)} debug pages in {config.debug_overlay_dir}")

    if result.timing is not None:
        result.timing.save(OUTPUT_DIR / "timing.json")
        print(result.timing.summary())


if __name__ == "__main__":
    main()
