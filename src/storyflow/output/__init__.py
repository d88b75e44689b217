"""
Module: storyflow.output

Purpose:
    Document output for layout runs.
    PDF sink for the paginator, link annotation from final Positions,
    and debug overlays.

Key Functions:
    - resolve_links(): Positions -> LinkSpecs
    - insert_links(): Insert LinkSpecs into a PDF
    - add_pdf_links(): Resolve and insert links
    - save_debug_pages(): Position overlay images

Key Classes:
    - DocumentSink: fitz.DocumentWriter with lifecycle checks
    - LinkSpec / LinkKind: Resolved links

Dependencies:
    - fitz (PyMuPDF): Writing and annotating PDFs
    - PIL: Debug overlays

Used By:
    - storyflow.controller: Pipelines
"""

from .sink import DocumentSink
from .links import LinkKind, LinkSpec, build_anchor_map, resolve_links, insert_links, add_pdf_links
from .visualizer import render_page_image, visualize_positions, save_debug_pages

__all__ = [
    "DocumentSink",
    "LinkKind",
    "LinkSpec",
    "build_anchor_map",
    "resolve_links",
    "insert_links",
    "add_pdf_links",
    "render_page_image",
    "visualize_positions",
    "save_debug_pages",
]
