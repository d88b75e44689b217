"""
Module: storyflow.output.sink

Purpose:
    Output sink for the paginator. Wraps fitz.DocumentWriter and enforces
    the Begin -> (draw) -> End ... Close page lifecycle, one open page at
    a time.

Key Classes:
    - DocumentSink: PDF writer to a file or an in-memory buffer

Dependencies:
    - fitz (PyMuPDF): DocumentWriter, Document

Used By:
    - storyflow.controller: write_with_links, render_html
    - storyflow.layout.paginator: begin_page/end_page (duck-typed)
"""

from __future__ import annotations

import io
import logging
from pathlib import Path
from typing import Any, Optional, Union

import fitz  # type: ignore

from storyflow.common.geometry import RectLike, as_rect, require_usable

logger = logging.getLogger(__name__)


class DocumentSink:
    """
    PDF output sink.

    Writes to ``target`` when given, otherwise into memory (read back
    with ``getvalue()`` or ``to_document()`` after ``close()``).

    Attributes:
        path: Output file path, or None for in-memory output
        page_count: Pages ended so far

    Example:
        >>> sink = DocumentSink()
        >>> device = sink.begin_page(fitz.paper_rect("a4"))
        >>> placement.draw(device)
        >>> sink.end_page()
        >>> sink.close()
        >>> doc = sink.to_document()
    """

    def __init__(self, target: Optional[Union[str, Path]] = None, options: str = ""):
        self.path = Path(target) if target is not None else None
        self._buffer: Optional[io.BytesIO] = None
        if self.path is None:
            self._buffer = io.BytesIO()
            out: Any = self._buffer
        else:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            out = str(self.path)
        self._writer = fitz.DocumentWriter(out, options)
        self._page_open = False
        self._closed = False
        self.page_count = 0

    @property
    def closed(self) -> bool:
        """True once close() has run."""
        return self._closed

    @property
    def page_open(self) -> bool:
        """True between begin_page() and end_page()."""
        return self._page_open

    def begin_page(self, mediabox: RectLike) -> Any:
        """
        Start a page and return its drawing device.

        Raises:
            RuntimeError: If the sink is closed or a page is already open
            GeometryError: If mediabox is degenerate
        """
        if self._closed:
            raise RuntimeError("begin_page() on a closed sink")
        if self._page_open:
            raise RuntimeError("begin_page() while a page is still open")
        box = require_usable(as_rect(mediabox), "mediabox")
        device = self._writer.begin_page(box)
        self._page_open = True
        return device

    def end_page(self) -> None:
        """
        Finish the open page.

        Raises:
            RuntimeError: If no page is open
        """
        if not self._page_open:
            raise RuntimeError("end_page() without an open page")
        self._writer.end_page()
        self._page_open = False
        self.page_count += 1

    def close(self) -> None:
        """
        Finish the document. Idempotent.

        Raises:
            RuntimeError: If a page is still open
        """
        if self._closed:
            return
        if self._page_open:
            raise RuntimeError("close() while a page is still open")
        self._writer.close()
        self._closed = True
        target = self.path if self.path is not None else "memory"
        logger.info(f"Wrote {self.page_count} pages to {target}")

    def getvalue(self) -> bytes:
        """
        Bytes of the finished in-memory document.

        Raises:
            RuntimeError: If the sink writes to a file or is not closed yet
        """
        if self._buffer is None:
            raise RuntimeError(f"Sink writes to {self.path}, not to memory")
        if not self._closed:
            raise RuntimeError("getvalue() before close()")
        return self._buffer.getvalue()

    def to_document(self) -> fitz.Document:
        """Reopen the finished output as a fitz.Document."""
        if not self._closed:
            raise RuntimeError("to_document() before close()")
        if self.path is not None:
            return fitz.open(str(self.path))
        return fitz.open(stream=self.getvalue(), filetype="pdf")

    def __enter__(self) -> "DocumentSink":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        # A failed run leaves its partial document unclosed
        if exc_type is None:
            self.close()
