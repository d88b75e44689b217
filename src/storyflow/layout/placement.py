"""
Module: storyflow.layout.placement

Purpose:
    One layout session over a piece of markup. Holds the resumable
    cursor of the underlying story and exposes place/draw/reset.

Key Classes:
    - Placement: Layout session wrapping a fitz.Story

Key Functions:
    - position_from_story(): Convert a backend element record to a Position

Dependencies:
    - fitz (PyMuPDF): Story typesetting backend
    - storyflow.layout.models: Position, OpenClose

Used By:
    - storyflow.layout.search: Probes
    - storyflow.layout.paginator: Committed placement
    - storyflow.layout.stabilizer: One session per pass
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Callable, Optional, Tuple

import fitz  # type: ignore

from storyflow.common.geometry import RectLike, as_rect, require_usable
from storyflow.config import DEFAULT_EM, StoryConfig
from storyflow.errors import ContentError

from .models import OpenClose, Position

logger = logging.getLogger(__name__)


def position_from_story(element: Any) -> Position:
    """
    Convert an element record reported by the story to a Position.

    The backend reports empty strings and heading 0 for absent values;
    those become None.

    Args:
        element: Object with depth, heading, id, rect, text, open_close,
            rect_num and href attributes

    Returns:
        Untagged Position (page_num 0)
    """
    return Position(
        depth=int(element.depth),
        heading=int(element.heading) or None,
        id=element.id or None,
        rect=as_rect(element.rect),
        text=element.text or None,
        open_close=OpenClose(int(element.open_close)),
        rect_num=int(element.rect_num),
        href=getattr(element, "href", None) or None,
    )


class Placement:
    """
    A layout session over one content snapshot.

    The session owns the story handle. ``place`` resumes from wherever the
    previous call stopped; ``reset`` rewinds to the start of the content.
    ``draw`` must follow the ``place`` whose chunk it draws.

    Example:
        >>> placement = Placement.from_html("<p>Hello</p>")
        >>> more, filled = placement.place(fitz.Rect(36, 36, 559, 806))
        >>> placement.draw(device)
    """

    def __init__(self, story: Any):
        self._story = story
        self._pending_draw = False
        self.place_count = 0

    @classmethod
    def from_html(
        cls,
        html: str,
        user_css: Optional[str] = None,
        em: float = DEFAULT_EM,
        archive: Any = None,
        add_header_ids: bool = False,
    ) -> "Placement":
        """
        Parse markup into a new session.

        Args:
            html: HTML markup
            user_css: Extra CSS
            em: Base font size in points
            archive: Optional fitz.Archive for referenced resources
            add_header_ids: Give unnamed headings a unique id

        Returns:
            Placement positioned at the start of the content

        Raises:
            ContentError: If the markup is not a string or cannot be parsed
        """
        if not isinstance(html, str):
            raise ContentError(f"Content must be a str, got {type(html).__name__}")
        try:
            story = fitz.Story(html=html, user_css=user_css, em=em, archive=archive)
        except Exception as e:
            raise ContentError(f"Could not parse content: {e}") from e

        placement = cls(story)
        if add_header_ids:
            placement.add_header_ids()
        return placement

    @classmethod
    def from_config(cls, html: str, config: StoryConfig) -> "Placement":
        """Parse markup using the styling settings of a StoryConfig."""
        return cls.from_html(
            html,
            user_css=config.user_css,
            em=config.em,
            archive=config.archive,
            add_header_ids=config.add_header_ids,
        )

    @property
    def story(self) -> Any:
        """The underlying story object."""
        return self._story

    def place(self, rect: RectLike) -> Tuple[bool, fitz.Rect]:
        """
        Lay out as much unplaced content as fits into ``rect``.

        Args:
            rect: Target rectangle; must have positive, finite area

        Returns:
            Tuple of (more, filled). ``more`` is False once all content
            has been placed since the last reset; ``filled`` is the part
            of ``rect`` actually used.

        Raises:
            GeometryError: If rect is degenerate (cursor left untouched)
        """
        where = require_usable(as_rect(rect), "placement rect")
        more, filled = self._story.place(where)
        self.place_count += 1
        self._pending_draw = True
        return bool(more), fitz.Rect(filled)

    def draw(self, device: Any = None, matrix: Optional[fitz.Matrix] = None) -> None:
        """
        Draw the chunk laid out by the last ``place`` call.

        Args:
            device: Device from a document writer's begin_page, or None
                to run the draw against a null device
            matrix: Transform applied while drawing (identity if None)

        Raises:
            RuntimeError: If there is no undrawn placed chunk
        """
        if not self._pending_draw:
            raise RuntimeError("draw() called without a preceding place()")
        self._story.draw(device, matrix if matrix is not None else fitz.Identity)
        self._pending_draw = False

    def reset(self) -> None:
        """Rewind the content cursor to the beginning."""
        self._story.reset()
        self._pending_draw = False

    def element_positions(
        self,
        callback: Callable[[Position], None],
        **extra: Any,
    ) -> None:
        """
        Report the Positions of the last placed chunk.

        Args:
            callback: Called once per element record, in content order
            **extra: Position fields to override on every record
                (e.g. page_num=3)
        """
        def _forward(element: Any) -> None:
            position = position_from_story(element)
            if extra:
                position = replace(position, **extra)
            callback(position)

        self._story.element_positions(_forward)

    def add_header_ids(self) -> None:
        """Give every <h1>-<h6> without an id a unique ``h_id_N`` id."""
        self._story.add_header_ids()
        logger.debug("Added header ids to story")
