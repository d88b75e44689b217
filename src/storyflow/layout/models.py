"""
Module: storyflow.layout.models

Purpose:
    Data models for flowed-content layout.
    Dataclasses describing placed fragments, fit probes, regions and
    the results of a pagination or stabilization run.

Key Classes:
    - OpenClose: Whether a Position opens, closes, or is a whole node
    - Position: One fact about a placed content fragment
    - FitResult: Outcome of a fit search probe
    - Region: Rectangle (and optional new page) offered to a placement
    - PaginationResult: Output of one paginator run
    - StabilizeResult: Output of one stabilizer run

Dependencies:
    - fitz (PyMuPDF): Rect, Matrix, Point
    - dataclasses (std)

Used By:
    - storyflow.layout.placement: Builds Positions from story callbacks
    - storyflow.layout.search: Creates FitResults
    - storyflow.layout.paginator: Tags Positions, returns PaginationResult
    - storyflow.output.links: Reads final Positions
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import NamedTuple, Optional, Tuple

import fitz  # type: ignore

from storyflow.common.geometry import top_left


class OpenClose(enum.IntFlag):
    """
    Bit flags reported by the layout backend for each element.

    A node with children is reported twice (OPEN before its children,
    CLOSE after them); a leaf node is reported once as BOTH.
    """
    OPEN = 1
    CLOSE = 2
    BOTH = 3


@dataclass(frozen=True)
class Position:
    """
    A placed content fragment (immutable).

    Attributes:
        depth: Nesting depth in the source content tree
        heading: Heading level 1-6, or None if not a heading
        id: Value of the element's id attribute, if any
        rect: Rectangle occupied, in region-local coordinates
        text: Immediate text of the element, if any
        open_close: OPEN, CLOSE or BOTH
        rect_num: Index of the region the fragment landed in
        href: Link target ("#id", "name:..." or a URI), if any
        page_num: 1-based page number, set by the paginator (0 = untagged)

    Example:
        >>> pos = Position(depth=1, heading=1, id="intro", rect=fitz.Rect(0, 0, 100, 20),
        ...                text="Intro", open_close=OpenClose.BOTH, rect_num=0)
        >>> pos.is_open
        True
    """

    depth: int
    heading: Optional[int]
    id: Optional[str]
    rect: fitz.Rect
    text: Optional[str]
    open_close: OpenClose
    rect_num: int
    href: Optional[str] = None
    page_num: int = 0

    @property
    def is_open(self) -> bool:
        """True for OPEN and BOTH records."""
        return bool(self.open_close & OpenClose.OPEN)

    @property
    def is_close(self) -> bool:
        """True for CLOSE and BOTH records."""
        return bool(self.open_close & OpenClose.CLOSE)

    @property
    def top_left(self) -> fitz.Point:
        """Top-left corner of the occupied rectangle."""
        return top_left(self.rect)


@dataclass(frozen=True)
class FitResult:
    """
    Outcome of a fit search (immutable).

    Attributes:
        parameter: Probed value (0 for "no solution")
        rect: Rectangle derived from the parameter
        filled: Part of rect actually used by the last place() call
        more: True if content remained after the probe
        big_enough: True if the parameter fits all content
        num_calls: place() calls made by the whole search so far

    Example:
        >>> result = fit_height(placement, width=200)
        >>> result.big_enough, round(result.parameter)
        (True, 100)
    """

    parameter: float = 0.0
    rect: Optional[fitz.Rect] = None
    filled: Optional[fitz.Rect] = None
    more: bool = True
    big_enough: bool = False
    num_calls: int = 0

    def __str__(self) -> str:
        return (
            f"FitResult(parameter={self.parameter}, big_enough={self.big_enough}, "
            f"more={self.more}, num_calls={self.num_calls}, rect={self.rect}, "
            f"filled={self.filled})"
        )


class Region(NamedTuple):
    """
    One rectangle offered to a placement session.

    A non-None mediabox starts a new page; None continues the current
    page (e.g. the next column).
    """

    mediabox: Optional[fitz.Rect]
    rect: fitz.Rect
    transform: fitz.Matrix = fitz.Identity


@dataclass(frozen=True)
class PaginationResult:
    """
    Result of running one placement session to exhaustion.

    Attributes:
        page_count: Pages started (regions with a mediabox)
        rect_count: Regions consumed
        positions: Tagged Positions in content order
    """

    page_count: int
    rect_count: int
    positions: Tuple[Position, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class StabilizeResult:
    """
    Result of a stabilized write.

    Attributes:
        content: The stable markup used for the final pass
        iterations: Number of content_fn calls made
        positions: Positions of the final pass
        page_count: Pages written in the final pass
    """

    content: str
    iterations: int
    positions: Tuple[Position, ...] = field(default_factory=tuple)
    page_count: int = 0
