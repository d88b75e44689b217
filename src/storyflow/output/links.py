"""
Module: storyflow.output.links

Purpose:
    Turn the Positions of a final layout pass into PDF link annotations.

Key Functions:
    - build_anchor_map(): id -> Position (first occurrence wins)
    - resolve_links(): Positions -> LinkSpecs (pure)
    - insert_links(): Insert LinkSpecs into a PDF
    - add_pdf_links(): Resolve and insert links in one call

Key Classes:
    - LinkKind: GOTO, NAMED or URI
    - LinkSpec: One link annotation to insert

Href handling:
    "#id"      -> jump to the top-left of the element with that id
    "name:xyz" -> named destination "xyz"
    otherwise  -> external URI

    Only opening records (OPEN or BOTH) are considered, so an element
    reported as both OPEN and CLOSE yields one anchor and one link.

Dependencies:
    - fitz (PyMuPDF): Document, link constants

Used By:
    - storyflow.controller: write_with_links, write_stabilized_with_links
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional, Union

import fitz  # type: ignore

from storyflow.errors import UnresolvedReferenceError
from storyflow.layout.models import Position

logger = logging.getLogger(__name__)

NAMED_PREFIX = "name:"


class LinkKind(Enum):
    """Kind of link annotation."""
    GOTO = "goto"
    NAMED = "named"
    URI = "uri"


@dataclass(frozen=True)
class LinkSpec:
    """
    A link annotation to insert (immutable).

    Attributes:
        kind: GOTO, NAMED or URI
        page_num: 1-based page holding the link
        rect: Clickable area on that page
        target_page: 1-based destination page (GOTO)
        target_point: Destination point (GOTO)
        name: Named destination (NAMED)
        uri: External target (URI)
    """

    kind: LinkKind
    page_num: int
    rect: fitz.Rect
    target_page: Optional[int] = None
    target_point: Optional[fitz.Point] = None
    name: Optional[str] = None
    uri: Optional[str] = None

    def to_link_dict(self) -> dict:
        """Link dictionary in the form fitz.Page.insert_link() expects."""
        link = {"from": fitz.Rect(self.rect)}
        if self.kind is LinkKind.GOTO:
            link["kind"] = fitz.LINK_GOTO
            link["page"] = self.target_page - 1
            link["to"] = fitz.Point(self.target_point)
        elif self.kind is LinkKind.NAMED:
            link["kind"] = fitz.LINK_NAMED
            link["name"] = self.name
        else:
            link["kind"] = fitz.LINK_URI
            link["uri"] = self.uri
        return link


def build_anchor_map(positions: Iterable[Position]) -> Dict[str, Position]:
    """
    Map element ids to the first opening Position carrying them.

    Later duplicates are ignored.
    """
    anchors: Dict[str, Position] = {}
    for position in positions:
        if not position.is_open or not position.id:
            continue
        if position.id in anchors:
            logger.warning(f"Ignoring duplicate id {position.id!r} on page {position.page_num}")
            continue
        anchors[position.id] = position
    return anchors


def resolve_links(positions: Iterable[Position]) -> List[LinkSpec]:
    """
    Resolve every href of a final pass into a LinkSpec.

    Args:
        positions: Positions of the final (stable) layout pass

    Returns:
        LinkSpecs in content order

    Raises:
        UnresolvedReferenceError: If a "#id" href names no placed id

    Example:
        >>> links = resolve_links(result.positions)
        >>> links[0].kind, links[0].target_page
        (<LinkKind.GOTO: 'goto'>, 1)
    """
    positions = list(positions)
    anchors = build_anchor_map(positions)
    links: List[LinkSpec] = []

    for position in positions:
        if not position.is_open or not position.href:
            continue
        href = position.href
        if href.startswith("#"):
            target_id = href[1:]
            target = anchors.get(target_id)
            if target is None:
                raise UnresolvedReferenceError(target_id, position)
            links.append(LinkSpec(
                kind=LinkKind.GOTO,
                page_num=position.page_num,
                rect=fitz.Rect(position.rect),
                target_page=target.page_num,
                target_point=target.top_left,
            ))
        elif href.startswith(NAMED_PREFIX):
            links.append(LinkSpec(
                kind=LinkKind.NAMED,
                page_num=position.page_num,
                rect=fitz.Rect(position.rect),
                name=href[len(NAMED_PREFIX):],
            ))
        else:
            links.append(LinkSpec(
                kind=LinkKind.URI,
                page_num=position.page_num,
                rect=fitz.Rect(position.rect),
                uri=href,
            ))

    logger.debug(f"Resolved {len(links)} links from {len(positions)} positions")
    return links


def _open_document(document: Union[fitz.Document, bytes, io.BytesIO]) -> fitz.Document:
    """Open raw PDF bytes / BytesIO; pass a Document through unchanged."""
    if isinstance(document, io.BytesIO):
        document = document.getvalue()
    if isinstance(document, (bytes, bytearray)):
        document = fitz.open(stream=bytes(document), filetype="pdf")
    return document


def insert_links(
    document: Union[fitz.Document, bytes, io.BytesIO],
    links: Iterable[LinkSpec],
) -> fitz.Document:
    """
    Insert already resolved links into a PDF.

    Args:
        document: A fitz.Document, or raw PDF bytes / BytesIO
        links: LinkSpecs from resolve_links()

    Returns:
        The given Document, or a new one opened from the bytes

    Raises:
        ValueError: If a link refers to a page outside the document
    """
    document = _open_document(document)
    count = 0
    for link in links:
        pages = [link.page_num]
        if link.target_page is not None:
            pages.append(link.target_page)
        for page_num in pages:
            if not 1 <= page_num <= document.page_count:
                raise ValueError(
                    f"Link on page {link.page_num} refers to page {page_num}, "
                    f"document has {document.page_count}"
                )
        document[link.page_num - 1].insert_link(link.to_link_dict())
        count += 1

    logger.info(f"Inserted {count} links into {document.page_count} pages")
    return document


def add_pdf_links(
    document: Union[fitz.Document, bytes, io.BytesIO],
    positions: Iterable[Position],
) -> fitz.Document:
    """
    Insert a link annotation for every href in ``positions``.

    Args:
        document: A fitz.Document, or raw PDF bytes / BytesIO
        positions: Positions of the final layout pass

    Returns:
        The given Document, or a new one opened from the bytes

    Raises:
        UnresolvedReferenceError: If a "#id" href names no placed id
        ValueError: If a link refers to a page outside the document
    """
    return insert_links(document, resolve_links(positions))
