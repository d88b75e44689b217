"""
End-to-End Tests: HTML → fitz.Story layout → PDF with links.

Tests the full workflow against the real PyMuPDF backend:
Markup → Placement → Paginate / Stabilize → Links → PDF
"""

import pytest
import fitz

from storyflow.config import StoryConfig
from storyflow.controller import (
    measure_html,
    render_html,
    write_stabilized_with_links,
    write_with_links,
)
from storyflow.errors import ContentError
from storyflow.layout import LayoutConfig, Placement, fit_height, fixed_regions, page_regions, write
from storyflow.output import DocumentSink

A5 = fitz.paper_rect("a5")
WHERE = A5 + (36, 36, -36, -36)

PARAGRAPH = "<p>" + "Flowed text for pagination tests. " * 12 + "</p>"


def long_document(sections: int = 12) -> str:
    """Headings with ids followed by enough text to span several pages."""
    parts = []
    for i in range(1, sections + 1):
        parts.append(f'<h2 id="s{i}">Section {i}</h2>')
        parts.append(PARAGRAPH * 3)
    return "".join(parts)


def link_targets(links) -> set:
    """Distinct (page, point) destinations of GOTO links."""
    return {(link["page"], (round(link["to"].x, 1), round(link["to"].y, 1))) for link in links}


@pytest.fixture
def output_dir(tmp_path):
    """Create temporary output directory."""
    return tmp_path / "storyflow_output"


class TestRealStoryPagination:
    """Pagination with fitz.Story as the backend."""

    def test_e2e_long_document_spans_pages_in_order(self):
        """Page numbers never decrease along the content order."""
        # Arrange
        placement = Placement.from_html(long_document())
        sink = DocumentSink()

        # Act
        result = write(placement, sink, fixed_regions(A5, WHERE))
        sink.close()

        # Assert
        assert result.page_count > 1
        assert sink.to_document().page_count == result.page_count
        page_nums = [p.page_num for p in result.positions]
        assert page_nums == sorted(page_nums)
        heading_ids = [p.id for p in result.positions if p.heading == 2 and p.is_open]
        assert heading_ids[:3] == ["s1", "s2", "s3"]

    def test_e2e_two_columns_use_both_columns(self):
        layout = LayoutConfig(paper="a5", columns=2)
        placement = Placement.from_html(long_document(4))

        result = write(placement, None, page_regions(layout))

        assert result.rect_count >= 2
        right = layout.column_rects[1]
        assert any(p.rect.x0 >= right.x0 for p in result.positions if p.rect_num % 2 == 1)


class TestRealFitSearch:
    """Fit searches against real text layout."""

    def test_e2e_fit_height_result_is_minimal(self):
        """The found height holds the content; a visibly smaller one does not."""
        # Arrange
        html = PARAGRAPH * 2

        # Act
        result = fit_height(Placement.from_html(html), width=300)

        # Assert
        assert result.big_enough
        more, _ = Placement.from_html(html).place(fitz.Rect(0, 0, 300, result.parameter))
        assert more is False
        more, _ = Placement.from_html(html).place(fitz.Rect(0, 0, 300, result.parameter - 1))
        assert more is True

    def test_e2e_measure_html_narrower_needs_more_height(self):
        wide = measure_html(PARAGRAPH, width=400)
        narrow = measure_html(PARAGRAPH, width=200)

        assert narrow.parameter > wide.parameter


class TestRealLinks:
    """Link insertion into real documents."""

    def test_e2e_internal_link_jumps_to_later_page(self):
        """A link on page 1 targets the heading placed on a later page."""
        # Arrange
        html = '<p><a href="#s12">Go to the last section</a></p>' + long_document()

        # Act
        doc = write_with_links(Placement.from_html(html), fixed_regions(A5, WHERE))

        # Assert
        links = doc[0].get_links()
        goto = [link for link in links if link["kind"] == fitz.LINK_GOTO]
        # Each word inside the anchor is reported separately, one link apiece
        assert goto
        assert all(link["page"] > 0 for link in goto)
        assert len(link_targets(goto)) == 1

    def test_e2e_stabilized_toc_converges(self):
        """A table of contents listing page numbers reaches a fixed point."""
        # Arrange
        body = long_document()

        def toc(positions):
            pages = {p.id: p.page_num for p in positions if p.id and p.is_open}
            rows = "".join(
                f'<li><a href="#s{i}">Section {i}</a> page {pages.get(f"s{i}", "?")}</li>'
                for i in range(1, 13)
            )
            return f"<h1>Contents</h1><ul>{rows}</ul>{body}"

        # Act
        doc = write_stabilized_with_links(toc, fixed_regions(A5, WHERE))

        # Assert
        assert doc.page_count > 1
        goto = [link for link in doc[0].get_links() if link["kind"] == fitz.LINK_GOTO]
        assert len(goto) >= 12
        assert len(link_targets(goto)) == 12


class TestRenderHtml:
    """render_html() on real markup."""

    def test_e2e_render_html_writes_pdf_and_debug_pages(self, output_dir):
        # Arrange
        html = '<h1>Report</h1><p><a href="https://pymupdf.readthedocs.io">Docs</a></p>' + PARAGRAPH
        config = StoryConfig(debug_overlay_dir=output_dir / "debug")

        # Act
        result = render_html(html, output_dir / "report.pdf", LayoutConfig(paper="a5"), config)

        # Assert
        assert result.pdf_path.exists()
        assert result.page_count == 1
        assert len(result.debug_pages) == 1
        doc = fitz.open(str(result.pdf_path))
        uris = [link.get("uri") for link in doc[0].get_links()]
        assert "https://pymupdf.readthedocs.io" in uris

    def test_e2e_header_ids_added(self, output_dir):
        """Headings without an id receive generated ones."""
        result = render_html("<h1>Untitled</h1><p>x</p>", output_dir / "ids.pdf")

        heading = [p for p in result.positions if p.heading == 1 and p.is_open][0]
        assert heading.id

    def test_e2e_non_string_content_rejected(self, output_dir):
        with pytest.raises(ContentError):
            render_html(12345, output_dir / "bad.pdf")
