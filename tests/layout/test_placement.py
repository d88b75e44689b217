"""
Tests for storyflow.layout.placement

Test Coverage:
- position_from_story(): Backend record conversion
- Placement.place(): Degenerate rect rejection, resumable cursor
- Placement.draw(): Ordering with place()
- Placement.element_positions(): Field overrides
- Placement.from_html(): Content validation
"""

import pytest
import fitz
from types import SimpleNamespace

from storyflow.config import StoryConfig
from storyflow.errors import ContentError, GeometryError
from storyflow.layout import OpenClose, Placement, position_from_story


def _record(**overrides):
    fields = dict(
        depth=2, heading=0, id="", rect=(0, 0, 10, 10), text="",
        open_close=1, rect_num=4, href="",
    )
    fields.update(overrides)
    return SimpleNamespace(**fields)


class TestPositionFromStory:
    """Tests for position_from_story()."""

    def test_when_backend_reports_empty_values_then_none(self):
        position = position_from_story(_record())

        assert position.heading is None
        assert position.id is None
        assert position.text is None
        assert position.href is None
        assert position.open_close is OpenClose.OPEN
        assert position.rect == fitz.Rect(0, 0, 10, 10)
        assert position.page_num == 0

    def test_when_record_has_values_then_copied(self):
        position = position_from_story(
            _record(heading=2, id="intro", text="Intro", href="#x", open_close=3)
        )

        assert position.heading == 2
        assert position.id == "intro"
        assert position.href == "#x"
        assert position.is_open and position.is_close

    def test_when_record_has_no_href_attribute_then_none(self):
        record = _record()
        del record.href

        assert position_from_story(record).href is None


class TestPlacement:
    """Tests for the Placement session."""

    def test_when_rect_degenerate_then_raises_and_cursor_untouched(self, fake_story_factory, block_factory):
        """A degenerate rect never reaches the story."""
        # Arrange
        story = fake_story_factory(block_factory(3))
        placement = Placement(story)

        # Act / Assert
        with pytest.raises(GeometryError):
            placement.place(fitz.Rect(0, 0, 100, 0))
        assert story.place_calls == 0
        assert story.cursor == 0

    def test_when_placed_twice_then_resumes_where_stopped(self, fake_story_factory, block_factory):
        """Consecutive place calls consume disjoint content."""
        story = fake_story_factory(block_factory(5))
        placement = Placement(story)

        more1, filled1 = placement.place((0, 0, 100, 70))
        more2, filled2 = placement.place((0, 0, 100, 200))

        assert more1 is True
        assert filled1 == fitz.Rect(0, 0, 100, 60)
        assert more2 is False
        assert filled2 == fitz.Rect(0, 0, 100, 90)
        assert placement.place_count == 2

    def test_when_reset_then_starts_over(self, fake_story_factory, block_factory):
        story = fake_story_factory(block_factory(2))
        placement = Placement(story)
        placement.place((0, 0, 100, 100))

        placement.reset()
        more, _ = placement.place((0, 0, 100, 30))

        assert more is True
        assert story.cursor == 1

    def test_when_draw_without_place_then_raises(self, fake_story_factory, block_factory):
        placement = Placement(fake_story_factory(block_factory(1)))

        with pytest.raises(RuntimeError):
            placement.draw()

    def test_when_drawn_twice_then_second_raises(self, fake_story_factory, block_factory):
        """Each placed chunk is drawn at most once."""
        story = fake_story_factory(block_factory(1))
        placement = Placement(story)
        placement.place((0, 0, 100, 100))
        placement.draw("device")

        with pytest.raises(RuntimeError):
            placement.draw("device")
        assert len(story.draws) == 1

    def test_when_draw_without_matrix_then_identity(self, fake_story_factory, block_factory):
        story = fake_story_factory(block_factory(1))
        placement = Placement(story)
        placement.place((0, 0, 100, 100))

        placement.draw(None)

        device, matrix, _ = story.draws[0]
        assert device is None
        assert tuple(matrix) == tuple(fitz.Identity)

    def test_when_extra_fields_given_then_positions_tagged(self, fake_story_factory, block_factory):
        """Keyword overrides are applied to every reported Position."""
        # Arrange
        placement = Placement(fake_story_factory(block_factory(2)))
        placement.place((0, 0, 100, 100))
        collected = []

        # Act
        placement.element_positions(collected.append, page_num=3, rect_num=7)

        # Assert
        assert [p.id for p in collected] == ["b1", "b2"]
        assert all(p.page_num == 3 and p.rect_num == 7 for p in collected)

    def test_when_add_header_ids_then_forwarded(self, fake_story_factory):
        story = fake_story_factory([{"height": 10, "heading": 1}])
        placement = Placement(story)

        placement.add_header_ids()

        assert story.blocks[0]["id"] == "h_id_1"


class TestFromHtml:
    """Tests for Placement.from_html()."""

    def test_when_content_not_str_then_content_error(self):
        with pytest.raises(ContentError):
            Placement.from_html(b"<p>bytes</p>")

    def test_when_story_constructor_fails_then_content_error(self, monkeypatch):
        """Backend parse failures surface as ContentError."""
        def _broken_story(**kwargs):
            raise RuntimeError("parse failed")

        monkeypatch.setattr(fitz, "Story", _broken_story)

        with pytest.raises(ContentError, match="parse failed"):
            Placement.from_html("<p>x</p>")

    def test_when_from_config_then_styling_passed_through(self, monkeypatch, fake_story_factory):
        """StoryConfig styling reaches the story constructor."""
        # Arrange
        captured = {}

        def _story(**kwargs):
            captured.update(kwargs)
            return fake_story_factory([{"height": 10, "heading": 1}])

        monkeypatch.setattr(fitz, "Story", _story)
        config = StoryConfig(user_css="p {margin: 0}", em=10)

        # Act
        placement = Placement.from_config("<h1>x</h1>", config)

        # Assert
        assert captured["user_css"] == "p {margin: 0}"
        assert captured["em"] == 10
        assert placement.story.header_id_calls == 1
