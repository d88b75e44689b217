"""
Tests for storyflow.layout.stabilizer

Test Coverage:
- write_stabilized(): Convergence, final-pass-only callbacks
- NonConvergenceError when content never settles
- Stabilizer state machine transitions
- Per-pass timing records
"""

import pytest
import fitz

from storyflow.config import StoryConfig
from storyflow.errors import ContentError, NonConvergenceError
from storyflow.layout import (
    Placement,
    Stabilizer,
    StabilizerState,
    fixed_regions,
    write_stabilized,
)
from storyflow.timing import TimingLog

MEDIABOX = fitz.Rect(0, 0, 200, 200)
REGION = fitz.Rect(0, 0, 200, 100)
BODY = ["intro", "one", "two", "three", "four"]


@pytest.fixture
def line_placements(fake_story_factory):
    """Placement factory: one 30pt block per line, id = line text."""
    def _factory(content):
        blocks = [{"height": 30, "id": line, "text": line} for line in content.splitlines()]
        return Placement(fake_story_factory(blocks))
    return _factory


def page_count_toc(positions):
    """Content whose first line names the page count of the previous pass."""
    pages = max((p.page_num for p in positions), default=0)
    return "\n".join([f"toc-{pages}"] + BODY)


class TestWriteStabilized:
    """Tests for write_stabilized()."""

    def test_when_content_depends_on_page_count_then_converges(self, line_placements, recording_sink):
        """Six blocks need two pages; the toc line settles on toc-2."""
        # Act
        result = write_stabilized(
            recording_sink,
            page_count_toc,
            fixed_regions(MEDIABOX, REGION),
            placement_factory=line_placements,
        )

        # Assert
        assert result.content.splitlines()[0] == "toc-2"
        assert result.iterations == 3
        assert result.page_count == 2
        assert [e[0] for e in recording_sink.events] == ["begin", "end", "begin", "end"]

    def test_when_converging_then_only_final_positions_reported(self, line_placements, recording_sink):
        """Converging passes never reach the caller's callback."""
        seen = []

        result = write_stabilized(
            recording_sink,
            page_count_toc,
            fixed_regions(MEDIABOX, REGION),
            on_position=seen.append,
            placement_factory=line_placements,
        )

        assert len(seen) == 6
        assert seen[0].id == "toc-2"
        assert tuple(seen) == result.positions

    def test_when_content_fn_sees_previous_positions(self, line_placements):
        """content_fn gets no positions first, then the previous pass's."""
        received = []

        def content_fn(positions):
            received.append([p.id for p in positions])
            return "a\nb"

        write_stabilized(None, content_fn, fixed_regions(MEDIABOX, REGION),
                         placement_factory=line_placements)

        assert received == [[], ["a", "b"]]

    def test_when_content_keeps_changing_then_non_convergence(self, line_placements):
        """A budget of three generations is not enough for ever-new content."""
        counter = iter(range(1000))

        def content_fn(positions):
            return f"line-{next(counter)}"

        with pytest.raises(NonConvergenceError) as exc_info:
            write_stabilized(
                None,
                content_fn,
                fixed_regions(MEDIABOX, REGION),
                config=StoryConfig(max_iterations=3),
                placement_factory=line_placements,
            )

        assert exc_info.value.iterations == 3
        assert exc_info.value.content == "line-2"

    def test_when_content_fn_returns_non_str_then_content_error(self, line_placements):
        with pytest.raises(ContentError):
            write_stabilized(None, lambda positions: None, fixed_regions(MEDIABOX, REGION),
                             placement_factory=line_placements)

    def test_when_timing_given_then_passes_recorded(self, line_placements):
        timing = TimingLog()

        write_stabilized(None, page_count_toc, fixed_regions(MEDIABOX, REGION),
                         placement_factory=line_placements, timing=timing)

        assert "pass_1" in timing.pass_timings
        assert "layout" in timing.pass_timings["final"]
        assert timing.pass_places["final"] == 2


class TestStabilizer:
    """Tests for the Stabilizer state machine."""

    def test_when_stepped_then_moves_to_final_once_stable(self, line_placements):
        stabilizer = Stabilizer(lambda positions: "same", fixed_regions(MEDIABOX, REGION),
                                placement_factory=line_placements)

        assert stabilizer.step() is StabilizerState.CONVERGING
        assert stabilizer.step() is StabilizerState.FINAL
        assert stabilizer.iterations == 2

    def test_when_finish_before_stable_then_raises(self, line_placements):
        stabilizer = Stabilizer(lambda positions: "same", fixed_regions(MEDIABOX, REGION),
                                placement_factory=line_placements)

        with pytest.raises(RuntimeError):
            stabilizer.finish(None)

    def test_when_done_then_step_raises(self, line_placements):
        stabilizer = Stabilizer(lambda positions: "same", fixed_regions(MEDIABOX, REGION),
                                placement_factory=line_placements)
        stabilizer.run(None)

        assert stabilizer.state is StabilizerState.DONE
        with pytest.raises(RuntimeError):
            stabilizer.step()

    def test_when_header_ids_enabled_then_every_pass_gets_them(self, fake_story_factory):
        """Each fresh session is given header ids before layout."""
        stories = []

        def factory(content):
            story = fake_story_factory([{"height": 10, "heading": 1, "text": content}])
            stories.append(story)
            return Placement(story)

        Stabilizer(lambda positions: "h", fixed_regions(MEDIABOX, REGION),
                   placement_factory=factory).run(None)

        assert len(stories) == 2
        assert all(s.header_id_calls == 1 for s in stories)
