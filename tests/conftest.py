import pytest
import sys
from pathlib import Path
from types import SimpleNamespace

# Add src to sys.path so we can import storyflow
SRC_PATH = Path(__file__).resolve().parent.parent / "src"
if SRC_PATH.as_posix() not in sys.path:
    sys.path.insert(0, SRC_PATH.as_posix())

import fitz  # noqa: E402


class FakeStory:
    """
    Deterministic stand-in for fitz.Story.

    Content is a list of blocks stacked top to bottom. A block fits a
    rectangle when it is no wider than the rectangle and its bottom edge
    stays inside it. Every block is reported as a single BOTH record.
    """

    def __init__(self, blocks):
        self.blocks = [dict(b) for b in blocks]
        self.cursor = 0
        self.last_placed = []
        self.place_calls = 0
        self.reset_calls = 0
        self.draws = []
        self.header_id_calls = 0

    def place(self, rect):
        rect = fitz.Rect(rect)
        self.place_calls += 1
        y = rect.y0
        placed = []
        while self.cursor < len(self.blocks):
            block = self.blocks[self.cursor]
            if block.get("min_width", 0) > rect.width:
                break
            if y + block["height"] > rect.y1:
                break
            placed.append((block, fitz.Rect(rect.x0, y, rect.x1, y + block["height"])))
            y += block["height"]
            self.cursor += 1
        self.last_placed = placed
        more = self.cursor < len(self.blocks)
        if placed:
            filled = fitz.Rect(rect.x0, rect.y0, rect.x1, y)
        else:
            filled = fitz.Rect(rect.x0, rect.y0, rect.x0, rect.y0)
        return more, filled

    def draw(self, device, matrix=None):
        self.draws.append((device, matrix, len(self.last_placed)))

    def reset(self):
        self.cursor = 0
        self.last_placed = []
        self.reset_calls += 1

    def element_positions(self, function):
        for block, rect in self.last_placed:
            function(SimpleNamespace(
                depth=block.get("depth", 1),
                heading=block.get("heading", 0),
                id=block.get("id", ""),
                rect=tuple(rect),
                text=block.get("text", ""),
                open_close=3,
                rect_num=0,
                href=block.get("href", ""),
            ))

    def add_header_ids(self):
        self.header_id_calls += 1
        count = 0
        for block in self.blocks:
            if block.get("heading") and not block.get("id"):
                count += 1
                block["id"] = f"h_id_{count}"


class RecordingSink:
    """Sink recording begin_page/end_page calls."""

    def __init__(self):
        self.events = []

    def begin_page(self, mediabox):
        self.events.append(("begin", fitz.Rect(mediabox)))
        return f"device-{len(self.events)}"

    def end_page(self):
        self.events.append(("end", None))


# Common test fixtures
@pytest.fixture
def fake_story_factory():
    """Factory building FakeStory objects from block dicts."""
    def _create(blocks):
        return FakeStory(blocks)
    return _create


@pytest.fixture
def block_factory():
    """Factory for n equal blocks with ids b1..bn."""
    def _create(count: int, height: float = 30, **fields):
        return [dict(height=height, id=f"b{i + 1}", text=f"Block {i + 1}", **fields)
                for i in range(count)]
    return _create


@pytest.fixture
def recording_sink():
    """Sink that records page begin/end events."""
    return RecordingSink()

