"""
Module: storyflow.layout.stabilizer

Purpose:
    Lay out content that depends on its own layout (tables of contents,
    "see page N" references). Regenerates content from the previous
    pass's Positions until the markup stops changing, then writes one
    final pass to the real output.

Key Functions:
    - write_stabilized(): One-call stabilized write

Key Classes:
    - Stabilizer: CONVERGING -> FINAL -> DONE state machine
    - StabilizerState: States of the machine

Algorithm:
    CONVERGING: content = content_fn(previous positions). If it equals
        the previous content, move to FINAL. Otherwise lay it out with
        no sink, keep its Positions and content, and iterate.
    FINAL: lay the stable content out once more into the real sink,
        forwarding Positions and page callbacks to the caller.

    Positions of converging passes never reach the caller's callback.
    The number of content generations is capped by
    StoryConfig.max_iterations.

Dependencies:
    - storyflow.layout.paginator: write()
    - storyflow.layout.placement: Placement sessions
    - storyflow.timing: Optional per-pass timings

Used By:
    - storyflow.controller: write_stabilized_with_links
"""

from __future__ import annotations

import logging
from enum import Enum, auto
from typing import Any, Callable, List, Optional

from storyflow.config import StoryConfig
from storyflow.errors import ContentError, NonConvergenceError
from storyflow.timing import TimingLog, timed_phase

from .models import Position, StabilizeResult
from .paginator import PageFn, PositionFn, RegionFn, write
from .placement import Placement

logger = logging.getLogger(__name__)

ContentFn = Callable[[List[Position]], str]
PlacementFactory = Callable[[str], Placement]


class StabilizerState(Enum):
    """States of a stabilized write."""

    CONVERGING = auto()  # Regenerating content from previous positions
    FINAL = auto()       # Content stable, writing the real output
    DONE = auto()


class Stabilizer:
    """
    Fixed-point iteration between content generation and layout.

    Attributes:
        state: Current StabilizerState
        iterations: content_fn calls made so far
        content: Most recent distinct content
        positions: Positions of the most recent pass

    Example:
        >>> stabilizer = Stabilizer(make_toc_html, page_regions(LayoutConfig()))
        >>> result = stabilizer.run(sink)
        >>> result.iterations
        3
    """

    def __init__(
        self,
        content_fn: ContentFn,
        region_fn: RegionFn,
        config: Optional[StoryConfig] = None,
        placement_factory: Optional[PlacementFactory] = None,
        timing: Optional[TimingLog] = None,
    ):
        self.content_fn = content_fn
        self.region_fn = region_fn
        self.config = config or StoryConfig()
        self.placement_factory = placement_factory
        self.timing = timing

        self.state = StabilizerState.CONVERGING
        self.iterations = 0
        self.content: Optional[str] = None
        self.positions: List[Position] = []

    def _new_placement(self, content: str) -> Placement:
        """Fresh session over ``content``, with header ids if configured."""
        if self.placement_factory is not None:
            placement = self.placement_factory(content)
        else:
            placement = Placement.from_html(
                content,
                user_css=self.config.user_css,
                em=self.config.em,
                archive=self.config.archive,
            )
        if self.config.add_header_ids:
            placement.add_header_ids()
        return placement

    def step(self) -> StabilizerState:
        """
        Run one CONVERGING iteration.

        Returns:
            The state after the iteration (CONVERGING or FINAL)

        Raises:
            NonConvergenceError: If the iteration budget is used up
            ContentError: If content_fn returns a non-string or bad markup
        """
        if self.state is not StabilizerState.CONVERGING:
            raise RuntimeError(f"step() called in state {self.state.name}")
        if self.iterations >= self.config.max_iterations:
            raise NonConvergenceError(self.iterations, self.content)

        self.iterations += 1
        pass_id = f"pass_{self.iterations}"

        with timed_phase(self.timing, "content", pass_id):
            content = self.content_fn(list(self.positions))
        if not isinstance(content, str):
            raise ContentError(
                f"content_fn returned {type(content).__name__}, expected str"
            )

        if content == self.content:
            logger.info(f"Content stabilized after {self.iterations} iterations")
            self.state = StabilizerState.FINAL
            return self.state

        placement = self._new_placement(content)
        collected: List[Position] = []
        with timed_phase(self.timing, "layout", pass_id):
            write(placement, None, self.region_fn, collected.append)
        if self.timing is not None:
            self.timing.log_places(pass_id, placement.place_count)

        logger.debug(
            f"Pass {self.iterations}: {len(content)} chars, {len(collected)} positions"
        )
        self.content = content
        self.positions = collected
        return self.state

    def finish(
        self,
        sink: Any,
        on_position: Optional[PositionFn] = None,
        on_page: Optional[PageFn] = None,
    ) -> StabilizeResult:
        """
        Write the stable content to ``sink`` (the FINAL pass).

        Args:
            sink: Output sink, or None to only collect Positions
            on_position: Receives the final pass's Positions
            on_page: Page begin/end callback

        Returns:
            StabilizeResult of the final pass
        """
        if self.state is not StabilizerState.FINAL:
            raise RuntimeError(f"finish() called in state {self.state.name}")

        placement = self._new_placement(self.content)
        with timed_phase(self.timing, "layout", "final"):
            result = write(placement, sink, self.region_fn, on_position, on_page)
        if self.timing is not None:
            self.timing.log_places("final", placement.place_count)

        self.positions = list(result.positions)
        self.state = StabilizerState.DONE
        logger.info(
            f"Stabilized write finished: {result.page_count} pages, "
            f"{self.iterations} iterations"
        )
        return StabilizeResult(
            content=self.content,
            iterations=self.iterations,
            positions=result.positions,
            page_count=result.page_count,
        )

    def run(
        self,
        sink: Any,
        on_position: Optional[PositionFn] = None,
        on_page: Optional[PageFn] = None,
    ) -> StabilizeResult:
        """Iterate until stable, then write the final pass."""
        while self.state is StabilizerState.CONVERGING:
            self.step()
        return self.finish(sink, on_position, on_page)


def write_stabilized(
    sink: Any,
    content_fn: ContentFn,
    region_fn: RegionFn,
    on_position: Optional[PositionFn] = None,
    on_page: Optional[PageFn] = None,
    config: Optional[StoryConfig] = None,
    placement_factory: Optional[PlacementFactory] = None,
    timing: Optional[TimingLog] = None,
) -> StabilizeResult:
    """
    Lay out self-referential content until it is stable, then write it.

    Args:
        sink: Output sink for the final pass (None to only collect Positions)
        content_fn: Takes the previous pass's Positions (empty at first)
            and returns markup
        region_fn: Region generator, see paginator.write()
        on_position: Receives the final pass's Positions only
        on_page: Page begin/end callback of the final pass
        config: Styling and iteration budget
        placement_factory: Builds a Placement from markup (defaults to
            a fitz.Story session styled by config)
        timing: Optional TimingLog receiving per-pass timings

    Returns:
        StabilizeResult with the stable content and final Positions

    Raises:
        NonConvergenceError: If content keeps changing past max_iterations
        ContentError: If content_fn output cannot be laid out

    Example:
        >>> def toc(positions):
        ...     pages = {p.id: p.page_num for p in positions if p.id}
        ...     return render_toc(pages) + BODY
        >>> result = write_stabilized(sink, toc, page_regions(LayoutConfig()))
    """
    stabilizer = Stabilizer(content_fn, region_fn, config, placement_factory, timing)
    return stabilizer.run(sink, on_position, on_page)
