"""
Module: storyflow.errors

Purpose:
    Exceptions raised by the layout engine. None of them are retried
    internally; callers decide whether to try again with other inputs.

Key Classes:
    - ContentError: Markup could not be turned into a story
    - GeometryError: Degenerate rectangle where a real one is required
    - UnresolvedReferenceError: "#id" link with no matching anchor
    - NonConvergenceError: Stabilizer ran out of iterations
    - SearchExhaustedError: Fit search ran out of probe steps

Used By:
    - storyflow.layout: placement, search, paginator, stabilizer
    - storyflow.output.links: link resolution
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from storyflow.layout.models import Position


class StoryflowError(Exception):
    """Base class for layout engine errors."""
    pass


class ContentError(StoryflowError):
    """Markup cannot be parsed into placeable content."""
    pass


class GeometryError(StoryflowError):
    """A rectangle is empty or infinite where a usable one is required."""
    pass


class UnresolvedReferenceError(StoryflowError):
    """
    A same-document link points at an id that was never placed.

    Attributes:
        target_id: The id named by the href (without the leading '#')
        position: The Position carrying the href
    """

    def __init__(self, target_id: str, position: "Position"):
        self.target_id = target_id
        self.position = position
        super().__init__(
            f"No destination with id={target_id!r}, required by "
            f"position on page {position.page_num} at {tuple(position.rect)}"
        )


class NonConvergenceError(StoryflowError):
    """
    Generated content kept changing past the iteration budget.

    Attributes:
        iterations: Number of content generations attempted
        content: Last generated content
    """

    def __init__(self, iterations: int, content: Optional[str]):
        self.iterations = iterations
        self.content = content
        super().__init__(
            f"Content did not stabilize after {iterations} iterations"
        )


class SearchExhaustedError(StoryflowError):
    """
    Fit search used its whole step budget without an answer.

    Attributes:
        steps: Probes made before giving up
        state: The SearchState at the time of failure
    """

    def __init__(self, steps: int, state: Any = None):
        self.steps = steps
        self.state = state
        super().__init__(f"Fit search exhausted after {steps} probes")
