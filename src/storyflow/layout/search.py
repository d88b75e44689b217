"""
Module: storyflow.layout.search

Purpose:
    Find the smallest value of one layout parameter (scale, width or
    height) for which a story fits the rectangle derived from it.

Key Functions:
    - fit(): Generic bracketing + bisection search
    - fit_scale(): Scale a reference rectangle uniformly
    - fit_width(): Fixed height, variable width
    - fit_height(): Fixed width, variable height

Key Classes:
    - FitKind / Derivation: How a parameter turns into a rectangle
    - SearchState: Mutable bracketing state of one search

Algorithm:
    1. Without a lower bound, probe outward from 0 (-1, -2, -4, ...,
       sign chosen away from a known upper bound) until a probe fails.
       A supplied lower bound that already fits is returned at once.
    2. Without an upper bound, double outward from the other side until
       a probe fits. A supplied upper bound that fails means no solution.
    3. Bisect [pmin, pmax] until the gap is below delta.
    4. Return the result of pmax, re-probing it if a later probe moved
       the story's layout elsewhere.

    Every probe resets the placement first, so each one measures the
    content from its start. Probes whose derived rectangle is empty
    count as "too small" and do not call place().

Dependencies:
    - fitz (PyMuPDF): Rect
    - storyflow.layout.placement: Placement being probed

Used By:
    - storyflow.controller: measure_html()
    - Library callers sizing boxes for a story
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Callable, Optional, Tuple, Union

import fitz  # type: ignore

from storyflow.common.geometry import RectLike, as_rect, is_degenerate
from storyflow.config import DEFAULT_FIT_DELTA, DEFAULT_MAX_SEARCH_STEPS
from storyflow.errors import SearchExhaustedError

from .models import FitResult
from .placement import Placement

logger = logging.getLogger(__name__)

RectFn = Callable[[fitz.Rect, float], fitz.Rect]
PointLike = Union[fitz.Point, Tuple[float, float]]


def scale_rect(rect: fitz.Rect, scale: float) -> fitz.Rect:
    """Scale ``rect`` about its top-left corner."""
    return fitz.Rect(
        rect.x0,
        rect.y0,
        rect.x0 + scale * rect.width,
        rect.y0 + scale * rect.height,
    )


def width_rect(rect: fitz.Rect, width: float) -> fitz.Rect:
    """Keep the top-left corner and height, set the width."""
    return fitz.Rect(rect.x0, rect.y0, rect.x0 + width, rect.y1)


def height_rect(rect: fitz.Rect, height: float) -> fitz.Rect:
    """Keep the top-left corner and width, set the height."""
    return fitz.Rect(rect.x0, rect.y0, rect.x1, rect.y0 + height)


class FitKind(enum.Enum):
    """Which rectangle dimension a fit parameter controls."""
    SCALE = "scale"
    WIDTH = "width"
    HEIGHT = "height"
    CUSTOM = "custom"


_BUILTIN_FNS = {
    FitKind.SCALE: scale_rect,
    FitKind.WIDTH: width_rect,
    FitKind.HEIGHT: height_rect,
}


@dataclass(frozen=True)
class Derivation:
    """
    Turns (base rect, parameter) into the rectangle to probe.

    Attributes:
        kind: SCALE, WIDTH, HEIGHT or CUSTOM
        fn: Derivation callable, required for CUSTOM only

    Example:
        >>> Derivation(FitKind.HEIGHT).derive(fitz.Rect(0, 0, 200, 0), 50)
        Rect(0.0, 0.0, 200.0, 50.0)
    """

    kind: FitKind
    fn: Optional[RectFn] = None

    def __post_init__(self) -> None:
        if self.kind is FitKind.CUSTOM and self.fn is None:
            raise ValueError("CUSTOM derivation needs a function")
        if self.kind is not FitKind.CUSTOM and self.fn is not None:
            raise ValueError(f"{self.kind.name} derivation takes no function")

    @classmethod
    def custom(cls, fn: RectFn) -> "Derivation":
        """Derivation backed by a caller-supplied function."""
        return cls(FitKind.CUSTOM, fn)

    def derive(self, rect: fitz.Rect, parameter: float) -> fitz.Rect:
        """Rectangle to probe for ``parameter``."""
        fn = self.fn if self.kind is FitKind.CUSTOM else _BUILTIN_FNS[self.kind]
        return as_rect(fn(rect, parameter))


SCALE = Derivation(FitKind.SCALE)
WIDTH = Derivation(FitKind.WIDTH)
HEIGHT = Derivation(FitKind.HEIGHT)


def _outward(p: Optional[float], direction: int) -> float:
    """First probe when searching outward in ``direction`` from bound ``p``."""
    if not p:
        return float(direction)
    if direction * p > 0:
        return 2 * p
    return -p


class SearchState:
    """
    Bracketing state of a single fit search.

    Created per ``fit`` call and discarded when it returns. ``pmin`` is
    the largest known too-small parameter and ``pmax`` the smallest known
    big-enough one (None while unknown).

    Attributes:
        pmin: Best known too-small parameter
        pmax: Best known big-enough parameter
        pmin_result: FitResult of the probe that set pmin
        pmax_result: FitResult of the probe that set pmax
        last_parameter: Parameter of the most recent probe
        num_calls: place() calls made
        steps: Probes made, empty-rect probes included
    """

    def __init__(
        self,
        placement: Placement,
        derivation: Derivation,
        rect: fitz.Rect,
        pmin: Optional[float] = None,
        pmax: Optional[float] = None,
        max_steps: int = DEFAULT_MAX_SEARCH_STEPS,
    ):
        self.placement = placement
        self.derivation = derivation
        self.rect = rect
        self.pmin = pmin or None
        self.pmax = pmax or None
        self.pmin_result: Optional[FitResult] = None
        self.pmax_result: Optional[FitResult] = None
        self.last_parameter: Optional[float] = None
        self.num_calls = 0
        self.steps = 0
        self.max_steps = max_steps

    def update(self, parameter: float, budgeted: bool = True) -> bool:
        """
        Probe ``parameter`` and move the matching bound.

        Args:
            parameter: Value to probe
            budgeted: Count against max_steps (the closing re-probe of
                pmax is not budgeted)

        Returns:
            True if the content fits at ``parameter``

        Raises:
            SearchExhaustedError: If the step budget is used up
        """
        if budgeted:
            if self.steps >= self.max_steps:
                raise SearchExhaustedError(self.steps, self)
            self.steps += 1

        derived = self.derivation.derive(self.rect, parameter)
        if is_degenerate(derived):
            big_enough = False
            result = FitResult(parameter=parameter, rect=derived, num_calls=self.num_calls)
            logger.debug(f"Probe {parameter}: derived rect {derived} is empty, not placing")
        else:
            self.placement.reset()
            more, filled = self.placement.place(derived)
            self.num_calls += 1
            big_enough = not more
            result = FitResult(
                parameter=parameter,
                rect=derived,
                filled=filled,
                more=more,
                big_enough=big_enough,
                num_calls=self.num_calls,
            )
            logger.debug(f"Probe {self.num_calls}: parameter={parameter} more={more} rect={derived}")

        if big_enough:
            self.pmax = parameter
            self.pmax_result = result
        else:
            self.pmin = parameter
            self.pmin_result = result
        self.last_parameter = parameter
        return big_enough

    def result(self) -> FitResult:
        """
        Final answer of the search.

        Returns the pmax result, re-probing pmax first when a later probe
        left the placement laid out for another parameter. Without any
        fitting parameter, returns a no-solution result (parameter 0).
        """
        if self.pmax is not None:
            if self.last_parameter != self.pmax:
                logger.debug(f"Re-probing pmax={self.pmax} to restore its layout")
                self.update(self.pmax, budgeted=False)
            return self.pmax_result
        return FitResult(parameter=0.0, more=True, big_enough=False, num_calls=self.num_calls)


def fit(
    placement: Placement,
    derivation: Derivation,
    rect: RectLike,
    pmin: Optional[float] = None,
    pmax: Optional[float] = None,
    delta: float = DEFAULT_FIT_DELTA,
    max_steps: int = DEFAULT_MAX_SEARCH_STEPS,
) -> FitResult:
    """
    Find the smallest parameter whose derived rectangle holds the story.

    Args:
        placement: Session to probe (its cursor is reset by every probe)
        derivation: How a parameter becomes a rectangle
        rect: Base rectangle handed to the derivation
        pmin: Known lower bound; None or 0 means unknown
        pmax: Known upper bound; None or 0 means unknown
        delta: Maximum error of the returned parameter
        max_steps: Probe budget

    Returns:
        FitResult for the parameter found, or a no-solution result
        (parameter 0, big_enough False) if nothing fits

    Raises:
        SearchExhaustedError: If the probe budget runs out
        ValueError: If delta is not positive or pmin > pmax

    Example:
        >>> result = fit(placement, HEIGHT, fitz.Rect(0, 0, 200, 0))
        >>> result.big_enough
        True
    """
    if delta <= 0:
        raise ValueError(f"delta must be positive: {delta}")
    if pmin and pmax and pmin > pmax:
        raise ValueError(f"pmin {pmin} is greater than pmax {pmax}")

    state = SearchState(placement, derivation, as_rect(rect), pmin, pmax, max_steps)
    logger.debug(f"Fit starting: kind={derivation.kind.name} pmin={state.pmin} pmax={state.pmax}")

    if state.pmin is None:
        parameter = _outward(state.pmax, -1)
        while state.update(parameter):
            parameter *= 2
    elif state.update(state.pmin):
        logger.debug(f"pmin={state.pmin} is already big enough")
        return state.result()

    if state.pmax is None:
        parameter = _outward(state.pmin, 1)
        while not state.update(parameter):
            parameter *= 2
    elif not state.update(state.pmax):
        logger.debug(f"pmax={state.pmax} does not fit, no solution")
        state.pmax = None
        return state.result()

    while state.pmax - state.pmin >= delta:
        state.update((state.pmin + state.pmax) / 2)

    result = state.result()
    logger.debug(f"Fit finished after {state.num_calls} calls: {result}")
    return result


def fit_scale(
    placement: Placement,
    rect: RectLike,
    scale_min: Optional[float] = None,
    scale_max: Optional[float] = None,
    delta: float = DEFAULT_FIT_DELTA,
    max_steps: int = DEFAULT_MAX_SEARCH_STEPS,
) -> FitResult:
    """
    Smallest scale such that ``rect`` scaled about its top-left holds the story.

    Args:
        placement: Session to probe
        rect: Reference rectangle
        scale_min: Minimum scale to consider (None for unbounded)
        scale_max: Maximum scale to consider (None for unbounded)
        delta: Maximum error in the returned scale
        max_steps: Probe budget
    """
    return fit(placement, SCALE, rect, scale_min, scale_max, delta, max_steps)


def fit_height(
    placement: Placement,
    width: float,
    height_min: Optional[float] = None,
    height_max: Optional[float] = None,
    origin: PointLike = (0, 0),
    delta: float = DEFAULT_FIT_DELTA,
    max_steps: int = DEFAULT_MAX_SEARCH_STEPS,
) -> FitResult:
    """
    Smallest height such that a ``width`` wide rect at ``origin`` holds the story.

    Args:
        placement: Session to probe
        width: Fixed rectangle width
        height_min: Minimum height to consider (None for unbounded)
        height_max: Maximum height to consider (None for unbounded)
        origin: Top-left corner of the rectangle
        delta: Maximum error in the returned height
        max_steps: Probe budget
    """
    x, y = origin
    rect = fitz.Rect(x, y, x + width, y)
    return fit(placement, HEIGHT, rect, height_min, height_max, delta, max_steps)


def fit_width(
    placement: Placement,
    height: float,
    width_min: Optional[float] = None,
    width_max: Optional[float] = None,
    origin: PointLike = (0, 0),
    delta: float = DEFAULT_FIT_DELTA,
    max_steps: int = DEFAULT_MAX_SEARCH_STEPS,
) -> FitResult:
    """
    Smallest width such that a ``height`` tall rect at ``origin`` holds the story.

    Args:
        placement: Session to probe
        height: Fixed rectangle height
        width_min: Minimum width to consider (None for unbounded)
        width_max: Maximum width to consider (None for unbounded)
        origin: Top-left corner of the rectangle
        delta: Maximum error in the returned width
        max_steps: Probe budget
    """
    x, y = origin
    rect = fitz.Rect(x, y, x, y + height)
    return fit(placement, WIDTH, rect, width_min, width_max, delta, max_steps)
