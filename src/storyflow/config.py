"""
Module: storyflow.config

Purpose:
    Configuration dataclass for story layout runs. Immutable
    configuration with validation on construction.

Key Classes:
    - StoryConfig: Markup styling, search tolerance and iteration budgets

Dependencies:
    - dataclasses (std)
    - pathlib (std)

Used By:
    - storyflow.layout.stabilizer: Iteration budget, header ids
    - storyflow.controller: Pipeline settings
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional


DEFAULT_EM = 12.0
DEFAULT_FIT_DELTA = 0.001
DEFAULT_MAX_SEARCH_STEPS = 200
DEFAULT_MAX_ITERATIONS = 25


@dataclass(frozen=True)
class StoryConfig:
    """
    Configuration for building and laying out stories (immutable).

    Attributes:
        user_css: Extra CSS applied on top of the markup's own styles
        em: Base font size in points
        archive: Optional fitz.Archive for images and fonts referenced by the markup
        add_header_ids: Give <h1>-<h6> elements without an id a unique one
        fit_delta: Tolerance of fit searches
        max_search_steps: Probe budget of one fit search
        max_iterations: Content generations allowed before giving up on stabilization
        debug_overlay_dir: If set, write page images with Position outlines here
        debug_dpi: Resolution of debug overlay images

    Example:
        >>> config = StoryConfig(user_css="p {margin: 0}", max_iterations=10)
    """

    # Markup
    user_css: Optional[str] = None
    em: float = DEFAULT_EM
    archive: Optional[Any] = None
    add_header_ids: bool = True

    # Budgets
    fit_delta: float = DEFAULT_FIT_DELTA
    max_search_steps: int = DEFAULT_MAX_SEARCH_STEPS
    max_iterations: int = DEFAULT_MAX_ITERATIONS

    # Diagnostics
    debug_overlay_dir: Optional[Path] = None
    debug_dpi: int = 72

    def __post_init__(self) -> None:
        """Validate configuration on construction."""
        if self.em <= 0:
            raise ValueError(f"em must be positive: {self.em}")
        if self.fit_delta <= 0:
            raise ValueError(f"fit_delta must be positive: {self.fit_delta}")
        if self.max_search_steps < 1:
            raise ValueError(f"max_search_steps must be at least 1: {self.max_search_steps}")
        # One generation to lay out, one more to confirm it is stable
        if self.max_iterations < 2:
            raise ValueError(f"max_iterations must be at least 2: {self.max_iterations}")
        if self.debug_dpi <= 0:
            raise ValueError(f"debug_dpi must be positive: {self.debug_dpi}")
