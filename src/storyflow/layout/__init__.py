"""
Module: storyflow.layout

Purpose:
    Flowed-content layout engine.
    Places markup into sequences of rectangles and pages, sizes
    rectangles to fit content, and stabilizes self-referential content.

Key Functions:
    - fit(), fit_scale(), fit_width(), fit_height(): Fit searches
    - write(): Paginate a placement session
    - write_stabilized(): Fixed-point layout of generated content
    - page_regions(), fixed_regions(): Stock region generators

Key Classes:
    - Placement: Layout session over one content snapshot
    - Position: Placed content fragment
    - FitResult: Fit search outcome
    - LayoutConfig: Page geometry
    - Stabilizer: Convergence state machine

Dependencies:
    - fitz (PyMuPDF): Story typesetting, geometry

Used By:
    - storyflow.controller: Pipelines
    - storyflow.output: Link resolution and overlays read Positions
"""

from .config import LayoutConfig
from .models import (
    OpenClose,
    Position,
    FitResult,
    Region,
    PaginationResult,
    StabilizeResult,
)
from .placement import Placement, position_from_story
from .search import (
    FitKind,
    Derivation,
    SearchState,
    SCALE,
    WIDTH,
    HEIGHT,
    fit,
    fit_scale,
    fit_width,
    fit_height,
)
from .paginator import write
from .stabilizer import Stabilizer, StabilizerState, write_stabilized
from .regions import page_regions, fixed_regions

__all__ = [
    # Config
    "LayoutConfig",
    # Models
    "OpenClose",
    "Position",
    "FitResult",
    "Region",
    "PaginationResult",
    "StabilizeResult",
    # Placement
    "Placement",
    "position_from_story",
    # Search
    "FitKind",
    "Derivation",
    "SearchState",
    "SCALE",
    "WIDTH",
    "HEIGHT",
    "fit",
    "fit_scale",
    "fit_width",
    "fit_height",
    # Pagination
    "write",
    "Stabilizer",
    "StabilizerState",
    "write_stabilized",
    "page_regions",
    "fixed_regions",
]
