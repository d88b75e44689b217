"""
Module: storyflow.timing

Purpose:
    Timing instrumentation for layout runs, to see how many
    stabilization passes and fit probes a document costs.

Key Classes:
    - TimingLog: Collects run-level and per-pass timing metrics

Key Functions:
    - timed_phase: Context manager for timing code blocks

Dependencies:
    - time (std)
    - contextlib (std)
    - dataclasses (std)

Used By:
    - storyflow.layout.stabilizer: Per-pass timings
    - storyflow.controller: Whole-pipeline phases
"""

from __future__ import annotations

import json
import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Generator, List, Optional, Tuple

logger = logging.getLogger(__name__)


@dataclass
class TimingLog:
    """
    Timing metrics for a layout run.

    Run-level phases (layout, links, save) cover the whole pipeline.
    Pass-level entries cover one stabilization pass each ("pass_1",
    "pass_2", ..., "final") together with the place() calls it made.

    Attributes:
        run_timings: Dict of phase_name -> duration_seconds
        pass_timings: Dict of pass_id -> {phase_name -> duration_seconds}
        pass_places: Dict of pass_id -> place() calls made in that pass

    Example:
        >>> log = TimingLog()
        >>> log.log_run("links", 0.004)
        >>> log.log_pass("pass_1", "layout", 0.120)
        >>> log.log_places("pass_1", 14)
        >>> print(log.summary())
    """
    run_timings: Dict[str, float] = field(default_factory=dict)
    pass_timings: Dict[str, Dict[str, float]] = field(default_factory=dict)
    pass_places: Dict[str, int] = field(default_factory=dict)

    def log_run(self, phase: str, duration: float) -> None:
        """Log a run-level timing metric."""
        self.run_timings[phase] = duration

    def log_pass(self, pass_id: str, phase: str, duration: float) -> None:
        """Log a pass-level timing metric."""
        self.pass_timings.setdefault(pass_id, {})[phase] = duration

    def log_places(self, pass_id: str, count: int) -> None:
        """Record how many place() calls a pass made."""
        self.pass_places[pass_id] = count

    @property
    def pass_count(self) -> int:
        """Number of passes with recorded timings."""
        return len(self.pass_timings)

    @property
    def total_places(self) -> int:
        """place() calls across all passes."""
        return sum(self.pass_places.values())

    def pass_rows(self) -> List[Tuple[str, float, int]]:
        """
        One (pass_id, seconds, places) row per pass, in recording order.

        A pass with places but no timed phase reports 0 seconds.
        """
        pass_ids = list(self.pass_timings)
        pass_ids += [p for p in self.pass_places if p not in self.pass_timings]
        return [
            (pass_id, sum(self.pass_timings.get(pass_id, {}).values()),
             self.pass_places.get(pass_id, 0))
            for pass_id in pass_ids
        ]

    def summary(self) -> str:
        """Generate human-readable timing summary."""
        lines = ["", "=== Layout Timing Summary ==="]

        if self.run_timings:
            lines.append("Run-level:")
            for phase, duration in sorted(self.run_timings.items()):
                lines.append(f"  {phase:25s} {duration:.3f}s")

        rows = self.pass_rows()
        if rows:
            lines.append("")
            lines.append(f"Passes ({len(rows)}, {self.total_places} places):")
            for pass_id, seconds, places in rows:
                lines.append(f"  {pass_id:25s} {seconds:.3f}s  {places} places")

        lines.append("")
        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        """Export timing data as dictionary."""
        return {
            "run_timings": self.run_timings,
            "pass_timings": self.pass_timings,
            "pass_places": self.pass_places,
            "passes": [
                {"id": pass_id, "seconds": seconds, "places": places}
                for pass_id, seconds, places in self.pass_rows()
            ],
        }

    def save(self, path: Path) -> None:
        """
        Save timing data to a JSON file, replacing any existing file.

        Args:
            path: Path to JSON file.
        """
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2)
        logger.debug(f"Saved timing data to {path}")


@contextmanager
def timed_phase(
    log: Optional[TimingLog],
    phase: str,
    pass_id: Optional[str] = None,
) -> Generator[None, None, None]:
    """
    Context manager for timing a code phase.

    Args:
        log: TimingLog instance to record metrics (None disables timing)
        phase: Name of the phase being timed
        pass_id: If provided, records as pass-level metric;
                 otherwise records as run-level metric

    Example:
        >>> log = TimingLog()
        >>> with timed_phase(log, "link_resolution"):
        ...     links = resolve_links(positions)
        >>> with timed_phase(log, "layout", pass_id="pass_2"):
        ...     write(placement, None, region_fn)
    """
    start = time.perf_counter()
    try:
        yield
    finally:
        if log is not None:
            elapsed = time.perf_counter() - start
            if pass_id:
                log.log_pass(pass_id, phase, elapsed)
            else:
                log.log_run(phase, elapsed)
