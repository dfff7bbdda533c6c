"""
Convergence policy for pre-copy iterations.

This module decides, after every pre-dump, whether another iteration is
worth running or the migration should move on to the final dump.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, Optional, Tuple


logger = logging.getLogger(__name__)


@dataclass
class IterationStats:
    """Dump statistics of a single pre-copy iteration."""
    pages_written: int = 0
    pages_skipped_parent: int = 0
    pages_scanned: int = 0
    freezing_time: int = 0
    frozen_time: int = 0  # microseconds
    memdump_time: int = 0
    memwrite_time: int = 0
    images_dir: Optional[str] = None

    @classmethod
    def from_dump_entry(cls, entry: Dict, images_dir: Optional[str] = None) -> "IterationStats":
        """
        Build statistics from a decoded stats-dump entry.

        Args:
            entry: The "dump" member of the first stats-dump entry
            images_dir: Directory the statistics were read from

        Returns:
            IterationStats: Statistics with absent counters set to 0
        """
        return cls(
            pages_written=int(entry.get("pages_written", 0)),
            pages_skipped_parent=int(entry.get("pages_skipped_parent", 0)),
            pages_scanned=int(entry.get("pages_scanned", 0)),
            freezing_time=int(entry.get("freezing_time", 0)),
            frozen_time=int(entry.get("frozen_time", 0)),
            memdump_time=int(entry.get("memdump_time", 0)),
            memwrite_time=int(entry.get("memwrite_time", 0)),
            images_dir=images_dir
        )


class StopReason(Enum):
    """Why the pre-copy loop stopped iterating."""
    MAX_ITERATIONS = "max_iterations"
    SMALL_DIRTY_SET = "small_dirty_set"
    GROWING_DIRTY_SET = "growing_dirty_set"


@dataclass(frozen=True)
class ConvergencePolicy:
    """Thresholds that end the pre-copy loop."""
    max_iterations: int = 8
    min_pages_written: int = 64
    max_grow_delta: int = 32

    def check(self, iteration: int, stats: IterationStats,
              prev_stats: IterationStats) -> Optional[StopReason]:
        """
        Evaluate the stop rules after an iteration.

        Rules apply in order: iteration ceiling, negligible dirty set, then
        growth against the previous iteration. The first iteration compares
        against a zeroed baseline.

        Args:
            iteration: Number of the iteration just completed, from 1
            stats: Statistics of that iteration
            prev_stats: Statistics of the iteration before it

        Returns:
            StopReason if the loop should stop, None to keep iterating
        """
        if iteration >= self.max_iterations:
            logger.info(f"Max iterations reached ({iteration})")
            return StopReason.MAX_ITERATIONS

        if stats.pages_written < self.min_pages_written:
            logger.info(f"Tiny pre-dump reached ({stats.pages_written} pages)")
            return StopReason.SMALL_DIRTY_SET

        pages_delta = stats.pages_written - prev_stats.pages_written
        if pages_delta >= self.max_grow_delta:
            logger.info(f"Growing pre-dump reached (delta {pages_delta} pages)")
            return StopReason.GROWING_DIRTY_SET

        logger.debug(
            f"Iteration {iteration} continues: {stats.pages_written} pages written, "
            f"delta {pages_delta}"
        )
        return None

    def should_stop(self, iteration: int, stats: IterationStats,
                    prev_stats: IterationStats) -> bool:
        """Return True if no further pre-copy iteration should run."""
        return self.check(iteration, stats, prev_stats) is not None

    def simulate(self, pages_written: Iterable[int]) -> Tuple[int, Optional[StopReason]]:
        """
        Replay a sequence of pages-written counts through the policy.

        Args:
            pages_written: Pages written by successive iterations

        Returns:
            Tuple of (iterations_run, stop_reason); stop_reason is None if
            the sequence ran out before the policy stopped the loop
        """
        prev_stats = IterationStats()
        iteration = 0

        for pages in pages_written:
            iteration += 1
            stats = IterationStats(pages_written=pages)
            reason = self.check(iteration, stats, prev_stats)
            if reason is not None:
                return iteration, reason
            prev_stats = stats

        return iteration, None
