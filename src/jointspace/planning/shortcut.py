"""
Path post-processing.

Shortens planner output by replacing sub-paths with straight segments
whenever the configuration space accepts them.
"""

import threading
from typing import Optional

import numpy as np

from jointspace.core.exceptions import UsageError
from jointspace.core.logging import get_logger
from jointspace.planning.cspace import CSpaceSampled
from jointspace.planning.path import CSpacePath

_logger = get_logger(__name__)

# shortcuts must save at least this much joint-space length
MIN_IMPROVEMENT = 1e-9


class ShortcutProcessor:
    """
    Random shortcut smoother.

    Args:
        path: Valid input path. It is never modified.
        cspace: Configuration space the path was planned in
        seed: Seed of the random generator picking shortcut candidates

    Example:
        >>> processor = ShortcutProcessor(solution, cspace)
        >>> shorter = processor.optimize(600)
    """

    def __init__(self, path: CSpacePath, cspace: CSpaceSampled, seed: Optional[int] = None):
        if path is None or cspace is None:
            raise UsageError("ShortcutProcessor needs a path and a configuration space")
        self.path = path
        self.cspace = cspace
        self.rng = np.random.default_rng(seed)
        self._stop = threading.Event()
        self.accepted_shortcuts = 0

    def stop_processing(self) -> None:
        """Request the processing loop to return at its next iteration."""
        self._stop.set()

    def clear_stop(self) -> None:
        self._stop.clear()

    @property
    def stop_requested(self) -> bool:
        return self._stop.is_set()

    def optimize(self, steps: int, prune: bool = True) -> CSpacePath:
        """
        Random shortcutting followed by an optional waypoint-pruning pass.

        Args:
            steps: Number of shortcut attempts
            prune: Run :meth:`prune_waypoints` on the result

        Returns:
            New path, never longer than the input
        """
        before = self.path.length()
        try:
            result = self.shorten_solution_random(steps)
            if prune and not self._stop.is_set():
                result = self.prune_waypoints(result)
        finally:
            self._stop.clear()
        _logger.info(
            "path_optimized",
            path=self.path.name,
            length_before=round(before, 4),
            length_after=round(result.length(), 4),
            points=result.num_points,
            shortcuts=self.accepted_shortcuts,
        )
        return result

    def shorten_solution_random(self, steps: int, path: Optional[CSpacePath] = None) -> CSpacePath:
        """
        Try ``steps`` random shortcuts.

        Each attempt picks two random points of the current path, which may
        lie anywhere on a segment, and replaces the sub-path between them by a
        straight segment when that segment is valid and shorter.
        """
        points = (path or self.path).points
        for _ in range(steps):
            if self._stop.is_set():
                break
            shortened = self._try_shortcut(points)
            if shortened is not None:
                points = shortened
                self.accepted_shortcuts += 1
        return CSpacePath(points, f"{self.path.name}_shortcut")

    def _try_shortcut(self, points: list[np.ndarray]) -> Optional[list[np.ndarray]]:
        if len(points) < 3:
            return None

        current = CSpacePath(points)
        t1, t2 = np.sort(self.rng.uniform(0.0, 1.0, size=2))
        q1, i1 = current.interpolate_with_index(t1)
        q2, i2 = current.interpolate_with_index(t2)
        if i1 >= i2:
            return None

        old_length = (
            self.cspace.distance(q1, points[i1 + 1])
            + sum(self.cspace.distance(points[k], points[k + 1]) for k in range(i1 + 1, i2))
            + self.cspace.distance(points[i2], q2)
        )
        if self.cspace.distance(q1, q2) >= old_length - MIN_IMPROVEMENT:
            return None

        if not (
            self.cspace.is_valid(q1)
            and self.cspace.is_path_valid(points[i1], q1)
            and self.cspace.is_path_valid(q1, q2)
            and self.cspace.is_path_valid(q2, points[i2 + 1])
        ):
            return None

        middle = [q for q, anchor in ((q1, points[i1]), (q2, points[i2 + 1])) if not np.allclose(q, anchor)]
        return points[: i1 + 1] + middle + points[i2 + 1 :]

    def prune_waypoints(self, path: Optional[CSpacePath] = None) -> CSpacePath:
        """
        Greedy pass dropping every waypoint that can be skipped by a valid
        straight segment.
        """
        points = (path or self.path).points
        if len(points) < 3:
            return CSpacePath(points, f"{self.path.name}_pruned")

        kept = [points[0]]
        i = 0
        while i < len(points) - 1:
            if self._stop.is_set():
                kept.extend(points[i + 1 :])
                break
            j = len(points) - 1
            while j > i + 1 and not self.cspace.is_path_valid(points[i], points[j]):
                j -= 1
            kept.append(points[j])
            i = j
        return CSpacePath(kept, f"{self.path.name}_pruned")
