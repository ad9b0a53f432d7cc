"""
Paths through configuration space.
"""

from typing import Iterator, Optional, Sequence

import numpy as np

from jointspace.core.exceptions import UsageError


class CSpacePath:
    """
    Ordered sequence of configurations, linearly interpolated between
    consecutive waypoints.

    The interpolation parameter ``t`` in ``[0, 1]`` is proportional to the
    joint-space arc length, so ``t = 0`` is the first waypoint and ``t = 1``
    the last one.

    Args:
        points: Initial waypoints
        name: Path name
    """

    def __init__(self, points: Optional[Sequence[Sequence[float]]] = None, name: str = "path"):
        self.name = name
        self._points: list[np.ndarray] = []
        for p in points or []:
            self.add_point(p)

    def add_point(self, config: Sequence[float]) -> None:
        config = np.array(config, dtype=float)
        if self._points and config.shape != self._points[0].shape:
            raise UsageError(
                "Configuration dimension does not match path",
                details={"expected": self._points[0].shape[0], "got": config.shape[0]},
            )
        self._points.append(config)

    def extend(self, other: "CSpacePath", skip_first: bool = False) -> None:
        """Append the waypoints of another path."""
        points = other.points[1:] if skip_first else other.points
        for p in points:
            self.add_point(p)

    @property
    def points(self) -> list[np.ndarray]:
        return [p.copy() for p in self._points]

    @property
    def num_points(self) -> int:
        return len(self._points)

    def point(self, index: int) -> np.ndarray:
        return self._points[index].copy()

    def segment_lengths(self) -> np.ndarray:
        if len(self._points) < 2:
            return np.zeros(0)
        pts = np.stack(self._points)
        return np.linalg.norm(np.diff(pts, axis=0), axis=1)

    def length(self) -> float:
        """Cumulative joint-space length."""
        return float(self.segment_lengths().sum())

    def get_time(self, index: int) -> float:
        """
        Interpolation parameter of a waypoint, so that
        ``interpolate(get_time(i))`` is ``point(i)``. Negative indices count
        from the end.

        Raises:
            IndexError: If there is no waypoint ``index``
        """
        index = range(len(self._points))[index]
        total = self.length()
        if total == 0.0:
            return 0.0
        return float(self.segment_lengths()[:index].sum() / total)

    def interpolate(self, t: float) -> np.ndarray:
        """Configuration at ``t``; ``t`` is clamped into ``[0, 1]``."""
        return self.interpolate_with_index(t)[0]

    def interpolate_with_index(self, t: float) -> tuple[np.ndarray, int]:
        """
        Configuration at ``t`` together with the index of the segment it lies on.

        Raises:
            UsageError: If the path is empty
        """
        if not self._points:
            raise UsageError(f"Cannot interpolate empty path '{self.name}'")
        if len(self._points) == 1:
            return self._points[0].copy(), 0

        t = min(max(t, 0.0), 1.0)
        lengths = self.segment_lengths()
        total = lengths.sum()
        if t >= 1.0:
            return self._points[-1].copy(), len(lengths) - 1
        if total == 0.0:
            return self._points[0].copy(), 0

        target = t * total
        travelled = 0.0
        for i, seg in enumerate(lengths):
            if travelled + seg >= target and seg > 0.0:
                u = (target - travelled) / seg
                a, b = self._points[i], self._points[i + 1]
                return a + u * (b - a), i
            travelled += seg
        return self._points[-1].copy(), len(lengths) - 1

    def reverse(self) -> "CSpacePath":
        """Reversed copy."""
        return CSpacePath(self._points[::-1], self.name)

    def clone(self, name: Optional[str] = None) -> "CSpacePath":
        return CSpacePath(self._points, name or self.name)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "length": self.length(),
            "points": [p.tolist() for p in self._points],
        }

    def __len__(self) -> int:
        return len(self._points)

    def __iter__(self) -> Iterator[np.ndarray]:
        return iter(self.points)

    def __repr__(self) -> str:
        return f"CSpacePath({self.name!r}, points={len(self._points)}, length={self.length():.3f})"
