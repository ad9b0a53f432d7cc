"""
Bounding-box collision engine and the collision engine interface.

Bodies are approximated by the world-aligned bounding box of their mesh
vertices. This is exact for axis-aligned boxes (the obstacle scenes used for
planning) and conservative for anything else, so a rotated link reports
contacts it does not have. Use it only as an explicit choice for box scenes;
models default to :class:`~jointspace.collision.pybullet_checker.PyBulletCollisionChecker`.
Engines with real mesh queries subclass :class:`CollisionChecker` and
override the pairwise primitives.
"""

import itertools
import math
import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterable, Optional

import numpy as np

from jointspace.core.logging import get_logger

if TYPE_CHECKING:
    from jointspace.collision.geometry import CollisionModel
    from jointspace.model.node_sets import LinkSet

_logger = get_logger(__name__)
_instance_ids = itertools.count()


@dataclass
class DistanceResult:
    """Closest-point query result between two bodies."""

    distance: float = math.inf
    point_a: np.ndarray = field(default_factory=lambda: np.zeros(3))
    point_b: np.ndarray = field(default_factory=lambda: np.zeros(3))
    triangle_a: int = -1
    triangle_b: int = -1


class CollisionChecker:
    """
    Collision engine instance.

    One instance represents one geometry-query context. Collision models are
    registered with exactly one instance; link sets can only be tested against
    each other when their geometry lives in the same instance.
    """

    def __init__(self, name: Optional[str] = None):
        self.id = next(_instance_ids)
        self.name = name or f"checker_{self.id}"
        self._lock = threading.Lock()
        self._registered = 0

    # ------------------------------------------------------------------
    # Geometry bookkeeping
    # ------------------------------------------------------------------

    def register(self, model: "CollisionModel") -> int:
        """Register a collision model. Returns an engine specific handle."""
        with self._lock:
            handle = self._registered
            self._registered += 1
        return handle

    def pose_changed(self, model: "CollisionModel") -> None:
        """Called whenever a registered model moves."""

    def close(self) -> None:
        """Release engine resources. The instance must not be queried afterwards."""

    def __enter__(self) -> "CollisionChecker":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()

    @property
    def num_registered(self) -> int:
        return self._registered

    # ------------------------------------------------------------------
    # Queries between link sets
    # ------------------------------------------------------------------

    def check_collision(self, set_a: "LinkSet", set_b: "LinkSet") -> bool:
        """True if any body of ``set_a`` intersects any body of ``set_b``."""
        for a, b in self._model_pairs(set_a, set_b):
            if self.check_model_collision(a, b):
                return True
        return False

    def calculate_distance(self, set_a: "LinkSet", set_b: "LinkSet") -> DistanceResult:
        """
        Minimum signed distance between two link sets together with the
        closest points and triangle ids. Negative distances are penetration
        depths.
        """
        best = DistanceResult()
        for a, b in self._model_pairs(set_a, set_b):
            result = self.model_distance(a, b)
            if result.distance < best.distance:
                best = result
        return best

    def _model_pairs(self, set_a: "LinkSet", set_b: "LinkSet") -> Iterable[tuple["CollisionModel", "CollisionModel"]]:
        models_b = set_b.collision_models()
        for a in set_a.collision_models():
            for b in models_b:
                if a is not b:
                    yield a, b

    # ------------------------------------------------------------------
    # Pairwise primitives
    # ------------------------------------------------------------------

    def check_model_collision(self, a: "CollisionModel", b: "CollisionModel") -> bool:
        min_a, max_a = a.aabb()
        min_b, max_b = b.aabb()
        return bool(np.all(min_a < max_b) and np.all(min_b < max_a))

    def model_distance(self, a: "CollisionModel", b: "CollisionModel") -> DistanceResult:
        min_a, max_a = a.aabb()
        min_b, max_b = b.aabb()

        # per-axis gap, negative where the intervals overlap
        gaps = np.maximum(min_b - max_a, min_a - max_b)
        if np.all(gaps < 0):
            distance = float(gaps.max())
        else:
            distance = float(np.linalg.norm(np.maximum(gaps, 0.0)))

        point_a = np.empty(3)
        point_b = np.empty(3)
        for k in range(3):
            if max_a[k] < min_b[k]:
                point_a[k], point_b[k] = max_a[k], min_b[k]
            elif max_b[k] < min_a[k]:
                point_a[k], point_b[k] = min_a[k], max_b[k]
            else:
                mid = 0.5 * (max(min_a[k], min_b[k]) + min(max_a[k], max_b[k]))
                point_a[k] = point_b[k] = mid

        return DistanceResult(
            distance=distance,
            point_a=point_a,
            point_b=point_b,
            triangle_a=a.nearest_face(point_a),
            triangle_b=b.nearest_face(point_b),
        )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.name!r})"
