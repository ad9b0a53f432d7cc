"""
Sampled configuration space.

Wraps a joint set and a collision detection manager. Configurations are
numpy vectors aligned with the joint set; validity of straight-line edges is
decided by discretized collision detection (DCD).
"""

import math
import threading
from contextlib import contextmanager
from typing import Iterator, Optional, Sequence

import numpy as np

from jointspace.collision.cd_manager import CDManager
from jointspace.core.exceptions import UsageError
from jointspace.core.logging import get_logger
from jointspace.model.node_sets import JointSet

_logger = get_logger(__name__)


class CSpaceSampled:
    """
    Configuration space of a joint set with two sampling resolutions.

    Args:
        joint_set: Joints spanning the space; its model is mutated by
            validity checks
        cd_manager: Collision queries deciding validity
        sampling_size: Maximum step between two tree nodes
        dcd_sampling_size: Maximum step between two collision checks along an
            edge
        seed: Seed of the private random generator

    Example:
        >>> cspace = CSpaceSampled(robot.get_joint_set("All"), cdm, 20.0, 5.0)
        >>> q = cspace.random_configuration()
        >>> cspace.is_path_valid(start, q)
    """

    # shared by every instance that opts into exclusive robot access
    _exclusive_lock = threading.RLock()

    def __init__(
        self,
        joint_set: JointSet,
        cd_manager: CDManager,
        sampling_size: float = 0.1,
        dcd_sampling_size: float = 0.02,
        seed: Optional[int] = None,
    ):
        if joint_set is None or cd_manager is None:
            raise UsageError("CSpaceSampled needs a joint set and a collision manager")
        self.joint_set = joint_set
        self.cd_manager = cd_manager
        self.model = joint_set.model
        self.sampling_size = sampling_size
        self.dcd_sampling_size = dcd_sampling_size
        self.rng = np.random.default_rng(seed)
        self.low, self.high = joint_set.limits()
        self._exclusive = False
        self.collision_checks = 0

    @property
    def dimension(self) -> int:
        return len(self.joint_set)

    @property
    def sampling_size(self) -> float:
        return self._sampling_size

    @sampling_size.setter
    def sampling_size(self, value: float) -> None:
        if value <= 0:
            raise UsageError("Sampling size must be positive", details={"value": value})
        self._sampling_size = float(value)

    @property
    def dcd_sampling_size(self) -> float:
        return self._dcd_sampling_size

    @dcd_sampling_size.setter
    def dcd_sampling_size(self, value: float) -> None:
        if value <= 0:
            raise UsageError("DCD sampling size must be positive", details={"value": value})
        self._dcd_sampling_size = float(value)

    def exclusive_robot_access(self, enabled: bool = True) -> None:
        """
        Serialize all model mutation and collision queries of this space
        through one process-wide lock. Only needed when several planning
        threads share one model or collision checker instance.
        """
        self._exclusive = enabled

    @property
    def has_exclusive_robot_access(self) -> bool:
        return self._exclusive

    @contextmanager
    def _access(self) -> Iterator[None]:
        if self._exclusive:
            with CSpaceSampled._exclusive_lock:
                yield
        else:
            yield

    # ------------------------------------------------------------------
    # Sampling
    # ------------------------------------------------------------------

    def random_configuration(self) -> np.ndarray:
        """Uniform sample inside the joint limits."""
        return self.rng.uniform(self.low, self.high)

    def is_in_bounds(self, config: Sequence[float]) -> bool:
        config = np.asarray(config, dtype=float)
        return bool(np.all(config >= self.low) and np.all(config <= self.high))

    def distance(self, a: Sequence[float], b: Sequence[float]) -> float:
        """Euclidean distance in joint space."""
        return float(np.linalg.norm(np.asarray(b, dtype=float) - np.asarray(a, dtype=float)))

    @staticmethod
    def interpolate(a: Sequence[float], b: Sequence[float], t: float) -> np.ndarray:
        a = np.asarray(a, dtype=float)
        return a + t * (np.asarray(b, dtype=float) - a)

    # ------------------------------------------------------------------
    # Validity
    # ------------------------------------------------------------------

    def is_valid(self, config: Sequence[float]) -> bool:
        """
        Check a single configuration.

        Out-of-bounds configurations are invalid. Otherwise the configuration
        is applied to the model and the collision manager is queried; the
        model keeps the configuration afterwards.
        """
        config = np.asarray(config, dtype=float)
        if config.shape != (self.dimension,) or not self.is_in_bounds(config):
            return False
        with self._access():
            self.joint_set.set_joint_values(config)
            self.collision_checks += 1
            return not self.cd_manager.is_in_collision()

    def is_path_valid(self, a: Sequence[float], b: Sequence[float]) -> bool:
        """
        Check the straight-line edge from ``a`` to ``b`` at DCD resolution.

        ``a`` itself is assumed valid and not re-checked; ``b`` is checked.
        Stops at the first invalid point.
        """
        steps = self.dcd_steps(a, b)
        for k in range(1, steps + 1):
            if not self.is_valid(self.interpolate(a, b, k / steps)):
                return False
        return True

    def dcd_steps(self, a: Sequence[float], b: Sequence[float]) -> int:
        """Number of DCD subdivisions of an edge (at least one)."""
        return max(1, math.ceil(self.distance(a, b) / self.dcd_sampling_size))

    def reset_statistics(self) -> None:
        self.collision_checks = 0

    def __repr__(self) -> str:
        return (
            f"CSpaceSampled({self.joint_set.name!r}, dim={self.dimension}, "
            f"sampling={self._sampling_size}, dcd={self._dcd_sampling_size})"
        )
