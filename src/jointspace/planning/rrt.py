"""
Rapidly-exploring random trees.

This module provides:
- MotionPlanner: start/goal handling, budgets, cooperative stop
- Rrt: single tree grown from the start with goal biasing
- BiRrt: two trees grown alternately from start and goal, connected after
  every iteration
"""

import threading
import time
from enum import Enum
from typing import Optional, Sequence

import numpy as np

from jointspace.core.exceptions import MotionPlanningError
from jointspace.core.logging import get_logger
from jointspace.planning.cspace import CSpaceSampled
from jointspace.planning.path import CSpacePath
from jointspace.planning.tree import CSpaceNode, CSpaceTree

_logger = get_logger(__name__)


class ExtendMode(Enum):
    """Tree growth policy."""

    EXTEND = "extend"  # one step toward the target
    CONNECT = "connect"  # steps until the target is reached or blocked


class ExtensionStatus(Enum):
    REACHED = "reached"
    ADVANCED = "advanced"
    TRAPPED = "trapped"


class MotionPlanner:
    """
    Base class of sampling-based planners.

    Args:
        cspace: Configuration space to plan in
        name: Planner name used in log output
        max_iterations: Iteration budget
        max_time: Wall-clock budget in seconds (None for unlimited)
    """

    def __init__(
        self,
        cspace: CSpaceSampled,
        name: str = "planner",
        max_iterations: int = 100_000,
        max_time: Optional[float] = None,
    ):
        self.cspace = cspace
        self.name = name
        self.max_iterations = max_iterations
        self.max_time = max_time
        self.start: Optional[np.ndarray] = None
        self.goal: Optional[np.ndarray] = None
        self._solution: Optional[CSpacePath] = None
        self._stop = threading.Event()
        self.iterations = 0
        self.planning_time = 0.0

    def set_start(self, config: Sequence[float]) -> None:
        self.start = self._check_dimension(config, "start")

    def set_goal(self, config: Sequence[float]) -> None:
        self.goal = self._check_dimension(config, "goal")

    def _check_dimension(self, config: Sequence[float], what: str) -> np.ndarray:
        config = np.array(config, dtype=float)
        if config.shape != (self.cspace.dimension,):
            raise MotionPlanningError(
                f"{what} configuration has wrong dimension",
                details={"expected": self.cspace.dimension, "got": config.shape},
            )
        return config

    def is_initialized(self) -> bool:
        return self.start is not None and self.goal is not None

    def stop_search(self) -> None:
        """Request the planning loop to return at its next iteration."""
        self._stop.set()

    def clear_stop(self) -> None:
        self._stop.clear()

    @property
    def stop_requested(self) -> bool:
        return self._stop.is_set()

    def get_solution(self) -> Optional[CSpacePath]:
        """Solution of the last successful ``plan()`` call, or None."""
        return self._solution

    def plan(self) -> bool:
        """
        Run the planner.

        Returns:
            True if a solution was found. Exhausting the iteration or time
            budget, or a stop request, returns False.

        Raises:
            MotionPlanningError: If start or goal is missing or invalid
        """
        if not self.is_initialized():
            raise MotionPlanningError(f"Planner '{self.name}' needs start and goal configurations")
        if not self.cspace.is_valid(self.start):
            raise MotionPlanningError("Start configuration is invalid", details={"start": self.start.tolist()})
        if not self.cspace.is_valid(self.goal):
            raise MotionPlanningError("Goal configuration is invalid", details={"goal": self.goal.tolist()})

        self._solution = None
        self.iterations = 0
        self.cspace.reset_statistics()
        started = time.perf_counter()

        _logger.info(
            "planning_started",
            planner=self.name,
            algorithm=self.__class__.__name__,
            dimension=self.cspace.dimension,
        )
        try:
            found = self._plan()
        finally:
            # a stop request only ends the run it was made for
            self._stop.clear()
        self.planning_time = time.perf_counter() - started

        _logger.info(
            "planning_finished",
            planner=self.name,
            success=found,
            iterations=self.iterations,
            nodes=self.num_nodes(),
            collision_checks=self.cspace.collision_checks,
            seconds=round(self.planning_time, 3),
        )
        return found

    def _plan(self) -> bool:
        raise NotImplementedError

    def num_nodes(self) -> int:
        return 0

    def _budget_left(self, started: float) -> bool:
        if self._stop.is_set():
            return False
        if self.iterations >= self.max_iterations:
            return False
        if self.max_time is not None and time.perf_counter() - started > self.max_time:
            return False
        return True

    # ------------------------------------------------------------------
    # Tree growth
    # ------------------------------------------------------------------

    def _extend(self, tree: CSpaceTree, target: np.ndarray) -> tuple[ExtensionStatus, CSpaceNode]:
        nearest = tree.nearest(target)
        distance = self.cspace.distance(nearest.config, target)
        if distance == 0.0:
            return ExtensionStatus.REACHED, nearest

        step = self.cspace.sampling_size
        if distance <= step:
            candidate, status = target, ExtensionStatus.REACHED
        else:
            candidate = nearest.config + (target - nearest.config) * (step / distance)
            status = ExtensionStatus.ADVANCED

        if not self.cspace.is_path_valid(nearest.config, candidate):
            return ExtensionStatus.TRAPPED, nearest
        return status, tree.add_node(candidate, nearest.id)

    def _connect(self, tree: CSpaceTree, target: np.ndarray) -> tuple[ExtensionStatus, CSpaceNode]:
        status, node = self._extend(tree, target)
        advanced = status is ExtensionStatus.ADVANCED
        while status is ExtensionStatus.ADVANCED and not self._stop.is_set():
            status, node = self._extend(tree, target)
        if status is ExtensionStatus.TRAPPED and advanced:
            # the tree did grow, just not all the way
            return ExtensionStatus.ADVANCED, node
        return status, node

    def _grow(self, tree: CSpaceTree, target: np.ndarray, mode: ExtendMode) -> tuple[ExtensionStatus, CSpaceNode]:
        if mode is ExtendMode.CONNECT:
            return self._connect(tree, target)
        return self._extend(tree, target)


class Rrt(MotionPlanner):
    """
    Single-tree RRT with goal biasing.

    With probability ``goal_probability`` the goal configuration is used as
    the growth target instead of a random sample; reaching it ends planning.
    """

    def __init__(
        self,
        cspace: CSpaceSampled,
        extend_mode: ExtendMode = ExtendMode.CONNECT,
        extend_mode_goal: ExtendMode = ExtendMode.CONNECT,
        goal_probability: float = 0.1,
        **kwargs,
    ):
        super().__init__(cspace, kwargs.pop("name", "rrt"), **kwargs)
        self.extend_mode = extend_mode
        self.extend_mode_goal = extend_mode_goal
        self.goal_probability = goal_probability
        self.tree = CSpaceTree(cspace.dimension, "start")

    def get_tree(self) -> CSpaceTree:
        return self.tree

    def num_nodes(self) -> int:
        return self.tree.num_nodes

    def _plan(self) -> bool:
        self.tree = CSpaceTree(self.cspace.dimension, "start")
        self.tree.add_node(self.start)
        started = time.perf_counter()
        rng = self.cspace.rng

        while self._budget_left(started):
            self.iterations += 1
            if rng.random() < self.goal_probability:
                status, node = self._grow(self.tree, self.goal, self.extend_mode_goal)
                if status is ExtensionStatus.REACHED:
                    path = self.tree.path_to_root(node)[::-1]
                    self._solution = CSpacePath(path, f"{self.name}_solution")
                    return True
            else:
                self._grow(self.tree, self.cspace.random_configuration(), self.extend_mode)
        return False


class BiRrt(MotionPlanner):
    """
    Bi-directional RRT.

    One tree grows from the start, one from the goal. Every iteration one
    tree grows toward a random sample and the other tree then tries to reach
    the newly added node; the roles swap after each iteration.
    """

    def __init__(
        self,
        cspace: CSpaceSampled,
        extend_mode: ExtendMode = ExtendMode.CONNECT,
        extend_mode_goal: ExtendMode = ExtendMode.CONNECT,
        **kwargs,
    ):
        super().__init__(cspace, kwargs.pop("name", "birrt"), **kwargs)
        self.extend_mode = extend_mode
        self.extend_mode_goal = extend_mode_goal
        self.tree = CSpaceTree(cspace.dimension, "start")
        self.tree2 = CSpaceTree(cspace.dimension, "goal")

    def get_tree(self) -> CSpaceTree:
        return self.tree

    def get_tree2(self) -> CSpaceTree:
        return self.tree2

    def num_nodes(self) -> int:
        return self.tree.num_nodes + self.tree2.num_nodes

    def _plan(self) -> bool:
        self.tree = CSpaceTree(self.cspace.dimension, "start")
        self.tree2 = CSpaceTree(self.cspace.dimension, "goal")
        self.tree.add_node(self.start)
        self.tree2.add_node(self.goal)
        started = time.perf_counter()

        growing, other = self.tree, self.tree2
        while self._budget_left(started):
            self.iterations += 1
            status, new_node = self._grow(growing, self.cspace.random_configuration(), self.extend_mode)
            if status is not ExtensionStatus.TRAPPED:
                status, reached = self._grow(other, new_node.config, self.extend_mode_goal)
                if status is ExtensionStatus.REACHED:
                    self._build_solution(growing, new_node, other, reached)
                    return True
            growing, other = other, growing
        return False

    def _build_solution(self, tree_a: CSpaceTree, node_a: CSpaceNode, tree_b: CSpaceTree, node_b: CSpaceNode) -> None:
        # node_a and node_b hold the same configuration
        first = tree_a.path_to_root(node_a)[::-1]
        second = tree_b.path_to_root(node_b)[1:]
        points = first + second
        if tree_a is self.tree2:
            points.reverse()
        self._solution = CSpacePath(points, f"{self.name}_solution")
