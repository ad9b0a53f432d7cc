"""
Multi-threaded planning.

Sets up N independent planning problems in one random box-obstacle scene,
each with its own robot clone, collision manager, configuration space and
planner, runs them in individual worker threads and harvests the results.
Optionally every solution is shortened afterwards by a path-processing
worker bound to the same configuration space.
"""

import time
from typing import Callable, Optional

import numpy as np

from jointspace.collision.cd_manager import CDManager
from jointspace.collision.checker import CollisionChecker
from jointspace.collision.pybullet_checker import PyBulletCollisionChecker
from jointspace.core.config import ScenarioConfig
from jointspace.core.exceptions import MotionPlanningError, UsageError
from jointspace.core.logging import get_logger
from jointspace.model.factory import create_obstacle_field, random_obstacle_positions
from jointspace.model.model import Model
from jointspace.planning.cspace import CSpaceSampled
from jointspace.planning.path import CSpacePath
from jointspace.planning.rrt import BiRrt, ExtendMode, MotionPlanner, Rrt
from jointspace.planning.shortcut import ShortcutProcessor
from jointspace.planning.threads import PathProcessingThread, PlanningThread
from jointspace.visualization import VisualizationHooks

_logger = get_logger(__name__)


class MultiThreadedPlanning:
    """
    Orchestrates independent planning problems, one worker thread each.

    Args:
        robot: Template robot. Every planning problem works on a clone.
        config: Scenario configuration
        visualization: Visualization hooks (no-op by default)
        joint_set: Name of the joint set spanning the configuration space
        link_set: Name of the robot's collision link set
        tcp: Frame used for start/goal markers
        checker_factory: Creates the scene checker and the private checkers
            of unshared problems. Pass :class:`CollisionChecker` to use the
            bounding-box engine, which is exact for the axis-aligned cube
            scene only as long as the robot links stay axis-aligned too.

    Example:
        >>> mtp = MultiThreadedPlanning(create_point_robot(), scenario)
        >>> mtp.build_scene()
        >>> for i in range(4):
        ...     mtp.build_planning_thread()
        >>> mtp.start_planning()
        >>> mtp.wait_for_planners(timeout=60)
    """

    def __init__(
        self,
        robot: Model,
        config: Optional[ScenarioConfig] = None,
        visualization: Optional[VisualizationHooks] = None,
        joint_set: str = "All",
        link_set: str = "colModel",
        tcp: Optional[str] = "Visu",
        checker_factory: Callable[[], CollisionChecker] = PyBulletCollisionChecker,
    ):
        self.robot = robot
        self.config = config or ScenarioConfig()
        self.visualization = visualization or VisualizationHooks()
        self.joint_set_name = joint_set
        self.link_set_name = link_set
        self.tcp_name = tcp
        self.checker_factory = checker_factory

        # scene checker, also used by shared-checker threads
        self.collision_checker = checker_factory()
        self._private_checkers: list[CollisionChecker] = []
        self.rng = np.random.default_rng(self.config.scene.seed)
        self.environment: Optional[Model] = None

        self.robots: list[Model] = []
        self.cspaces: list[CSpaceSampled] = []
        self.planners: list[MotionPlanner] = []
        self.planning_threads: list[PlanningThread] = []
        self.optimize_threads: list[Optional[PathProcessingThread]] = []
        self.solutions: list[Optional[CSpacePath]] = []
        self.optimized_solutions: list[Optional[CSpacePath]] = []
        self.start_configs: list[np.ndarray] = []
        self.goal_configs: list[np.ndarray] = []
        self._reported_failures: set[int] = set()

        self.planners_started = False
        self.optimize_started = False

    # ------------------------------------------------------------------
    # Set-up
    # ------------------------------------------------------------------

    def build_scene(self) -> Model:
        """Place ``scene.obstacles`` random cubes in the playfield."""
        scene = self.config.scene
        self.visualization.clear_layer("obstacles")
        positions = random_obstacle_positions(
            scene.obstacles, scene.cube_size, scene.playfield_size, self.rng
        )
        _logger.info("building_scene", obstacles=scene.obstacles, cube_size=scene.cube_size)
        self.environment = create_obstacle_field(
            "Obstacles", positions, scene.cube_size, self.collision_checker
        )
        for i, position in enumerate(positions):
            self.visualization.add_marker("obstacles", f"Obstacle-{i}", position, (0.5, 0.5, 0.5))
        return self.environment

    def random_position(self) -> np.ndarray:
        """
        Random point on the boundary of the playfield cube: one coordinate
        sits on a face, the other two are uniform integers.
        """
        size = self.config.scene.playfield_size
        p = np.empty(3)
        p[0] = -size if self.rng.integers(2) == 0 else size
        p[1:] = self.rng.integers(-int(size), int(size), size=2)
        axis = self.rng.integers(3)
        p[[0, axis]] = p[[axis, 0]]
        return p

    def build_planning_threads(self, count: Optional[int] = None) -> None:
        for _ in range(count or self.config.threads):
            self.build_planning_thread()

    def build_planning_thread(self, private_checker: Optional[bool] = None) -> int:
        """
        Set up one planning problem.

        Args:
            private_checker: Give the problem its own collision checker and
                clone of the environment. Defaults to the inverse of
                ``config.shared_collision_checker``.

        Returns:
            Index of the new problem

        Raises:
            UsageError: If the scene is missing or planning is running
            MotionPlanningError: If no collision-free start or goal is found
        """
        if self.environment is None:
            raise UsageError("Build the scene before building planning threads")
        if self.planners_started:
            raise UsageError("Cannot add planning threads while planning")
        if private_checker is None:
            private_checker = not self.config.shared_collision_checker

        index = len(self.robots)
        checker = self.collision_checker
        if private_checker:
            checker = self.checker_factory()
            self._private_checkers.append(checker)
        robot = self.robot.clone(f"{self.robot.name}_{index}", checker)
        robot.add_pose_listener(self.visualization.notify_pose_changed)
        joint_set = robot.get_joint_set(self.joint_set_name)

        cdm = CDManager(robot.collision_checker)
        cdm.add_collision_model(robot.get_link_set(self.link_set_name))
        environment = self.environment
        if private_checker:
            environment = self.environment.clone("Cloned Environment", checker)
        cdm.add_collision_model(environment)
        for a, b in self.config.robot_pairs:
            cdm.add_collision_model_pair(robot.get_link_set(a), robot.get_link_set(b))

        planner_cfg = self.config.planner
        cspace = CSpaceSampled(
            joint_set,
            cdm,
            planner_cfg.sampling_size,
            planner_cfg.dcd_sampling_size,
            seed=int(self.rng.integers(2**31)),
        )
        if not private_checker:
            cspace.exclusive_robot_access(True)
        planner = self._create_planner(cspace, index)

        _logger.info(
            "building_planning_thread",
            index=index,
            private_checker=private_checker,
            faces=robot.get_num_faces(),
        )

        robot.update_visualization = False
        start = self._sample_valid(cspace, "start")
        goal = self._sample_valid(cspace, "goal")
        planner.set_start(start)
        planner.set_goal(goal)
        robot.update_visualization = True

        self.robots.append(robot)
        self.cspaces.append(cspace)
        self.planners.append(planner)
        self.planning_threads.append(PlanningThread(planner, f"planning-{index}"))
        self.optimize_threads.append(None)
        self.solutions.append(None)
        self.optimized_solutions.append(None)
        self.start_configs.append(start)
        self.goal_configs.append(goal)

        self._add_start_goal_markers(index, robot, joint_set, start, goal)
        return index

    def _create_planner(self, cspace: CSpaceSampled, index: int) -> MotionPlanner:
        cfg = self.config.planner
        common = dict(
            extend_mode=ExtendMode(cfg.extend_mode),
            extend_mode_goal=ExtendMode(cfg.extend_mode_goal),
            name=f"{cfg.algorithm}_{index}",
            max_iterations=cfg.max_iterations,
            max_time=cfg.max_time,
        )
        if cfg.algorithm == "rrt":
            return Rrt(cspace, goal_probability=cfg.goal_probability, **common)
        return BiRrt(cspace, **common)

    def _sample_valid(self, cspace: CSpaceSampled, what: str) -> np.ndarray:
        """Reject-and-resample until a collision-free configuration is found."""
        for attempt in range(self.config.max_sample_attempts):
            if cspace.dimension == 3:
                q = cspace.joint_set.clamp(self.random_position())
            else:
                q = cspace.random_configuration()
            if cspace.is_valid(q):
                _logger.debug("sampled_configuration", kind=what, attempts=attempt + 1, config=q.tolist())
                return q
        raise MotionPlanningError(
            f"No collision-free {what} configuration found",
            details={"attempts": self.config.max_sample_attempts},
        )

    def _add_start_goal_markers(self, index, robot, joint_set, start, goal) -> None:
        if not self.tcp_name or not robot.has_frame(self.tcp_name):
            return
        frame = robot.get_frame(self.tcp_name)
        joint_set.set_joint_values(start)
        start_position = frame.global_position
        joint_set.set_joint_values(goal)
        goal_position = frame.global_position
        self.visualization.add_marker("startgoal", f"start-point-{index}", start_position, (1.0, 0.0, 0.0), f"start-{index}")
        self.visualization.add_marker("startgoal", f"goal-point-{index}", goal_position, (0.0, 0.0, 1.0), f"goal-{index}")

    # ------------------------------------------------------------------
    # Planning
    # ------------------------------------------------------------------

    def start_planning(self) -> None:
        if self.planners_started:
            _logger.warning("planning_already_started")
            return
        _logger.info("starting_planning_threads", threads=len(self.planning_threads))
        for robot in self.robots:
            robot.update_visualization = False
        for thread in self.planning_threads:
            thread.start()
        self.planners_started = True

    def stop_planning(self) -> None:
        _logger.info("stopping_planning_threads", threads=len(self.planning_threads))
        for thread in self.planning_threads:
            thread.stop()
        for robot in self.robots:
            robot.update_visualization = True
        self.planners_started = False

    def check_planning_threads(self) -> list[int]:
        """
        Harvest the solutions of finished planning threads.

        Each solution is fetched exactly once; later calls skip problems
        whose solution is already set.

        Returns:
            Indices harvested by this call
        """
        harvested: list[int] = []
        for i, thread in enumerate(self.planning_threads):
            if thread.is_running() or self.solutions[i] is not None:
                continue
            solution = self.planners[i].get_solution()
            if solution is None:
                if i not in self._reported_failures and (self.planners_started or thread.cancelled):
                    _logger.info("no_solution", thread=i)
                    self._reported_failures.add(i)
                continue
            self.solutions[i] = solution.clone()
            harvested.append(i)
            _logger.info("solution_fetched", thread=i, points=solution.num_points, length=round(solution.length(), 3))
            self.visualization.render_path("solution", f"solution-orig-{i}", self.solutions[i])
            self.visualization.render_tree("solution", f"tree-{i}", self.planners[i].get_tree())
        return harvested

    def get_thread_count(self) -> tuple[int, int]:
        """(working, idle) planning threads."""
        working = sum(1 for t in self.planning_threads if t.is_running())
        return working, len(self.planning_threads) - working

    def wait_for_planners(self, timeout: Optional[float] = None, poll_interval: float = 0.05) -> bool:
        """
        Poll until every planning thread is idle, harvesting solutions on the
        way. Returns False if the timeout expired first.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            self.check_planning_threads()
            if self.get_thread_count()[0] == 0:
                return True
            if deadline is not None and time.monotonic() > deadline:
                return False
            time.sleep(poll_interval)

    # ------------------------------------------------------------------
    # Path processing
    # ------------------------------------------------------------------

    def start_optimizing(self) -> int:
        """
        Start a path-processing thread for every harvested solution.

        Returns:
            Number of started threads (0 if planning is still running)
        """
        if self.optimize_started:
            _logger.warning("optimizing_already_started")
            return 0
        if any(t.is_running() for t in self.planning_threads):
            _logger.warning("planning_not_finished")
            return 0
        self.check_planning_threads()

        started = 0
        for robot in self.robots:
            robot.update_visualization = False
        for i, solution in enumerate(self.solutions):
            if solution is None:
                continue
            processor = ShortcutProcessor(solution, self.cspaces[i], seed=int(self.rng.integers(2**31)))
            thread = PathProcessingThread(processor, f"processing-{i}")
            self.optimize_threads[i] = thread
            self.optimized_solutions[i] = None
            thread.start(self.config.shortcut.optimize_steps, self.config.shortcut.prune_waypoints)
            started += 1
        _logger.info("starting_optimize_threads", threads=started)
        self.optimize_started = True
        return started

    def stop_optimizing(self) -> None:
        if not self.optimize_started:
            _logger.warning("optimizing_not_started")
            return
        for thread in self.optimize_threads:
            if thread is not None:
                thread.stop()
        for robot in self.robots:
            robot.update_visualization = True
        self.optimize_started = False

    def check_optimize_threads(self) -> list[int]:
        """Harvest processed paths of finished processing threads, once each."""
        harvested: list[int] = []
        for i, thread in enumerate(self.optimize_threads):
            if thread is None or thread.is_running() or self.optimized_solutions[i] is not None:
                continue
            path = thread.get_processed_path()
            if path is None:
                continue
            self.optimized_solutions[i] = path.clone()
            harvested.append(i)
            _logger.info("optimized_solution_fetched", thread=i, points=path.num_points, length=round(path.length(), 3))
            self.visualization.render_path("solution", f"solution-optimized-{i}", path, color="green")
        return harvested

    def get_optimize_thread_count(self) -> tuple[int, int]:
        working = sum(1 for t in self.optimize_threads if t is not None and t.is_running())
        return working, len(self.optimize_threads) - working

    def wait_for_optimizers(self, timeout: Optional[float] = None, poll_interval: float = 0.05) -> bool:
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            self.check_optimize_threads()
            if self.get_optimize_thread_count()[0] == 0:
                return True
            if deadline is not None and time.monotonic() > deadline:
                return False
            time.sleep(poll_interval)

    # ------------------------------------------------------------------

    @property
    def thread_count(self) -> int:
        return len(self.planning_threads)

    @property
    def private_checkers(self) -> list[CollisionChecker]:
        return list(self._private_checkers)

    def reset(self) -> None:
        """
        Stop all workers and drop every planning problem. The scene is kept.

        Private checkers created for unshared problems are closed.
        """
        if self.planners_started:
            self.stop_planning()
        if self.optimize_started:
            self.stop_optimizing()
        for thread in self.planning_threads:
            thread.stop()
        self.robots.clear()
        self.cspaces.clear()
        self.planners.clear()
        self.planning_threads.clear()
        self.optimize_threads.clear()
        self.solutions.clear()
        self.optimized_solutions.clear()
        self.start_configs.clear()
        self.goal_configs.clear()
        self._reported_failures.clear()
        self.visualization.clear_layer("solution")
        self.visualization.clear_layer("startgoal")
        for checker in self._private_checkers:
            checker.close()
        if self._private_checkers:
            _logger.debug("private_checkers_closed", count=len(self._private_checkers))
        self._private_checkers.clear()

    def close(self) -> None:
        """Reset and release the scene checker. The instance is unusable afterwards."""
        self.reset()
        self.environment = None
        self.collision_checker.close()

    def __enter__(self) -> "MultiThreadedPlanning":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()
