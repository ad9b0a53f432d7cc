"""
Unit tests for the sampled configuration space.
"""

import threading
import time

import numpy as np
import pytest

from jointspace.collision.cd_manager import CDManager
from jointspace.collision.checker import CollisionChecker
from jointspace.collision.pybullet_checker import PyBulletCollisionChecker
from jointspace.core.exceptions import UsageError
from jointspace.model import transforms
from jointspace.model.factory import create_box_obstacle, create_point_robot
from jointspace.planning.cspace import CSpaceSampled


class OverlapCounting:
    """Records how many collision queries are inside the engine at once."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._count_lock = threading.Lock()
        self.active = 0
        self.max_active = 0

    def check_collision(self, set_a, set_b):
        with self._count_lock:
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        try:
            time.sleep(0.0005)
            return super().check_collision(set_a, set_b)
        finally:
            with self._count_lock:
                self.active -= 1


class CountingBoxChecker(OverlapCounting, CollisionChecker):
    pass


class CountingBulletChecker(OverlapCounting, PyBulletCollisionChecker):
    pass


class TestCSpaceSampled:
    """Tests for CSpaceSampled."""

    def test_dimension_and_bounds(self, free_cspace):
        assert free_cspace.dimension == 3
        assert free_cspace.low == pytest.approx([-10.0] * 3)
        assert free_cspace.high == pytest.approx([10.0] * 3)

    def test_random_configuration_in_bounds(self, free_cspace):
        for _ in range(50):
            assert free_cspace.is_in_bounds(free_cspace.random_configuration())

    def test_seeded_samples_repeat(self, point_robot):
        cdm = CDManager(point_robot.collision_checker)
        joint_set = point_robot.get_joint_set("All")
        a = CSpaceSampled(joint_set, cdm, seed=5)
        b = CSpaceSampled(joint_set, cdm, seed=5)
        assert np.array_equal(a.random_configuration(), b.random_configuration())

    def test_distance_and_interpolation(self, free_cspace):
        assert free_cspace.distance([0, 0, 0], [3, 4, 0]) == pytest.approx(5.0)
        assert CSpaceSampled.interpolate([0, 0, 0], [2, 4, 6], 0.5) == pytest.approx([1, 2, 3])

    def test_invalid_arguments(self, point_robot):
        cdm = CDManager(point_robot.collision_checker)
        with pytest.raises(UsageError):
            CSpaceSampled(None, cdm)
        with pytest.raises(UsageError):
            CSpaceSampled(point_robot.get_joint_set("All"), cdm, sampling_size=0.0)
        with pytest.raises(UsageError):
            CSpaceSampled(point_robot.get_joint_set("All"), cdm, dcd_sampling_size=-1.0)


class TestValidity:
    """Tests for configuration and edge validity."""

    def test_configuration_validity(self, wall_cspace):
        assert wall_cspace.is_valid([-5.0, 0.0, 0.0])
        assert not wall_cspace.is_valid([0.0, 0.0, 0.0])
        assert wall_cspace.is_valid([0.0, 6.0, 0.0])

    def test_out_of_bounds_is_invalid(self, free_cspace):
        assert not free_cspace.is_valid([11.0, 0.0, 0.0])
        assert not free_cspace.is_valid([0.0, 0.0])

    def test_validity_check_moves_robot(self, free_cspace):
        free_cspace.is_valid([3.0, -2.0, 1.0])
        assert free_cspace.joint_set.get_joint_values() == pytest.approx([3.0, -2.0, 1.0])
        assert free_cspace.collision_checks == 1

    def test_edge_validity(self, wall_cspace):
        assert not wall_cspace.is_path_valid([-5.0, 0.0, 0.0], [5.0, 0.0, 0.0])
        assert wall_cspace.is_path_valid([-5.0, 8.0, 0.0], [5.0, 8.0, 0.0])

    def test_edge_start_is_not_checked(self, wall_cspace):
        """Only the points after the start of an edge are tested."""
        assert not wall_cspace.is_valid([0.0, 4.4, 0.0])
        assert wall_cspace.is_path_valid([0.0, 4.4, 0.0], [0.0, 4.6, 0.0])

    def test_dcd_steps(self, free_cspace):
        assert free_cspace.dcd_steps([-5, 0, 0], [5, 0, 0]) == 40
        assert free_cspace.dcd_steps([1, 1, 1], [1, 1, 1]) == 1


class TestExclusiveAccess:
    """Tests for serialized robot access."""

    def test_disabled_by_default(self, free_cspace):
        assert not free_cspace.has_exclusive_robot_access

    def test_lock_is_shared_between_spaces(self, free_cspace, wall_cspace):
        free_cspace.exclusive_robot_access(True)
        wall_cspace.exclusive_robot_access(True)
        assert free_cspace._exclusive_lock is wall_cspace._exclusive_lock

    def test_queries_wait_for_lock(self, free_cspace):
        free_cspace.exclusive_robot_access(True)
        results = []

        CSpaceSampled._exclusive_lock.acquire()
        try:
            worker = threading.Thread(target=lambda: results.append(free_cspace.is_valid([1.0, 1.0, 1.0])))
            worker.start()
            worker.join(0.2)
            assert worker.is_alive()
            assert results == []
        finally:
            CSpaceSampled._exclusive_lock.release()

        worker.join(5.0)
        assert results == [True]

    @pytest.mark.parametrize("engine", [CountingBoxChecker, CountingBulletChecker])
    def test_shared_checker_queries_are_serialized(self, engine):
        """Two spaces over clones in one checker never query it at the same time."""
        with engine("shared") as shared:
            template = create_point_robot(checker=shared, workspace=10.0, body_size=1.0)
            wall = create_box_obstacle(
                "wall", [1.0, 14.0, 20.0], shared, pose=transforms.translation([0.0, -3.0, 0.0])
            )
            spaces = []
            for i in range(2):
                robot = template.clone(f"robot_{i}", shared)
                cdm = CDManager(shared)
                cdm.add_collision_model(robot.get_link_set("colModel"))
                cdm.add_collision_model(wall)
                cspace = CSpaceSampled(robot.get_joint_set("All"), cdm, 1.0, 0.25, seed=i)
                cspace.exclusive_robot_access(True)
                spaces.append(cspace)

            # one configuration inside the wall, one above it, then random ones
            random_configs = np.random.default_rng(0).uniform(-9.0, 9.0, size=(100, 3))
            configs = np.vstack([[[0.0, 0.0, 0.0], [0.0, 8.0, 0.0]], random_configs])
            results = [[], []]

            def work(i):
                for config in configs:
                    results[i].append(spaces[i].is_valid(config))

            workers = [threading.Thread(target=work, args=(i,)) for i in range(2)]
            for worker in workers:
                worker.start()
            for worker in workers:
                worker.join(60.0)

            assert shared.max_active == 1
            expected = [spaces[0].is_valid(config) for config in configs]
            assert expected[:2] == [False, True]
            assert results[0] == expected
            assert results[1] == expected
