"""
Unit tests for the PyBullet collision engine.
"""

import gc
import math

import pybullet as p
import pytest

from jointspace.collision.cd_manager import CDManager
from jointspace.collision.checker import CollisionChecker
from jointspace.collision.pybullet_checker import PyBulletCollisionChecker
from jointspace.model import transforms
from jointspace.model.factory import create_box_obstacle, create_planar_arm, create_point_robot
from jointspace.model.model import Model


@pytest.fixture
def bullet():
    checker = PyBulletCollisionChecker("bullet")
    yield checker
    checker.close()


def diagonal_arm_next_to_box(checker):
    """One-link arm turned to 45 degrees and a small box beside the link, clear of it."""
    arm = create_planar_arm(1, 1.0, checker=checker)
    arm.get_joint_set("arm").set_joint_values([math.pi / 4])
    box = create_box_obstacle("box", 0.1, checker, pose=transforms.translation([0.2, 0.6, 0.0]))
    cdm = CDManager(checker)
    cdm.add_collision_model(arm)
    cdm.add_collision_model(box)
    return cdm


class TestPyBulletCollisionChecker:
    """Tests for PyBulletCollisionChecker."""

    def test_private_client(self, bullet):
        other = PyBulletCollisionChecker()
        try:
            assert other.client_id != bullet.client_id
        finally:
            other.close()

    def test_distance_between_boxes(self, bullet):
        a = create_box_obstacle("a", 1.0, bullet)
        b = create_box_obstacle("b", 1.0, bullet, pose=transforms.translation([3.0, 0.0, 0.0]))
        result = bullet.calculate_distance(a.get_link_set(), b.get_link_set())
        assert result.distance == pytest.approx(2.0, abs=0.05)
        assert result.point_a[0] == pytest.approx(0.5, abs=0.05)
        assert result.point_b[0] == pytest.approx(2.5, abs=0.05)

    def test_collision_follows_pose(self, bullet):
        a = create_box_obstacle("a", 1.0, bullet)
        b = create_box_obstacle("b", 1.0, bullet, pose=transforms.translation([3.0, 0.0, 0.0]))
        cdm = CDManager(bullet)
        cdm.add_collision_model(a)
        cdm.add_collision_model(b)
        assert not cdm.is_in_collision()

        b.global_pose = transforms.translation([0.5, 0.0, 0.0])
        assert cdm.is_in_collision()

    def test_robot_motion(self, bullet):
        robot = create_point_robot(checker=bullet, workspace=10.0, body_size=1.0)
        wall = create_box_obstacle("wall", 2.0, bullet, pose=transforms.translation([5.0, 0.0, 0.0]))
        cdm = CDManager(bullet)
        links = cdm.add_collision_model(robot.get_link_set("colModel"))
        cdm.add_collision_model(wall)
        assert not cdm.is_in_collision(links)
        robot.get_joint_set("All").set_joint_values([4.5, 0.0, 0.0])
        assert cdm.is_in_collision(links)


class TestRotatedLinks:
    """A rotated link is tested against its real shape, not its bounding box."""

    def test_diagonal_link_is_clear(self, bullet):
        cdm = diagonal_arm_next_to_box(bullet)
        assert not cdm.is_in_collision()
        # 0.4 / sqrt(2) from the link axis, minus half the link width and the box corner
        expected = 0.4 / math.sqrt(2.0) - 0.05 - 0.1 / math.sqrt(2.0)
        assert cdm.get_distance() == pytest.approx(expected, abs=0.01)

    def test_bounding_box_engine_is_conservative(self):
        cdm = diagonal_arm_next_to_box(CollisionChecker("boxes"))
        assert cdm.is_in_collision()
        assert cdm.get_distance() == pytest.approx(-0.1)

    def test_model_defaults_to_pybullet(self):
        model = Model("default_engine")
        with model.collision_checker as checker:
            assert isinstance(checker, PyBulletCollisionChecker)
            assert checker.is_connected

    def test_factory_models_default_to_pybullet(self):
        arm = create_planar_arm(1)
        try:
            assert isinstance(arm.collision_checker, PyBulletCollisionChecker)
        finally:
            arm.collision_checker.close()


class TestClientLifecycle:
    """The physics client is released exactly once."""

    def test_close_disconnects(self):
        checker = PyBulletCollisionChecker()
        client_id = checker.client_id
        assert p.isConnected(physicsClientId=client_id)
        checker.close()
        assert not p.isConnected(physicsClientId=client_id)
        assert checker.client_id is None
        assert not checker.is_connected

    def test_close_twice(self):
        checker = PyBulletCollisionChecker()
        checker.close()
        checker.close()
        assert checker.client_id is None

    def test_context_manager(self):
        with PyBulletCollisionChecker() as checker:
            client_id = checker.client_id
            create_box_obstacle("box", 1.0, checker)
            assert p.isConnected(physicsClientId=client_id)
        assert not p.isConnected(physicsClientId=client_id)

    def test_context_manager_closes_on_error(self):
        with pytest.raises(RuntimeError):
            with PyBulletCollisionChecker() as checker:
                client_id = checker.client_id
                raise RuntimeError("boom")
        assert not p.isConnected(physicsClientId=client_id)

    def test_garbage_collected_checker_disconnects(self):
        checker = PyBulletCollisionChecker()
        client_id = checker.client_id
        del checker
        gc.collect()
        assert not p.isConnected(physicsClientId=client_id)

    def test_garbage_collected_model_releases_default_checker(self):
        model = create_planar_arm(2)
        client_id = model.collision_checker.client_id
        del model
        gc.collect()
        assert not p.isConnected(physicsClientId=client_id)

    def test_bounding_box_engine_close_is_a_no_op(self):
        with CollisionChecker("boxes") as checker:
            create_box_obstacle("box", 1.0, checker)
        assert checker.num_registered == 1
