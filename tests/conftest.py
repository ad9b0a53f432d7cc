"""
Pytest configuration and shared fixtures.
"""

import tempfile
from pathlib import Path

import numpy as np
import pytest

from jointspace.collision.cd_manager import CDManager
from jointspace.collision.checker import CollisionChecker
from jointspace.collision.pybullet_checker import PyBulletCollisionChecker
from jointspace.model import transforms
from jointspace.model.factory import create_box_obstacle, create_planar_arm, create_point_robot
from jointspace.planning.cspace import CSpaceSampled

PROJECT_ROOT = Path(__file__).parent.parent
TWO_LINK_URDF = PROJECT_ROOT / "config" / "robots" / "two_link.urdf"


@pytest.fixture
def temp_dir():
    """Provide a temporary directory that is cleaned up after the test."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def sample_config_dir(temp_dir):
    """Create a sample configuration directory structure."""
    config_dir = temp_dir / "config"
    (config_dir / "robots").mkdir(parents=True)
    (config_dir / "scenarios").mkdir(parents=True)

    robot_config = """
robot:
  name: "Test Robot"
  urdf_path: "robots/test.urdf"
  tool_frame: "tool0"

joint_sets:
  arm:
    joints: [joint_1, joint_2]
    tcp: tool0

link_sets:
  body: [link_1, link_2]

limits:
  joints:
    joint_1:
      min: -1.5
      max: 1.5
"""
    (config_dir / "robots" / "test_robot.yaml").write_text(robot_config)

    scenario_config = """
scenario:
  threads: 2
  shared_collision_checker: true

  planner:
    algorithm: rrt
    sampling_size: 20.0
    dcd_sampling_size: 1.0

  scene:
    obstacles: 10
    seed: 3
"""
    (config_dir / "scenarios" / "small.yaml").write_text(scenario_config)

    return config_dir


@pytest.fixture
def checker():
    """Bounding-box engine, exact for the axis-aligned box scenes it is used with."""
    return CollisionChecker("test")


@pytest.fixture
def bullet_checker():
    """PyBullet engine with its own physics client, closed after the test."""
    with PyBulletCollisionChecker("test_bullet") as checker:
        yield checker


@pytest.fixture
def planar_arm(bullet_checker):
    """Two-link planar arm with unit link lengths. The links rotate, so it uses PyBullet."""
    return create_planar_arm(2, 1.0, checker=bullet_checker)


@pytest.fixture
def arm(planar_arm):
    """Joint set of the two-link planar arm."""
    return planar_arm.get_joint_set("arm")


@pytest.fixture
def point_robot(checker):
    """Cartesian point robot moving inside +-10 per axis."""
    return create_point_robot(checker=checker, workspace=10.0, body_size=1.0)


@pytest.fixture
def free_cspace(point_robot):
    """Obstacle-free configuration space of the point robot."""
    cdm = CDManager(point_robot.collision_checker)
    cdm.add_collision_model(point_robot.get_link_set("colModel"))
    return CSpaceSampled(point_robot.get_joint_set("All"), cdm, 1.0, 0.25, seed=1)


@pytest.fixture
def wall_cspace(point_robot):
    """
    Configuration space of the point robot with a wall at x = 0. The robot
    body passes only with its center above y = 4.5.
    """
    wall = create_box_obstacle(
        "wall",
        [1.0, 14.0, 20.0],
        point_robot.collision_checker,
        pose=transforms.translation([0.0, -3.0, 0.0]),
    )
    cdm = CDManager(point_robot.collision_checker)
    cdm.add_collision_model(point_robot.get_link_set("colModel"))
    cdm.add_collision_model(wall)
    return CSpaceSampled(point_robot.get_joint_set("All"), cdm, 1.0, 0.25, seed=2)


@pytest.fixture
def rng():
    return np.random.default_rng(0)


@pytest.fixture
def project_root():
    return PROJECT_ROOT


@pytest.fixture
def two_link_urdf():
    """URDF of a two-link arm shipped with the example configuration."""
    return TWO_LINK_URDF
