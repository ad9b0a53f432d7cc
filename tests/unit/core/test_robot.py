"""
Tests for robot module.
"""

from unittest.mock import MagicMock

import numpy as np
import pytest
from compas.geometry import Frame
from compas_robots.model import Joint

from jointspace.core.config import JointSetConfig, RobotConfig
from jointspace.core.exceptions import RobotError
from jointspace.core.robot import DEFAULT_JOINT_SET, RobotLoader, frame_to_matrix
from jointspace.model.nodes import ModelJointFixed, ModelJointRevolute

MIMIC_URDF = """<?xml version="1.0"?>
<robot name="gripper">
  <link name="palm"/>
  <link name="finger_left"/>
  <link name="finger_right"/>
  <joint name="left" type="prismatic">
    <parent link="palm"/>
    <child link="finger_left"/>
    <axis xyz="0 1 0"/>
    <limit lower="0" upper="0.04" effort="1" velocity="1"/>
  </joint>
  <joint name="right" type="prismatic">
    <parent link="palm"/>
    <child link="finger_right"/>
    <axis xyz="0 -1 0"/>
    <limit lower="0" upper="0.04" effort="1" velocity="1"/>
    <mimic joint="left" multiplier="1.0"/>
  </joint>
</robot>
"""

MESH_URDF = """<?xml version="1.0"?>
<robot name="meshy">
  <link name="base">
    <collision>
      <geometry><mesh filename="package://meshy/meshes/missing.stl"/></geometry>
    </collision>
  </link>
  <link name="head">
    <collision>
      <geometry><sphere radius="0.1"/></geometry>
    </collision>
  </link>
  <joint name="neck" type="continuous">
    <parent link="base"/>
    <child link="head"/>
    <axis xyz="0 0 1"/>
  </joint>
</robot>
"""


@pytest.fixture
def two_link_config(two_link_urdf):
    return RobotConfig(
        name="two_link",
        urdf_path=str(two_link_urdf),
        joint_sets={"arm": JointSetConfig(joints=["shoulder", "elbow"], tcp="tool0")},
        link_sets={"arm_links": ["upper_arm", "forearm"]},
        joint_limits={"elbow": {"min": -2.5, "max": 2.5}, "wrist": {"min": 0.0}},
    )


class TestRobotLoader:
    """Tests for RobotLoader."""

    def test_load_nonexistent_urdf(self):
        """Test loading non-existent URDF raises error."""
        with pytest.raises(RobotError, match="URDF file not found"):
            RobotLoader.load_from_urdf("/nonexistent/path/robot.urdf")

    def test_load_malformed_urdf(self, temp_dir):
        path = temp_dir / "broken.urdf"
        path.write_text("<robot name='broken'><link")
        with pytest.raises(RobotError, match="Failed to load URDF"):
            RobotLoader.load_from_urdf(path)

    def test_load_without_urdf_path(self):
        with pytest.raises(RobotError, match="no URDF path"):
            RobotLoader.load_from_config(RobotConfig(name="nothing"))

    def test_structure(self, two_link_urdf):
        """Test URDF links and joints become model nodes in tree order."""
        model = RobotLoader.load(two_link_urdf)
        assert model.name == "two_link"
        assert [j.name for j in model.joints] == ["shoulder", "elbow", "tool_joint"]
        assert [l.name for l in model.links] == ["base_link", "upper_arm", "forearm", "tool0"]
        assert isinstance(model.joint("shoulder"), ModelJointRevolute)
        assert isinstance(model.joint("tool_joint"), ModelJointFixed)

    def test_default_joint_set(self, two_link_urdf):
        model = RobotLoader.load(two_link_urdf)
        assert model.get_joint_set(DEFAULT_JOINT_SET).names == ["shoulder", "elbow"]

    def test_limits_and_mass(self, two_link_urdf):
        model = RobotLoader.load(two_link_urdf)
        shoulder = model.joint("shoulder")
        assert (shoulder.limit_low, shoulder.limit_high) == pytest.approx((-3.14, 3.14))
        upper_arm = model.node("upper_arm")
        assert upper_arm.mass == pytest.approx(1.0)
        assert upper_arm.com == pytest.approx([0.5, 0.0, 0.0])

    def test_forward_kinematics(self, two_link_urdf):
        model = RobotLoader.load(two_link_urdf)
        tool = model.get_frame("tool0")
        assert tool.global_position == pytest.approx([2.0, 0.0, 0.1])
        model.set_joint_values({"shoulder": np.pi / 2})
        assert tool.global_position == pytest.approx([0.0, 2.0, 0.1])

    def test_collision_geometry(self, two_link_urdf):
        """Collision origins are baked into the link meshes."""
        model = RobotLoader.load(two_link_urdf)
        low, high = model.node("upper_arm").collision_model.aabb()
        assert low == pytest.approx([0.0, -0.05, 0.05], abs=1e-6)
        assert high == pytest.approx([1.0, 0.05, 0.15], abs=1e-6)
        low, high = model.node("forearm").collision_model.aabb()
        assert low[0] == pytest.approx(1.0, abs=1e-4)
        assert high[0] == pytest.approx(2.0, abs=1e-4)
        assert model.node("tool0").collision_model is None

    def test_apply_config(self, two_link_config):
        """Test joint sets, link sets and limit overrides from configuration."""
        model = RobotLoader.load_from_config(two_link_config)
        arm = model.get_joint_set("arm")
        assert arm.names == ["shoulder", "elbow"]
        assert arm.tcp is model.get_frame("tool0")
        assert model.get_link_set("arm_links").names == ["upper_arm", "forearm"]
        elbow = model.joint("elbow")
        assert (elbow.limit_low, elbow.limit_high) == pytest.approx((-2.5, 2.5))
        assert DEFAULT_JOINT_SET not in model.joint_sets

    def test_mimic_joints(self, temp_dir):
        path = temp_dir / "gripper.urdf"
        path.write_text(MIMIC_URDF)
        model = RobotLoader.load(path)
        assert model.joint("left").propagated_joint_values == {"right": 1.0}
        assert model.get_joint_set(DEFAULT_JOINT_SET).names == ["left"]
        model.set_joint_values({"left": 0.02})
        assert model.get_joint_value("right") == pytest.approx(0.02)

    def test_missing_mesh_is_skipped(self, temp_dir):
        path = temp_dir / "meshy.urdf"
        path.write_text(MESH_URDF)
        model = RobotLoader.load(path)
        assert model.node("base").collision_model is None
        assert model.node("head").collision_model is not None
        neck = model.joint("neck")
        assert (neck.limit_low, neck.limit_high) == pytest.approx((-np.pi, np.pi))

    def test_mesh_resolved_below_urdf(self, temp_dir):
        import trimesh

        (temp_dir / "meshes").mkdir()
        trimesh.creation.box(extents=[0.2, 0.2, 0.2]).export(str(temp_dir / "meshes" / "missing.stl"))
        path = temp_dir / "meshy.urdf"
        path.write_text(MESH_URDF)
        model = RobotLoader.load(path)
        assert model.node("base").collision_model.num_faces == 12

    def test_unsupported_joint_type(self):
        joint = MagicMock()
        joint.name = "free"
        joint.type = Joint.PLANAR
        joint.origin = None
        joint.limit = None
        joint.axis = None
        with pytest.raises(RobotError, match="Unsupported joint type"):
            RobotLoader._create_joint(joint)


class TestFrameToMatrix:
    """Tests for frame_to_matrix."""

    def test_none_is_identity(self):
        assert np.array_equal(frame_to_matrix(None), np.eye(4))

    def test_translation(self):
        matrix = frame_to_matrix(Frame([1.0, 2.0, 3.0], [1, 0, 0], [0, 1, 0]))
        assert matrix[:3, 3] == pytest.approx([1.0, 2.0, 3.0])
        assert matrix[:3, :3] == pytest.approx(np.eye(3))
