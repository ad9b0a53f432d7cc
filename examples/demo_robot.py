"""
Demonstration of jointspace robot models and inverse kinematics.

This script shows how to:
1. Load a robot from URDF with a configuration
2. Read joint limits and named joint sets
3. Move joints and read the tool position
4. Solve a position IK query with a joint-limit preference
"""

import math
from pathlib import Path

import numpy as np

from jointspace.core.config import JointSetConfig, RobotConfig
from jointspace.core.robot import RobotLoader
from jointspace.ik import ConstrainedOptimizationIK, JointLimitAvoidanceConstraint, PositionConstraint

CONFIG_DIR = Path(__file__).parent.parent / "config" / "robots"


def main():
    """Run robot demonstration."""
    print("=" * 60)
    print("jointspace Robot Demo")
    print("=" * 60)

    # 1. Load the robot
    print("\n1. Loading two-link arm from URDF")
    config = RobotConfig(
        name="two_link",
        urdf_path=str(CONFIG_DIR / "two_link.urdf"),
        joint_sets={"arm": JointSetConfig(joints=["shoulder", "elbow"], tcp="tool0")},
        joint_limits={"elbow": {"min": -2.5, "max": 2.5}},
    )
    model = RobotLoader.load_from_config(config)
    arm = model.get_joint_set("arm")

    print(f"   [OK] Loaded model: {model.name}")
    print(f"   [OK] {len(model.joints)} joints, {len(model.links)} links")
    print(f"   [OK] {model.get_num_faces()} collision triangles")

    # 2. Joint limits
    print("\n2. Joint limits (degrees)")
    for joint in (model.joint(name) for name in arm.names):
        print(f"     {joint.name}: [{math.degrees(joint.limit_low):6.1f}, {math.degrees(joint.limit_high):6.1f}]")

    # 3. Forward kinematics
    print("\n3. Forward kinematics")
    print(f"   Home tool position: {np.round(arm.tcp.global_position, 3).tolist()}")
    arm.set_joint_values([math.radians(45), math.radians(-90)])
    print(f"   Tool at (45, -90) deg: {np.round(arm.tcp.global_position, 3).tolist()}")
    arm.set_joint_values([0.0, 3.0])
    print(f"   Elbow request of 3.0 rad clamped to {arm.get_joint_values()[1]:.2f}")

    # 4. Inverse kinematics
    print("\n4. Inverse kinematics")
    target = [0.5, 1.2, 0.1]
    ik = ConstrainedOptimizationIK(arm, seed=0)
    ik.add_constraint(PositionConstraint(arm, arm.tcp, target))
    ik.add_constraint(JointLimitAvoidanceConstraint(arm))
    ik.initialize()
    if ik.solve():
        values = [f"{math.degrees(v):.1f}" for v in arm.get_joint_values()]
        print(f"   [OK] Target {target} reached after {ik.attempts_used} attempt(s)")
        print(f"   Joint values (deg): {values}")
    else:
        print(f"   [FAIL] No solution, remaining error {ik.best_error:.3g}")

    print("\n" + "=" * 60)
    print("[SUCCESS] Robot demo completed successfully!")
    print("=" * 60)


if __name__ == "__main__":
    main()
