"""
Orientation constraint.
"""

from typing import Optional

import numpy as np

from jointspace.ik.constraints.base import Constraint
from jointspace.model import transforms
from jointspace.model.jacobian import Frame, compute_jacobian
from jointspace.model.node_sets import JointSet


class OrientationConstraint(Constraint):
    """
    Rotates an end-effector frame onto a target orientation.

    The error is the rotation vector (log map) taking the current orientation
    onto the target, in world coordinates. The function value is
    ``factor * |e|^2``; since ``de/dq = -J_rot`` the gradient is
    ``-2 * factor * e^T * J_rot``.

    Args:
        joint_set: Joints the constraint is differentiated by
        eef: End-effector frame. Defaults to the joint set's TCP.
        target: Target rotation, as 3x3 matrix or 4x4 pose
        tolerance: Maximum remaining angle in radians
        soft: Register the function as soft instead of hard
    """

    def __init__(
        self,
        joint_set: JointSet,
        eef: Optional[Frame],
        target: np.ndarray,
        tolerance: float = 1e-2,
        soft: bool = False,
    ):
        super().__init__(joint_set)
        self.eef = eef if eef is not None else joint_set.tcp
        target = np.asarray(target, dtype=float)
        self.target = target[:3, :3].copy()
        self.tolerance = tolerance
        self.add_optimization_function(0, soft)

    def error(self) -> np.ndarray:
        return transforms.rotation_error(self.eef.global_pose[:3, :3], self.target)

    def optimization_function(self, id: int) -> float:
        e = self.error()
        return self._factor * float(e @ e)

    def optimization_gradient(self, id: int) -> np.ndarray:
        J = compute_jacobian(self.joint_set, self.eef)[3:]
        return -2.0 * self._factor * self.error() @ J

    def check_tolerances(self) -> bool:
        return bool(np.linalg.norm(self.error()) <= self.tolerance)

    @property
    def constraint_type(self) -> str:
        return f"Orientation({self.eef.name})"
