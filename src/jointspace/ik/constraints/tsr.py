"""
Task space region constraint.
"""

from typing import Optional

import numpy as np

from jointspace.ik.constraints.base import Constraint
from jointspace.model import transforms
from jointspace.model.jacobian import Frame, compute_jacobian
from jointspace.model.node_sets import JointSet


class TSRConstraint(Constraint):
    """
    Keeps an end-effector pose inside a 6-DoF box of allowed poses.

    The end-effector pose (with ``eef_offset`` applied) is expressed relative
    to ``transformation`` as ``[x, y, z, roll, pitch, yaw]``. Each component is
    clamped into its interval from ``bounds``; the error is the difference
    between the clamped pose and the current pose, both in world
    coordinates. Components already inside their interval contribute no
    error, and their Jacobian rows are zeroed, so the end-effector is driven
    toward the region rather than toward a single pose.

    Args:
        joint_set: Joints the constraint is differentiated by
        eef: End-effector frame. Defaults to the joint set's TCP.
        transformation: Reference frame of the region
        bounds: 6x2 array of (low, high) per pose component
        eef_offset: Offset applied to the end-effector pose
        tolerance_translation: Allowed translational error
        tolerance_rotation: Allowed rotational error (radians)
        step_size: Scale applied to the error vector
        soft: Register the function as soft instead of hard
    """

    def __init__(
        self,
        joint_set: JointSet,
        eef: Optional[Frame],
        transformation: np.ndarray,
        bounds: np.ndarray,
        eef_offset: Optional[np.ndarray] = None,
        tolerance_translation: float = 1e-3,
        tolerance_rotation: float = 1e-2,
        step_size: float = 1.0,
        soft: bool = False,
    ):
        super().__init__(joint_set)
        self.eef = eef if eef is not None else joint_set.tcp
        self.transformation = np.asarray(transformation, dtype=float)
        self.bounds = np.asarray(bounds, dtype=float).reshape(6, 2)
        self.eef_offset = transforms.identity() if eef_offset is None else np.asarray(eef_offset, dtype=float)
        self.tolerance_translation = tolerance_translation
        self.tolerance_rotation = tolerance_rotation
        self.step_size = step_size
        self.add_optimization_function(0, soft)

    def error(self, step_size: Optional[float] = None) -> np.ndarray:
        step = self.step_size if step_size is None else step_size
        eef_global = self.eef.global_pose @ self.eef_offset
        relative = transforms.to_xyz_rpy(transforms.inverse(self.transformation) @ eef_global)

        clamped = np.clip(relative, self.bounds[:, 0], self.bounds[:, 1])
        inside = clamped == relative

        target_global = transforms.to_xyz_rpy(
            self.transformation @ transforms.from_xyz_rpy(clamped[:3], clamped[3:])
        )
        dx = target_global - transforms.to_xyz_rpy(eef_global)
        # wrap angle differences
        dx[3:] = (dx[3:] + np.pi) % (2.0 * np.pi) - np.pi
        dx[inside] = 0.0
        return dx * step

    def jacobian(self) -> np.ndarray:
        """End-effector Jacobian with the rows of satisfied components zeroed."""
        J = compute_jacobian(self.joint_set, self.eef)
        J[self.error(1.0) == 0.0] = 0.0
        return J

    def optimization_function(self, id: int) -> float:
        e = self.error()
        return self._factor * float(e @ e)

    def optimization_gradient(self, id: int) -> np.ndarray:
        return -2.0 * self._factor * self.error() @ self.jacobian()

    def check_tolerances(self) -> bool:
        e = self.error(1.0)
        return bool(
            np.linalg.norm(e[:3]) <= self.tolerance_translation
            and np.linalg.norm(e[3:]) <= self.tolerance_rotation
        )

    @property
    def constraint_type(self) -> str:
        return f"TSR({self.eef.name})"
