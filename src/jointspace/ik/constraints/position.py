"""
Position constraint.
"""

from typing import Optional, Sequence

import numpy as np

from jointspace.ik.constraints.base import CartesianSelection, Constraint
from jointspace.model.jacobian import Frame, compute_jacobian
from jointspace.model.node_sets import JointSet

_AXIS_MASKS = {
    CartesianSelection.X: np.array([1.0, 0.0, 0.0]),
    CartesianSelection.Y: np.array([0.0, 1.0, 0.0]),
    CartesianSelection.Z: np.array([0.0, 0.0, 1.0]),
    CartesianSelection.POSITION: np.ones(3),
    CartesianSelection.ALL: np.ones(3),
    CartesianSelection.ORIENTATION: np.zeros(3),
}


class PositionConstraint(Constraint):
    """
    Moves the origin of an end-effector frame onto a target point.

    The function value is ``factor * |d|^2`` with ``d`` the offset of the frame
    origin from the target, restricted to the selected axes. Its gradient is
    ``2 * factor * d^T * J_pos``.

    Args:
        joint_set: Joints the constraint is differentiated by
        eef: End-effector frame (node or attachment). Defaults to the joint
            set's TCP.
        target: Target point in world coordinates
        selection: Axes taken into account
        tolerance: Maximum remaining distance for :meth:`check_tolerances`
        soft: Register the function as soft instead of hard
    """

    def __init__(
        self,
        joint_set: JointSet,
        eef: Optional[Frame],
        target: Sequence[float],
        selection: CartesianSelection = CartesianSelection.ALL,
        tolerance: float = 1e-3,
        soft: bool = False,
    ):
        super().__init__(joint_set)
        self.eef = eef if eef is not None else joint_set.tcp
        self.target = np.asarray(target, dtype=float)[:3]
        self.selection = selection
        self.tolerance = tolerance
        self._mask = _AXIS_MASKS[selection]
        self.add_optimization_function(0, soft)

    def offset(self) -> np.ndarray:
        return (self.eef.global_position - self.target) * self._mask

    def optimization_function(self, id: int) -> float:
        d = self.offset()
        return self._factor * float(d @ d)

    def optimization_gradient(self, id: int) -> np.ndarray:
        J = compute_jacobian(self.joint_set, self.eef)[:3]
        return 2.0 * self._factor * self.offset() @ J

    def check_tolerances(self) -> bool:
        return bool(np.linalg.norm(self.offset()) <= self.tolerance)

    @property
    def constraint_type(self) -> str:
        return f"Position({self.eef.name})"
