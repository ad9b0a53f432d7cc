"""
Reference configuration and joint limit avoidance constraints.
"""

from typing import Optional, Sequence

import numpy as np

from jointspace.core.exceptions import InverseKinematicsError
from jointspace.ik.constraints.base import Constraint
from jointspace.model.node_sets import JointSet


class ReferenceConfigurationConstraint(Constraint):
    """
    Pulls the joint values toward a reference configuration.

    Function value ``factor * |q - q_ref|^2``, gradient ``2 * factor * (q - q_ref)``.
    """

    def __init__(
        self,
        joint_set: JointSet,
        reference: Optional[Sequence[float]] = None,
        tolerance: float = 0.1,
        soft: bool = True,
    ):
        super().__init__(joint_set)
        self.tolerance = tolerance
        self._reference = np.zeros(len(joint_set))
        if reference is not None:
            self.set_reference_configuration(reference)
        self.add_optimization_function(0, soft)

    @property
    def reference_configuration(self) -> np.ndarray:
        return self._reference.copy()

    def set_reference_configuration(self, reference: Sequence[float]) -> None:
        reference = np.asarray(reference, dtype=float)
        if reference.shape != (len(self.joint_set),):
            raise InverseKinematicsError(
                "Reference configuration does not match joint set",
                details={"expected": len(self.joint_set), "got": reference.shape},
            )
        self._reference = reference

    def deviation(self) -> np.ndarray:
        return self.joint_set.get_joint_values() - self._reference

    def optimization_function(self, id: int) -> float:
        d = self.deviation()
        return self._factor * float(d @ d)

    def optimization_gradient(self, id: int) -> np.ndarray:
        return 2.0 * self._factor * self.deviation()

    def check_tolerances(self) -> bool:
        return bool(np.linalg.norm(self.deviation()) <= self.tolerance)


class JointLimitAvoidanceConstraint(ReferenceConfigurationConstraint):
    """Reference configuration constraint toward the middle of every joint's limits."""

    def __init__(self, joint_set: JointSet, tolerance: float = 0.1, soft: bool = True):
        low, high = joint_set.limits()
        super().__init__(joint_set, low + (high - low) / 2.0, tolerance, soft)
