"""
IK constraints.
"""

from jointspace.ik.constraints.balance import BalanceConstraint
from jointspace.ik.constraints.base import CartesianSelection, Constraint, OptimizationFunctionSetup
from jointspace.ik.constraints.orientation import OrientationConstraint
from jointspace.ik.constraints.position import PositionConstraint
from jointspace.ik.constraints.reference_configuration import (
    JointLimitAvoidanceConstraint,
    ReferenceConfigurationConstraint,
)
from jointspace.ik.constraints.tsr import TSRConstraint

__all__ = [
    "Constraint",
    "OptimizationFunctionSetup",
    "CartesianSelection",
    "PositionConstraint",
    "OrientationConstraint",
    "TSRConstraint",
    "ReferenceConfigurationConstraint",
    "JointLimitAvoidanceConstraint",
    "BalanceConstraint",
]
