"""
Inverse kinematics.

This module provides:
- A constraint stack of soft and hard optimization functions
- Multi-start constrained optimization IK on scipy's SLSQP
"""

from jointspace.ik.constraints import (
    BalanceConstraint,
    CartesianSelection,
    Constraint,
    JointLimitAvoidanceConstraint,
    OrientationConstraint,
    PositionConstraint,
    ReferenceConfigurationConstraint,
    TSRConstraint,
)
from jointspace.ik.solver import ConstrainedOptimizationIK, ConstraintReport, SeedType

__all__ = [
    "ConstrainedOptimizationIK",
    "ConstraintReport",
    "SeedType",
    "Constraint",
    "CartesianSelection",
    "PositionConstraint",
    "OrientationConstraint",
    "TSRConstraint",
    "ReferenceConfigurationConstraint",
    "JointLimitAvoidanceConstraint",
    "BalanceConstraint",
]
