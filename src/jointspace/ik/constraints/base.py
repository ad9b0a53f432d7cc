"""
Constraint interface of the optimization IK.
"""

from dataclasses import dataclass
from enum import Enum

import numpy as np

from jointspace.model.node_sets import JointSet


class CartesianSelection(Enum):
    """Cartesian components a pose constraint acts on."""

    X = "x"
    Y = "y"
    Z = "z"
    POSITION = "position"
    ORIENTATION = "orientation"
    ALL = "all"


@dataclass(frozen=True)
class OptimizationFunctionSetup:
    """
    One scalar function contributed by a constraint.

    Soft functions are summed into the optimizer objective. Hard functions
    become optimizer constraints (``f <= tolerance``, or ``f == 0`` when
    ``equality`` is set) and decide whether a solution counts as success.
    """

    id: int
    constraint: "Constraint"
    soft: bool
    equality: bool = False


class Constraint:
    """
    Base class of IK constraints.

    A constraint exposes scalar functions of the joint values of its joint
    set together with their analytic gradients. Subclasses register their
    functions with :meth:`add_optimization_function` and implement
    :meth:`optimization_function`, :meth:`optimization_gradient` and
    :meth:`check_tolerances`.
    """

    def __init__(self, joint_set: JointSet):
        self.joint_set = joint_set
        self.model = joint_set.model
        self._functions: list[OptimizationFunctionSetup] = []
        self._factor = 1.0

    def add_optimization_function(self, id: int, soft: bool, equality: bool = False) -> None:
        self._functions.append(OptimizationFunctionSetup(id, self, soft, equality))

    @property
    def optimization_functions(self) -> list[OptimizationFunctionSetup]:
        return list(self._functions)

    @property
    def optimization_function_factor(self) -> float:
        """Weight applied to every function value and gradient."""
        return self._factor

    @optimization_function_factor.setter
    def optimization_function_factor(self, value: float) -> None:
        self._factor = float(value)

    @property
    def constraint_type(self) -> str:
        return self.__class__.__name__

    def optimization_function(self, id: int) -> float:
        raise NotImplementedError

    def optimization_gradient(self, id: int) -> np.ndarray:
        raise NotImplementedError

    def check_tolerances(self) -> bool:
        raise NotImplementedError

    def using_collision_model(self) -> bool:
        return False

    def __repr__(self) -> str:
        return f"{self.constraint_type}(joint_set={self.joint_set.name!r})"
