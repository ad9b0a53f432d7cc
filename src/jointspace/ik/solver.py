"""
Constrained optimization inverse kinematics.

This module provides a multi-start IK solver that minimizes the soft
functions of a constraint stack with scipy's SLSQP while the hard functions
enter the optimizer as constraints. Success is decided by the hard
constraints' own tolerance checks, independent of the optimizer's status.
"""

import math
import time
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence

import numpy as np
from scipy.optimize import minimize

from jointspace.core.config import IKConfig
from jointspace.core.exceptions import InverseKinematicsError, UsageError
from jointspace.core.logging import get_logger
from jointspace.ik.constraints.base import Constraint, OptimizationFunctionSetup
from jointspace.model.node_sets import JointSet

_logger = get_logger(__name__)

# hard inequality functions must satisfy f(q) <= HARD_CONSTRAINT_TOLERANCE
HARD_CONSTRAINT_TOLERANCE = 1e-8

# Per-joint scale of the objective gradient, applied before normalization
ROTATIONAL_GRADIENT_SCALE = 1.0
NON_ROTATIONAL_GRADIENT_SCALE = 1.0 / 57.0


class SeedType(Enum):
    """Start vectors tried before random restarts."""

    INITIAL = "initial"  # joint values at initialize()
    ZERO = "zero"  # zero vector clamped to the limits
    OTHER = "other"  # caller supplied


@dataclass
class ConstraintReport:
    """Hard constraint state after an attempt."""

    constraint_type: str
    satisfied: bool
    error: float


class _StopOptimization(Exception):
    """Ends an optimizer run early, carrying the configuration to use."""

    def __init__(self, x: np.ndarray, reason: str):
        super().__init__(reason)
        self.x = x
        self.reason = reason


class ConstrainedOptimizationIK:
    """
    Multi-start constrained optimization IK.

    Args:
        joint_set: Joints to solve for
        timeout: Wall-clock limit of one optimizer run, in seconds
        global_tolerance: Objective stop value is ``global_tolerance ** 2``;
            NaN disables it
        max_attempts: Number of optimizer runs (seeds first, then random
            restarts)
        function_tolerance: Optimizer convergence tolerance on the objective
        variable_tolerance: Stop when no joint moves more than this between
            two optimizer iterations
        seed: Seed of the random restart generator

    Example:
        >>> ik = ConstrainedOptimizationIK(arm)
        >>> ik.add_constraint(PositionConstraint(arm, arm.tcp, [1.0, 1.0, 0.0]))
        >>> ik.initialize()
        >>> ik.solve()
        True
    """

    def __init__(
        self,
        joint_set: JointSet,
        timeout: float = 1.0,
        global_tolerance: float = math.nan,
        max_attempts: int = 30,
        function_tolerance: float = 1e-6,
        variable_tolerance: float = 1e-4,
        seed: Optional[int] = None,
    ):
        self.joint_set = joint_set
        self.model = joint_set.model
        self.timeout = timeout
        self.global_tolerance = global_tolerance
        self.max_attempts = max_attempts
        self.function_tolerance = function_tolerance
        self.variable_tolerance = variable_tolerance
        self.rng = np.random.default_rng(seed)
        self.random_displacement_factor = 1.0

        self._constraints: list[Constraint] = []
        self._seeds: list[tuple[SeedType, Optional[np.ndarray]]] = []
        self.clear_seeds()
        self.add_seed(SeedType.INITIAL)
        self.add_seed(SeedType.ZERO)

        self._initialized = False
        self._initial: Optional[np.ndarray] = None
        self._current_x: Optional[np.ndarray] = None
        self._last_iterate: Optional[np.ndarray] = None
        self._attempt_started = 0.0

        self.attempts_used = 0
        self.best_error = math.inf
        self.last_report: list[ConstraintReport] = []

    @classmethod
    def from_config(cls, joint_set: JointSet, config: IKConfig, seed: Optional[int] = None) -> "ConstrainedOptimizationIK":
        ik = cls(
            joint_set,
            timeout=config.timeout,
            global_tolerance=config.global_tolerance,
            max_attempts=config.max_attempts,
            function_tolerance=config.function_tolerance,
            variable_tolerance=config.variable_tolerance,
            seed=seed,
        )
        ik.set_random_sampling_displacement_factor(config.random_displacement_factor)
        return ik

    # ------------------------------------------------------------------
    # Set-up
    # ------------------------------------------------------------------

    def add_constraint(self, constraint: Constraint) -> None:
        if constraint.joint_set.model is not self.model or constraint.joint_set.names != self.joint_set.names:
            raise InverseKinematicsError(
                f"Constraint {constraint.constraint_type} uses a different joint set",
                details={"expected": self.joint_set.names, "got": constraint.joint_set.names},
            )
        self._constraints.append(constraint)
        self._initialized = False

    @property
    def constraints(self) -> list[Constraint]:
        return list(self._constraints)

    def clear_seeds(self) -> None:
        self._seeds = []

    def add_seed(self, seed_type: SeedType, values: Optional[Sequence[float]] = None) -> None:
        if seed_type is SeedType.OTHER:
            if values is None or len(values) != len(self.joint_set):
                raise InverseKinematicsError(
                    "Seed does not match joint set",
                    details={"expected": len(self.joint_set)},
                )
            values = np.asarray(values, dtype=float)
        self._seeds.append((seed_type, values))

    @property
    def seeds(self) -> list[tuple[SeedType, Optional[np.ndarray]]]:
        return list(self._seeds)

    def set_random_sampling_displacement_factor(self, factor: float) -> None:
        self.random_displacement_factor = float(factor)

    def initialize(self) -> bool:
        """Capture the initial configuration and set up bounds and constraints."""
        self._initial = self.joint_set.get_joint_values()
        self._low, self._high = self.joint_set.limits()
        self._bounds = list(zip(self._low, self._high))
        self._scale = np.where(
            self.joint_set.rotational_mask(),
            ROTATIONAL_GRADIENT_SCALE,
            NON_ROTATIONAL_GRADIENT_SCALE,
        )

        self._soft: list[OptimizationFunctionSetup] = []
        self._hard: list[OptimizationFunctionSetup] = []
        for constraint in self._constraints:
            for function in constraint.optimization_functions:
                (self._soft if function.soft else self._hard).append(function)

        self._scipy_constraints = [self._as_scipy_constraint(f) for f in self._hard]
        self._initialized = True
        _logger.debug(
            "ik_initialized",
            joints=self.joint_set.names,
            soft=len(self._soft),
            hard=len(self._hard),
        )
        return True

    def _as_scipy_constraint(self, function: OptimizationFunctionSetup) -> dict:
        if function.equality:
            return {
                "type": "eq",
                "fun": lambda x, f=function: self._function_value(x, f),
                "jac": lambda x, f=function: self._function_gradient(x, f),
            }
        # scaled so that the optimizer's violation test acts on the tolerance
        return {
            "type": "ineq",
            "fun": lambda x, f=function: 1.0 - self._function_value(x, f) / HARD_CONSTRAINT_TOLERANCE,
            "jac": lambda x, f=function: -self._function_gradient(x, f) / HARD_CONSTRAINT_TOLERANCE,
        }

    # ------------------------------------------------------------------
    # Solving
    # ------------------------------------------------------------------

    def solve(self, stepwise: bool = False) -> bool:
        """
        Run up to ``max_attempts`` optimizer runs.

        The first attempts start from the seeds, later ones from random
        configurations around the initial configuration. The first attempt
        whose hard constraints are all within tolerance wins. Without a
        winner the model is left at the configuration with the smallest hard
        constraint error.

        Returns:
            True if all hard constraints are satisfied

        Raises:
            UsageError: If ``stepwise`` is requested or ``initialize()`` was
                not called
        """
        if stepwise:
            raise UsageError("Stepwise solving is not possible with optimization IK")
        if not self._initialized:
            raise UsageError("IK not initialized, call initialize() before solve()")

        update_visualization = self.model.update_visualization
        update_collision_model = self.model.update_collision_model
        self.model.update_visualization = False
        self.model.update_collision_model = any(c.using_collision_model() for c in self._constraints)

        self.best_error = math.inf
        self.last_report = []
        best_x: Optional[np.ndarray] = None
        try:
            for attempt in range(self.max_attempts):
                self.attempts_used = attempt + 1
                x0 = self._start_vector(attempt)
                x = self._optimize(x0)

                success, error, report = self._check_hard(x)
                _logger.debug("ik_attempt", attempt=attempt, success=success, error=error)
                if success:
                    self.best_error = error
                    self.last_report = report
                    self._apply(x)
                    _logger.info("ik_solved", attempts=attempt + 1, error=error)
                    return True
                if error < self.best_error:
                    self.best_error = error
                    best_x = x
                    self.last_report = report

            if best_x is not None:
                self._apply(best_x)
            _logger.info(
                "ik_failed",
                attempts=self.max_attempts,
                min_error=self.best_error,
                constraints=[(r.constraint_type, r.satisfied, r.error) for r in self.last_report],
            )
            return False
        finally:
            self.model.update_visualization = update_visualization
            self.model.update_collision_model = update_collision_model
            self.model.apply_joint_values()

    def solve_step(self) -> bool:
        raise UsageError("Stepwise solving is not possible with optimization IK")

    def _start_vector(self, attempt: int) -> np.ndarray:
        if attempt >= len(self._seeds):
            t = self.rng.uniform(0.0, 1.0, size=len(self._initial))
            sample = self._low + t * (self._high - self._low)
            x = self._initial + self.random_displacement_factor * (sample - self._initial)
            return np.clip(x, self._low, self._high)

        seed_type, values = self._seeds[attempt]
        if seed_type is SeedType.ZERO:
            x = np.zeros(len(self._initial))
        elif seed_type is SeedType.INITIAL:
            x = self._initial.copy()
        else:
            x = values.copy()
        x = np.clip(x, self._low, self._high)
        if not np.all(np.isfinite(x)):
            raise InverseKinematicsError(
                "Seed configuration outside of joint limits",
                details={"seed": seed_type.value, "values": x.tolist()},
            )
        return x

    def _optimize(self, x0: np.ndarray) -> np.ndarray:
        """One optimizer run. Any optimizer failure ends the run; the result is inspected anyway."""
        self._attempt_started = time.perf_counter()
        self._last_iterate = None
        self._current_x = None
        try:
            result = minimize(
                self._objective,
                x0,
                jac=self._objective_gradient,
                method="SLSQP",
                bounds=self._bounds,
                constraints=self._scipy_constraints,
                callback=self._iteration,
                options={"ftol": self.function_tolerance, "maxiter": 200},
            )
            x = result.x
            if not result.success:
                _logger.debug("ik_optimizer_status", status=int(result.status), message=result.message)
        except _StopOptimization as stop:
            x = stop.x
            _logger.debug("ik_optimizer_stopped", reason=stop.reason)
        except Exception as e:
            x = self._last_iterate if self._last_iterate is not None else self._current_x
            if x is None:
                x = x0
            _logger.info("ik_optimizer_exception", error=str(e))
        return np.clip(np.asarray(x, dtype=float), self._low, self._high)

    def _iteration(self, xk: np.ndarray) -> None:
        previous = self._last_iterate
        self._last_iterate = np.array(xk, dtype=float)
        if previous is not None and np.max(np.abs(self._last_iterate - previous)) < self.variable_tolerance:
            raise _StopOptimization(self._last_iterate, "variable_tolerance")

    def _check_time(self, x: np.ndarray) -> None:
        if time.perf_counter() - self._attempt_started > self.timeout:
            fallback = self._last_iterate if self._last_iterate is not None else x
            raise _StopOptimization(np.array(fallback, dtype=float), "timeout")

    def _apply(self, x: np.ndarray) -> None:
        if self._current_x is None or not np.array_equal(x, self._current_x):
            self.joint_set.set_joint_values(x)
            self._current_x = np.array(x, dtype=float)

    # ------------------------------------------------------------------
    # Optimizer callbacks
    # ------------------------------------------------------------------

    def _objective(self, x: np.ndarray) -> float:
        self._check_time(x)
        self._apply(x)
        value = sum(f.constraint.optimization_function(f.id) for f in self._soft)
        if (
            not math.isnan(self.global_tolerance)
            and value <= self.global_tolerance ** 2
            and all(f.constraint.check_tolerances() for f in self._hard)
        ):
            raise _StopOptimization(np.array(x, dtype=float), "stop_value")
        return float(value)

    def _objective_gradient(self, x: np.ndarray) -> np.ndarray:
        self._check_time(x)
        self._apply(x)
        gradient = np.zeros(len(self.joint_set))
        for f in self._soft:
            gradient += f.constraint.optimization_gradient(f.id) * self._scale
        norm = np.linalg.norm(gradient)
        if norm > 0.0:
            gradient /= norm
        return gradient

    def _function_value(self, x: np.ndarray, function: OptimizationFunctionSetup) -> float:
        self._check_time(x)
        self._apply(x)
        return float(function.constraint.optimization_function(function.id))

    def _function_gradient(self, x: np.ndarray, function: OptimizationFunctionSetup) -> np.ndarray:
        self._check_time(x)
        self._apply(x)
        return np.asarray(function.constraint.optimization_gradient(function.id), dtype=float)

    def _check_hard(self, x: np.ndarray) -> tuple[bool, float, list[ConstraintReport]]:
        """Hard constraint tolerances and summed hard error at ``x``."""
        self._apply(x)
        success = True
        error = 0.0
        report = []
        for f in self._hard:
            satisfied = f.constraint.check_tolerances()
            value = float(f.constraint.optimization_function(f.id))
            success &= satisfied
            error += value
            report.append(ConstraintReport(f.constraint.constraint_type, satisfied, value))
        return success, error, report
