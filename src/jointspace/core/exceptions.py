"""
Custom exceptions for jointspace.

All jointspace exceptions inherit from JointspaceError for easy catching.
Planning exhaustion and IK non-convergence are not exceptions: planners and
solvers report them through their boolean results.
"""

from typing import Any


class JointspaceError(Exception):
    """Base exception for all jointspace errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} - Details: {self.details}"
        return self.message


class ConfigurationError(JointspaceError):
    """Raised when configuration is invalid or missing."""

    pass


class ModelError(JointspaceError):
    """Raised when a kinematic model or one of its node sets is malformed."""

    def __init__(
        self,
        message: str,
        model_name: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.model_name = model_name


class RobotError(ModelError):
    """Raised when a robot description cannot be loaded."""

    pass


class UsageError(JointspaceError):
    """Raised when an API is called in a way it does not support."""

    pass


class MotionPlanningError(JointspaceError):
    """Raised when a planning problem cannot be set up."""

    pass


class InverseKinematicsError(JointspaceError):
    """Raised when an IK problem cannot be set up."""

    pass
