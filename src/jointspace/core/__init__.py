"""
Core module - Shared utilities, configuration, and exceptions.

The URDF loader lives in :mod:`jointspace.core.robot`; it depends on the
model package and is imported from there directly.
"""

from jointspace.core.config import (
    ConfigManager,
    IKConfig,
    PlannerConfig,
    RobotConfig,
    ScenarioConfig,
    SceneConfig,
    ShortcutConfig,
    load_scenario,
)
from jointspace.core.exceptions import (
    ConfigurationError,
    InverseKinematicsError,
    JointspaceError,
    ModelError,
    MotionPlanningError,
    RobotError,
    UsageError,
)
from jointspace.core.logging import configure_logging, get_logger

__all__ = [
    # Config
    "ConfigManager",
    "RobotConfig",
    "PlannerConfig",
    "ShortcutConfig",
    "IKConfig",
    "SceneConfig",
    "ScenarioConfig",
    "load_scenario",
    # Exceptions
    "JointspaceError",
    "ConfigurationError",
    "ModelError",
    "RobotError",
    "UsageError",
    "MotionPlanningError",
    "InverseKinematicsError",
    # Logging
    "configure_logging",
    "get_logger",
]
