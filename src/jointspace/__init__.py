"""
jointspace - Kinematic models, collision queries and motion planning

Thread-safe kinematic trees with pluggable collision engines, sampling-based
planners (RRT, Bi-RRT) with path shortcutting and multi-threaded
orchestration, and constrained optimization inverse kinematics.
"""

__version__ = "0.1.0"
__author__ = "jointspace Contributors"

from jointspace.core.config import ConfigManager
from jointspace.model import JointSet, LinkSet, Model

__all__ = [
    "__version__",
    "ConfigManager",
    "Model",
    "JointSet",
    "LinkSet",
]
