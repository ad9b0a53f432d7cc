"""
Planning module - Sampling-based motion planning.

This module provides:
- CSpaceSampled: configuration space with discretized edge checks
- Rrt / BiRrt: rapidly-exploring random tree planners
- ShortcutProcessor: path shortening
- PlanningThread / PathProcessingThread: cancellable workers
- MultiThreadedPlanning: orchestration of independent planning problems
"""

from jointspace.planning.cspace import CSpaceSampled
from jointspace.planning.orchestrator import MultiThreadedPlanning
from jointspace.planning.path import CSpacePath
from jointspace.planning.rrt import BiRrt, ExtendMode, ExtensionStatus, MotionPlanner, Rrt
from jointspace.planning.shortcut import ShortcutProcessor
from jointspace.planning.threads import CancellableTask, PathProcessingThread, PlanningThread
from jointspace.planning.tree import CSpaceNode, CSpaceTree

__all__ = [
    "CSpaceSampled",
    "CSpacePath",
    "CSpaceTree",
    "CSpaceNode",
    "MotionPlanner",
    "Rrt",
    "BiRrt",
    "ExtendMode",
    "ExtensionStatus",
    "ShortcutProcessor",
    "CancellableTask",
    "PlanningThread",
    "PathProcessingThread",
    "MultiThreadedPlanning",
]
