"""
Collision module - Collision geometry, engines and the collision detection manager.

This module provides:
- CollisionModel: trimesh collision geometry placed in the world
- CollisionChecker: engine interface and the bounding-box engine for
  axis-aligned box scenes
- CDManager: registration of collision groups and pairwise queries

The default engine, PyBullet, lives in ``jointspace.collision.pybullet_checker``.
"""

from jointspace.collision.checker import CollisionChecker, DistanceResult
from jointspace.collision.geometry import CollisionModel
from jointspace.collision.cd_manager import CDManager

__all__ = [
    "CollisionChecker",
    "DistanceResult",
    "CollisionModel",
    "CDManager",
]
