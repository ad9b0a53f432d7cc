"""
Collision geometry of a single link.
"""

from typing import TYPE_CHECKING, Optional

import numpy as np
import trimesh

from jointspace.model import transforms

if TYPE_CHECKING:
    from jointspace.collision.checker import CollisionChecker


class CollisionModel:
    """
    A triangle mesh placed in the world.

    The mesh is given in the link frame; ``global_pose`` is kept in sync with
    the owning link by the model. The collision model is registered with one
    collision checker instance, which is told about every pose change.

    Args:
        mesh: Collision mesh in local coordinates
        checker: Collision engine instance owning this geometry
        name: Name used in log output
    """

    def __init__(self, mesh: trimesh.Trimesh, checker: "CollisionChecker", name: str = ""):
        self.mesh = mesh
        self.name = name
        self._checker = checker
        self._global_pose = transforms.identity()
        self._world_vertices: Optional[np.ndarray] = None
        self._aabb: Optional[tuple[np.ndarray, np.ndarray]] = None
        self.handle = checker.register(self)

    @property
    def checker(self) -> "CollisionChecker":
        return self._checker

    @property
    def global_pose(self) -> np.ndarray:
        return self._global_pose

    @global_pose.setter
    def global_pose(self, pose: np.ndarray) -> None:
        self._global_pose = np.array(pose, dtype=float)
        self._world_vertices = None
        self._aabb = None
        self._checker.pose_changed(self)

    @property
    def num_faces(self) -> int:
        return len(self.mesh.faces)

    def world_vertices(self) -> np.ndarray:
        if self._world_vertices is None:
            self._world_vertices = transforms.transform_points(
                self._global_pose, np.asarray(self.mesh.vertices, dtype=float)
            )
        return self._world_vertices

    def world_face_centers(self) -> np.ndarray:
        return self.world_vertices()[np.asarray(self.mesh.faces)].mean(axis=1)

    def aabb(self) -> tuple[np.ndarray, np.ndarray]:
        """World-aligned bounding box as (min corner, max corner)."""
        if self._aabb is None:
            v = self.world_vertices()
            self._aabb = (v.min(axis=0), v.max(axis=0))
        return self._aabb

    def nearest_face(self, point: np.ndarray) -> int:
        """Index of the face whose centroid is closest to a world point."""
        centers = self.world_face_centers()
        return int(np.argmin(np.linalg.norm(centers - point, axis=1)))

    def clone(self, checker: Optional["CollisionChecker"] = None) -> "CollisionModel":
        """Copy of this geometry, registered with ``checker`` (or the same engine)."""
        copy = CollisionModel(self.mesh.copy(), checker or self._checker, self.name)
        copy.global_pose = self._global_pose.copy()
        return copy

    def __repr__(self) -> str:
        return f"CollisionModel({self.name!r}, faces={self.num_faces})"
