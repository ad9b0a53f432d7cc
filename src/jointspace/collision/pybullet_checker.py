"""
Collision engine backed by PyBullet.

Every instance owns a private DIRECT (headless) physics client, released by
:meth:`PyBulletCollisionChecker.close`, on leaving a ``with`` block or when
the instance is garbage collected. Each registered collision model becomes a
static multi-body whose collision shape is the convex hull of the model's
mesh vertices.
"""

import math
from typing import TYPE_CHECKING, Optional

import numpy as np
import pybullet as p
from scipy.spatial.transform import Rotation

from jointspace.collision.checker import CollisionChecker, DistanceResult
from jointspace.core.exceptions import JointspaceError
from jointspace.core.logging import get_logger

if TYPE_CHECKING:
    from jointspace.collision.geometry import CollisionModel

_logger = get_logger(__name__)


class PyBulletCollisionChecker(CollisionChecker):
    """
    Collision checker using PyBullet's closest-point queries.

    Args:
        name: Instance name
        max_distance: Search radius of distance queries. Bodies further apart
            report an infinite distance.
    """

    def __init__(self, name: Optional[str] = None, max_distance: float = 1.0e4):
        super().__init__(name)
        self.max_distance = max_distance
        self.client_id = None
        client_id = p.connect(p.DIRECT)
        if client_id < 0:
            raise JointspaceError(f"PyBullet refused a physics client for checker '{self.name}'")
        self.client_id = client_id
        _logger.debug("pybullet_client_connected", checker=self.name, client_id=self.client_id)

    @property
    def is_connected(self) -> bool:
        return self.client_id is not None and bool(p.isConnected(physicsClientId=self.client_id))

    def close(self) -> None:
        """Disconnect the physics client. Safe to call more than once."""
        with self._lock:
            if self.client_id is None:
                return
            if p.isConnected(physicsClientId=self.client_id):
                p.disconnect(physicsClientId=self.client_id)
            _logger.debug("pybullet_client_disconnected", checker=self.name, client_id=self.client_id)
            self.client_id = None

    def __del__(self):
        # module globals may already be gone at interpreter shutdown
        if p is None or getattr(self, "client_id", None) is None:
            return
        try:
            if p.isConnected(physicsClientId=self.client_id):
                p.disconnect(physicsClientId=self.client_id)
        except (TypeError, AttributeError, p.error):
            pass
        self.client_id = None

    def register(self, model: "CollisionModel") -> int:
        super().register(model)
        vertices = np.asarray(model.mesh.vertices, dtype=float)
        with self._lock:
            shape = p.createCollisionShape(
                p.GEOM_MESH,
                vertices=vertices.tolist(),
                physicsClientId=self.client_id,
            )
            body = p.createMultiBody(
                baseMass=0,
                baseCollisionShapeIndex=shape,
                physicsClientId=self.client_id,
            )
        return body

    def pose_changed(self, model: "CollisionModel") -> None:
        pose = model.global_pose
        quaternion = Rotation.from_matrix(pose[:3, :3]).as_quat()  # x, y, z, w
        with self._lock:
            p.resetBasePositionAndOrientation(
                model.handle,
                pose[:3, 3].tolist(),
                quaternion.tolist(),
                physicsClientId=self.client_id,
            )

    def check_model_collision(self, a: "CollisionModel", b: "CollisionModel") -> bool:
        with self._lock:
            points = p.getClosestPoints(
                bodyA=a.handle,
                bodyB=b.handle,
                distance=0.0,
                physicsClientId=self.client_id,
            )
        return any(pt[8] < 0.0 for pt in points)

    def model_distance(self, a: "CollisionModel", b: "CollisionModel") -> DistanceResult:
        with self._lock:
            points = p.getClosestPoints(
                bodyA=a.handle,
                bodyB=b.handle,
                distance=self.max_distance,
                physicsClientId=self.client_id,
            )
        if not points:
            return DistanceResult(distance=math.inf)

        closest = min(points, key=lambda pt: pt[8])
        point_a = np.array(closest[5])
        point_b = np.array(closest[6])
        return DistanceResult(
            distance=float(closest[8]),
            point_a=point_a,
            point_b=point_b,
            triangle_a=a.nearest_face(point_a),
            triangle_b=b.nearest_face(point_b),
        )
