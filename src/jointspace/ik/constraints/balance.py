"""
Balance constraint.
"""

from typing import Optional, Sequence

import numpy as np
from scipy.spatial import ConvexHull

from jointspace.core.exceptions import InverseKinematicsError
from jointspace.ik.constraints.base import Constraint
from jointspace.model.jacobian import compute_com_jacobian
from jointspace.model.node_sets import JointSet
from jointspace.model.nodes import ModelLink


class BalanceConstraint(Constraint):
    """
    Keeps the ground projection of the center of mass inside a support polygon.

    The support polygon is the convex hull of the given contact points,
    projected onto the xy-plane. The deviation ``s`` is the largest signed
    distance of the projected CoM to the hull's edges (negative inside). The
    function value is ``factor * max(s + margin, 0)^2``.

    Args:
        joint_set: Joints the constraint is differentiated by
        support_points: Contact points (at least three, not collinear)
        links: Links contributing to the CoM. Defaults to every link with mass.
        margin: Required distance of the CoM from the polygon boundary
        soft: Register the function as soft instead of hard
    """

    def __init__(
        self,
        joint_set: JointSet,
        support_points: Sequence[Sequence[float]],
        links: Optional[Sequence[ModelLink]] = None,
        margin: float = 0.0,
        soft: bool = False,
    ):
        super().__init__(joint_set)
        points = np.asarray(support_points, dtype=float)[:, :2]
        if len(points) < 3:
            raise InverseKinematicsError("Support polygon needs at least three points")
        self.hull = ConvexHull(points)
        self.links = list(links) if links is not None else None
        self.margin = margin
        self.add_optimization_function(0, soft)

    def support_polygon(self) -> np.ndarray:
        return self.hull.points[self.hull.vertices]

    def deviation(self) -> tuple[float, int, np.ndarray]:
        """(signed distance, active edge index, CoM Jacobian restricted to xy)."""
        com, J = compute_com_jacobian(self.joint_set, self.links)
        # rows (a, b, c) with unit normal (a, b): a*x + b*y + c <= 0 inside
        distances = self.hull.equations[:, :2] @ com[:2] + self.hull.equations[:, 2]
        edge = int(np.argmax(distances))
        return float(distances[edge]), edge, J[:2]

    def optimization_function(self, id: int) -> float:
        s, _, _ = self.deviation()
        return self._factor * max(s + self.margin, 0.0) ** 2

    def optimization_gradient(self, id: int) -> np.ndarray:
        s, edge, J = self.deviation()
        violation = max(s + self.margin, 0.0)
        return 2.0 * self._factor * violation * (self.hull.equations[edge, :2] @ J)

    def check_tolerances(self) -> bool:
        s, _, _ = self.deviation()
        return s + self.margin <= 0.0
