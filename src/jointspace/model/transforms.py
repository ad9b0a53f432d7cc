"""
Homogeneous transformation helpers.

All poses are 4x4 numpy arrays. Rotations go through
scipy.spatial.transform so that conversions stay consistent across the
package.
"""

from typing import Sequence

import numpy as np
from scipy.spatial.transform import Rotation


def identity() -> np.ndarray:
    """4x4 identity transform."""
    return np.eye(4)


def translation(offset: Sequence[float]) -> np.ndarray:
    """Pure translation transform."""
    T = np.eye(4)
    T[:3, 3] = offset
    return T


def axis_rotation(axis: Sequence[float], angle: float) -> np.ndarray:
    """Rotation of ``angle`` radians about a (normalized) axis."""
    axis = np.asarray(axis, dtype=float)
    T = np.eye(4)
    T[:3, :3] = Rotation.from_rotvec(axis * angle).as_matrix()
    return T


def from_xyz_rpy(xyz: Sequence[float], rpy: Sequence[float]) -> np.ndarray:
    """Build a transform from a position and roll/pitch/yaw angles."""
    T = np.eye(4)
    T[:3, :3] = Rotation.from_euler("xyz", rpy).as_matrix()
    T[:3, 3] = xyz
    return T


def to_xyz_rpy(T: np.ndarray) -> np.ndarray:
    """Decompose a transform into ``[x, y, z, roll, pitch, yaw]``."""
    rpy = Rotation.from_matrix(T[:3, :3]).as_euler("xyz")
    return np.concatenate([T[:3, 3], rpy])


def inverse(T: np.ndarray) -> np.ndarray:
    """Inverse of a rigid transform."""
    R = T[:3, :3]
    inv = np.eye(4)
    inv[:3, :3] = R.T
    inv[:3, 3] = -R.T @ T[:3, 3]
    return inv


def rotation_error(R_current: np.ndarray, R_target: np.ndarray) -> np.ndarray:
    """
    Rotation vector (log map) taking ``R_current`` onto ``R_target``,
    expressed in the world frame.
    """
    return Rotation.from_matrix(R_target @ R_current.T).as_rotvec()


def transform_points(T: np.ndarray, points: np.ndarray) -> np.ndarray:
    """Apply a transform to an (N, 3) array of points."""
    return points @ T[:3, :3].T + T[:3, 3]
