"""
Geometric Jacobians of model frames.
"""

from typing import Optional, Sequence, Union

import numpy as np

from jointspace.model.node_sets import JointSet
from jointspace.model.nodes import FrameAttachment, ModelJoint, ModelNode

Frame = Union[ModelNode, FrameAttachment]


def _owner(frame: Frame) -> ModelNode:
    return frame.node if isinstance(frame, FrameAttachment) else frame


def _joint_twist(joint: ModelJoint, point: np.ndarray) -> np.ndarray:
    """Velocity twist ``[v; w]`` that a unit motion of ``joint`` induces at ``point``."""
    twist = np.zeros(6)
    R = joint._global_pose[:3, :3]
    if joint.is_rotational():
        w = R @ joint.axis
        twist[:3] = np.cross(w, point - joint._global_pose[:3, 3])
        twist[3:] = w
    elif joint.is_translational():
        twist[:3] = R @ joint.translation_direction
    return twist


def compute_jacobian(
    joint_set: JointSet,
    frame: Frame,
    point: Optional[Sequence[float]] = None,
) -> np.ndarray:
    """
    6xN geometric Jacobian of a frame with respect to the joints of a set.

    Rows 0-2 hold the linear velocity, rows 3-5 the angular velocity, both in
    world coordinates. A joint moves the frame when it is one of its
    ancestors, or when it drives such an ancestor through joint coupling.

    Args:
        joint_set: Joints spanning the columns
        frame: Model node or attached frame
        point: World point rigidly attached to the frame. Defaults to the
            frame origin.
    """
    model = joint_set.model
    with model.read_lock():
        owner = _owner(frame)
        if point is None:
            pose = frame._global_pose
            p = pose[:3, 3].copy()
        else:
            p = np.asarray(point, dtype=float)

        chain = {owner.index}
        node = owner
        while node.parent_index is not None:
            chain.add(node.parent_index)
            node = model.node(node.parent_index)

        J = np.zeros((6, len(joint_set)))
        for i, joint in enumerate(joint_set):
            J[:, i] = _coupled_twist(model, joint, p, chain, 1.0, set())
        return J


def _coupled_twist(model, joint: ModelJoint, point, chain, factor, visited) -> np.ndarray:
    visited.add(joint.index)
    twist = np.zeros(6)
    if joint.index in chain:
        twist += factor * _joint_twist(joint, point)
    for name, coupling in joint._propagated.items():
        if not model.has_node(name):
            continue
        dependent = model.node(name)
        if isinstance(dependent, ModelJoint) and dependent.index not in visited:
            twist += _coupled_twist(model, dependent, point, chain, factor * coupling, visited)
    return twist


def compute_com_jacobian(joint_set: JointSet, links: Optional[Sequence] = None) -> tuple[np.ndarray, np.ndarray]:
    """
    Center of mass of a group of links and its 3xN positional Jacobian.

    Args:
        joint_set: Joints spanning the columns
        links: Links to include. Defaults to all links of the model with a
            positive mass.

    Returns:
        Tuple of (com, jacobian)
    """
    model = joint_set.model
    links = [l for l in (links or model.links) if l.mass > 0]
    total = sum(l.mass for l in links)
    if total <= 0:
        return np.zeros(3), np.zeros((3, len(joint_set)))

    com = np.zeros(3)
    J = np.zeros((3, len(joint_set)))
    for link in links:
        with model.read_lock():
            link_com = link._global_pose[:3, :3] @ link.com + link._global_pose[:3, 3]
        com += link.mass * link_com
        J += link.mass * compute_jacobian(joint_set, link, link_com)[:3]
    return com / total, J / total
