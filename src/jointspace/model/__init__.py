"""
Model module - Thread-safe kinematic trees.
"""

from jointspace.model.model import Model
from jointspace.model.node_sets import JointSet, LinkSet
from jointspace.model.nodes import (
    FrameAttachment,
    ModelJoint,
    ModelJointFixed,
    ModelJointPrismatic,
    ModelJointRevolute,
    ModelLink,
    ModelNode,
    ModelNodeType,
)

__all__ = [
    "Model",
    "ModelNode",
    "ModelNodeType",
    "ModelLink",
    "ModelJoint",
    "ModelJointFixed",
    "ModelJointRevolute",
    "ModelJointPrismatic",
    "FrameAttachment",
    "JointSet",
    "LinkSet",
]
