"""
Nodes of a kinematic model.

Nodes live in the arena of their owning :class:`~jointspace.model.model.Model`
and refer to each other by arena index. The back-reference from a node to its
model is weak, so a node never keeps a model alive.
"""

import math
import weakref
from enum import Enum
from typing import TYPE_CHECKING, Optional, Sequence

import numpy as np

from jointspace.core.exceptions import ModelError
from jointspace.core.logging import get_logger
from jointspace.model import transforms

if TYPE_CHECKING:
    from jointspace.collision.checker import CollisionChecker
    from jointspace.collision.geometry import CollisionModel
    from jointspace.model.model import Model

_logger = get_logger(__name__)


class ModelNodeType(Enum):
    """Kinds of nodes in a kinematic tree."""

    LINK = "link"
    JOINT = "joint"


class ModelNode:
    """
    Base class of all model nodes.

    A node has a constant transformation relative to its parent. Its global
    pose is recomputed by the model whenever an ancestor joint moves.
    """

    node_type: ModelNodeType

    def __init__(self, name: str, static_transformation: Optional[np.ndarray] = None):
        if not name:
            raise ModelError("Model nodes need a non-empty name")
        self.name = name
        self.static_transformation = (
            transforms.identity()
            if static_transformation is None
            else np.array(static_transformation, dtype=float)
        )
        self.index = -1
        self.parent_index: Optional[int] = None
        self.children_indices: list[int] = []
        self.attachments: list["FrameAttachment"] = []
        self._global_pose = transforms.identity()
        self._model_ref: Optional[weakref.ReferenceType] = None

    @property
    def model(self) -> "Model":
        model = self._model_ref() if self._model_ref is not None else None
        if model is None:
            raise ModelError(f"Node '{self.name}' is not part of a model")
        return model

    @property
    def is_attached(self) -> bool:
        return self._model_ref is not None and self._model_ref() is not None

    @property
    def parent(self) -> Optional["ModelNode"]:
        if self.parent_index is None:
            return None
        return self.model.node(self.parent_index)

    @property
    def children(self) -> list["ModelNode"]:
        model = self.model
        return [model.node(i) for i in self.children_indices]

    @property
    def global_pose(self) -> np.ndarray:
        """Pose of this node in the world frame."""
        with self.model.read_lock():
            return self._global_pose.copy()

    @property
    def global_position(self) -> np.ndarray:
        return self.global_pose[:3, 3]

    def local_transformation(self) -> np.ndarray:
        """Transformation from the parent's frame to this node's frame."""
        return self.static_transformation

    def ancestors(self) -> list["ModelNode"]:
        """All ancestors, root first."""
        chain = []
        node = self.parent
        while node is not None:
            chain.append(node)
            node = node.parent
        chain.reverse()
        return chain

    def is_joint(self) -> bool:
        return self.node_type is ModelNodeType.JOINT

    def is_link(self) -> bool:
        return self.node_type is ModelNodeType.LINK

    def attach(self, attachment: "FrameAttachment") -> "FrameAttachment":
        """Attach a named frame to this node."""
        return self.model.attach_frame(self.name, attachment)

    def _copy(self, collision_checker: Optional["CollisionChecker"] = None) -> "ModelNode":
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.name!r})"


class ModelLink(ModelNode):
    """
    A rigid body of the model.

    Links carry the collision geometry and the physics metadata (mass, center
    of mass in the link frame, inertia tensor).
    """

    node_type = ModelNodeType.LINK

    def __init__(
        self,
        name: str,
        static_transformation: Optional[np.ndarray] = None,
        collision_model: Optional["CollisionModel"] = None,
        mass: float = 0.0,
        com: Sequence[float] = (0.0, 0.0, 0.0),
        inertia: Optional[np.ndarray] = None,
    ):
        super().__init__(name, static_transformation)
        self.collision_model = collision_model
        self.mass = float(mass)
        self.com = np.asarray(com, dtype=float)
        self.inertia = np.zeros((3, 3)) if inertia is None else np.asarray(inertia, dtype=float)

    @property
    def global_com(self) -> np.ndarray:
        return transforms.transform_points(self.global_pose, self.com[None, :])[0]

    def _copy(self, collision_checker: Optional["CollisionChecker"] = None) -> "ModelLink":
        collision_model = None
        if self.collision_model is not None:
            collision_model = self.collision_model.clone(collision_checker)
        return ModelLink(
            self.name,
            self.static_transformation.copy(),
            collision_model=collision_model,
            mass=self.mass,
            com=self.com.copy(),
            inertia=self.inertia.copy(),
        )


class ModelJoint(ModelNode):
    """
    Base class of joints.

    The joint value is always kept inside ``[limit_low, limit_high]``. A
    constant value offset is added before the joint motion is applied.
    Joint values may be propagated to other joints of the model, each
    dependent joint receiving ``value * factor``.
    """

    node_type = ModelNodeType.JOINT

    def __init__(
        self,
        name: str,
        static_transformation: Optional[np.ndarray] = None,
        limit_low: float = -math.pi,
        limit_high: float = math.pi,
        value_offset: float = 0.0,
    ):
        super().__init__(name, static_transformation)
        if limit_low > limit_high:
            raise ModelError(
                f"Invalid joint limits for '{name}'",
                details={"low": limit_low, "high": limit_high},
            )
        self._limit_low = float(limit_low)
        self._limit_high = float(limit_high)
        self.value_offset = float(value_offset)
        self._value = min(max(0.0, self._limit_low), self._limit_high)
        self._max_velocity = -1.0
        self._max_acceleration = -1.0
        self._max_torque = -1.0
        self._propagated: dict[str, float] = {}

    def joint_transformation(self, q: float) -> np.ndarray:
        """Motion of this joint for the (offset-corrected) value ``q``."""
        return transforms.identity()

    def local_transformation(self) -> np.ndarray:
        return self.static_transformation @ self.joint_transformation(
            self._value + self.value_offset
        )

    def is_rotational(self) -> bool:
        return False

    def is_translational(self) -> bool:
        return False

    @property
    def joint_value(self) -> float:
        with self.model.read_lock():
            return self._value

    def set_joint_value(self, q: float) -> None:
        """Set the joint value, clamp it into the limits and update all poses below."""
        self.model.set_joint_value(self, q)

    @property
    def limit_low(self) -> float:
        return self._limit_low

    @property
    def limit_high(self) -> float:
        return self._limit_high

    def set_joint_limits(self, low: float, high: float) -> None:
        if low > high:
            raise ModelError(f"Invalid joint limits for '{self.name}'", details={"low": low, "high": high})
        with self.model.write_lock():
            self._limit_low = float(low)
            self._limit_high = float(high)

    def respect_joint_limits(self, q: float) -> float:
        """Return ``q`` clamped into the joint limits."""
        return min(max(q, self._limit_low), self._limit_high)

    def check_joint_limits(self, q: float, verbose: bool = False) -> bool:
        ok = self._limit_low <= q <= self._limit_high
        if not ok and verbose:
            _logger.info(
                "joint_limit_violation",
                joint=self.name,
                value=q,
                low=self._limit_low,
                high=self._limit_high,
            )
        return ok

    @property
    def max_velocity(self) -> float:
        return self._max_velocity

    @max_velocity.setter
    def max_velocity(self, value: float) -> None:
        with self.model.write_lock():
            self._max_velocity = float(value)

    @property
    def max_acceleration(self) -> float:
        return self._max_acceleration

    @max_acceleration.setter
    def max_acceleration(self, value: float) -> None:
        with self.model.write_lock():
            self._max_acceleration = float(value)

    @property
    def max_torque(self) -> float:
        return self._max_torque

    @max_torque.setter
    def max_torque(self, value: float) -> None:
        with self.model.write_lock():
            self._max_torque = float(value)

    def propagate_joint_value(self, joint_name: str, factor: float) -> None:
        """
        Couple another joint to this one. A factor of zero removes the coupling.
        """
        with self.model.write_lock():
            if factor == 0.0:
                self._propagated.pop(joint_name, None)
            else:
                self._propagated[joint_name] = float(factor)

    @property
    def propagated_joint_values(self) -> dict[str, float]:
        return dict(self._propagated)

    def _copy_joint_state(self, other: "ModelJoint") -> "ModelJoint":
        other._value = self._value
        other._max_velocity = self._max_velocity
        other._max_acceleration = self._max_acceleration
        other._max_torque = self._max_torque
        other._propagated = dict(self._propagated)
        return other


class ModelJointFixed(ModelJoint):
    """A joint without motion."""

    def __init__(self, name: str, static_transformation: Optional[np.ndarray] = None):
        super().__init__(name, static_transformation, 0.0, 0.0)

    def _copy(self, collision_checker=None) -> "ModelJointFixed":
        return self._copy_joint_state(
            ModelJointFixed(self.name, self.static_transformation.copy())
        )


class ModelJointRevolute(ModelJoint):
    """Joint rotating about a fixed axis given in the joint frame."""

    def __init__(
        self,
        name: str,
        static_transformation: Optional[np.ndarray] = None,
        axis: Sequence[float] = (0.0, 0.0, 1.0),
        limit_low: float = -math.pi,
        limit_high: float = math.pi,
        value_offset: float = 0.0,
    ):
        super().__init__(name, static_transformation, limit_low, limit_high, value_offset)
        self.axis = _unit(axis, name)

    def joint_transformation(self, q: float) -> np.ndarray:
        return transforms.axis_rotation(self.axis, q)

    def is_rotational(self) -> bool:
        return True

    def _copy(self, collision_checker=None) -> "ModelJointRevolute":
        return self._copy_joint_state(
            ModelJointRevolute(
                self.name,
                self.static_transformation.copy(),
                self.axis.copy(),
                self.limit_low,
                self.limit_high,
                self.value_offset,
            )
        )


class ModelJointPrismatic(ModelJoint):
    """Joint translating along a fixed direction given in the joint frame."""

    def __init__(
        self,
        name: str,
        static_transformation: Optional[np.ndarray] = None,
        translation_direction: Sequence[float] = (0.0, 0.0, 1.0),
        limit_low: float = -1.0,
        limit_high: float = 1.0,
        value_offset: float = 0.0,
    ):
        super().__init__(name, static_transformation, limit_low, limit_high, value_offset)
        self.translation_direction = _unit(translation_direction, name)

    def joint_transformation(self, q: float) -> np.ndarray:
        return transforms.translation(self.translation_direction * q)

    def is_translational(self) -> bool:
        return True

    def _copy(self, collision_checker=None) -> "ModelJointPrismatic":
        return self._copy_joint_state(
            ModelJointPrismatic(
                self.name,
                self.static_transformation.copy(),
                self.translation_direction.copy(),
                self.limit_low,
                self.limit_high,
                self.value_offset,
            )
        )


class FrameAttachment:
    """
    A named coordinate system rigidly attached to a model node.

    Typically used as TCP or end-effector frame. The owning node is looked up
    by index through the model and is never owned by the attachment.
    """

    def __init__(self, name: str, offset: Optional[np.ndarray] = None):
        self.name = name
        self.offset = transforms.identity() if offset is None else np.array(offset, dtype=float)
        self.node_index = -1
        self._global_pose = transforms.identity()
        self._model_ref: Optional[weakref.ReferenceType] = None

    @property
    def node(self) -> ModelNode:
        model = self._model_ref() if self._model_ref is not None else None
        if model is None:
            raise ModelError(f"Attachment '{self.name}' is not attached to a model")
        return model.node(self.node_index)

    @property
    def global_pose(self) -> np.ndarray:
        with self.node.model.read_lock():
            return self._global_pose.copy()

    @property
    def global_position(self) -> np.ndarray:
        return self.global_pose[:3, 3]

    def _update(self, node_pose: np.ndarray) -> None:
        self._global_pose = node_pose @ self.offset

    def _copy(self) -> "FrameAttachment":
        return FrameAttachment(self.name, self.offset.copy())

    def __repr__(self) -> str:
        return f"FrameAttachment({self.name!r})"


def _unit(vector: Sequence[float], name: str) -> np.ndarray:
    v = np.asarray(vector, dtype=float)
    norm = np.linalg.norm(v)
    if norm == 0.0:
        raise ModelError(f"Joint '{name}' needs a non-zero axis")
    return v / norm
