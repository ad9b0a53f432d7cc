"""
Thread-safe kinematic model.

A :class:`Model` owns an arena of nodes forming a tree with a single root.
Nodes are addressed by their arena index; parent/child relations are plain
indices. All joint-value writes go through the model, which clamps values,
applies joint coupling and recomputes the global poses of the affected
subtree, parent before child, under its write lock.
"""

import math
import weakref
from collections import deque
from contextlib import contextmanager
from typing import Callable, Iterable, Iterator, Optional, Union

import numpy as np

from jointspace.collision.checker import CollisionChecker
from jointspace.collision.pybullet_checker import PyBulletCollisionChecker
from jointspace.core.exceptions import ModelError
from jointspace.core.logging import get_logger
from jointspace.model import transforms
from jointspace.model.node_sets import JointSet, LinkSet
from jointspace.model.nodes import FrameAttachment, ModelJoint, ModelLink, ModelNode
from jointspace.model.rwlock import ReadWriteLock

_logger = get_logger(__name__)

PoseListener = Callable[[ModelNode, np.ndarray], None]
NodeRef = Union[str, int, ModelNode]


class Model:
    """
    Kinematic tree of joints and links.

    Args:
        name: Model name
        collision_checker: Collision engine instance the model's collision
            geometry is registered with. A private
            :class:`PyBulletCollisionChecker` is created when omitted.
        global_pose: Pose of the root node in the world frame

    Example:
        >>> model = Model("arm", checker)
        >>> base = model.add_node(ModelLink("base"))
        >>> j1 = model.add_node(ModelJointRevolute("j1"), parent="base")
        >>> model.set_joint_value("j1", 0.5)
    """

    def __init__(
        self,
        name: str,
        collision_checker: Optional[CollisionChecker] = None,
        global_pose: Optional[np.ndarray] = None,
    ):
        self.name = name
        if collision_checker is None:
            collision_checker = PyBulletCollisionChecker(f"{name}_checker")
        self._collision_checker = collision_checker
        self._nodes: list[ModelNode] = []
        self._by_name: dict[str, int] = {}
        self._attachments: dict[str, FrameAttachment] = {}
        self._root_index: Optional[int] = None
        self._lock = ReadWriteLock()
        self._global_pose = transforms.identity() if global_pose is None else np.array(global_pose, dtype=float)
        self._pose_listeners: list[PoseListener] = []
        self._joint_sets: dict[str, JointSet] = {}
        self._link_sets: dict[str, LinkSet] = {}
        self._collision_link_set: Optional[LinkSet] = None
        self.update_visualization = True
        self.update_collision_model = True

    # ------------------------------------------------------------------
    # Locking
    # ------------------------------------------------------------------

    @contextmanager
    def read_lock(self) -> Iterator[None]:
        with self._lock.read_locked():
            yield

    @contextmanager
    def write_lock(self) -> Iterator[None]:
        with self._lock.write_locked():
            yield

    # ------------------------------------------------------------------
    # Structure
    # ------------------------------------------------------------------

    @property
    def collision_checker(self) -> CollisionChecker:
        return self._collision_checker

    @property
    def root(self) -> Optional[ModelNode]:
        return None if self._root_index is None else self._nodes[self._root_index]

    @property
    def nodes(self) -> list[ModelNode]:
        return list(self._nodes)

    @property
    def joints(self) -> list[ModelJoint]:
        return [n for n in self._nodes if isinstance(n, ModelJoint)]

    @property
    def links(self) -> list[ModelLink]:
        return [n for n in self._nodes if isinstance(n, ModelLink)]

    def add_node(self, node: ModelNode, parent: Optional[NodeRef] = None) -> ModelNode:
        """
        Insert a node into the tree.

        Args:
            node: Node to insert. Must not belong to another model.
            parent: Parent node (name, index or node). The first node added
                without a parent becomes the root.

        Raises:
            ModelError: On duplicate names, a second root or an unknown parent
        """
        with self.write_lock():
            if node.is_attached:
                raise ModelError(f"Node '{node.name}' already belongs to a model", self.name)
            if node.name in self._by_name or node.name in self._attachments:
                raise ModelError(f"Duplicate node name '{node.name}'", self.name)

            if parent is None:
                if self._root_index is not None:
                    raise ModelError(
                        f"Model already has root '{self.root.name}', cannot add '{node.name}' as root",
                        self.name,
                    )
                parent_node = None
            else:
                parent_node = self.node(parent)

            node.index = len(self._nodes)
            node._model_ref = weakref.ref(self)
            self._nodes.append(node)
            self._by_name[node.name] = node.index

            if parent_node is None:
                self._root_index = node.index
            else:
                node.parent_index = parent_node.index
                parent_node.children_indices.append(node.index)

            self._collision_link_set = None
            self._update_subtree(node.index)
        return node

    def attach_frame(self, node: NodeRef, attachment: FrameAttachment) -> FrameAttachment:
        """Attach a named coordinate system to a node."""
        with self.write_lock():
            owner = self.node(node)
            if attachment.name in self._attachments or attachment.name in self._by_name:
                raise ModelError(f"Duplicate frame name '{attachment.name}'", self.name)
            attachment.node_index = owner.index
            attachment._model_ref = weakref.ref(self)
            owner.attachments.append(attachment)
            self._attachments[attachment.name] = attachment
            attachment._update(owner._global_pose)
        return attachment

    def node(self, ref: NodeRef) -> ModelNode:
        """
        Look up a node by name, arena index or identity.

        Raises:
            ModelError: If the node is not part of this model
        """
        if isinstance(ref, ModelNode):
            if ref.index < 0 or ref.index >= len(self._nodes) or self._nodes[ref.index] is not ref:
                raise ModelError(f"Node '{ref.name}' does not belong to model", self.name)
            return ref
        if isinstance(ref, int):
            if 0 <= ref < len(self._nodes):
                return self._nodes[ref]
            raise ModelError(f"No node with index {ref}", self.name)
        if ref in self._by_name:
            return self._nodes[self._by_name[ref]]
        raise ModelError(f"No node named '{ref}'", self.name)

    def has_node(self, ref: NodeRef) -> bool:
        if isinstance(ref, ModelNode):
            return 0 <= ref.index < len(self._nodes) and self._nodes[ref.index] is ref
        if isinstance(ref, int):
            return 0 <= ref < len(self._nodes)
        return ref in self._by_name

    def joint(self, ref: NodeRef) -> ModelJoint:
        node = self.node(ref)
        if not isinstance(node, ModelJoint):
            raise ModelError(f"Node '{node.name}' is not a joint", self.name)
        return node

    def get_frame(self, name: str) -> Union[ModelNode, FrameAttachment]:
        """Return the node or attached frame with the given name."""
        if name in self._attachments:
            return self._attachments[name]
        return self.node(name)

    def has_frame(self, name: str) -> bool:
        return name in self._attachments or name in self._by_name

    # ------------------------------------------------------------------
    # Joint values
    # ------------------------------------------------------------------

    def set_joint_value(self, joint: NodeRef, value: float) -> None:
        """
        Set a single joint value.

        The value is clamped into the joint limits. NaN and infinite values
        are discarded without touching the model.
        """
        joint = self.joint(joint)
        if not math.isfinite(value):
            _logger.warning("joint_value_rejected", model=self.name, joint=joint.name, value=value)
            return
        with self.write_lock():
            updated = self._write_joint_value(joint, float(value), set())
            for index in updated:
                self._update_subtree(index)

    def set_joint_values(
        self,
        values: Union[dict[str, float], Iterable[tuple[NodeRef, float]]],
        kinematic_root: Optional[NodeRef] = None,
    ) -> None:
        """
        Set several joint values at once and update poses a single time.

        Args:
            values: Mapping or pairs of joint -> value
            kinematic_root: Node whose subtree covers all modified joints. When
                omitted the subtree of every modified joint is updated.
        """
        pairs = list(values.items()) if isinstance(values, dict) else list(values)
        resolved = [(self.joint(ref), value) for ref, value in pairs]
        with self.write_lock():
            touched: set[int] = set()
            updated: list[int] = []
            for joint, value in resolved:
                if not math.isfinite(value):
                    _logger.warning("joint_value_rejected", model=self.name, joint=joint.name, value=value)
                    continue
                updated.extend(self._write_joint_value(joint, float(value), touched))

            if kinematic_root is not None:
                updated.insert(0, self.node(kinematic_root).index)
            for index in self._topmost(updated):
                self._update_subtree(index)

    def get_joint_value(self, joint: NodeRef) -> float:
        return self.joint(joint).joint_value

    def get_joint_values(self, joints: Optional[Iterable[NodeRef]] = None) -> dict[str, float]:
        with self.read_lock():
            selected = self.joints if joints is None else [self.joint(j) for j in joints]
            return {j.name: j._value for j in selected}

    def apply_joint_values(self) -> None:
        """Recompute every pose from the root."""
        with self.write_lock():
            if self._root_index is not None:
                self._update_subtree(self._root_index)

    def _write_joint_value(self, joint: ModelJoint, value: float, touched: set[int]) -> list[int]:
        """Write a value and its couplings. Returns indices whose subtree needs an update."""
        joint._value = joint.respect_joint_limits(value)
        touched.add(joint.index)
        updated = [joint.index]
        for name, factor in joint._propagated.items():
            dependent = self._nodes[self._by_name[name]] if name in self._by_name else None
            if not isinstance(dependent, ModelJoint):
                _logger.warning(
                    "joint_propagation_failed",
                    model=self.name,
                    source=joint.name,
                    target=name,
                )
                continue
            if dependent.index in touched:
                continue
            updated.extend(self._write_joint_value(dependent, joint._value * factor, touched))
        return updated

    def _topmost(self, indices: list[int]) -> list[int]:
        """Drop every index that lies in the subtree of another one."""
        selected = set(indices)
        result = []
        for index in dict.fromkeys(indices):
            parent = self._nodes[index].parent_index
            covered = False
            while parent is not None:
                if parent in selected:
                    covered = True
                    break
                parent = self._nodes[parent].parent_index
            if not covered:
                result.append(index)
        return result

    # ------------------------------------------------------------------
    # Poses
    # ------------------------------------------------------------------

    @property
    def global_pose(self) -> np.ndarray:
        with self.read_lock():
            return self._global_pose.copy()

    @global_pose.setter
    def global_pose(self, pose: np.ndarray) -> None:
        with self.write_lock():
            self._global_pose = np.array(pose, dtype=float)
            if self._root_index is not None:
                self._update_subtree(self._root_index)

    def _update_subtree(self, index: int) -> None:
        """Breadth-first pose update, parents always before their children."""
        queue = deque([index])
        changed: list[ModelNode] = []
        while queue:
            node = self._nodes[queue.popleft()]
            if node.parent_index is None:
                parent_pose = self._global_pose
            else:
                parent_pose = self._nodes[node.parent_index]._global_pose
            node._global_pose = parent_pose @ node.local_transformation()

            for attachment in node.attachments:
                attachment._update(node._global_pose)
            if (
                self.update_collision_model
                and isinstance(node, ModelLink)
                and node.collision_model is not None
            ):
                node.collision_model.global_pose = node._global_pose

            changed.append(node)
            queue.extend(node.children_indices)

        if self.update_visualization and self._pose_listeners:
            for node in changed:
                for listener in self._pose_listeners:
                    listener(node, node._global_pose.copy())

    def add_pose_listener(self, listener: PoseListener) -> None:
        """Register a callback invoked on the writer's thread after every pose change."""
        self._pose_listeners.append(listener)

    def remove_pose_listener(self, listener: PoseListener) -> None:
        if listener in self._pose_listeners:
            self._pose_listeners.remove(listener)

    # ------------------------------------------------------------------
    # Node sets
    # ------------------------------------------------------------------

    def register_joint_set(self, joint_set: JointSet) -> JointSet:
        if joint_set.model is not self:
            raise ModelError(f"Joint set '{joint_set.name}' belongs to another model", self.name)
        self._joint_sets[joint_set.name] = joint_set
        return joint_set

    def register_link_set(self, link_set: LinkSet) -> LinkSet:
        if link_set.model is not self:
            raise ModelError(f"Link set '{link_set.name}' belongs to another model", self.name)
        self._link_sets[link_set.name] = link_set
        return link_set

    def get_joint_set(self, name: str) -> JointSet:
        if name not in self._joint_sets:
            raise ModelError(
                f"No joint set named '{name}'",
                self.name,
                details={"available": list(self._joint_sets)},
            )
        return self._joint_sets[name]

    def get_link_set(self, name: Optional[str] = None) -> LinkSet:
        """
        Return a registered link set, or, without a name, the set of all
        links that carry collision geometry.
        """
        if name is None:
            if self._collision_link_set is None:
                links = [l for l in self.links if l.collision_model is not None]
                if not links:
                    raise ModelError("Model has no collision geometry", self.name)
                self._collision_link_set = LinkSet(f"{self.name}_collision", self, links)
            return self._collision_link_set
        if name not in self._link_sets:
            raise ModelError(
                f"No link set named '{name}'",
                self.name,
                details={"available": list(self._link_sets)},
            )
        return self._link_sets[name]

    @property
    def joint_sets(self) -> dict[str, JointSet]:
        return dict(self._joint_sets)

    @property
    def link_sets(self) -> dict[str, LinkSet]:
        return dict(self._link_sets)

    # ------------------------------------------------------------------
    # Cloning
    # ------------------------------------------------------------------

    def clone(self, name: str, collision_checker: Optional[CollisionChecker] = None) -> "Model":
        """
        Deep-copy the model.

        The copy has its own nodes, joint values, couplings, collision
        geometry (registered with ``collision_checker``) and physics metadata,
        so it can be used by another thread without any shared state.
        """
        checker = collision_checker or self._collision_checker
        with self.read_lock():
            copy = Model(name, checker, self._global_pose.copy())
            copy.update_visualization = self.update_visualization
            copy.update_collision_model = self.update_collision_model
            for node in self._nodes:
                clone = node._copy(checker)
                parent = None if node.parent_index is None else self._nodes[node.parent_index].name
                copy.add_node(clone, parent)
                for attachment in node.attachments:
                    copy.attach_frame(clone.name, attachment._copy())

            for js in self._joint_sets.values():
                copy.register_joint_set(js.remap(copy))
            for ls in self._link_sets.values():
                copy.register_link_set(ls.remap(copy))

        copy.apply_joint_values()
        _logger.debug("model_cloned", source=self.name, clone=name, nodes=len(self._nodes))
        return copy

    def get_num_faces(self) -> int:
        """Number of collision triangles over all links."""
        return sum(l.collision_model.num_faces for l in self.links if l.collision_model is not None)

    def __repr__(self) -> str:
        return f"Model({self.name!r}, nodes={len(self._nodes)})"
