"""
Named, ordered views over a subset of a model's nodes.
"""

from typing import TYPE_CHECKING, Iterator, Optional, Sequence, Union

import numpy as np

from jointspace.core.exceptions import ModelError
from jointspace.model.nodes import FrameAttachment, ModelJoint, ModelLink, ModelNode

if TYPE_CHECKING:
    from jointspace.collision.checker import CollisionChecker
    from jointspace.collision.geometry import CollisionModel
    from jointspace.model.model import Model


class ModelNodeSet:
    """
    Immutable-membership node subset of one model.

    Args:
        name: Set name
        model: Owning model
        nodes: Member nodes, in order
        kinematic_root: Node whose subtree is updated when the set's values
            change. Defaults to the first member.
        tcp: Tool frame used for Cartesian queries (node or attachment)
    """

    node_class: type = ModelNode

    def __init__(
        self,
        name: str,
        model: "Model",
        nodes: Sequence[ModelNode],
        kinematic_root: Optional[ModelNode] = None,
        tcp: Optional[Union[ModelNode, FrameAttachment]] = None,
    ):
        self.name = name
        self.model = model
        for node in nodes:
            if not isinstance(node, self.node_class):
                raise ModelError(
                    f"'{node.name}' cannot be a member of {self.__class__.__name__} '{name}'",
                    model.name,
                )
            if not model.has_node(node):
                raise ModelError(f"Node '{node.name}' does not belong to model", model.name)
        self._nodes = tuple(nodes)
        if kinematic_root is not None and not model.has_node(kinematic_root):
            raise ModelError(f"Kinematic root '{kinematic_root.name}' does not belong to model", model.name)
        self.kinematic_root = kinematic_root or (self._nodes[0] if self._nodes else None)
        self.tcp = tcp

    @classmethod
    def create(
        cls,
        name: str,
        model: "Model",
        node_names: Sequence[str],
        kinematic_root: Optional[str] = None,
        tcp: Optional[str] = None,
    ):
        """Build a set from node names."""
        return cls(
            name,
            model,
            [model.node(n) for n in node_names],
            kinematic_root=model.node(kinematic_root) if kinematic_root else None,
            tcp=model.get_frame(tcp) if tcp else None,
        )

    @property
    def nodes(self) -> tuple[ModelNode, ...]:
        return self._nodes

    @property
    def names(self) -> list[str]:
        return [n.name for n in self._nodes]

    def contains(self, node: ModelNode) -> bool:
        return any(n is node for n in self._nodes)

    def remap(self, model: "Model"):
        """Same set expressed over the equally named nodes of another model."""
        return self.__class__.create(
            self.name,
            model,
            self.names,
            kinematic_root=self.kinematic_root.name if self.kinematic_root else None,
            tcp=self.tcp.name if self.tcp is not None else None,
        )

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[ModelNode]:
        return iter(self._nodes)

    def __getitem__(self, i: int) -> ModelNode:
        return self._nodes[i]

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.name!r}, {self.names})"


class LinkSet(ModelNodeSet):
    """
    A group of links tested for collision as one body.

    Link sets compare and hash by identity.
    """

    node_class = ModelLink

    def collision_models(self) -> list["CollisionModel"]:
        return [l.collision_model for l in self._nodes if l.collision_model is not None]

    @property
    def collision_checker(self) -> Optional["CollisionChecker"]:
        models = self.collision_models()
        return models[0].checker if models else None

    @property
    def num_faces(self) -> int:
        return sum(m.num_faces for m in self.collision_models())


class JointSet(ModelNodeSet):
    """
    An ordered joint subset; the index space of configuration vectors.
    """

    node_class = ModelJoint

    def joint(self, i: int) -> ModelJoint:
        return self._nodes[i]

    def get_joint_values(self) -> np.ndarray:
        with self.model.read_lock():
            return np.array([j._value for j in self._nodes])

    def set_joint_values(self, values: Sequence[float]) -> None:
        """Write a configuration vector aligned with the set's joint order."""
        if len(values) != len(self._nodes):
            raise ModelError(
                f"Joint set '{self.name}' expects {len(self._nodes)} values, got {len(values)}",
                self.model.name,
            )
        self.model.set_joint_values(
            [(j, float(v)) for j, v in zip(self._nodes, values)],
            kinematic_root=self.kinematic_root,
        )

    def limits(self) -> tuple[np.ndarray, np.ndarray]:
        low = np.array([j.limit_low for j in self._nodes])
        high = np.array([j.limit_high for j in self._nodes])
        return low, high

    def clamp(self, values: Sequence[float]) -> np.ndarray:
        low, high = self.limits()
        return np.clip(np.asarray(values, dtype=float), low, high)

    def rotational_mask(self) -> np.ndarray:
        return np.array([j.is_rotational() for j in self._nodes], dtype=bool)
