"""
Hooks toward a visualization back end.

The core only pushes data to a visualization: pose changes of model nodes,
markers, paths and trees. It never queries anything back.
:class:`VisualizationHooks` ignores everything and is the default;
:class:`RecordingVisualization` keeps what it receives so that it can be
inspected or exported.
"""

import threading
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

import numpy as np

from jointspace.model.nodes import ModelNode
from jointspace.planning.path import CSpacePath
from jointspace.planning.tree import CSpaceTree


class VisualizationHooks:
    """No-op visualization."""

    def notify_pose_changed(self, node: ModelNode, pose: np.ndarray) -> None:
        pass

    def add_marker(
        self,
        layer: str,
        name: str,
        position: Sequence[float],
        color: tuple[float, float, float] = (1.0, 0.0, 0.0),
        label: Optional[str] = None,
    ) -> None:
        pass

    def render_path(self, layer: str, name: str, path: CSpacePath, color: str = "red") -> None:
        pass

    def render_tree(self, layer: str, name: str, tree: CSpaceTree) -> None:
        pass

    def clear_layer(self, layer: str) -> None:
        pass


@dataclass
class RecordedItem:
    kind: str
    name: str
    data: Any = None
    attributes: dict = field(default_factory=dict)


class RecordingVisualization(VisualizationHooks):
    """
    Visualization that records every hook call per layer.

    Pose notifications arrive on the writer's thread, so all access is
    guarded by a lock.
    """

    def __init__(self, record_poses: bool = False):
        self.record_poses = record_poses
        self.layers: dict[str, list[RecordedItem]] = {}
        self.pose_updates = 0
        self.last_poses: dict[str, np.ndarray] = {}
        self._lock = threading.Lock()

    def notify_pose_changed(self, node: ModelNode, pose: np.ndarray) -> None:
        with self._lock:
            self.pose_updates += 1
            if self.record_poses:
                self.last_poses[node.name] = pose

    def add_marker(self, layer, name, position, color=(1.0, 0.0, 0.0), label=None) -> None:
        self._add(
            layer,
            RecordedItem("marker", name, np.asarray(position, dtype=float), {"color": color, "label": label}),
        )

    def render_path(self, layer, name, path, color="red") -> None:
        self._add(layer, RecordedItem("path", name, path.clone(), {"color": color}))

    def render_tree(self, layer, name, tree) -> None:
        self._add(layer, RecordedItem("tree", name, tree.edges(), {"nodes": tree.num_nodes}))

    def clear_layer(self, layer: str) -> None:
        with self._lock:
            self.layers.pop(layer, None)

    def items(self, layer: str) -> list[RecordedItem]:
        with self._lock:
            return list(self.layers.get(layer, []))

    def _add(self, layer: str, item: RecordedItem) -> None:
        with self._lock:
            self.layers.setdefault(layer, []).append(item)
