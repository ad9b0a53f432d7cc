"""
Search trees of sampling-based planners.
"""

from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np


@dataclass
class CSpaceNode:
    """Tree node. ``parent_id`` is None for the root."""

    id: int
    config: np.ndarray
    parent_id: Optional[int] = None


class CSpaceTree:
    """
    Tree of configurations with brute-force nearest-neighbour search.

    Configurations are kept in a growing numpy buffer so a nearest-neighbour
    query is a single vectorized distance computation.
    """

    def __init__(self, dimension: int, name: str = "tree", capacity: int = 1024):
        self.name = name
        self.dimension = dimension
        self._nodes: list[CSpaceNode] = []
        self._configs = np.empty((capacity, dimension))

    def add_node(self, config: Sequence[float], parent_id: Optional[int] = None) -> CSpaceNode:
        config = np.array(config, dtype=float)
        n = len(self._nodes)
        if n == len(self._configs):
            self._configs = np.concatenate([self._configs, np.empty_like(self._configs)])
        self._configs[n] = config
        node = CSpaceNode(n, config, parent_id)
        self._nodes.append(node)
        return node

    def nearest(self, config: Sequence[float]) -> CSpaceNode:
        """Node closest to ``config`` in joint space."""
        n = len(self._nodes)
        diff = self._configs[:n] - np.asarray(config, dtype=float)
        return self._nodes[int(np.argmin(np.einsum("ij,ij->i", diff, diff)))]

    def node(self, node_id: int) -> CSpaceNode:
        return self._nodes[node_id]

    @property
    def nodes(self) -> list[CSpaceNode]:
        return list(self._nodes)

    @property
    def num_nodes(self) -> int:
        return len(self._nodes)

    def configurations(self) -> np.ndarray:
        return self._configs[: len(self._nodes)].copy()

    def path_to_root(self, node: CSpaceNode) -> list[np.ndarray]:
        """Configurations from ``node`` up to the root, inclusive."""
        configs = []
        current: Optional[CSpaceNode] = node
        while current is not None:
            configs.append(current.config.copy())
            current = None if current.parent_id is None else self._nodes[current.parent_id]
        return configs

    def edges(self) -> list[tuple[np.ndarray, np.ndarray]]:
        return [
            (self._nodes[n.parent_id].config, n.config)
            for n in self._nodes
            if n.parent_id is not None
        ]

    def __len__(self) -> int:
        return len(self._nodes)

    def __repr__(self) -> str:
        return f"CSpaceTree({self.name!r}, nodes={len(self._nodes)})"
