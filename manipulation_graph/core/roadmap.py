from __future__ import annotations

import itertools
from typing import List, Optional

import numpy as np

_component_ids = itertools.count()


class ConnectedComponent:
    """Set of roadmap nodes known to be mutually reachable."""

    def __init__(self) -> None:
        self.id = next(_component_ids)
        self.nodes: List["RoadmapNode"] = []

    def add_node(self, node: "RoadmapNode") -> None:
        self.nodes.append(node)

    def __repr__(self) -> str:
        return f"ConnectedComponent(id={self.id}, nodes={len(self.nodes)})"


class RoadmapNode:
    """Configuration explored by a planner, with its connected component."""

    def __init__(
        self,
        configuration: np.ndarray,
        connected_component: Optional[ConnectedComponent] = None,
        *,
        register: bool = True,
    ) -> None:
        self.configuration = np.array(configuration, dtype=float)
        if connected_component is None:
            connected_component = ConnectedComponent()
        self.connected_component = connected_component
        if register:
            connected_component.add_node(self)

    def __repr__(self) -> str:
        return f"RoadmapNode(cc={self.connected_component.id})"
