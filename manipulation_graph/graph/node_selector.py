from __future__ import annotations

import logging
from typing import TYPE_CHECKING, List, Optional

import numpy as np

from .component import GraphComponent
from .node import Node

if TYPE_CHECKING:
    from .graph import Graph

logger = logging.getLogger(__name__)


class NodeSelector(GraphComponent):
    """Create the nodes of a graph and find the node of a configuration.

    Nodes are tested in creation order, so the most specific ones should be
    created first. Waypoint nodes are never selected.
    """

    def __init__(self, name: str, graph: Optional["Graph"] = None) -> None:
        self._ordered: List[Node] = []
        self._waypoints: List[Node] = []
        super().__init__(name, graph)

    def create_node(self, name: str, waypoint: bool = False) -> Node:
        node = Node(name, self.parent_graph, waypoint=waypoint)
        if waypoint:
            self._waypoints.append(node)
        else:
            self._ordered.append(node)
        logger.debug("Created %snode %s (id=%s)", "waypoint " if waypoint else "", name, node.id)
        return node

    @property
    def nodes(self) -> List[Node]:
        return list(self._ordered)

    @property
    def waypoint_nodes(self) -> List[Node]:
        return list(self._waypoints)

    def select(self, q: np.ndarray) -> Optional[Node]:
        for node in self._ordered:
            if node.contains(q):
                return node
        logger.debug("No node of %s contains the configuration", self.name)
        return None
