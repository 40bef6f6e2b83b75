"""Steering method that routes a query through the constraint graph."""

from __future__ import annotations

import logging
import weakref
from typing import Optional

import numpy as np

from .core.path import Path
from .core.steering import SteeringMethod
from .errors import GraphError
from .graph.graph import Graph
from .logging_utils import apply_debug_logging

logger = logging.getLogger(__name__)


class GraphSteeringMethod(SteeringMethod):
    """Connect two configurations along one of the edges between their nodes.

    The node of each end is found with the graph's node selector, then the
    visible edges from the first node to the second are tried in order. The
    path of the first edge that succeeds is returned.
    """

    def __init__(self, graph: Graph) -> None:
        super().__init__(graph.robot)
        self._graph_ref = weakref.ref(graph)

    @property
    def graph(self) -> Graph:
        graph = self._graph_ref()
        if graph is None:
            raise GraphError("the graph of this steering method no longer exists")
        return graph

    @graph.setter
    def graph(self, graph: Graph) -> None:
        self._graph_ref = weakref.ref(graph)
        self.device = graph.robot

    def copy(self) -> "GraphSteeringMethod":
        return GraphSteeringMethod(self.graph)

    def compute(self, q1: np.ndarray, q2: np.ndarray) -> Optional[Path]:
        return self.impl_compute(q1, q2)

    def impl_compute(self, q1: np.ndarray, q2: np.ndarray) -> Optional[Path]:
        graph = self.graph
        from_node = graph.get_node(q1)
        to_node = graph.get_node(q2)
        if from_node is None or to_node is None:
            logger.debug("No node contains %s", "q1" if from_node is None else "q2")
            return None
        for edge in graph.get_edges(from_node, to_node):
            path = edge.build(q1, q2)
            if path is not None:
                return path
        logger.debug("No edge from %s to %s could connect the configurations", from_node.name, to_node.name)
        return None


apply_debug_logging(globals(), logger=logger)
