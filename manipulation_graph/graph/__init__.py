"""Constraint graph: nodes, edges, node selector and the sub-graph builder."""

import logging

from .component import CachedValue, GraphComponent
from .edge import Edge, LevelSetEdge, WaypointEdge
from .graph import Graph
from .helper import (
    EdgeStages,
    FoliatedManifold,
    Gripper,
    Handle,
    ManipulatedObject,
    NumericalConstraintsAndPassiveDofs,
    create_edges,
    graph_builder,
    grasp_manifold,
    relaxed_placement_manifold,
    strict_placement_manifold,
)
from .node import Node
from .node_selector import NodeSelector

if not logging.getLogger().handlers:
    logging.basicConfig(level=logging.INFO)

__all__ = [
    "CachedValue",
    "Edge",
    "EdgeStages",
    "FoliatedManifold",
    "Graph",
    "GraphComponent",
    "Gripper",
    "Handle",
    "LevelSetEdge",
    "ManipulatedObject",
    "Node",
    "NodeSelector",
    "NumericalConstraintsAndPassiveDofs",
    "WaypointEdge",
    "create_edges",
    "graph_builder",
    "grasp_manifold",
    "relaxed_placement_manifold",
    "strict_placement_manifold",
]
