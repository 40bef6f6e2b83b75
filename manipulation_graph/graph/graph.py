"""Constraint graph: owner of every node, edge and selector."""

from __future__ import annotations

import logging
import weakref
from typing import Dict, List, Optional

import numpy as np

from ..config import ProjectorOptions, get_projector_options
from ..core.device import Device
from ..core.projector import ConfigProjector
from ..core.steering import SteeringMethod, StraightSteeringMethod
from ..errors import GraphError
from .component import GraphComponent
from .edge import Edge
from .node import Node
from .node_selector import NodeSelector

logger = logging.getLogger(__name__)


class Graph(GraphComponent):
    """Graph of constraints of a manipulation task.

    Constraints attached to the graph itself apply to every node and edge.
    The projector settings are read once from ``options`` (or the process
    defaults); changing ``error_threshold`` or ``max_iterations`` later only
    affects constraint sets built afterwards.
    """

    def __init__(
        self,
        name: str,
        robot: Device,
        steering_method: Optional[SteeringMethod] = None,
        options: Optional[ProjectorOptions] = None,
    ) -> None:
        super().__init__(name)
        opts = options or get_projector_options()
        self.robot = robot
        self.error_threshold = opts.error_threshold
        self.max_iterations = opts.max_iterations
        self.projector_method = opts.method
        self.jacobian_step = opts.jacobian_step
        self.steering_method = steering_method or StraightSteeringMethod(robot)
        self.node_selector: Optional[NodeSelector] = None
        self._components: Dict[int, GraphComponent] = {}
        self._next_id = 1
        self.id = 0
        self._graph_ref = weakref.ref(self)
        logger.info(
            "Created graph %s for robot %s (error_threshold=%.1e, max_iterations=%d)",
            name,
            robot.name,
            self.error_threshold,
            self.max_iterations,
        )

    # ------------------------------------------------------------------
    # Component registry
    # ------------------------------------------------------------------
    def register_component(self, component: GraphComponent) -> None:
        if component.id is not None and self._components.get(component.id) is component:
            return
        component.id = self._next_id
        self._next_id += 1
        self._components[component.id] = component

    def get(self, component_id: int) -> GraphComponent:
        if component_id == self.id:
            return self
        try:
            return self._components[component_id]
        except KeyError as exc:
            raise GraphError(f"graph {self.name!r} has no component with id {component_id}") from exc

    @property
    def components(self) -> List[GraphComponent]:
        return list(self._components.values())

    def nodes(self) -> List[Node]:
        return [component for component in self._components.values() if isinstance(component, Node)]

    def edges(self) -> List[Edge]:
        return [component for component in self._components.values() if isinstance(component, Edge)]

    def create_node_selector(self, name: str) -> NodeSelector:
        self.node_selector = NodeSelector(name, self)
        return self.node_selector

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def get_node(self, q: np.ndarray) -> Optional[Node]:
        if self.node_selector is None:
            raise GraphError(f"graph {self.name!r} does not have a node selector")
        return self.node_selector.select(q)

    def get_edges(self, from_node: Node, to_node: Node) -> List[Edge]:
        return [edge for edge in from_node.neighbor_edges() if edge.to_node is to_node]

    def create_config_projector(self, name: str) -> ConfigProjector:
        return ConfigProjector(
            self.robot,
            name,
            self.error_threshold,
            self.max_iterations,
            method=self.projector_method,
            jacobian_step=self.jacobian_step,
        )

    def invalidate_caches(self) -> None:
        """Rebuild every cached constraint set on next use."""

        for component in self._components.values():
            component.invalidate()
        logger.info("Invalidated cached constraint sets of %d components", len(self._components))
