"""Transitions between the nodes of a constraint graph.

Three variants share the ``build`` / ``apply_constraints`` / ``node``
contract:

* :class:`Edge` connects two configurations of the same leaf of its
  path constraint set.
* :class:`WaypointEdge` chains sub-edges through intermediate waypoint nodes.
* :class:`LevelSetEdge` projects onto a leaf of a foliation sampled from a
  histogram of the explored roadmap.

Constraint sets are built lazily and cached for the lifetime of the edge
(or until :meth:`Edge.invalidate`). Caches are not synchronized.
"""

from __future__ import annotations

import logging
import weakref
from typing import TYPE_CHECKING, List, Optional, Sequence, Tuple, Union

import numpy as np

from ..core.constraint_set import ConstraintSet
from ..core.constraints import Interval, LockedJoint, NumericalConstraint
from ..core.histogram import Foliation, LeafHistogram
from ..core.path import Path, PathVector
from ..core.projector import ConfigProjector
from ..core.roadmap import RoadmapNode
from ..core.steering import SteeringMethod
from ..errors import GraphConstructionError, GraphError, UnsupportedOperationError
from .component import CachedValue, GraphComponent
from .node import Node

if TYPE_CHECKING:
    from .graph import Graph

logger = logging.getLogger(__name__)

Offset = Union[np.ndarray, RoadmapNode]


def _offset_configuration(offset: Offset) -> np.ndarray:
    if isinstance(offset, RoadmapNode):
        return offset.configuration
    return offset


def _waypoint_offset(offset: Offset, q: np.ndarray) -> Offset:
    """Configuration ``q`` in the connected component of ``offset``, when it has one."""

    if isinstance(offset, RoadmapNode):
        return RoadmapNode(q, offset.connected_component, register=False)
    return q


def _log_projection_failure(constraints: ConstraintSet, projector: ConfigProjector) -> None:
    stats = projector.statistics
    if stats.nb_failure > stats.nb_success:
        logger.warning("%s fails often.\n%s", constraints.name, stats)
    else:
        logger.debug("%s succeeds at rate %.3f.", constraints.name, stats.success_rate)


def _resolve(ref: Optional[weakref.ReferenceType], what: str) -> Node:
    target = ref() if ref is not None else None
    if target is None:
        raise GraphError(f"{what} is no longer part of the graph")
    return target


class Edge(GraphComponent):
    """Directed transition ``from_node -> to_node``."""

    def __init__(
        self,
        name: str,
        graph: "Graph",
        from_node: Node,
        to_node: Node,
        steering_method: Optional[SteeringMethod] = None,
    ) -> None:
        self._from = weakref.ref(from_node)
        self._to = weakref.ref(to_node)
        self._node_override: Optional[weakref.ReferenceType] = None
        self._in_node_from = False
        self._short = False
        self._config_constraint: CachedValue[ConstraintSet] = CachedValue()
        self._path_constraint: CachedValue[ConstraintSet] = CachedValue()
        super().__init__(name, graph)
        prototype = steering_method if steering_method is not None else graph.steering_method
        self._steering_method = prototype.copy()

    # ------------------------------------------------------------------
    # Topology
    # ------------------------------------------------------------------
    @property
    def from_node(self) -> Node:
        return _resolve(self._from, f"origin of edge {self.name!r}")

    @property
    def to_node(self) -> Node:
        return _resolve(self._to, f"target of edge {self.name!r}")

    @property
    def node(self) -> Node:
        """Node whose path constraints apply along this edge."""

        if self._node_override is not None:
            return _resolve(self._node_override, f"node of edge {self.name!r}")
        return self._default_node()

    @node.setter
    def node(self, node: Node) -> None:
        self._node_override = weakref.ref(node)
        self.invalidate()

    def _default_node(self) -> Node:
        return self.from_node if self._in_node_from else self.to_node

    @property
    def is_in_node_from(self) -> bool:
        return self._in_node_from

    @is_in_node_from.setter
    def is_in_node_from(self, value: bool) -> None:
        self._in_node_from = bool(value)
        self.invalidate()

    @property
    def is_short(self) -> bool:
        return self._short

    @is_short.setter
    def is_short(self, value: bool) -> None:
        self._short = bool(value)

    @property
    def steering_method(self) -> SteeringMethod:
        return self._steering_method

    # ------------------------------------------------------------------
    # Constraint sets
    # ------------------------------------------------------------------
    def config_constraint(self) -> ConstraintSet:
        """Constraints of a configuration at rest at the end of this edge."""

        return self._config_constraint.get(self._build_config_constraint)

    def _build_config_constraint(self) -> ConstraintSet:
        graph = self.parent_graph
        target = self.to_node
        label = f"({self.name})"
        constraint = ConstraintSet(graph.robot, "Set " + label)
        projector = graph.create_config_projector("proj_" + label)
        graph.insert_numerical_constraints(projector)
        self.insert_numerical_constraints(projector)
        target.insert_numerical_constraints(projector)
        graph.insert_locked_joints(projector)
        self.insert_locked_joints(projector)
        target.insert_locked_joints(projector)
        constraint.add_constraint(projector)
        logger.debug("Built config constraint of %s with %r", self.name, projector)
        return constraint

    def path_constraint(self) -> ConstraintSet:
        """Constraints holding along any path of this edge, offset from its start."""

        return self._path_constraint.get(self._bind_path_constraint)

    def _bind_path_constraint(self) -> ConstraintSet:
        constraint = self._build_path_constraint()
        self._steering_method.constraints = constraint
        return constraint

    def _build_path_constraint(self) -> ConstraintSet:
        graph = self.parent_graph
        node = self.node
        label = f"({self.name})"
        constraint = ConstraintSet(graph.robot, "Set " + label)
        projector = graph.create_config_projector("proj_" + label)
        graph.insert_numerical_constraints(projector)
        self.insert_numerical_constraints(projector)
        node.insert_numerical_constraints_for_path(projector)
        graph.insert_locked_joints(projector)
        self.insert_locked_joints(projector)
        node.insert_locked_joints(projector)
        constraint.add_constraint(projector)
        logger.debug("Built path constraint of %s in node %s with %r", self.name, node.name, projector)
        return constraint

    def invalidate(self) -> None:
        self._config_constraint.reset()
        self._path_constraint.reset()

    # ------------------------------------------------------------------
    # Traversal
    # ------------------------------------------------------------------
    def build(self, q1: np.ndarray, q2: np.ndarray) -> Optional[Path]:
        """Return a path from ``q1`` to ``q2`` inside this edge, or ``None``."""

        constraints = self.path_constraint()
        constraints.config_projector().right_hand_side_from_config(q1)
        if not constraints.is_satisfied(q1) or not constraints.is_satisfied(q2):
            logger.debug("Edge %s: an end point violates the path constraints", self.name)
            return None
        return self._steering_method(q1, q2)

    def apply_constraints(self, offset: Offset, q: np.ndarray) -> bool:
        """Project ``q`` in place onto the target manifold, right-hand side read from ``offset``.

        ``offset`` is a configuration or a roadmap node. On failure ``q`` is
        left unchanged and ``False`` is returned.
        """

        constraints = self.config_constraint()
        projector = constraints.config_projector()
        projector.right_hand_side_from_config(_offset_configuration(offset))
        if constraints.apply(q):
            return True
        _log_projection_failure(constraints, projector)
        return False


Waypoint = Tuple[Edge, Node]


class WaypointEdge(Edge):
    """Edge passing through a chain of waypoint nodes.

    Waypoint ``i`` is reached through its own edge from waypoint ``i - 1``
    (from :attr:`from_node` for the first one); the last segment, from the
    last waypoint to :attr:`to_node`, uses the constraints of this edge.
    A successful :meth:`build` with ``n`` waypoints yields ``n + 1`` segments.
    """

    def __init__(
        self,
        name: str,
        graph: "Graph",
        from_node: Node,
        to_node: Node,
        steering_method: Optional[SteeringMethod] = None,
    ) -> None:
        self._waypoints: List[Optional[Tuple[weakref.ReferenceType, weakref.ReferenceType]]] = []
        self._configs = np.zeros((1, 0), dtype=float)
        self._result: Optional[np.ndarray] = None
        self._last_succeeded = False
        super().__init__(name, graph, from_node, to_node, steering_method)
        self._resize_buffers()

    # ------------------------------------------------------------------
    # Chain management
    # ------------------------------------------------------------------
    @property
    def nb_waypoints(self) -> int:
        return len(self._waypoints)

    @nb_waypoints.setter
    def nb_waypoints(self, number: int) -> None:
        if number < 0:
            raise GraphConstructionError(f"edge {self.name!r}: number of waypoints must be >= 0, got {number}")
        self._waypoints = (self._waypoints + [None] * number)[:number]
        self._resize_buffers()

    def _resize_buffers(self) -> None:
        size = self.parent_graph.robot.config_size
        self._configs = np.zeros((self.nb_waypoints + 1, size), dtype=float)
        self._result = None
        self._last_succeeded = False

    def set_waypoint(self, index: int, edge: Edge, node: Node) -> None:
        if not 0 <= index < self.nb_waypoints:
            raise GraphConstructionError(
                f"edge {self.name!r}: waypoint index {index} out of range [0, {self.nb_waypoints})"
            )
        self._waypoints[index] = (weakref.ref(edge), weakref.ref(node))
        self.invalidate()

    def waypoint(self, index: int) -> Waypoint:
        entry = self._waypoints[index]
        if entry is None:
            raise GraphConstructionError(f"edge {self.name!r}: waypoint {index} is not set")
        edge_ref, node_ref = entry
        edge = edge_ref()
        if edge is None:
            raise GraphError(f"edge {self.name!r}: waypoint edge {index} is no longer part of the graph")
        return edge, _resolve(node_ref, f"waypoint node {index} of edge {self.name!r}")

    def waypoints(self) -> List[Waypoint]:
        return [self.waypoint(index) for index in range(self.nb_waypoints)]

    def create_waypoint(self, depth: int, base_name: str) -> None:
        """Build a nested chain of ``depth + 1`` waypoints named after ``base_name``."""

        if depth < 0:
            raise GraphConstructionError(f"edge {self.name!r}: waypoint depth must be >= 0, got {depth}")
        graph = self.parent_graph
        node = Node(f"{base_name}_n{depth}", graph, waypoint=True)
        edge_name = f"{base_name}_e{depth}"
        if depth == 0:
            edge: Edge = Edge(edge_name, graph, self.from_node, node, self._steering_method)
            edge.is_in_node_from = self.is_in_node_from
        else:
            nested = WaypointEdge(edge_name, graph, self.from_node, node, self._steering_method)
            nested.is_in_node_from = self.is_in_node_from
            nested.create_waypoint(depth - 1, base_name)
            edge = nested
        self.nb_waypoints = 1
        self.set_waypoint(0, edge, node)

    def _default_node(self) -> Node:
        if self.is_in_node_from and self.nb_waypoints > 0 and self._waypoints[-1] is not None:
            return self.waypoint(self.nb_waypoints - 1)[1]
        return super()._default_node()

    def invalidate(self) -> None:
        super().invalidate()
        self._last_succeeded = False

    # ------------------------------------------------------------------
    # Traversal
    # ------------------------------------------------------------------
    def apply_constraints(self, offset: Offset, q: np.ndarray) -> bool:
        chain = self.waypoints()
        configs = self._configs
        configs[0] = _offset_configuration(offset)
        self._last_succeeded = False
        for index, (edge, _) in enumerate(chain):
            configs[index + 1] = q
            sub_offset = offset if index == 0 else _waypoint_offset(offset, configs[index])
            if not edge.apply_constraints(sub_offset, configs[index + 1]):
                return False
        if not super().apply_constraints(configs[len(chain)], q):
            return False
        self._result = np.array(q, dtype=float)
        self._last_succeeded = True
        return True

    def build(self, q1: np.ndarray, q2: np.ndarray) -> Optional[Path]:
        chain = self.waypoints()
        configs = self._configs
        # Usually called right after apply_constraints for the same target:
        # the intermediate configurations are then already projected.
        reuse = (
            self._last_succeeded
            and self._result is not None
            and np.array_equal(self._result, q2)
            and np.array_equal(configs[0], q1)
        )
        if not reuse:
            self._last_succeeded = False
            configs[0] = q1
            for index, (edge, _) in enumerate(chain):
                configs[index + 1] = q2
                if not edge.apply_constraints(configs[index], configs[index + 1]):
                    logger.debug("Edge %s: waypoint %d is not reachable", self.name, index)
                    return None

        robot = self.parent_graph.robot
        path = PathVector(robot.config_size, robot.number_dof)
        for index, (edge, _) in enumerate(chain):
            segment = edge.build(configs[index], configs[index + 1])
            if segment is None:
                logger.debug("Edge %s: segment %d failed", self.name, index)
                return None
            _append_segment(path, segment)
        end = super().build(configs[len(chain)], q2)
        if end is None:
            logger.debug("Edge %s: last segment failed", self.name)
            return None
        _append_segment(path, end)
        return path


def _append_segment(path: PathVector, segment: Path) -> None:
    if isinstance(segment, PathVector):
        path.concatenate(segment)
    else:
        path.append_path(segment)


class LevelSetEdge(Edge):
    """Edge whose target leaf is chosen among the leaves explored so far.

    *Condition* constraints define which configurations belong to the
    foliation and are recorded in the histogram. *Param* constraints index
    the leaves: during :meth:`apply_constraints` their right-hand side is read
    from a configuration of another connected component, every other
    right-hand side from the offset node.
    """

    def __init__(
        self,
        name: str,
        graph: "Graph",
        from_node: Node,
        to_node: Node,
        steering_method: Optional[SteeringMethod] = None,
    ) -> None:
        self._param_numerical: List[Tuple[NumericalConstraint, Tuple[Interval, ...]]] = []
        self._param_locked: List[LockedJoint] = []
        self._condition_numerical: List[Tuple[NumericalConstraint, Tuple[Interval, ...]]] = []
        self._condition_locked: List[LockedJoint] = []
        self._histogram: Optional[LeafHistogram] = None
        self._extra_constraint: CachedValue[ConstraintSet] = CachedValue()
        self.rng = np.random.default_rng()
        super().__init__(name, graph, from_node, to_node, steering_method)

    def insert_param_constraint(
        self, constraint: Union[NumericalConstraint, LockedJoint], passive_dofs: Sequence[Interval] = ()
    ) -> None:
        if isinstance(constraint, LockedJoint):
            self._param_locked.append(constraint)
        else:
            self._param_numerical.append((constraint, tuple(passive_dofs)))
        self.invalidate()

    def insert_condition_constraint(
        self, constraint: Union[NumericalConstraint, LockedJoint], passive_dofs: Sequence[Interval] = ()
    ) -> None:
        if isinstance(constraint, LockedJoint):
            self._condition_locked.append(constraint)
        else:
            self._condition_numerical.append((constraint, tuple(passive_dofs)))

    @property
    def param_constraints(self) -> List[Union[NumericalConstraint, LockedJoint]]:
        return [constraint for constraint, _ in self._param_numerical] + list(self._param_locked)

    @property
    def condition_constraints(self) -> List[Union[NumericalConstraint, LockedJoint]]:
        return [constraint for constraint, _ in self._condition_numerical] + list(self._condition_locked)

    @property
    def histogram(self) -> Optional[LeafHistogram]:
        return self._histogram

    @histogram.setter
    def histogram(self, histogram: LeafHistogram) -> None:
        self._histogram = histogram

    def build_histogram(self) -> LeafHistogram:
        """Create a histogram over the foliation described by the inserted constraints."""

        graph = self.parent_graph
        condition = graph.create_config_projector(f"cond_({self.name})")
        for constraint, passive in self._condition_numerical:
            condition.add(constraint, passive)
        for locked in self._condition_locked:
            condition.add(locked)
        parametrizer = graph.create_config_projector(f"param_({self.name})")
        for constraint, passive in self._param_numerical:
            parametrizer.add(constraint, passive)
        for locked in self._param_locked:
            parametrizer.add(locked)
        self._histogram = LeafHistogram(Foliation(condition, parametrizer))
        return self._histogram

    def extra_config_constraint(self) -> ConstraintSet:
        return self._extra_constraint.get(self._build_extra_config_constraint)

    def _build_extra_config_constraint(self) -> ConstraintSet:
        graph = self.parent_graph
        target = self.to_node
        label = f"({self.name}_extra)"
        constraint = ConstraintSet(graph.robot, "Set " + label)
        projector = graph.create_config_projector("proj_" + label)
        graph.insert_numerical_constraints(projector)
        for param, passive in self._param_numerical:
            projector.add(param, passive)
        self.insert_numerical_constraints(projector)
        target.insert_numerical_constraints(projector)
        graph.insert_locked_joints(projector)
        for locked in self._param_locked:
            projector.add(locked)
        self.insert_locked_joints(projector)
        target.insert_locked_joints(projector)
        constraint.add_constraint(projector)
        return constraint

    def invalidate(self) -> None:
        super().invalidate()
        self._extra_constraint.reset()

    def apply_constraints(self, offset: Offset, q: np.ndarray) -> bool:
        if not isinstance(offset, RoadmapNode):
            raise UnsupportedOperationError(
                f"level set edge {self.name!r} needs a roadmap node to know which "
                "connected component the target leaf must avoid"
            )
        if self._histogram is None:
            raise GraphError(f"level set edge {self.name!r} has no histogram")

        distrib = self._histogram.get_distrib_out_of_connected_component(offset.connected_component)
        if distrib.size() == 0:
            logger.warning("Edge %s: distribution of leaves is empty", self.name)
            return False
        leaf_target = distrib(self.rng).configuration

        constraints = self.extra_config_constraint()
        projector = constraints.config_projector()
        projector.right_hand_side_from_config(offset.configuration)
        for param, _ in self._param_numerical:
            param.right_hand_side_from_config(leaf_target)
        for locked in self._param_locked:
            locked.right_hand_side_from_config(leaf_target)
        projector.update_right_hand_side()

        if constraints.apply(q):
            return True
        _log_projection_failure(constraints, projector)
        return False
