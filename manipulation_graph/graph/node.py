from __future__ import annotations

import logging
import weakref
from typing import TYPE_CHECKING, List, Optional, Sequence, Tuple, Type

import numpy as np

from ..core.constraint_set import ConstraintSet
from ..core.constraints import Interval, NumericalConstraint
from ..core.projector import ConfigProjector
from .component import CachedValue, GraphComponent

if TYPE_CHECKING:
    from .edge import Edge
    from .graph import Graph

logger = logging.getLogger(__name__)


class Node(GraphComponent):
    """Mode of the task: the manifold of configurations satisfying its constraints.

    Constraints added with :meth:`add_numerical_constraint` hold at rest in the
    node. Constraints added with :meth:`add_numerical_constraint_for_path`
    must hold along every path whose edge is attached to this node.
    """

    def __init__(self, name: str, graph: Optional["Graph"] = None, *, waypoint: bool = False) -> None:
        self._path_numerical: List[Tuple[NumericalConstraint, Tuple[Interval, ...]]] = []
        self._neighbors: List[Tuple[weakref.ReferenceType, float]] = []
        self._hidden_neighbors: List[weakref.ReferenceType] = []
        self._config_constraint: CachedValue[ConstraintSet] = CachedValue()
        self.waypoint = waypoint
        super().__init__(name, graph)

    def add_numerical_constraint_for_path(
        self, constraint: NumericalConstraint, passive_dofs: Sequence[Interval] = ()
    ) -> None:
        self._path_numerical.append((constraint, tuple(passive_dofs)))
        self.invalidate()

    @property
    def numerical_constraints_for_path(self) -> List[NumericalConstraint]:
        return [constraint for constraint, _ in self._path_numerical]

    def insert_numerical_constraints_for_path(self, projector: ConfigProjector) -> None:
        for constraint, passive in self._path_numerical:
            projector.add(constraint, passive)

    def config_constraint(self) -> ConstraintSet:
        return self._config_constraint.get(self._build_config_constraint)

    def _build_config_constraint(self) -> ConstraintSet:
        graph = self.parent_graph
        label = f"({self.name})"
        constraint = ConstraintSet(graph.robot, "Set " + label)
        projector = graph.create_config_projector("proj_" + label)
        graph.insert_numerical_constraints(projector)
        self.insert_numerical_constraints(projector)
        graph.insert_locked_joints(projector)
        self.insert_locked_joints(projector)
        constraint.add_constraint(projector)
        return constraint

    def contains(self, q: np.ndarray) -> bool:
        return self.config_constraint().is_satisfied(q)

    def invalidate(self) -> None:
        self._config_constraint.reset()

    # ------------------------------------------------------------------
    # Outgoing edges
    # ------------------------------------------------------------------
    def link_to(self, name: str, to: "Node", weight: float = 1, edge_type: Optional[Type["Edge"]] = None) -> "Edge":
        """Create an edge from this node to ``to``.

        A negative ``weight`` creates a hidden edge: it is owned by the graph
        but not listed among the neighbours, so it is only reachable as the
        waypoint of another edge.
        """

        from .edge import Edge

        cls = edge_type or Edge
        edge = cls(name, self.parent_graph, self, to)
        if weight >= 0:
            self._neighbors.append((weakref.ref(edge), float(weight)))
        else:
            self._hidden_neighbors.append(weakref.ref(edge))
        logger.debug("Linked %s -> %s with %s (weight=%s)", self.name, to.name, name, weight)
        return edge

    def neighbors(self) -> List[Tuple["Edge", float]]:
        return [(ref(), weight) for ref, weight in self._neighbors if ref() is not None]

    def neighbor_edges(self) -> List["Edge"]:
        return [edge for edge, _ in self.neighbors()]

    def hidden_neighbor_edges(self) -> List["Edge"]:
        return [ref() for ref in self._hidden_neighbors if ref() is not None]
