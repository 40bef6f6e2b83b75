"""Shared base of graph nodes, edges and selectors."""

from __future__ import annotations

import weakref
from typing import TYPE_CHECKING, Callable, Generic, List, Optional, Sequence, Tuple, TypeVar

from ..core.constraints import Interval, LockedJoint, NumericalConstraint
from ..core.projector import ConfigProjector
from ..errors import GraphError

if TYPE_CHECKING:
    from .graph import Graph

T = TypeVar("T")


class CachedValue(Generic[T]):
    """Cell holding a lazily built value.

    The builder runs on the first :meth:`get` and its result is returned by
    every later call until :meth:`reset`. There is no locking: concurrent
    first calls on the same cell must be serialized by the caller.
    """

    __slots__ = ("_value",)

    def __init__(self) -> None:
        self._value: Optional[T] = None

    def __bool__(self) -> bool:
        return self._value is not None

    def get(self, build: Callable[[], T]) -> T:
        if self._value is None:
            self._value = build()
        return self._value

    def reset(self) -> None:
        self._value = None


class GraphComponent:
    """Named element of a constraint graph carrying numerical and locked-joint constraints.

    Components only hold a weak reference to their graph. The graph keeps the
    strong references and hands out the ``id`` at registration.
    """

    def __init__(self, name: str, graph: Optional["Graph"] = None) -> None:
        self.name = name
        self.id: Optional[int] = None
        self._graph_ref: Optional[weakref.ReferenceType] = None
        self._numerical: List[Tuple[NumericalConstraint, Tuple[Interval, ...]]] = []
        self._locked: List[LockedJoint] = []
        if graph is not None:
            self.parent_graph = graph

    @property
    def parent_graph(self) -> "Graph":
        graph = self._graph_ref() if self._graph_ref is not None else None
        if graph is None:
            raise GraphError(f"component {self.name!r} is not attached to a live graph")
        return graph

    @parent_graph.setter
    def parent_graph(self, graph: "Graph") -> None:
        current = self._graph_ref() if self._graph_ref is not None else None
        if current is graph:
            return
        if current is not None:
            raise GraphError(f"component {self.name!r} already belongs to graph {current.name!r}")
        self._graph_ref = weakref.ref(graph)
        graph.register_component(self)

    # ------------------------------------------------------------------
    # Constraints
    # ------------------------------------------------------------------
    def add_numerical_constraint(
        self, constraint: NumericalConstraint, passive_dofs: Sequence[Interval] = ()
    ) -> None:
        self._numerical.append((constraint, tuple(passive_dofs)))
        self.invalidate()

    def add_locked_joint_constraint(self, locked: LockedJoint) -> None:
        self._locked.append(locked)
        self.invalidate()

    @property
    def numerical_constraints(self) -> List[NumericalConstraint]:
        return [constraint for constraint, _ in self._numerical]

    @property
    def passive_dofs(self) -> List[Tuple[Interval, ...]]:
        return [passive for _, passive in self._numerical]

    @property
    def locked_joints(self) -> List[LockedJoint]:
        return list(self._locked)

    def insert_numerical_constraints(self, projector: ConfigProjector) -> None:
        for constraint, passive in self._numerical:
            projector.add(constraint, passive)

    def insert_locked_joints(self, projector: ConfigProjector) -> None:
        for locked in self._locked:
            projector.add(locked)

    def invalidate(self) -> None:
        """Drop cached constraint sets built from this component's constraints."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r}, id={self.id})"
