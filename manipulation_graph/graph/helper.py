"""Expand grasp / placement manifolds into constraint sub-graphs.

``create_edges`` turns one transition of the task (grasp an object, possibly
lifting it from a placement) into the nodes and edges the planner needs:
intermediate waypoint nodes for the pregrasp, intersection and preplacement
stages, and forward / backward waypoint edges chaining them.

``graph_builder`` enumerates every assignment of grippers to handles and
calls ``create_edges`` for every transition between two assignments that
differ by one grasp.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Protocol, Sequence, Tuple

from ..core.constraints import Interval, LockedJoint, NumericalConstraint
from ..errors import GraphConstructionError
from ..logging_utils import apply_debug_logging
from .component import GraphComponent
from .edge import Edge, LevelSetEdge, WaypointEdge
from .graph import Graph
from .node import Node
from .node_selector import NodeSelector

logger = logging.getLogger(__name__)

EdgePair = Tuple[Edge, Edge]


# ---------------------------------------------------------------------------
# Manifold bundles
# ---------------------------------------------------------------------------


@dataclass
class NumericalConstraintsAndPassiveDofs:
    """Numerical constraints paired with their passive DOF intervals."""

    nc: List[NumericalConstraint] = field(default_factory=list)
    pdof: List[Tuple[Interval, ...]] = field(default_factory=list)

    def append(self, constraint: NumericalConstraint, passive_dofs: Sequence[Interval] = ()) -> None:
        self.nc.append(constraint)
        self.pdof.append(tuple(passive_dofs))

    def __len__(self) -> int:
        return len(self.nc)

    def add_to_component(self, component: GraphComponent) -> None:
        for constraint, passive in zip(self.nc, self.pdof):
            component.add_numerical_constraint(constraint, passive)

    def add_to_node_path(self, node: Node) -> None:
        if not isinstance(node, Node):
            raise GraphConstructionError(f"path constraints need a node, got {type(node).__name__}")
        for constraint, passive in zip(self.nc, self.pdof):
            node.add_numerical_constraint_for_path(constraint, passive)

    def specify_foliation(self, edge: LevelSetEdge, *, param: bool) -> None:
        insert = edge.insert_param_constraint if param else edge.insert_condition_constraint
        for constraint, passive in zip(self.nc, self.pdof):
            insert(constraint, passive)

    def merge(self, other: "NumericalConstraintsAndPassiveDofs") -> "NumericalConstraintsAndPassiveDofs":
        return NumericalConstraintsAndPassiveDofs(self.nc + other.nc, self.pdof + other.pdof)


@dataclass
class FoliatedManifold:
    """Constraints describing one stage of a manipulation transition.

    ``nc`` / ``lj`` hold at rest in the node of the stage, ``nc_path`` along
    the paths of that node. ``nc_fol`` / ``lj_fol`` hold along the edges
    reaching the stage; they index the leaves of the foliation when the edge
    is a level-set edge.
    """

    nc: NumericalConstraintsAndPassiveDofs = field(default_factory=NumericalConstraintsAndPassiveDofs)
    lj: List[LockedJoint] = field(default_factory=list)
    nc_path: NumericalConstraintsAndPassiveDofs = field(default_factory=NumericalConstraintsAndPassiveDofs)
    nc_fol: NumericalConstraintsAndPassiveDofs = field(default_factory=NumericalConstraintsAndPassiveDofs)
    lj_fol: List[LockedJoint] = field(default_factory=list)

    def add_to_node(self, node: Node) -> None:
        self.nc.add_to_component(node)
        for locked in self.lj:
            node.add_locked_joint_constraint(locked)
        self.nc_path.add_to_node_path(node)

    def add_to_edge(self, edge: Edge) -> None:
        self.nc_fol.add_to_component(edge)
        for locked in self.lj_fol:
            edge.add_locked_joint_constraint(locked)

    def specify_foliation(self, edge: LevelSetEdge) -> None:
        self.nc.specify_foliation(edge, param=False)
        for locked in self.lj:
            edge.insert_condition_constraint(locked)
        self.nc_fol.specify_foliation(edge, param=True)
        for locked in self.lj_fol:
            edge.insert_param_constraint(locked)

    def is_foliated(self) -> bool:
        return bool(self.nc_fol) or bool(self.lj_fol)

    def merge(self, other: "FoliatedManifold") -> "FoliatedManifold":
        return FoliatedManifold(
            nc=self.nc.merge(other.nc),
            lj=self.lj + other.lj,
            nc_path=self.nc_path.merge(other.nc_path),
            nc_fol=self.nc_fol.merge(other.nc_fol),
            lj_fol=self.lj_fol + other.lj_fol,
        )


@dataclass(frozen=True)
class EdgeStages:
    """Optional stages of a transition: approach to a pregrasp, lift from a placement."""

    pregrasp: bool = False
    place: bool = False


# ---------------------------------------------------------------------------
# Sub-graph factories
# ---------------------------------------------------------------------------


def _node_selector(node: Node) -> NodeSelector:
    selector = node.parent_graph.node_selector
    if selector is None:
        raise GraphConstructionError(f"graph {node.parent_graph.name!r} does not have a node selector")
    return selector


def _make_level_set(edge: LevelSetEdge, manifold: FoliatedManifold) -> None:
    manifold.specify_foliation(edge)
    edge.build_histogram()


def _link_waypoint_edges(
    forw_name: str, back_name: str, from_node: Node, to_node: Node, w_forw: float, w_back: float, count: int
) -> Tuple[WaypointEdge, WaypointEdge]:
    we_forw = from_node.link_to(forw_name, to_node, w_forw, WaypointEdge)
    we_back = to_node.link_to(back_name, from_node, w_back, WaypointEdge)
    we_forw.nb_waypoints = count
    we_back.nb_waypoints = count
    return we_forw, we_back


def _create_grasp_only_no_place(
    forw_name: str,
    back_name: str,
    from_node: Node,
    to_node: Node,
    w_forw: float,
    w_back: float,
    grasp: FoliatedManifold,
    pregrasp: FoliatedManifold,
    place: FoliatedManifold,
    preplace: FoliatedManifold,
    level_set_grasp: bool,
    level_set_place: bool,
    submanifold: FoliatedManifold,
) -> EdgePair:
    e_forw = from_node.link_to(forw_name, to_node, w_forw, LevelSetEdge if level_set_grasp else Edge)
    e_back = to_node.link_to(back_name, from_node, w_back, Edge)

    e_forw.node = from_node
    submanifold.add_to_edge(e_forw)
    e_back.node = from_node
    submanifold.add_to_edge(e_back)

    if level_set_grasp:
        _make_level_set(e_forw, grasp)
    return e_forw, e_back


def _create_grasp_only_place(
    forw_name: str,
    back_name: str,
    from_node: Node,
    to_node: Node,
    w_forw: float,
    w_back: float,
    grasp: FoliatedManifold,
    pregrasp: FoliatedManifold,
    place: FoliatedManifold,
    preplace: FoliatedManifold,
    level_set_grasp: bool,
    level_set_place: bool,
    submanifold: FoliatedManifold,
) -> EdgePair:
    we_forw, we_back = _link_waypoint_edges(forw_name, back_name, from_node, to_node, w_forw, w_back, 1)

    name = forw_name
    n0, n2 = from_node, to_node
    n1 = _node_selector(n0).create_node(name + "_intersec", waypoint=True)

    e01 = n0.link_to(name + "_e01", n1, -1, Edge)
    e01_ls = n0.link_to(name + "_e01_ls", n1, -1, LevelSetEdge) if level_set_grasp else None

    e01.node = n0
    we_forw.node = n2

    # From and to are populated by the caller.
    place.add_to_node(n1)
    grasp.add_to_node(n1)
    submanifold.add_to_node(n1)

    place.add_to_edge(e01)
    submanifold.add_to_edge(e01)
    grasp.add_to_edge(we_forw)
    submanifold.add_to_edge(we_forw)

    we_forw.set_waypoint(0, e01_ls if e01_ls is not None else e01, n1)

    e21 = n2.link_to(name + "_e21", n1, -1, Edge)
    e21_ls = n2.link_to(name + "_e21_ls", n1, -1, LevelSetEdge) if level_set_place else None

    e21.node = n2
    we_back.node = n0

    place.add_to_edge(we_back)
    submanifold.add_to_edge(we_back)
    grasp.add_to_edge(e21)
    submanifold.add_to_edge(e21)

    we_back.set_waypoint(0, e21_ls if e21_ls is not None else e21, n1)

    if e21_ls is not None:
        e21_ls.node = n2
        e21_ls.is_short = True
        grasp.add_to_edge(e21_ls)
        submanifold.add_to_edge(e21_ls)
        _make_level_set(e21_ls, place)
    if e01_ls is not None:
        e01_ls.node = n0
        e01_ls.is_short = True
        place.add_to_edge(e01_ls)
        submanifold.add_to_edge(e01_ls)
        _make_level_set(e01_ls, grasp)
    return we_forw, we_back


def _create_pregrasp_no_place(
    forw_name: str,
    back_name: str,
    from_node: Node,
    to_node: Node,
    w_forw: float,
    w_back: float,
    grasp: FoliatedManifold,
    pregrasp: FoliatedManifold,
    place: FoliatedManifold,
    preplace: FoliatedManifold,
    level_set_grasp: bool,
    level_set_place: bool,
    submanifold: FoliatedManifold,
) -> EdgePair:
    if level_set_grasp:
        logger.warning(
            "%s: a foliated grasp with a pregrasp and no placement is not supported, building plain edges",
            forw_name,
        )
    we_forw, we_back = _link_waypoint_edges(forw_name, back_name, from_node, to_node, w_forw, w_back, 1)

    name = forw_name
    n0, n2 = from_node, to_node
    n1 = _node_selector(n0).create_node(name + "_pregrasp", waypoint=True)

    e01 = n0.link_to(name + "_e01", n1, -1, Edge)

    e01.node = n0
    we_forw.node = n0
    we_forw.is_short = True

    pregrasp.add_to_node(n1)
    submanifold.add_to_node(n1)

    submanifold.add_to_edge(e01)
    submanifold.add_to_edge(we_forw)

    we_forw.set_waypoint(0, e01, n1)

    e21 = n2.link_to(name + "_e21", n1, -1, Edge)

    e21.node = n0
    e21.is_short = True
    we_back.node = n0

    submanifold.add_to_edge(we_back)
    submanifold.add_to_edge(e21)

    we_back.set_waypoint(0, e21, n1)
    return we_forw, we_back


def _create_pregrasp_place(
    forw_name: str,
    back_name: str,
    from_node: Node,
    to_node: Node,
    w_forw: float,
    w_back: float,
    grasp: FoliatedManifold,
    pregrasp: FoliatedManifold,
    place: FoliatedManifold,
    preplace: FoliatedManifold,
    level_set_grasp: bool,
    level_set_place: bool,
    submanifold: FoliatedManifold,
) -> EdgePair:
    we_forw, we_back = _link_waypoint_edges(forw_name, back_name, from_node, to_node, w_forw, w_back, 3)

    name = forw_name
    selector = _node_selector(from_node)
    n0 = from_node
    n1 = selector.create_node(name + "_pregrasp", waypoint=True)
    n2 = selector.create_node(name + "_intersec", waypoint=True)
    n3 = selector.create_node(name + "_preplace", waypoint=True)
    n4 = to_node

    e01 = n0.link_to(name + "_e01", n1, -1, Edge)
    e12 = n1.link_to(name + "_e12", n2, -1, Edge)
    e23 = n2.link_to(name + "_e23", n3, -1, Edge)
    e12_ls = n1.link_to(name + "_e12_ls", n2, -1, LevelSetEdge) if level_set_grasp else None

    e01.node = n0
    e12.node = n0
    e12.is_short = True
    e23.node = n4
    e23.is_short = True
    we_forw.node = n4

    place.add_to_node(n1)
    pregrasp.add_to_node(n1)
    submanifold.add_to_node(n1)
    place.add_to_node(n2)
    grasp.add_to_node(n2)
    submanifold.add_to_node(n2)
    preplace.add_to_node(n3)
    grasp.add_to_node(n3)
    submanifold.add_to_node(n3)

    place.add_to_edge(e01)
    submanifold.add_to_edge(e01)
    place.add_to_edge(e12)
    submanifold.add_to_edge(e12)
    grasp.add_to_edge(e23)
    submanifold.add_to_edge(e23)
    grasp.add_to_edge(we_forw)
    submanifold.add_to_edge(we_forw)

    we_forw.set_waypoint(0, e01, n1)
    we_forw.set_waypoint(1, e12_ls if e12_ls is not None else e12, n2)
    we_forw.set_waypoint(2, e23, n3)

    e43 = n4.link_to(name + "_e43", n3, -1, Edge)
    e32 = n3.link_to(name + "_e32", n2, -1, Edge)
    e21 = n2.link_to(name + "_e21", n1, -1, Edge)
    e32_ls = n3.link_to(name + "_e32_ls", n2, -1, LevelSetEdge) if level_set_place else None

    e43.node = n4
    e32.node = n4
    e32.is_short = True
    e21.node = n0
    e21.is_short = True
    we_back.node = n0

    place.add_to_edge(we_back)
    submanifold.add_to_edge(we_back)
    place.add_to_edge(e21)
    submanifold.add_to_edge(e21)
    grasp.add_to_edge(e32)
    submanifold.add_to_edge(e32)
    grasp.add_to_edge(e43)
    submanifold.add_to_edge(e43)

    we_back.set_waypoint(0, e43, n3)
    we_back.set_waypoint(1, e32_ls if e32_ls is not None else e32, n2)
    we_back.set_waypoint(2, e21, n1)

    if e32_ls is not None:
        e32_ls.node = n4
        e32_ls.is_short = True
        grasp.add_to_edge(e32_ls)
        submanifold.add_to_edge(e32_ls)
        _make_level_set(e32_ls, place)
    if e12_ls is not None:
        e12_ls.node = n0
        e12_ls.is_short = True
        place.add_to_edge(e12_ls)
        submanifold.add_to_edge(e12_ls)
        _make_level_set(e12_ls, grasp)
    return we_forw, we_back


EdgeFactory = Callable[..., EdgePair]

# Names resolved in globals() after debug tracing has wrapped the factories.
_EDGE_FACTORIES: Dict[EdgeStages, str] = {
    EdgeStages(pregrasp=False, place=False): "_create_grasp_only_no_place",
    EdgeStages(pregrasp=False, place=True): "_create_grasp_only_place",
    EdgeStages(pregrasp=True, place=False): "_create_pregrasp_no_place",
    EdgeStages(pregrasp=True, place=True): "_create_pregrasp_place",
}


def _foliation_requested(requested: bool, manifold: Optional[FoliatedManifold], what: str, edge: str) -> bool:
    if not requested:
        return False
    if manifold is None or not manifold.is_foliated():
        logger.warning(
            "%s: a level set edge was requested for %s but the %s manifold defines no foliation, "
            "building a plain edge",
            edge,
            what,
            what,
        )
        return False
    return True


def create_edges(
    forw_name: str,
    back_name: str,
    from_node: Node,
    to_node: Node,
    w_forw: float,
    w_back: float,
    *,
    grasp: FoliatedManifold,
    pregrasp: Optional[FoliatedManifold] = None,
    place: Optional[FoliatedManifold] = None,
    preplace: Optional[FoliatedManifold] = None,
    submanifold_def: Optional[FoliatedManifold] = None,
    stages: EdgeStages = EdgeStages(),
    level_set_grasp: bool = False,
    level_set_place: bool = False,
) -> EdgePair:
    """Create the forward and backward edges between ``from_node`` and ``to_node``.

    The constraints of ``from_node`` and ``to_node`` themselves are left to
    the caller. Intermediate nodes are created through the graph's node
    selector as waypoint nodes, intermediate edges as hidden edges.
    """

    if stages.pregrasp and pregrasp is None:
        raise GraphConstructionError(f"{forw_name}: a pregrasp stage needs a pregrasp manifold")
    if stages.place and place is None:
        raise GraphConstructionError(f"{forw_name}: a placement stage needs a placement manifold")
    if stages.place and stages.pregrasp and preplace is None:
        raise GraphConstructionError(f"{forw_name}: a placement stage with pregrasp needs a preplacement manifold")

    level_set_grasp = _foliation_requested(level_set_grasp, grasp, "grasp", forw_name)
    level_set_place = stages.place and _foliation_requested(level_set_place, place, "placement", forw_name)

    factory: EdgeFactory = globals()[_EDGE_FACTORIES[stages]]
    forw, back = factory(
        forw_name,
        back_name,
        from_node,
        to_node,
        w_forw,
        w_back,
        grasp,
        pregrasp or FoliatedManifold(),
        place or FoliatedManifold(),
        preplace or FoliatedManifold(),
        level_set_grasp,
        level_set_place,
        submanifold_def or FoliatedManifold(),
    )
    logger.info(
        "Created edges %s / %s (%s -> %s, pregrasp=%s, place=%s)",
        forw.name,
        back.name,
        from_node.name,
        to_node.name,
        stages.pregrasp,
        stages.place,
    )
    return forw, back


# ---------------------------------------------------------------------------
# Manifold factories
# ---------------------------------------------------------------------------


class Gripper(Protocol):
    name: str
    clearance: float


class Handle(Protocol):
    name: str
    clearance: float

    def create_grasp(self, gripper: Gripper) -> NumericalConstraint:
        ...

    def create_grasp_complement(self, gripper: Gripper) -> NumericalConstraint:
        ...

    def create_pre_grasp(self, gripper: Gripper, clearance: float) -> NumericalConstraint:
        ...


def grasp_manifold(gripper: Gripper, handle: Handle) -> Tuple[FoliatedManifold, FoliatedManifold]:
    """Return the ``(grasp, pregrasp)`` manifolds of ``gripper`` holding ``handle``."""

    grasp = FoliatedManifold()
    pregrasp = FoliatedManifold()

    constraint = handle.create_grasp(gripper)
    grasp.nc.append(constraint)
    grasp.nc_path.append(constraint)
    complement = handle.create_grasp_complement(gripper)
    if complement.function.output_size > 0:
        grasp.nc_fol.append(complement)

    clearance = handle.clearance + gripper.clearance
    approach = handle.create_pre_grasp(gripper, clearance)
    pregrasp.nc.append(approach)
    pregrasp.nc_path.append(approach)
    return grasp, pregrasp


def strict_placement_manifold(
    placement: NumericalConstraint,
    preplacement: NumericalConstraint,
    complement: Optional[NumericalConstraint] = None,
) -> Tuple[FoliatedManifold, FoliatedManifold]:
    """Return the ``(place, preplace)`` manifolds; ``complement`` indexes the placements."""

    place = FoliatedManifold()
    preplace = FoliatedManifold()
    place.nc.append(placement)
    place.nc_path.append(placement)
    if complement is not None and complement.function.output_size > 0:
        place.nc_fol.append(complement)
    preplace.nc.append(preplacement)
    preplace.nc_path.append(preplacement)
    return place, preplace


def relaxed_placement_manifold(
    placement: NumericalConstraint,
    preplacement: NumericalConstraint,
    object_locks: Sequence[LockedJoint],
) -> Tuple[FoliatedManifold, FoliatedManifold]:
    """Like :func:`strict_placement_manifold` with the object pose locked along the edges."""

    place = FoliatedManifold()
    preplace = FoliatedManifold()
    place.nc.append(placement)
    place.nc_path.append(placement)
    place.lj_fol.extend(object_locks)
    preplace.nc.append(preplacement)
    preplace.nc_path.append(preplacement)
    return place, preplace


# ---------------------------------------------------------------------------
# Whole graph
# ---------------------------------------------------------------------------


@dataclass
class ManipulatedObject:
    """Object with its handles and, when it can rest somewhere, its placement."""

    name: str
    handles: List[Handle]
    placement: Optional[FoliatedManifold] = None
    preplacement: Optional[FoliatedManifold] = None


Assignment = Tuple[Optional[int], ...]
"""Handle index held by every gripper, ``None`` for an empty gripper."""


def _enumerate_assignments(n_grippers: int, n_handles: int) -> List[Assignment]:
    found: List[Assignment] = []
    seen = set()

    def recurse(assignment: Assignment) -> None:
        if assignment in seen:
            return
        seen.add(assignment)
        found.append(assignment)
        taken = {handle for handle in assignment if handle is not None}
        for gripper, held in enumerate(assignment):
            if held is not None:
                continue
            for handle in range(n_handles):
                if handle in taken:
                    continue
                recurse(assignment[:gripper] + (handle,) + assignment[gripper + 1 :])

    recurse((None,) * n_grippers)
    return found


def _number_of_grasps(assignment: Assignment) -> int:
    return sum(1 for handle in assignment if handle is not None)


def graph_builder(
    objects: Sequence[ManipulatedObject],
    grippers: Sequence[Gripper],
    graph: Optional[Graph],
    *,
    level_set_grasp: bool = False,
    level_set_place: bool = False,
) -> Graph:
    """Populate ``graph`` with one node per gripper/handle assignment and the transitions between them.

    Nodes are created with the most grasps first so that the node selector
    returns the most specific state of a configuration.
    """

    if graph is None:
        raise GraphConstructionError("the graph must be initialized")
    if graph.node_selector is None:
        raise GraphConstructionError(f"graph {graph.name!r} does not have a node selector")
    selector = graph.node_selector

    handles: List[Tuple[int, Handle]] = [
        (obj_index, handle) for obj_index, obj in enumerate(objects) for handle in obj.handles
    ]
    manifolds: Dict[Tuple[int, int], Tuple[FoliatedManifold, FoliatedManifold]] = {}

    def grasp_of(gripper: int, handle: int) -> Tuple[FoliatedManifold, FoliatedManifold]:
        key = (gripper, handle)
        if key not in manifolds:
            manifolds[key] = grasp_manifold(grippers[gripper], handles[handle][1])
        return manifolds[key]

    def state_name(assignment: Assignment) -> str:
        parts = [
            f"{grippers[gripper].name} grasps {handles[handle][1].name}"
            for gripper, handle in enumerate(assignment)
            if handle is not None
        ]
        return " : ".join(parts) if parts else "free"

    def resting_objects(assignment: Assignment) -> List[int]:
        held = {handles[handle][0] for handle in assignment if handle is not None}
        return [index for index in range(len(objects)) if index not in held]

    assignments = _enumerate_assignments(len(grippers), len(handles))
    ordered = sorted(assignments, key=_number_of_grasps, reverse=True)

    nodes: Dict[Assignment, Node] = {}
    for assignment in ordered:
        node = selector.create_node(state_name(assignment))
        for gripper, handle in enumerate(assignment):
            if handle is not None:
                grasp_of(gripper, handle)[0].add_to_node(node)
        for index in resting_objects(assignment):
            if objects[index].placement is not None:
                objects[index].placement.add_to_node(node)
        nodes[assignment] = node

    transitions = 0
    for assignment in assignments:
        name = state_name(assignment)
        taken = {handle for handle in assignment if handle is not None}
        resting = resting_objects(assignment)
        for gripper, held in enumerate(assignment):
            if held is not None:
                continue
            for handle in range(len(handles)):
                if handle in taken:
                    continue
                target = assignment[:gripper] + (handle,) + assignment[gripper + 1 :]
                obj_index = handles[handle][0]
                obj = objects[obj_index]
                with_place = obj_index in resting and obj.placement is not None

                submanifold = FoliatedManifold()
                for other_gripper, other_handle in enumerate(assignment):
                    if other_handle is not None:
                        submanifold = submanifold.merge(grasp_of(other_gripper, other_handle)[0])
                for index in resting:
                    if index != obj_index and objects[index].placement is not None:
                        submanifold = submanifold.merge(objects[index].placement)

                grasp, pregrasp = grasp_of(gripper, handle)
                create_edges(
                    f"{grippers[gripper].name} > {handles[handle][1].name} | {name}",
                    f"{grippers[gripper].name} < {handles[handle][1].name} | {name}",
                    nodes[assignment],
                    nodes[target],
                    1,
                    1,
                    grasp=grasp,
                    pregrasp=pregrasp,
                    place=obj.placement if with_place else None,
                    preplace=(obj.preplacement or FoliatedManifold()) if with_place else None,
                    submanifold_def=submanifold,
                    stages=EdgeStages(pregrasp=True, place=with_place),
                    level_set_grasp=level_set_grasp,
                    level_set_place=level_set_place,
                )
                transitions += 1

    logger.info(
        "Graph builder created %d nodes and %d transitions for %d grippers and %d handles",
        len(nodes),
        transitions,
        len(grippers),
        len(handles),
    )
    return graph


apply_debug_logging(globals(), logger=logger, skip={"Gripper", "Handle"})
