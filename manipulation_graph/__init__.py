from .config import ProjectorOptions, get_projector_options, set_projector_options
from .core import (
    ConfigProjector,
    ConnectedComponent,
    ConstraintSet,
    Device,
    DifferentiableFunction,
    LeafHistogram,
    LockedJoint,
    NumericalConstraint,
    Path,
    PathVector,
    RoadmapNode,
    SteeringMethod,
    StraightPath,
    StraightSteeringMethod,
)
from .errors import GraphConstructionError, GraphError, UnsupportedOperationError
from .graph import (
    Edge,
    EdgeStages,
    FoliatedManifold,
    Graph,
    GraphComponent,
    LevelSetEdge,
    ManipulatedObject,
    Node,
    NodeSelector,
    NumericalConstraintsAndPassiveDofs,
    WaypointEdge,
    create_edges,
    graph_builder,
    grasp_manifold,
    relaxed_placement_manifold,
    strict_placement_manifold,
)
from .graph_steering_method import GraphSteeringMethod

__all__ = [
    'ProjectorOptions',
    'get_projector_options',
    'set_projector_options',
    'ConfigProjector',
    'ConnectedComponent',
    'ConstraintSet',
    'Device',
    'DifferentiableFunction',
    'LeafHistogram',
    'LockedJoint',
    'NumericalConstraint',
    'Path',
    'PathVector',
    'RoadmapNode',
    'SteeringMethod',
    'StraightPath',
    'StraightSteeringMethod',
    'GraphError',
    'GraphConstructionError',
    'UnsupportedOperationError',
    'Edge',
    'EdgeStages',
    'FoliatedManifold',
    'Graph',
    'GraphComponent',
    'LevelSetEdge',
    'ManipulatedObject',
    'Node',
    'NodeSelector',
    'NumericalConstraintsAndPassiveDofs',
    'WaypointEdge',
    'create_edges',
    'graph_builder',
    'grasp_manifold',
    'relaxed_placement_manifold',
    'strict_placement_manifold',
    'GraphSteeringMethod',
]
