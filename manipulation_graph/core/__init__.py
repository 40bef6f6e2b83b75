"""Numerical collaborators of the constraint graph: robot model, projectors, paths."""

from .constraint_set import ConstraintSet
from .constraints import DifferentiableFunction, Interval, LockedJoint, NumericalConstraint, finite_difference_jacobian
from .device import Device
from .histogram import DiscreteDistribution, Foliation, LeafHistogram
from .path import Path, PathVector, StraightPath
from .projector import ConfigProjector, SuccessStatistics
from .roadmap import ConnectedComponent, RoadmapNode
from .steering import SteeringMethod, StraightSteeringMethod

__all__ = [
    "ConfigProjector",
    "ConnectedComponent",
    "ConstraintSet",
    "Device",
    "DifferentiableFunction",
    "DiscreteDistribution",
    "Foliation",
    "Interval",
    "LeafHistogram",
    "LockedJoint",
    "NumericalConstraint",
    "Path",
    "PathVector",
    "RoadmapNode",
    "SteeringMethod",
    "StraightPath",
    "StraightSteeringMethod",
    "SuccessStatistics",
    "finite_difference_jacobian",
]
