"""Planar point-gripper world shared by the graph tests.

The default robot has configuration ``q = [gx, gy, ox, oy]``: the position
of a point gripper followed by the position of a point object.
"""

import numpy as np

from manipulation_graph.core import DifferentiableFunction, Device, NumericalConstraint
from manipulation_graph.graph import strict_placement_manifold

GX, GY, OX, OY = range(4)


def planar_device(size=4):
    return Device('planar', size)


def linear_constraint(name, matrix, *, rhs=None, parametric=False):
    """``matrix @ q = rhs`` with an analytic jacobian."""

    matrix = np.atleast_2d(np.asarray(matrix, dtype=float))
    function = DifferentiableFunction(name, lambda q: matrix @ q, matrix.shape[0], lambda q: matrix)
    return NumericalConstraint(function, parametric=parametric, rhs=rhs)


def coordinate_constraint(name, index, value=0.0, *, size=4, parametric=False):
    """``q[index] = value``."""

    row = np.zeros(size)
    row[index] = 1.0
    return linear_constraint(name, [row], rhs=[value], parametric=parametric)


def difference_constraint(name, first, second, offset=0.0, *, size=4):
    """``q[first] - q[second] = offset``."""

    row = np.zeros(size)
    row[first] = 1.0
    row[second] = -1.0
    return linear_constraint(name, [row], rhs=[offset])


def empty_constraint(name):
    return NumericalConstraint(DifferentiableFunction(name, lambda q: np.zeros(0), 0))


class PointGripper:
    def __init__(self, name, rank, clearance=0.05):
        self.name = name
        self.rank = rank
        self.clearance = clearance


class PointHandle:
    """Handle on a point object located at ``q[rank:rank + 2]``.

    A sliding handle only fixes the ``x`` offset between gripper and object;
    the ``y`` offset is left to the grasp complement, which makes the grasp
    foliated.
    """

    def __init__(self, name, rank, clearance=0.05, *, size=4, sliding=False):
        self.name = name
        self.rank = rank
        self.clearance = clearance
        self.size = size
        self.sliding = sliding

    def _rows(self, gripper, axes):
        rows = []
        for axis in axes:
            row = np.zeros(self.size)
            row[gripper.rank + axis] = 1.0
            row[self.rank + axis] = -1.0
            rows.append(row)
        return rows

    def create_grasp(self, gripper):
        axes = (0,) if self.sliding else (0, 1)
        return linear_constraint(f'{gripper.name} grasps {self.name}', self._rows(gripper, axes))

    def create_grasp_complement(self, gripper):
        if not self.sliding:
            return empty_constraint(f'{gripper.name} grasps {self.name}/complement')
        return linear_constraint(
            f'{gripper.name} grasps {self.name}/complement', self._rows(gripper, (1,)), parametric=True
        )

    def create_pre_grasp(self, gripper, clearance):
        return linear_constraint(
            f'{gripper.name} pregrasps {self.name}', self._rows(gripper, (0, 1)), rhs=[0.0, clearance]
        )


def placement(name, rank, *, size=4, height=0.1):
    """Object resting on ``y = 0``, indexed by its ``x`` position; preplacement at ``y = height``."""

    place = coordinate_constraint(f'place {name}', rank + 1, 0.0, size=size)
    preplace = coordinate_constraint(f'preplace {name}', rank + 1, height, size=size)
    complement = coordinate_constraint(f'place {name}/complement', rank, size=size, parametric=True)
    return strict_placement_manifold(place, preplace, complement)
