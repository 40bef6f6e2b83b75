from __future__ import annotations

import copy
from typing import Optional

import numpy as np

from .constraint_set import ConstraintSet
from .device import Device
from .path import Path, StraightPath


class SteeringMethod:
    """Connect two configurations with a path, ignoring obstacles."""

    def __init__(self, device: Optional[Device] = None) -> None:
        self.device = device
        self._constraints: Optional[ConstraintSet] = None

    @property
    def constraints(self) -> Optional[ConstraintSet]:
        return self._constraints

    @constraints.setter
    def constraints(self, constraints: Optional[ConstraintSet]) -> None:
        self._constraints = constraints

    def copy(self) -> "SteeringMethod":
        # Shallow: the copy shares the device and the bound constraint set.
        return copy.copy(self)

    def impl_compute(self, q1: np.ndarray, q2: np.ndarray) -> Optional[Path]:
        raise NotImplementedError

    def __call__(self, q1: np.ndarray, q2: np.ndarray) -> Optional[Path]:
        return self.impl_compute(q1, q2)


class StraightSteeringMethod(SteeringMethod):
    def impl_compute(self, q1: np.ndarray, q2: np.ndarray) -> Optional[Path]:
        return StraightPath(q1, q2, self.constraints)
