from __future__ import annotations

from typing import List, Optional

import numpy as np

from .device import Device
from .projector import ConfigProjector


class ConstraintSet:
    """Ordered collection of projectors applied one after the other."""

    def __init__(self, device: Device, name: str) -> None:
        self.device = device
        self.name = name
        self._constraints: List[ConfigProjector] = []

    def add_constraint(self, constraint: ConfigProjector) -> None:
        self._constraints.append(constraint)

    @property
    def constraints(self) -> List[ConfigProjector]:
        return list(self._constraints)

    def config_projector(self) -> Optional[ConfigProjector]:
        for constraint in self._constraints:
            if isinstance(constraint, ConfigProjector):
                return constraint
        return None

    def apply(self, q: np.ndarray) -> bool:
        """Apply every constraint to a copy of ``q``; write back only when all succeed."""

        work = np.array(q, dtype=float)
        for constraint in self._constraints:
            if not constraint.apply(work):
                return False
        q[:] = work
        return True

    def is_satisfied(self, q: np.ndarray) -> bool:
        return all(constraint.is_satisfied(q) for constraint in self._constraints)

    def __repr__(self) -> str:
        return f"ConstraintSet({self.name!r}, constraints={len(self._constraints)})"
