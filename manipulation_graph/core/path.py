"""Paths returned by steering methods and composed by waypoint edges."""

from __future__ import annotations

from typing import List, Optional, Tuple

import numpy as np

from .constraint_set import ConstraintSet


class Path:
    """Continuous map from ``[0, length]`` to configurations."""

    def __init__(self, length: float, constraints: Optional[ConstraintSet] = None) -> None:
        self.length = float(length)
        self.constraints = constraints

    @property
    def initial(self) -> np.ndarray:
        raise NotImplementedError

    @property
    def end(self) -> np.ndarray:
        raise NotImplementedError

    def _interpolate(self, t: float) -> np.ndarray:
        raise NotImplementedError

    def __call__(self, t: float) -> Tuple[np.ndarray, bool]:
        """Return the configuration at ``t`` and whether it satisfies the path constraints."""

        if t < 0.0 or t > self.length:
            raise ValueError(f"parameter {t} outside of path range [0, {self.length}]")
        q = self._interpolate(t)
        if self.constraints is None:
            return q, True
        success = self.constraints.apply(q)
        return q, success


class StraightPath(Path):
    """Linear interpolation between two configurations."""

    def __init__(self, q1: np.ndarray, q2: np.ndarray, constraints: Optional[ConstraintSet] = None) -> None:
        self._q1 = np.array(q1, dtype=float)
        self._q2 = np.array(q2, dtype=float)
        super().__init__(float(np.linalg.norm(self._q2 - self._q1)), constraints)

    @property
    def initial(self) -> np.ndarray:
        return self._q1.copy()

    @property
    def end(self) -> np.ndarray:
        return self._q2.copy()

    def _interpolate(self, t: float) -> np.ndarray:
        if self.length == 0.0:
            return self._q1.copy()
        ratio = t / self.length
        return (1.0 - ratio) * self._q1 + ratio * self._q2


class PathVector(Path):
    """Concatenation of paths, traversed in order."""

    def __init__(self, config_size: int, number_dof: Optional[int] = None) -> None:
        super().__init__(0.0)
        self.config_size = config_size
        self.number_dof = number_dof if number_dof is not None else config_size
        self._paths: List[Path] = []

    def append_path(self, path: Path) -> None:
        self._paths.append(path)
        self.length += path.length

    def concatenate(self, other: "PathVector") -> None:
        """Append the leaf paths of ``other`` so that nesting does not accumulate."""

        for path in other.paths:
            self.append_path(path)

    @property
    def paths(self) -> List[Path]:
        return list(self._paths)

    def number_paths(self) -> int:
        return len(self._paths)

    def path_at_rank(self, rank: int) -> Path:
        return self._paths[rank]

    @property
    def initial(self) -> np.ndarray:
        if not self._paths:
            raise ValueError("empty path vector has no initial configuration")
        return self._paths[0].initial

    @property
    def end(self) -> np.ndarray:
        if not self._paths:
            raise ValueError("empty path vector has no end configuration")
        return self._paths[-1].end

    def __call__(self, t: float) -> Tuple[np.ndarray, bool]:
        if not self._paths:
            raise ValueError("empty path vector cannot be evaluated")
        if t < 0.0 or t > self.length:
            raise ValueError(f"parameter {t} outside of path range [0, {self.length}]")
        remaining = t
        for path in self._paths[:-1]:
            if remaining <= path.length:
                return path(remaining)
            remaining -= path.length
        last = self._paths[-1]
        return last(min(remaining, last.length))
