"""Numerical constraints consumed by the projectors."""

from __future__ import annotations

from typing import Callable, Optional, Sequence, Tuple

import numpy as np

Interval = Tuple[int, int]
"""A ``(start, length)`` slice of the configuration vector."""

VectorFunc = Callable[[np.ndarray], np.ndarray]


def finite_difference_jacobian(func: VectorFunc, q: np.ndarray, step: float = 1e-7) -> np.ndarray:
    base = np.atleast_1d(np.asarray(func(q), dtype=float))
    jac = np.zeros((base.size, q.size), dtype=float)
    trial = np.array(q, dtype=float)
    for idx in range(q.size):
        saved = trial[idx]
        trial[idx] = saved + step
        jac[:, idx] = (np.atleast_1d(np.asarray(func(trial), dtype=float)) - base) / step
        trial[idx] = saved
    return jac


class DifferentiableFunction:
    """Vector valued function of the configuration with an optional analytic jacobian."""

    def __init__(
        self,
        name: str,
        func: VectorFunc,
        output_size: int,
        jacobian: Optional[Callable[[np.ndarray], np.ndarray]] = None,
        *,
        step: float = 1e-7,
    ) -> None:
        self.name = name
        self.output_size = int(output_size)
        self._func = func
        self._jacobian = jacobian
        self._step = step

    def __call__(self, q: np.ndarray) -> np.ndarray:
        if self.output_size == 0:
            return np.zeros(0, dtype=float)
        value = np.atleast_1d(np.asarray(self._func(q), dtype=float))
        if value.size != self.output_size:
            raise ValueError(
                f"function {self.name!r} returned {value.size} values, expected {self.output_size}"
            )
        return value

    def jacobian(self, q: np.ndarray) -> np.ndarray:
        if self.output_size == 0:
            return np.zeros((0, q.size), dtype=float)
        if self._jacobian is not None:
            return np.asarray(self._jacobian(q), dtype=float).reshape(self.output_size, q.size)
        return finite_difference_jacobian(self, q, self._step)

    def __repr__(self) -> str:
        return f"DifferentiableFunction({self.name!r}, output_size={self.output_size})"


class NumericalConstraint:
    """Equality ``f(q) = rhs``.

    Parametric constraints read their right-hand side from a configuration,
    the others keep the value they were created with (zero by default).
    """

    def __init__(
        self,
        function: DifferentiableFunction,
        *,
        parametric: bool = False,
        rhs: Optional[Sequence[float]] = None,
    ) -> None:
        self.function = function
        self.parametric = parametric
        if rhs is None:
            self.rhs = np.zeros(function.output_size, dtype=float)
        else:
            self.rhs = np.asarray(rhs, dtype=float).reshape(function.output_size)

    @property
    def name(self) -> str:
        return self.function.name

    def right_hand_side_from_config(self, q: np.ndarray) -> None:
        if self.parametric:
            self.rhs = self.function(q)

    def __repr__(self) -> str:
        kind = "parametric" if self.parametric else "fixed"
        return f"NumericalConstraint({self.name!r}, {kind})"


class LockedJoint:
    """Constraint fixing the configuration slice ``[rank, rank + size)``."""

    def __init__(self, joint_name: str, rank: int, value: Sequence[float], *, parametric: bool = True) -> None:
        self.joint_name = joint_name
        self.rank = int(rank)
        self.value = np.atleast_1d(np.asarray(value, dtype=float)).copy()
        self.parametric = parametric

    @property
    def name(self) -> str:
        return self.joint_name

    @property
    def size(self) -> int:
        return int(self.value.size)

    @property
    def indices(self) -> slice:
        return slice(self.rank, self.rank + self.size)

    def right_hand_side_from_config(self, q: np.ndarray) -> None:
        if self.parametric:
            self.value = np.array(q[self.indices], dtype=float)

    def __repr__(self) -> str:
        return f"LockedJoint({self.joint_name!r}, rank={self.rank}, size={self.size})"
