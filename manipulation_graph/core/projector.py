"""Newton / least-squares projection of configurations onto constraint manifolds."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Sequence, Tuple, Union

import numpy as np
import scipy.linalg
from scipy.optimize import least_squares

from .constraints import Interval, LockedJoint, NumericalConstraint
from .device import Device

logger = logging.getLogger(__name__)

Constraint = Union[NumericalConstraint, LockedJoint]

_LEAST_SQUARES_METHODS = {"trf", "dogbox"}


@dataclass
class SuccessStatistics:
    """Rolling success / failure counters of a projector."""

    name: str
    nb_success: int = 0
    nb_failure: int = 0

    @property
    def number_of_observations(self) -> int:
        return self.nb_success + self.nb_failure

    @property
    def success_rate(self) -> float:
        total = self.number_of_observations
        return self.nb_success / total if total else 0.0

    def add_success(self) -> None:
        self.nb_success += 1

    def add_failure(self) -> None:
        self.nb_failure += 1

    def reset(self) -> None:
        self.nb_success = 0
        self.nb_failure = 0

    def __str__(self) -> str:
        return (
            f"{self.name}: {self.nb_success} successes, {self.nb_failure} failures "
            f"over {self.number_of_observations} observations"
        )


class ConfigProjector:
    """Project a configuration onto ``{q | f_i(q) = rhs_i, locked joints fixed}``.

    The projector keeps its own copy of every right-hand side. Constraints
    may be shared between projectors, so a change of a constraint's
    right-hand side only reaches a projector through
    :meth:`update_right_hand_side` (or :meth:`right_hand_side_from_config`).
    """

    def __init__(
        self,
        device: Device,
        name: str,
        error_threshold: float,
        max_iterations: int,
        *,
        method: str = "newton",
        jacobian_step: float = 1e-7,
    ) -> None:
        if method != "newton" and method not in _LEAST_SQUARES_METHODS:
            raise ValueError(f"unsupported projection method {method!r}")
        self.device = device
        self.name = name
        self.error_threshold = float(error_threshold)
        self.max_iterations = int(max_iterations)
        self.method = method
        self.jacobian_step = jacobian_step
        self.statistics = SuccessStatistics(name)
        self._numerical: List[Tuple[NumericalConstraint, Tuple[Interval, ...]]] = []
        self._rhs: List[np.ndarray] = []
        self._locked: List[LockedJoint] = []
        self._locked_values: List[np.ndarray] = []

    # ------------------------------------------------------------------
    # Constraint management
    # ------------------------------------------------------------------
    def add(self, constraint: Constraint, passive_dofs: Sequence[Interval] = ()) -> bool:
        """Add ``constraint``; return ``False`` when it is already present."""

        if isinstance(constraint, LockedJoint):
            if any(existing is constraint for existing in self._locked):
                return False
            self._locked.append(constraint)
            self._locked_values.append(constraint.value.copy())
            return True
        if isinstance(constraint, NumericalConstraint):
            if any(existing is constraint for existing, _ in self._numerical):
                return False
            self._numerical.append((constraint, tuple(passive_dofs)))
            self._rhs.append(constraint.rhs.copy())
            return True
        raise TypeError(f"cannot add {type(constraint).__name__} to a config projector")

    @property
    def numerical_constraints(self) -> List[NumericalConstraint]:
        return [constraint for constraint, _ in self._numerical]

    @property
    def locked_joints(self) -> List[LockedJoint]:
        return list(self._locked)

    def right_hand_side_from_config(self, q: np.ndarray) -> None:
        q = self._check(q)
        for constraint, _ in self._numerical:
            constraint.right_hand_side_from_config(q)
        for locked in self._locked:
            locked.right_hand_side_from_config(q)
        self.update_right_hand_side()

    def update_right_hand_side(self) -> None:
        self._rhs = [constraint.rhs.copy() for constraint, _ in self._numerical]
        self._locked_values = [locked.value.copy() for locked in self._locked]

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------
    def residual(self, q: np.ndarray) -> np.ndarray:
        values = [constraint.function(q) - rhs for (constraint, _), rhs in zip(self._numerical, self._rhs)]
        if not values:
            return np.zeros(0, dtype=float)
        return np.concatenate(values)

    def jacobian(self, q: np.ndarray) -> np.ndarray:
        blocks = []
        for constraint, passive in self._numerical:
            block = np.array(constraint.function.jacobian(q), dtype=float)
            for start, length in passive:
                block[:, start : start + length] = 0.0
            blocks.append(block)
        if not blocks:
            return np.zeros((0, q.size), dtype=float)
        return np.vstack(blocks)

    def is_satisfied(self, q: np.ndarray) -> bool:
        q = self._check(q)
        for locked, value in zip(self._locked, self._locked_values):
            if np.any(np.abs(q[locked.indices] - value) > self.error_threshold):
                return False
        residual = self.residual(q)
        return residual.size == 0 or float(np.linalg.norm(residual)) <= self.error_threshold

    def apply(self, q: np.ndarray) -> bool:
        """Project ``q`` in place. ``q`` is left untouched when projection fails."""

        q = self._check(q)
        work = np.array(q, dtype=float)
        free = np.ones(work.size, dtype=bool)
        for locked, value in zip(self._locked, self._locked_values):
            work[locked.indices] = value
            free[locked.indices] = False

        if self.method == "newton":
            converged = self._solve_newton(work, free)
        else:
            converged = self._solve_least_squares(work, free)

        if converged:
            q[:] = work
            self.statistics.add_success()
        else:
            self.statistics.add_failure()
        logger.debug(
            "Projection %s %s after method=%s residual=%.3e",
            self.name,
            "converged" if converged else "failed",
            self.method,
            float(np.linalg.norm(self.residual(work))) if self._numerical else 0.0,
        )
        return converged

    # ------------------------------------------------------------------
    # Solvers
    # ------------------------------------------------------------------
    def _converged(self, residual: np.ndarray) -> bool:
        return residual.size == 0 or float(np.linalg.norm(residual)) <= self.error_threshold

    def _solve_newton(self, work: np.ndarray, free: np.ndarray) -> bool:
        for _ in range(self.max_iterations):
            residual = self.residual(work)
            if self._converged(residual):
                return True
            if not free.any():
                return False
            jac = self.jacobian(work)[:, free]
            step, _, _, _ = scipy.linalg.lstsq(jac, -residual)
            work[free] += step
        return self._converged(self.residual(work))

    def _solve_least_squares(self, work: np.ndarray, free: np.ndarray) -> bool:
        residual = self.residual(work)
        if self._converged(residual):
            return True
        if not free.any():
            return False

        def fun(values: np.ndarray) -> np.ndarray:
            trial = work.copy()
            trial[free] = values
            return self.residual(trial)

        def jac(values: np.ndarray) -> np.ndarray:
            trial = work.copy()
            trial[free] = values
            return self.jacobian(trial)[:, free]

        tol = max(self.error_threshold * 1e-3, 1e-15)
        result = least_squares(
            fun,
            work[free],
            jac=jac,
            method=self.method,
            max_nfev=self.max_iterations,
            ftol=tol,
            xtol=tol,
            gtol=tol,
        )
        work[free] = result.x
        return self._converged(self.residual(work))

    def _check(self, q: np.ndarray) -> np.ndarray:
        if not isinstance(q, np.ndarray):
            raise TypeError("configurations must be numpy arrays")
        if q.shape != (self.device.config_size,):
            raise ValueError(
                f"configuration of shape {q.shape} does not match device "
                f"{self.device.name!r} of size {self.device.config_size}"
            )
        return q

    def __repr__(self) -> str:
        return (
            f"ConfigProjector({self.name!r}, numerical={len(self._numerical)}, "
            f"locked={len(self._locked)})"
        )
