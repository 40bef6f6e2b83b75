"""Foliations and the histogram of their explored leaves."""

from __future__ import annotations

import logging
from typing import Generic, List, Optional, Tuple, TypeVar

import numpy as np

from .projector import ConfigProjector
from .roadmap import ConnectedComponent, RoadmapNode

logger = logging.getLogger(__name__)

T = TypeVar("T")


class DiscreteDistribution(Generic[T]):
    """Finite weighted distribution sampled with a numpy generator."""

    def __init__(self) -> None:
        self._values: List[T] = []
        self._weights: List[float] = []

    def insert(self, value: T, weight: float = 1.0) -> None:
        if weight <= 0:
            raise ValueError("distribution weights must be positive")
        self._values.append(value)
        self._weights.append(float(weight))

    def size(self) -> int:
        return len(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def values(self) -> List[T]:
        return list(self._values)

    def probabilities(self) -> np.ndarray:
        weights = np.asarray(self._weights, dtype=float)
        return weights / weights.sum()

    def __call__(self, rng: Optional[np.random.Generator] = None) -> T:
        if not self._values:
            raise ValueError("cannot sample an empty distribution")
        rng = rng or np.random.default_rng()
        index = int(rng.choice(len(self._values), p=self.probabilities()))
        return self._values[index]


class Foliation:
    """Family of leaves: ``condition`` selects members, ``parametrizer`` indexes leaves."""

    def __init__(self, condition: ConfigProjector, parametrizer: ConfigProjector) -> None:
        self.condition = condition
        self.parametrizer = parametrizer

    def contains(self, q: np.ndarray) -> bool:
        return self.condition.is_satisfied(q)

    def parameter(self, q: np.ndarray) -> np.ndarray:
        values = [constraint.function(q) for constraint in self.parametrizer.numerical_constraints]
        values.extend(np.asarray(q[locked.indices], dtype=float) for locked in self.parametrizer.locked_joints)
        if not values:
            return np.zeros(0, dtype=float)
        return np.concatenate(values)


class _LeafBin:
    def __init__(self, value: np.ndarray) -> None:
        self.value = value
        self.nodes: List[RoadmapNode] = []

    @property
    def freq(self) -> int:
        return len(self.nodes)

    def has_connected_component(self, cc: ConnectedComponent) -> bool:
        return any(node.connected_component is cc for node in self.nodes)


class LeafHistogram:
    """Group roadmap nodes by the foliation leaf they lie on."""

    def __init__(self, foliation: Foliation, threshold: Optional[float] = None) -> None:
        self.foliation = foliation
        self.threshold = foliation.parametrizer.error_threshold if threshold is None else threshold
        self._bins: List[_LeafBin] = []

    @property
    def bins(self) -> List[Tuple[np.ndarray, int]]:
        return [(leaf.value.copy(), leaf.freq) for leaf in self._bins]

    def add(self, node: RoadmapNode) -> bool:
        """Record ``node``; return ``False`` when it is outside the foliation."""

        q = node.configuration
        if not self.foliation.contains(q):
            return False
        value = self.foliation.parameter(q)
        for leaf in self._bins:
            if leaf.value.shape == value.shape and np.linalg.norm(leaf.value - value) <= self.threshold:
                leaf.nodes.append(node)
                return True
        leaf = _LeafBin(value)
        leaf.nodes.append(node)
        self._bins.append(leaf)
        logger.debug("New leaf %s (total %d)", value, len(self._bins))
        return True

    def get_distrib_out_of_connected_component(
        self, cc: ConnectedComponent
    ) -> DiscreteDistribution[RoadmapNode]:
        distrib: DiscreteDistribution[RoadmapNode] = DiscreteDistribution()
        for leaf in self._bins:
            if not leaf.has_connected_component(cc):
                distrib.insert(leaf.nodes[0], leaf.freq)
        return distrib
