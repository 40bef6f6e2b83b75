from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np


@dataclass
class Device:
    """Kinematic model as seen by the graph: only the configuration layout matters."""

    name: str
    config_size: int
    number_dof: Optional[int] = None

    def __post_init__(self) -> None:
        if self.config_size <= 0:
            raise ValueError(f"device {self.name!r} needs a positive configuration size")
        if self.number_dof is None:
            self.number_dof = self.config_size

    def neutral_configuration(self) -> np.ndarray:
        return np.zeros(self.config_size, dtype=float)
