"""Configuration helpers for constraint projection."""

from __future__ import annotations

import copy
from dataclasses import dataclass


@dataclass
class ProjectorOptions:
    """Tolerance and iteration budget shared by every projector of a graph."""

    error_threshold: float = 1e-4
    max_iterations: int = 40
    method: str = "newton"
    jacobian_step: float = 1e-7


_PROJECTOR_OPTIONS = ProjectorOptions()


def get_projector_options() -> ProjectorOptions:
    return copy.deepcopy(_PROJECTOR_OPTIONS)


def set_projector_options(options: ProjectorOptions) -> None:
    global _PROJECTOR_OPTIONS
    _PROJECTOR_OPTIONS = copy.deepcopy(options)
