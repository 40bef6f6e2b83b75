"""Exceptions raised by the constraint graph.

Only misuse is reported through exceptions. Infeasible projections and
paths are signalled by ``False`` / ``None`` return values.
"""


class GraphError(RuntimeError):
    """Raised when the constraint graph is used incorrectly."""


class GraphConstructionError(GraphError):
    """Raised when a graph, a waypoint chain or a sub-graph cannot be built."""


class UnsupportedOperationError(GraphError):
    """Raised when an edge is asked for an operation its variant cannot perform."""
