"""Boundary defaults and the boundary engine."""

from capital_agent.boundaries.defaults import (
    MANDATE_LIMITS,
    MandateLimits,
    default_boundaries,
    merge_boundaries,
)
from capital_agent.boundaries.engine import BoundaryContext, BoundaryEngine, Evaluator

__all__ = [
    "MANDATE_LIMITS",
    "MandateLimits",
    "default_boundaries",
    "merge_boundaries",
    "BoundaryContext",
    "BoundaryEngine",
    "Evaluator",
]
