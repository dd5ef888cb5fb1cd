"""Outcome learning and performance rollup."""

from capital_agent.learning.engine import (
    LearningEngine,
    LearningReport,
    classify_outcome,
    mark_to_market,
)
from capital_agent.learning.performance import compute_performance

__all__ = [
    "LearningEngine",
    "LearningReport",
    "classify_outcome",
    "mark_to_market",
    "compute_performance",
]
