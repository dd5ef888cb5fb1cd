"""Observation collection and opportunity/risk analysis."""

from capital_agent.analysis.analyzer import REGIME_RULES, OpportunityAnalyzer, RegimeRule
from capital_agent.analysis.observer import ObservationCollector, ObservationSource

__all__ = [
    "OpportunityAnalyzer",
    "RegimeRule",
    "REGIME_RULES",
    "ObservationCollector",
    "ObservationSource",
]
