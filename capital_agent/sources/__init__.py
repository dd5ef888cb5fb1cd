"""Observation sources."""

from capital_agent.sources.static import StaticObservationSource

__all__ = ["StaticObservationSource"]
