"""Decision and agent explanations."""

from capital_agent.explain.engine import ExplanationEngine, ExplanationLevel, default_level

__all__ = ["ExplanationEngine", "ExplanationLevel", "default_level"]
