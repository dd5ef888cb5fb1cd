"""Capital Agent - autonomous, boundary-constrained decision agents.

Each agent repeatedly observes its environment, analyzes it, formulates
bounded decisions, executes approved ones through an external adapter and
learns from the realised outcomes.
"""

__version__ = "0.1.0"
