"""Paper simulation runner."""

from capital_agent.runner.progress import CycleProgress, CycleStats
from capital_agent.runner.simulation import PaperSimulation, SimulationResult

__all__ = [
    "CycleProgress",
    "CycleStats",
    "PaperSimulation",
    "SimulationResult",
]
