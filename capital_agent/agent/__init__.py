"""Agent lifecycle, scheduling and the five-phase cycle."""

from capital_agent.agent.cycle import AgentRuntime, CycleReport, CycleRunner, is_active
from capital_agent.agent.lifecycle import AgentManager
from capital_agent.agent.scheduler import AgentScheduler
from capital_agent.agent.states import CYCLE_PHASES, AgentState

__all__ = [
    "AgentManager",
    "AgentRuntime",
    "AgentScheduler",
    "AgentState",
    "CYCLE_PHASES",
    "CycleReport",
    "CycleRunner",
    "is_active",
]
