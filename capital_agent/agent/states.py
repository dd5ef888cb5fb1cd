"""Agent high-level states."""

from enum import Enum


class AgentState(str, Enum):
    """Cycle phases plus side states."""

    INITIALIZING = "initializing"
    OBSERVING = "observing"
    ANALYZING = "analyzing"
    DECIDING = "deciding"
    EXECUTING = "executing"
    LEARNING = "learning"
    SLEEPING = "sleeping"  # Loop stopped
    EMERGENCY = "emergency"  # Forced by operator or risk trigger
    DISABLED = "disabled"  # Manually disabled, no further cycles

    @property
    def halts_cycles(self) -> bool:
        return self in (AgentState.EMERGENCY, AgentState.DISABLED)


CYCLE_PHASES = (
    AgentState.OBSERVING,
    AgentState.ANALYZING,
    AgentState.DECIDING,
    AgentState.EXECUTING,
    AgentState.LEARNING,
)
