"""
Per-agent memory store.

Short-term memory keeps the most recent observations and decision ids
(newest first). A separate, longer observation log and an opportunity log
are kept per agent. Every agent has its own re-entrant lock; callers that
read-modify-write an agent's memory across calls hold ``lock_for(agent_id)``.
"""

import logging
import threading
from collections import deque
from typing import Any, Deque, Dict, Iterable, List

from capital_agent.errors import AgentNotFoundError
from capital_agent.schemas.memory import AgentMemoryV1
from capital_agent.schemas.observation import ObservationV1
from capital_agent.schemas.signal import OpportunitySignalV1

logger = logging.getLogger(__name__)


class _AgentSlot:
    def __init__(self, agent_id: str, observation_log_size: int, opportunity_log_size: int):
        self.memory = AgentMemoryV1(agent_id=agent_id)
        self.observation_log: Deque[ObservationV1] = deque(maxlen=observation_log_size)
        self.opportunities: Deque[OpportunitySignalV1] = deque(maxlen=opportunity_log_size)
        self.lock = threading.RLock()


class MemoryStore:
    """
    Thread-safe registry of agent memories.

    Example:
        >>> store = MemoryStore()
        >>> store.allocate("agent_1")
        >>> store.snapshot("agent_1").long_term.total_decisions
        0
    """

    def __init__(
        self,
        short_term_observations: int = 100,
        short_term_decisions: int = 100,
        observation_log_size: int = 1000,
        opportunity_log_size: int = 100,
    ):
        self.short_term_observations = short_term_observations
        self.short_term_decisions = short_term_decisions
        self.observation_log_size = observation_log_size
        self.opportunity_log_size = opportunity_log_size
        self._slots: Dict[str, _AgentSlot] = {}
        self._registry_lock = threading.Lock()

    def allocate(self, agent_id: str) -> None:
        """Create empty memory for an agent. Existing memory is kept."""
        with self._registry_lock:
            if agent_id not in self._slots:
                self._slots[agent_id] = _AgentSlot(
                    agent_id, self.observation_log_size, self.opportunity_log_size
                )
                logger.debug(f"Allocated memory for {agent_id}")

    def _slot(self, agent_id: str) -> _AgentSlot:
        with self._registry_lock:
            slot = self._slots.get(agent_id)
        if slot is None:
            raise AgentNotFoundError(agent_id)
        return slot

    def lock_for(self, agent_id: str) -> threading.RLock:
        return self._slot(agent_id).lock

    def get(self, agent_id: str) -> AgentMemoryV1:
        """Live memory object. Mutate only while holding ``lock_for(agent_id)``."""
        return self._slot(agent_id).memory

    def snapshot(self, agent_id: str) -> AgentMemoryV1:
        slot = self._slot(agent_id)
        with slot.lock:
            return slot.memory.model_copy(deep=True)

    # ------------------------------------------------------------------
    # Short-term memory and logs
    # ------------------------------------------------------------------

    def record_observations(self, agent_id: str, observations: Iterable[ObservationV1]) -> None:
        slot = self._slot(agent_id)
        with slot.lock:
            short = slot.memory.short_term
            for obs in observations:
                short.recent_observations.insert(0, obs)
                slot.observation_log.append(obs)
            del short.recent_observations[self.short_term_observations :]

    def record_decision(self, agent_id: str, decision_id: str) -> None:
        slot = self._slot(agent_id)
        with slot.lock:
            recent = slot.memory.short_term.recent_decisions
            recent.insert(0, decision_id)
            del recent[self.short_term_decisions :]

    def observation_log(self, agent_id: str) -> List[ObservationV1]:
        """Observation log, oldest first."""
        slot = self._slot(agent_id)
        with slot.lock:
            return list(slot.observation_log)

    def record_opportunities(self, agent_id: str, signals: Iterable[OpportunitySignalV1]) -> None:
        slot = self._slot(agent_id)
        with slot.lock:
            slot.opportunities.extend(signals)

    def opportunities(self, agent_id: str) -> List[OpportunitySignalV1]:
        slot = self._slot(agent_id)
        with slot.lock:
            return list(slot.opportunities)

    def set_alerts(self, agent_id: str, alerts: List[str]) -> None:
        slot = self._slot(agent_id)
        with slot.lock:
            slot.memory.short_term.active_alerts = list(alerts)

    def update_context(self, agent_id: str, **values: Any) -> None:
        slot = self._slot(agent_id)
        with slot.lock:
            slot.memory.short_term.context.update(values)
