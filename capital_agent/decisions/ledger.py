"""
Thread-safe decision ledger.

Decision status is mutated only through the ledger, under its own lock,
independently of any cycle's sequencing. That is what lets an emergency stop
cancel a pending or approved decision while the owning cycle is mid-flight.
"""

import logging
import threading
from datetime import date, datetime
from typing import Callable, Dict, List, Optional, TypeVar

from capital_agent.errors import DecisionNotFoundError, InvalidTransitionError
from capital_agent.schemas.boundary import BoundaryCheckResultV1
from capital_agent.schemas.decision import AgentDecisionV1, DecisionStatus

logger = logging.getLogger(__name__)

T = TypeVar("T")

OPEN_STATUSES = (DecisionStatus.PENDING, DecisionStatus.APPROVED)


class DecisionLedger:
    """
    Stores every decision (rejected ones included) for audit and learning.

    Readers get deep copies; writers go through ``transition``/``update``.

    Example:
        >>> ledger = DecisionLedger()
        >>> ledger.add(decision)
        >>> ledger.transition(decision.decision_id, DecisionStatus.APPROVED, now).status
        <DecisionStatus.APPROVED: 'approved'>
    """

    def __init__(self):
        self._decisions: Dict[str, AgentDecisionV1] = {}
        self._by_agent: Dict[str, List[str]] = {}
        self.lock = threading.RLock()

    def add(self, decision: AgentDecisionV1) -> None:
        with self.lock:
            if decision.decision_id in self._decisions:
                raise InvalidTransitionError(f"Decision {decision.decision_id} already recorded")
            self._decisions[decision.decision_id] = decision.model_copy(deep=True)
            self._by_agent.setdefault(decision.agent_id, []).append(decision.decision_id)

    def _live(self, decision_id: str) -> AgentDecisionV1:
        decision = self._decisions.get(decision_id)
        if decision is None:
            raise DecisionNotFoundError(decision_id)
        return decision

    def get(self, decision_id: str) -> AgentDecisionV1:
        with self.lock:
            return self._live(decision_id).model_copy(deep=True)

    def for_agent(self, agent_id: str) -> List[AgentDecisionV1]:
        """Copies of an agent's decisions, oldest first."""
        with self.lock:
            ids = self._by_agent.get(agent_id, [])
            return [self._decisions[i].model_copy(deep=True) for i in ids]

    def count_on(self, agent_id: str, day: date) -> int:
        """Number of decisions the agent formulated on ``day``."""
        with self.lock:
            ids = self._by_agent.get(agent_id, [])
            return sum(1 for i in ids if self._decisions[i].timestamp.date() == day)

    def transition(
        self,
        decision_id: str,
        new_status: DecisionStatus,
        at: datetime,
        annotate: Optional[str] = None,
    ) -> AgentDecisionV1:
        """
        Move a decision to ``new_status``.

        Args:
            decision_id: Decision to move
            new_status: Target status
            at: Transition time
            annotate: Text appended to the reasoning summary

        Returns:
            Copy of the updated decision

        Raises:
            DecisionNotFoundError: Unknown decision
            InvalidTransitionError: Transition not allowed from the current status
        """
        with self.lock:
            decision = self._live(decision_id)
            decision.transition(new_status, at)
            if annotate:
                decision.reasoning.summary = f"{decision.reasoning.summary} {annotate}"
            logger.debug(f"Decision {decision_id} -> {new_status.value}")
            return decision.model_copy(deep=True)

    def try_transition(
        self,
        decision_id: str,
        new_status: DecisionStatus,
        at: datetime,
        annotate: Optional[str] = None,
    ) -> bool:
        """Like ``transition`` but returns False instead of raising on an illegal move."""
        with self.lock:
            decision = self._live(decision_id)
            if not decision.can_transition(new_status):
                return False
            self.transition(decision_id, new_status, at, annotate)
            return True

    def update(self, decision_id: str, fn: Callable[[AgentDecisionV1], T]) -> T:
        """Apply ``fn`` to the live decision under the ledger lock."""
        with self.lock:
            return fn(self._live(decision_id))

    def attach_checks(self, decision_id: str, results: List[BoundaryCheckResultV1]) -> None:
        with self.lock:
            self._live(decision_id).attach_boundary_checks(results)

    def cancel_open(self, agent_id: str, at: datetime, annotate: str) -> List[str]:
        """
        Cancel every pending or approved decision of one agent, atomically.

        Returns:
            Ids of the cancelled decisions
        """
        cancelled: List[str] = []
        with self.lock:
            for decision_id in self._by_agent.get(agent_id, []):
                decision = self._decisions[decision_id]
                if decision.status in OPEN_STATUSES:
                    self.transition(decision_id, DecisionStatus.CANCELLED, at, annotate)
                    cancelled.append(decision_id)
        return cancelled

    def last_execution_at(self, agent_id: str) -> Optional[datetime]:
        """Completion time of the agent's most recent executed decision."""
        with self.lock:
            latest: Optional[datetime] = None
            for decision_id in self._by_agent.get(agent_id, []):
                result = self._decisions[decision_id].execution_result
                if result is None or result.completed_at is None:
                    continue
                if self._decisions[decision_id].status != DecisionStatus.EXECUTED:
                    continue
                if latest is None or result.completed_at > latest:
                    latest = result.completed_at
            return latest
