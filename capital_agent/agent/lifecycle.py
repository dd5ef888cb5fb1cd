"""
Agent lifecycle manager.

Owns the registry of agents, their configuration and high-level state, and
the per-agent scheduler that drives the cycle. The manager is an explicitly
constructed object; tests build independent instances.

Example:
    >>> manager = AgentManager(source, adapter, portfolio)
    >>> config = manager.create_agent(AgentConfigV1(user_id="u1", name="Steady"))
    >>> manager.run_cycle(config.agent_id)
    >>> manager.shutdown()
"""

import logging
import threading
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from capital_agent.agent.cycle import AgentRuntime, CycleReport, CycleRunner
from capital_agent.agent.scheduler import AgentScheduler
from capital_agent.agent.states import AgentState
from capital_agent.analysis.analyzer import OpportunityAnalyzer
from capital_agent.analysis.observer import ObservationCollector, ObservationSource
from capital_agent.boundaries.defaults import default_boundaries, merge_boundaries
from capital_agent.boundaries.engine import BoundaryEngine, Evaluator
from capital_agent.decisions.formulator import DecisionFormulator
from capital_agent.decisions.ledger import DecisionLedger
from capital_agent.errors import AgentNotFoundError, ConfigurationError, InvalidTransitionError
from capital_agent.events import EventBus
from capital_agent.execution.adapter import ExecutionAdapter, PortfolioSource
from capital_agent.execution.coordinator import ExecutionCoordinator
from capital_agent.explain.engine import ExplanationEngine, ExplanationLevel, default_level
from capital_agent.learning.engine import LearningEngine
from capital_agent.memory.store import MemoryStore
from capital_agent.schemas.agent_config import AgentConfigV1, AutonomyLevel, ExplanationStyle
from capital_agent.schemas.boundary import AgentBoundaryV1
from capital_agent.schemas.decision import AgentDecisionV1, DecisionStatus
from capital_agent.schemas.event import EventType
from capital_agent.schemas.memory import AgentMemoryV1
from capital_agent.schemas.observation import ObservationV1
from capital_agent.schemas.performance import AgentPerformanceV1
from capital_agent.schemas.settings import EngineSettingsV1
from capital_agent.schemas.signal import OpportunitySignalV1
from capital_agent.utils.helpers import Clock
from capital_agent.utils.validation import check_boundary_ids, validate_agent_config

logger = logging.getLogger(__name__)


class AgentManager:
    """
    Registry and control surface for autonomous agents.

    Control operations are synchronous; their effects are announced on the
    event bus. Operations on an unknown agent raise ``AgentNotFoundError``.
    Faults inside a cycle never propagate out of the manager.
    """

    def __init__(
        self,
        observation_source: ObservationSource,
        execution_adapter: ExecutionAdapter,
        portfolio_source: PortfolioSource,
        settings: Optional[EngineSettingsV1] = None,
        events: Optional[EventBus] = None,
        clock: Optional[Clock] = None,
    ):
        self.settings = settings or EngineSettingsV1()
        self._clock = clock or datetime.now
        self.events = events or EventBus(clock=self._clock)
        self.portfolio_source = portfolio_source

        s = self.settings
        self.memory = MemoryStore(
            short_term_observations=s.short_term_observations,
            short_term_decisions=s.short_term_decisions,
            observation_log_size=s.observation_log_size,
            opportunity_log_size=s.opportunity_log_size,
        )
        self.ledger = DecisionLedger()
        self.boundary_engine = BoundaryEngine()
        self.explainer = ExplanationEngine()
        self.collector = ObservationCollector(
            observation_source,
            self.events,
            timeout_seconds=s.observation_timeout_seconds,
            clock=self._clock,
        )
        self.coordinator = ExecutionCoordinator(
            execution_adapter, self.ledger, self.events, s, clock=self._clock
        )
        self.learning = LearningEngine(s, self.ledger, self.memory, self.events, clock=self._clock)
        self.cycle = CycleRunner(
            settings=s,
            collector=self.collector,
            analyzer=OpportunityAnalyzer(s, clock=self._clock),
            formulator=DecisionFormulator(s, clock=self._clock),
            boundary_engine=self.boundary_engine,
            ledger=self.ledger,
            coordinator=self.coordinator,
            learning=self.learning,
            memory=self.memory,
            portfolio_source=portfolio_source,
            events=self.events,
            on_emergency=self.trigger_emergency,
            clock=self._clock,
        )

        self._agents: Dict[str, AgentRuntime] = {}
        self._registry_lock = threading.RLock()

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    def _runtime(self, agent_id: str) -> AgentRuntime:
        with self._registry_lock:
            runtime = self._agents.get(agent_id)
        if runtime is None:
            raise AgentNotFoundError(agent_id)
        return runtime

    def create_agent(
        self, config: Union[AgentConfigV1, Dict[str, Any]], start: bool = True
    ) -> AgentConfigV1:
        """
        Register a new agent.

        Seeds the mandate's default boundaries merged with the config's
        overrides, allocates empty memory and (optionally) starts the loop.

        Args:
            config: Agent config or its dict form
            start: Start the scheduler immediately

        Returns:
            Copy of the registered config

        Raises:
            ConfigurationError: Malformed config or duplicate agent id
        """
        config = validate_agent_config(config)
        config = config.model_copy(deep=True)
        config.boundaries = merge_boundaries(default_boundaries(config.mandate), config.boundaries)

        runtime = AgentRuntime(config)
        with self._registry_lock:
            if config.agent_id in self._agents:
                raise ConfigurationError(f"Agent {config.agent_id} already exists")
            self._agents[config.agent_id] = runtime
            self.memory.allocate(config.agent_id)

        logger.info(
            f"Created agent {config.agent_id} ({config.name}, {config.mandate.value}, "
            f"{config.autonomy_level.value}) with {len(config.boundaries)} boundaries"
        )
        self.events.emit(
            EventType.AGENT_CREATED,
            agent_id=config.agent_id,
            name=config.name,
            mandate=config.mandate.value,
            autonomy_level=config.autonomy_level.value,
        )

        if start:
            self.start_loop(config.agent_id)
        return runtime.config_snapshot()

    def list_agents(self) -> List[AgentConfigV1]:
        with self._registry_lock:
            runtimes = list(self._agents.values())
        return [r.config_snapshot() for r in runtimes]

    # ------------------------------------------------------------------
    # Loop control
    # ------------------------------------------------------------------

    def start_loop(self, agent_id: str) -> None:
        """Start the agent's scheduler. Idempotent."""
        runtime = self._runtime(agent_id)
        state = runtime.state
        if state == AgentState.DISABLED:
            raise ConfigurationError(f"Agent {agent_id} is disabled")

        with runtime.lock:
            if runtime.scheduler is not None and runtime.scheduler.is_running:
                return
            runtime.loop_active = True
            if state in (AgentState.INITIALIZING, AgentState.SLEEPING):
                runtime.set_state(AgentState.OBSERVING)
            runtime.scheduler = AgentScheduler(
                agent_id,
                self.settings.cycle_interval_seconds,
                lambda: self.cycle.run(runtime),
            )
            runtime.scheduler.start()

        logger.info(f"Started loop for {agent_id}")
        self.events.emit(
            EventType.AGENT_LOOP_STARTED,
            agent_id=agent_id,
            interval_seconds=self.settings.cycle_interval_seconds,
        )

    def _stop_scheduler(self, runtime: AgentRuntime) -> bool:
        with runtime.lock:
            scheduler, runtime.scheduler = runtime.scheduler, None
            runtime.loop_active = False
        if scheduler is None:
            return False
        scheduler.stop()
        return True

    def stop_loop(self, agent_id: str) -> None:
        """Stop the agent's scheduler and put it to sleep. Idempotent."""
        runtime = self._runtime(agent_id)
        stopped = self._stop_scheduler(runtime)
        state = runtime.settle()
        if stopped:
            logger.info(f"Stopped loop for {agent_id} ({state.value})")
            self.events.emit(EventType.AGENT_LOOP_STOPPED, agent_id=agent_id)

    def run_cycle(self, agent_id: str) -> CycleReport:
        """Run one cycle now. Coalesced if a cycle is already running."""
        return self.cycle.run(self._runtime(agent_id))

    # ------------------------------------------------------------------
    # Emergency and state
    # ------------------------------------------------------------------

    def trigger_emergency(self, agent_id: str, reason: str) -> List[str]:
        """
        Force the agent into emergency mode.

        Every pending or approved decision of this agent is cancelled at once,
        including those of a cycle that is mid-flight. Executed, failed and
        rejected decisions are left untouched. A disabled agent has its open
        decisions cancelled but stays disabled, so it cannot be resumed.

        Returns:
            Ids of the cancelled decisions
        """
        runtime = self._runtime(agent_id)
        state = runtime.enter_emergency()
        cancelled = self.ledger.cancel_open(
            agent_id, self._clock(), annotate=f"[EMERGENCY: {reason}]"
        )
        for decision_id in cancelled:
            self.events.emit(
                EventType.DECISION_CANCELLED,
                agent_id=agent_id,
                decision_id=decision_id,
                reason=reason,
            )
        logger.warning(f"Emergency for {agent_id}: {reason} ({len(cancelled)} decisions cancelled)")
        self.events.emit(
            EventType.AGENT_EMERGENCY,
            agent_id=agent_id,
            reason=reason,
            cancelled_decisions=len(cancelled),
            state=state.value,
        )
        return cancelled

    def resume_agent(self, agent_id: str) -> None:
        """Clear emergency mode and make sure the loop is running."""
        runtime = self._runtime(agent_id)
        if runtime.state != AgentState.EMERGENCY:
            raise ConfigurationError(
                f"Agent {agent_id} is {runtime.state.value}, not in emergency"
            )
        runtime.set_state(AgentState.OBSERVING)
        logger.info(f"Resumed agent {agent_id}")
        self.events.emit(EventType.AGENT_RESUMED, agent_id=agent_id)
        self.start_loop(agent_id)

    def disable_agent(self, agent_id: str) -> None:
        """Stop the loop for good. A disabled agent runs no further cycles."""
        runtime = self._runtime(agent_id)
        self._stop_scheduler(runtime)
        runtime.set_state(AgentState.DISABLED)
        logger.info(f"Disabled agent {agent_id}")
        self.events.emit(EventType.AGENT_DISABLED, agent_id=agent_id)

    # ------------------------------------------------------------------
    # Approval surface
    # ------------------------------------------------------------------

    def _agent_decision(self, agent_id: str, decision_id: str) -> AgentDecisionV1:
        self._runtime(agent_id)
        decision = self.ledger.get(decision_id)
        if decision.agent_id != agent_id:
            raise ConfigurationError(f"Decision {decision_id} does not belong to {agent_id}")
        return decision

    def approve_decision(self, agent_id: str, decision_id: str) -> AgentDecisionV1:
        """
        Approve a pending decision and execute it.

        Raises:
            InvalidTransitionError: The decision is not pending
        """
        self._agent_decision(agent_id, decision_id)
        self.ledger.transition(decision_id, DecisionStatus.APPROVED, self._clock())
        logger.info(f"Decision {decision_id} approved by operator")
        self.events.emit(
            EventType.DECISION_APPROVED, agent_id=agent_id, decision_id=decision_id, by="human"
        )
        return self.coordinator.execute(decision_id)

    def reject_decision(self, decision_id: str, reason: str) -> AgentDecisionV1:
        """
        Reject a pending or approved decision on behalf of a human.

        Raises:
            InvalidTransitionError: The decision is no longer pending or approved
        """
        decision = self.ledger.get(decision_id)
        if decision.status not in (DecisionStatus.PENDING, DecisionStatus.APPROVED):
            raise InvalidTransitionError(
                f"Cannot reject decision {decision_id} in status {decision.status.value}"
            )
        rejected = self.ledger.transition(
            decision_id,
            DecisionStatus.CANCELLED,
            self._clock(),
            annotate=f"[HUMAN REJECTED: {reason}]",
        )
        logger.info(f"Decision {decision_id} rejected by operator: {reason}")
        self.events.emit(
            EventType.DECISION_CANCELLED,
            agent_id=decision.agent_id,
            decision_id=decision_id,
            reason=reason,
            by="human",
        )
        return rejected

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def update_boundaries(
        self, agent_id: str, boundaries: List[AgentBoundaryV1]
    ) -> List[AgentBoundaryV1]:
        """
        Replace the agent's boundaries wholesale.

        Boundaries left out of ``boundaries`` are removed, mandate defaults
        included. The next boundary check uses the new set.

        Raises:
            ConfigurationError: Two boundaries share an id
        """
        runtime = self._runtime(agent_id)
        check_boundary_ids(boundaries)
        replacement = [b.model_copy(deep=True) for b in boundaries]
        with runtime.lock:
            runtime.config.boundaries = replacement
            runtime.config.updated_at = self._clock()
            current = [b.model_copy(deep=True) for b in runtime.config.boundaries]
        logger.info(f"Replaced boundaries for {agent_id}: {len(current)} active")
        self.events.emit(
            EventType.AGENT_BOUNDARIES_UPDATED,
            agent_id=agent_id,
            boundary_ids=[b.boundary_id for b in boundaries],
        )
        return current

    def set_autonomy(self, agent_id: str, level: AutonomyLevel) -> None:
        runtime = self._runtime(agent_id)
        level = AutonomyLevel(level)
        with runtime.lock:
            previous = runtime.config.autonomy_level
            runtime.config.autonomy_level = level
            runtime.config.updated_at = self._clock()
        logger.info(f"Autonomy for {agent_id}: {previous.value} -> {level.value}")
        self.events.emit(
            EventType.AGENT_AUTONOMY_CHANGED,
            agent_id=agent_id,
            old=previous.value,
            new=level.value,
        )

    def register_boundary_evaluator(self, metric: str, evaluator: Evaluator) -> None:
        self.boundary_engine.register_evaluator(metric, evaluator)

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    def get_agent(self, agent_id: str) -> AgentConfigV1:
        return self._runtime(agent_id).config_snapshot()

    def get_state(self, agent_id: str) -> AgentState:
        return self._runtime(agent_id).state

    def get_memory(self, agent_id: str) -> AgentMemoryV1:
        self._runtime(agent_id)
        return self.memory.snapshot(agent_id)

    def get_decisions(self, agent_id: str) -> List[AgentDecisionV1]:
        self._runtime(agent_id)
        return self.ledger.for_agent(agent_id)

    def get_decision(self, decision_id: str) -> AgentDecisionV1:
        return self.ledger.get(decision_id)

    def get_performance(self, agent_id: str, refresh: bool = False) -> AgentPerformanceV1:
        runtime = self._runtime(agent_id)
        if refresh or runtime.performance is None:
            return self.cycle.refresh_performance(runtime)
        return runtime.performance

    def get_observations(self, agent_id: str) -> List[ObservationV1]:
        self._runtime(agent_id)
        return self.memory.observation_log(agent_id)

    def get_opportunities(self, agent_id: str) -> List[OpportunitySignalV1]:
        self._runtime(agent_id)
        return self.memory.opportunities(agent_id)

    # ------------------------------------------------------------------
    # Explanations
    # ------------------------------------------------------------------

    def explain_decision(
        self, decision_id: str, level: Optional[ExplanationLevel] = None
    ) -> str:
        """Explain a decision at ``level``, defaulting to the agent's explanation style."""
        decision = self.ledger.get(decision_id)
        style = self._runtime(decision.agent_id).config_snapshot().personality.explanation_style
        if level is None:
            level = default_level(style)
        return self.explainer.explain_decision(
            decision, level, educational=style == ExplanationStyle.EDUCATIONAL
        )

    def explain_agent_behavior(self, agent_id: str) -> str:
        runtime = self._runtime(agent_id)
        return self.explainer.explain_agent(
            runtime.config_snapshot(),
            runtime.state.value,
            self.memory.snapshot(agent_id),
            self.get_performance(agent_id),
        )

    def shutdown(self) -> None:
        """Stop every scheduler and the worker pools."""
        with self._registry_lock:
            runtimes = list(self._agents.values())
        for runtime in runtimes:
            if self._stop_scheduler(runtime):
                runtime.settle()
        self.collector.shutdown()
        self.coordinator.shutdown()
        logger.info(f"Agent manager shut down ({len(runtimes)} agents)")
