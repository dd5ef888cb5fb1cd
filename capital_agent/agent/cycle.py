"""
The five-phase agent cycle: observe, analyze, decide, execute, learn.

One cycle runs to completion (or to an unhandled error) before the next may
start for the same agent; overlapping triggers are coalesced by a
non-blocking guard. Distinct agents run their cycles concurrently.
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional

from capital_agent.agent.scheduler import AgentScheduler
from capital_agent.agent.states import AgentState
from capital_agent.analysis.analyzer import OpportunityAnalyzer
from capital_agent.analysis.observer import ObservationCollector
from capital_agent.boundaries.engine import BoundaryContext, BoundaryEngine
from capital_agent.decisions.formulator import DecisionFormulator
from capital_agent.decisions.ledger import DecisionLedger
from capital_agent.events import EventBus
from capital_agent.execution.adapter import PortfolioSource
from capital_agent.execution.coordinator import ExecutionCoordinator
from capital_agent.learning.engine import LearningEngine
from capital_agent.learning.performance import compute_performance
from capital_agent.memory.store import MemoryStore
from capital_agent.schemas.agent_config import AgentConfigV1, AutonomyLevel
from capital_agent.schemas.decision import AgentDecisionV1, DecisionStatus, RiskMitigationV1
from capital_agent.schemas.event import EventType
from capital_agent.schemas.performance import AgentPerformanceV1
from capital_agent.schemas.portfolio import PortfolioStateV1
from capital_agent.schemas.settings import EngineSettingsV1
from capital_agent.schemas.signal import AnalysisResultV1
from capital_agent.utils.helpers import Clock

logger = logging.getLogger(__name__)

REJECTED_NOTE = "[REJECTED: Boundary violation]"


class CycleAborted(Exception):
    """The agent left the cycle (emergency or disabled) while it was running."""


@dataclass
class CycleReport:
    """Summary of one cycle."""

    agent_id: str
    started_at: datetime
    completed: bool = False
    skipped_reason: Optional[str] = None
    error: Optional[str] = None
    observations: int = 0
    recommendations: int = 0
    decisions: List[str] = field(default_factory=list)
    approved: List[str] = field(default_factory=list)
    pending: List[str] = field(default_factory=list)
    rejected: List[str] = field(default_factory=list)
    executed: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    classified: int = 0


class AgentRuntime:
    """
    Mutable per-agent runtime record owned by the lifecycle manager.

    ``lock`` guards the config (boundaries, personality, autonomy);
    ``state_lock`` guards the high-level state; ``cycle_guard`` is held for
    the duration of a cycle.
    """

    def __init__(self, config: AgentConfigV1):
        self.config = config
        self.lock = threading.RLock()
        self.state_lock = threading.Lock()
        self.cycle_guard = threading.Lock()
        self.scheduler: Optional[AgentScheduler] = None
        self.loop_active = False
        self.performance: Optional[AgentPerformanceV1] = None
        self.last_cycle: Optional[CycleReport] = None
        self._state = AgentState.INITIALIZING

    @property
    def agent_id(self) -> str:
        return self.config.agent_id

    @property
    def state(self) -> AgentState:
        with self.state_lock:
            return self._state

    def set_state(self, state: AgentState) -> AgentState:
        """Set the state unconditionally and return the previous one."""
        with self.state_lock:
            previous, self._state = self._state, state
            return previous

    def enter_emergency(self) -> AgentState:
        """Halt the agent. A disabled agent stays disabled."""
        with self.state_lock:
            if self._state != AgentState.DISABLED:
                self._state = AgentState.EMERGENCY
            return self._state

    def enter_phase(self, phase: AgentState) -> None:
        """Move to a cycle phase unless the agent has been halted."""
        with self.state_lock:
            if self._state.halts_cycles:
                raise CycleAborted(self._state.value)
            self._state = phase

    def settle(self) -> AgentState:
        """Leave the cycle: back to observing while the loop runs, else sleeping."""
        with self.state_lock:
            if not self._state.halts_cycles:
                self._state = AgentState.OBSERVING if self.loop_active else AgentState.SLEEPING
            return self._state

    def config_snapshot(self) -> AgentConfigV1:
        with self.lock:
            return self.config.model_copy(deep=True)


class CycleRunner:
    """Runs one cycle for one agent against shared collaborators."""

    def __init__(
        self,
        settings: EngineSettingsV1,
        collector: ObservationCollector,
        analyzer: OpportunityAnalyzer,
        formulator: DecisionFormulator,
        boundary_engine: BoundaryEngine,
        ledger: DecisionLedger,
        coordinator: ExecutionCoordinator,
        learning: LearningEngine,
        memory: MemoryStore,
        portfolio_source: PortfolioSource,
        events: EventBus,
        on_emergency: Callable[[str, str], object],
        clock: Optional[Clock] = None,
    ):
        self.settings = settings
        self.collector = collector
        self.analyzer = analyzer
        self.formulator = formulator
        self.boundary_engine = boundary_engine
        self.ledger = ledger
        self.coordinator = coordinator
        self.learning = learning
        self.memory = memory
        self.portfolio_source = portfolio_source
        self.events = events
        self.on_emergency = on_emergency
        self._clock = clock or datetime.now

    def run(self, runtime: AgentRuntime) -> CycleReport:
        """
        Run one cycle unless one is already running for this agent.

        Never raises: faults are logged, emitted as ``agentError`` and
        recorded on the report.
        """
        if not runtime.cycle_guard.acquire(blocking=False):
            logger.debug(f"Cycle already running for {runtime.agent_id}; trigger coalesced")
            return CycleReport(
                agent_id=runtime.agent_id,
                started_at=self._clock(),
                skipped_reason="cycle in progress",
            )
        try:
            report = self._run(runtime)
            runtime.last_cycle = report
            return report
        finally:
            runtime.cycle_guard.release()

    def _skip(self, report: CycleReport, reason: str) -> CycleReport:
        report.skipped_reason = reason
        logger.debug(f"Cycle skipped for {report.agent_id}: {reason}")
        self.events.emit(EventType.CYCLE_SKIPPED, agent_id=report.agent_id, reason=reason)
        return report

    def _run(self, runtime: AgentRuntime) -> CycleReport:
        agent_id = runtime.agent_id
        now = self._clock()
        report = CycleReport(agent_id=agent_id, started_at=now)

        state = runtime.state
        if state.halts_cycles:
            return self._skip(report, f"agent is {state.value}")

        config = runtime.config_snapshot()
        if not is_active(config, now):
            return self._skip(report, "outside active hours")

        try:
            # 1. Observe
            runtime.enter_phase(AgentState.OBSERVING)
            observations = self.collector.collect(agent_id, self.settings.observation_categories)
            self.memory.record_observations(agent_id, observations)
            report.observations = len(observations)

            # 2. Analyze
            runtime.enter_phase(AgentState.ANALYZING)
            portfolio = self.portfolio_source.snapshot(agent_id)
            if portfolio.drawdown_pct >= config.max_drawdown_tolerance:
                self.on_emergency(
                    agent_id,
                    f"Drawdown {portfolio.drawdown_pct:.1f}% reached tolerance "
                    f"{config.max_drawdown_tolerance:g}%",
                )
                raise CycleAborted(AgentState.EMERGENCY.value)

            analysis = self.analyzer.analyze(
                config, observations, self.memory.snapshot(agent_id), portfolio
            )
            self.memory.record_opportunities(agent_id, analysis.opportunities)
            self.memory.set_alerts(
                agent_id,
                [
                    r.description
                    for r in analysis.risks
                    if r.severity > self.settings.high_severity_threshold
                ],
            )
            self.memory.update_context(
                agent_id, regime=analysis.regime, last_cycle_at=now.isoformat()
            )
            report.recommendations = len(analysis.recommendations)

            # 3. Decide
            runtime.enter_phase(AgentState.DECIDING)
            self._decide(runtime, analysis, portfolio, now, report)

            # 4. Execute
            runtime.enter_phase(AgentState.EXECUTING)
            for decision_id in report.approved:
                result = self.coordinator.execute(decision_id)
                if result.status == DecisionStatus.EXECUTED:
                    report.executed.append(decision_id)
                elif result.status == DecisionStatus.FAILED:
                    report.failed.append(decision_id)

            # 5. Learn
            runtime.enter_phase(AgentState.LEARNING)
            prices = {symbol: quote.price for symbol, quote in analysis.quotes.items()}
            with runtime.lock:
                learned = self.learning.learn(
                    runtime.config, prices, analysis.regime, len(report.decisions)
                )
            report.classified = len(learned.classified)
            self.refresh_performance(runtime)

            runtime.settle()
            report.completed = True
            logger.debug(
                f"Cycle complete for {agent_id}: decisions={len(report.decisions)} "
                f"executed={len(report.executed)} rejected={len(report.rejected)}"
            )
            self.events.emit(
                EventType.CYCLE_COMPLETED,
                agent_id=agent_id,
                decisions=len(report.decisions),
                executed=len(report.executed),
                rejected=len(report.rejected),
                pending=len(report.pending),
                failed=len(report.failed),
            )
        except CycleAborted as e:
            report.skipped_reason = f"aborted: agent is {e}"
            logger.info(f"Cycle for {agent_id} aborted: agent is {e}")
        except Exception as e:
            phase = runtime.state.value
            runtime.settle()
            report.error = str(e)
            logger.error(f"Cycle error for {agent_id} during {phase}: {e}", exc_info=True)
            self.events.emit(EventType.AGENT_ERROR, agent_id=agent_id, error=str(e), phase=phase)
        return report

    def _decide(
        self,
        runtime: AgentRuntime,
        analysis: AnalysisResultV1,
        portfolio: PortfolioStateV1,
        now: datetime,
        report: CycleReport,
    ) -> None:
        agent_id = runtime.agent_id
        config = runtime.config

        for rec in analysis.recommendations[: self.settings.top_recommendations]:
            if runtime.state.halts_cycles:
                raise CycleAborted(runtime.state.value)
            if rec.priority < config.min_confidence_to_act:
                continue
            if self.ledger.count_on(agent_id, now.date()) >= config.max_decisions_per_day:
                logger.info(f"Agent {agent_id} reached its daily decision limit")
                self.events.emit(
                    EventType.DAILY_DECISION_LIMIT_REACHED,
                    agent_id=agent_id,
                    limit=config.max_decisions_per_day,
                )
                break

            with runtime.lock:
                decision = self.formulator.formulate(config, rec, analysis, portfolio)
                if decision is None:
                    continue
                self.ledger.add(decision)
                self.memory.record_decision(agent_id, decision.decision_id)
                ctx = BoundaryContext(
                    config=config,
                    portfolio=portfolio,
                    now=now,
                    last_trade_at=self.ledger.last_execution_at(agent_id),
                )
                results = self.boundary_engine.check(decision, ctx)
                self.ledger.attach_checks(decision.decision_id, results)
                autonomy = config.autonomy_level
                approval_threshold = config.require_approval_above
                notify_on = set(config.notify_on)

            report.decisions.append(decision.decision_id)
            decision = self.ledger.get(decision.decision_id)
            self._gate(runtime, decision, autonomy, approval_threshold, now, report)

            if decision.decision_type.value in notify_on:
                self.events.emit(
                    EventType.DECISION_NOTIFICATION,
                    agent_id=agent_id,
                    decision_id=decision.decision_id,
                    decision_type=decision.decision_type.value,
                )

    def _gate(
        self,
        runtime: AgentRuntime,
        decision: AgentDecisionV1,
        autonomy: AutonomyLevel,
        approval_threshold: float,
        now: datetime,
        report: CycleReport,
    ) -> None:
        """Route a boundary-checked decision to rejected, approved or pending."""
        agent_id = decision.agent_id
        decision_id = decision.decision_id

        hard = decision.hard_violations
        if hard:
            if self.ledger.try_transition(
                decision_id, DecisionStatus.REJECTED, now, annotate=REJECTED_NOTE
            ):
                report.rejected.append(decision_id)
                self.events.emit(
                    EventType.DECISION_REJECTED_BY_BOUNDARY,
                    agent_id=agent_id,
                    decision_id=decision_id,
                    violations=[r.boundary_id for r in hard],
                )
            return

        soft = decision.soft_violations
        if soft:
            def annotate(d: AgentDecisionV1) -> None:
                d.reasoning.risks.extend(
                    RiskMitigationV1(
                        risk=f"soft_boundary:{r.boundary_id}",
                        mitigation=f"Advisory limit exceeded ({r.note}); proceeding",
                    )
                    for r in soft
                )

            self.ledger.update(decision_id, annotate)

        auto_approve = autonomy == AutonomyLevel.FULL or (
            autonomy == AutonomyLevel.SUPERVISED and decision.action.amount < approval_threshold
        )
        if auto_approve:
            if self.ledger.try_transition(decision_id, DecisionStatus.APPROVED, now):
                report.approved.append(decision_id)
                self.events.emit(
                    EventType.DECISION_APPROVED,
                    agent_id=agent_id,
                    decision_id=decision_id,
                    by="agent",
                )
            return

        # An emergency may have cancelled the decision since it was checked
        if runtime.state.halts_cycles:
            raise CycleAborted(runtime.state.value)
        with self.ledger.lock:
            if self.ledger.get(decision_id).status != DecisionStatus.PENDING:
                return
            report.pending.append(decision_id)
        logger.info(f"Decision {decision_id} awaits approval ({autonomy.value})")
        self.events.emit(
            EventType.DECISION_PENDING_APPROVAL,
            agent_id=agent_id,
            decision_id=decision_id,
            amount=decision.action.amount,
            asset=decision.action.asset,
        )

    def refresh_performance(self, runtime: AgentRuntime) -> AgentPerformanceV1:
        agent_id = runtime.agent_id
        performance = compute_performance(
            agent_id,
            self.ledger.for_agent(agent_id),
            self.memory.snapshot(agent_id),
            self._clock(),
        )
        runtime.performance = performance
        return performance


def is_active(config: AgentConfigV1, now: datetime) -> bool:
    """True if ``now`` falls inside the agent's active window."""
    if not config.active_on_weekends and now.weekday() >= 5:
        return False
    if config.active_hours is None:
        return True
    return config.active_hours.contains(now.hour)
