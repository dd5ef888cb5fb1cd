"""
Learning engine.

Tracks realized outcomes of executed decisions, classifies them after the
waiting period, extracts confidence patterns, maintains regime and asset
statistics and adapts the agent's risk tolerance within fixed bounds.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple

import numpy as np

from capital_agent.decisions.ledger import DecisionLedger
from capital_agent.events import EventBus
from capital_agent.memory.store import MemoryStore
from capital_agent.schemas.agent_config import AgentConfigV1
from capital_agent.schemas.decision import (
    AgentDecisionV1,
    DecisionStatus,
    OutcomeCheckpointV1,
    OutcomeLabel,
    TradeDirection,
)
from capital_agent.schemas.event import EventType
from capital_agent.schemas.memory import (
    AgentMemoryV1,
    AssetStatsV1,
    NegativePatternV1,
    PositivePatternV1,
    RegimeStatsV1,
)
from capital_agent.schemas.settings import EngineSettingsV1
from capital_agent.utils.helpers import Clock, safe_div

logger = logging.getLogger(__name__)

HIGH_CONFIDENCE_PATTERN = "high_confidence_entry"
OVERCONFIDENT_PATTERN = "overconfident_entry"


@dataclass
class ClassifiedOutcome:
    decision_id: str
    asset: str
    decision_type: str
    regime: Optional[str]
    confidence_score: float
    label: OutcomeLabel
    value: float
    return_pct: float
    fill_price: Optional[float]


@dataclass
class LearningReport:
    checkpoints: int = 0
    classified: List[ClassifiedOutcome] = field(default_factory=list)
    risk_tolerance_change: Optional[Tuple[float, float]] = None


def classify_outcome(
    value: float,
    base_case: float,
    worst_case: float,
    success_multiplier: float = 1.5,
    partial_failure_multiplier: float = 2.0,
) -> OutcomeLabel:
    """
    Classify a realized value against the expected scenarios.

    Example:
        >>> classify_outcome(300, base_case=200, worst_case=-100).value
        'success'
        >>> classify_outcome(-150, base_case=200, worst_case=-100).value
        'partial_failure'
    """
    if value >= base_case * success_multiplier:
        return OutcomeLabel.SUCCESS
    if value > 0:
        return OutcomeLabel.PARTIAL_SUCCESS
    if value > worst_case:
        return OutcomeLabel.NEUTRAL
    if value > worst_case * partial_failure_multiplier:
        return OutcomeLabel.PARTIAL_FAILURE
    return OutcomeLabel.FAILURE


def mark_to_market(decision: AgentDecisionV1, price: Optional[float]) -> Optional[float]:
    """
    Current P&L of an executed decision at ``price``.

    Sells gain when the price falls after the fill.
    """
    result = decision.execution_result
    if price is None or result is None or not result.actual_price:
        return None
    amount = result.actual_amount or decision.action.amount
    ret = (price - result.actual_price) / result.actual_price
    if decision.action.direction == TradeDirection.SELL:
        ret = -ret
    return amount * ret


def _lessons(label: OutcomeLabel, decision: AgentDecisionV1, value: float) -> List[str]:
    score = decision.confidence_score
    asset = decision.action.asset
    if label == OutcomeLabel.SUCCESS:
        kind = decision.decision_type.value
        return [f"{kind} on {asset} at confidence {score:g} beat the base case"]
    if label == OutcomeLabel.PARTIAL_SUCCESS:
        return [f"{asset} was profitable ({value:+.2f}) but fell short of 1.5x the base case"]
    if label == OutcomeLabel.NEUTRAL:
        return [f"{asset} ended between zero and the worst case; edge was not realized"]
    lessons = [f"{asset} lost {value:.2f}, beyond the expected worst case"]
    if score > 70:
        lessons.append(f"Confidence {score:g} was too high for this setup")
    return lessons


def _find(patterns, name):
    return next((p for p in patterns if p.pattern == name), None)


class LearningEngine:
    """
    Learn phase of the cycle.

    Memory is mutated under the memory store's per-agent lock; decisions are
    mutated through the ledger; the config's personality is mutated in place
    and the caller must hold the agent's config lock.
    """

    def __init__(
        self,
        settings: EngineSettingsV1,
        ledger: DecisionLedger,
        memory: MemoryStore,
        events: EventBus,
        clock: Optional[Clock] = None,
    ):
        self.settings = settings
        self.ledger = ledger
        self.memory = memory
        self.events = events
        self._clock = clock or datetime.now

    def learn(
        self,
        config: AgentConfigV1,
        prices: Dict[str, float],
        regime: Optional[str],
        decisions_this_cycle: int = 0,
    ) -> LearningReport:
        """
        Run the learn phase for one agent.

        Args:
            config: Live agent config (personality may be adapted)
            prices: Latest prices by symbol
            regime: Most recent regime label, if observed
            decisions_this_cycle: Decisions formulated in this cycle

        Returns:
            LearningReport
        """
        report = LearningReport()
        if not config.learning_enabled:
            return report

        agent_id = config.agent_id
        now = self._clock()
        with self.memory.lock_for(agent_id):
            mem = self.memory.get(agent_id)

            for decision_id in list(mem.short_term.recent_decisions):
                outcome = self.ledger.update(
                    decision_id, lambda d: self._track(d, prices, now, report)
                )
                if outcome is not None:
                    report.classified.append(outcome)

            for outcome in report.classified:
                self._update_counters(mem, outcome)
                self._update_asset_memory(mem, outcome, now)
                self._update_regime_outcome(mem, outcome)

            self._extract_patterns(mem, report.classified)
            self._update_regime_memory(mem, regime, decisions_this_cycle)

            if report.classified:
                report.risk_tolerance_change = self.adapt_personality(config, mem, now)

        if report.risk_tolerance_change is not None:
            old, new = report.risk_tolerance_change
            self.events.emit(
                EventType.AGENT_PERSONALITY_ADAPTED,
                agent_id=agent_id,
                trait="risk_tolerance",
                old=old,
                new=new,
            )

        self.events.emit(
            EventType.AGENT_LEARNED,
            agent_id=agent_id,
            checkpoints=report.checkpoints,
            classified=len(report.classified),
        )
        return report

    # ------------------------------------------------------------------
    # Outcome tracking (runs under the ledger lock)
    # ------------------------------------------------------------------

    def _track(
        self,
        decision: AgentDecisionV1,
        prices: Dict[str, float],
        now: datetime,
        report: LearningReport,
    ) -> Optional[ClassifiedOutcome]:
        if decision.status != DecisionStatus.EXECUTED:
            return None
        tracking = decision.outcome_tracking
        if not tracking.tracked or tracking.final_outcome is not None:
            return None

        value = mark_to_market(decision, prices.get(decision.action.asset))
        if value is None:
            value = tracking.latest_value or 0.0
            notes = "Periodic check (no quote; carried forward)"
        else:
            notes = "Periodic check"
        tracking.checkpoints.append(OutcomeCheckpointV1(at=now, value=value, notes=notes))
        report.checkpoints += 1

        completed_at = decision.execution_result.completed_at
        if completed_at is None:
            return None
        if now - completed_at < timedelta(days=self.settings.outcome_wait_days):
            return None

        s = self.settings
        label = classify_outcome(
            value,
            decision.expected_outcome.base_case.value,
            decision.expected_outcome.worst_case.value,
            s.success_multiplier,
            s.partial_failure_multiplier,
        )
        tracking.finalize(label, now, _lessons(label, decision, value))
        logger.info(f"Decision {decision.decision_id} classified as {label.value} ({value:+.2f})")

        amount = decision.execution_result.actual_amount or decision.action.amount
        return ClassifiedOutcome(
            decision_id=decision.decision_id,
            asset=decision.action.asset,
            decision_type=decision.decision_type.value,
            regime=decision.regime,
            confidence_score=decision.confidence_score,
            label=label,
            value=value,
            return_pct=safe_div(value, amount),
            fill_price=decision.execution_result.actual_price,
        )

    # ------------------------------------------------------------------
    # Memory updates (run under the memory lock)
    # ------------------------------------------------------------------

    def _update_counters(self, mem: AgentMemoryV1, outcome: ClassifiedOutcome) -> None:
        long_term = mem.long_term
        long_term.total_decisions += 1
        if outcome.label.is_success:
            long_term.successful_decisions += 1
        elif outcome.label.is_failure:
            long_term.failed_decisions += 1

    def _update_asset_memory(
        self, mem: AgentMemoryV1, outcome: ClassifiedOutcome, now: datetime
    ) -> None:
        stats = mem.long_term.asset_memory.setdefault(outcome.asset, AssetStatsV1())
        stats.trades_count += 1
        if outcome.label.is_success:
            stats.wins += 1
        elif outcome.label.is_failure:
            stats.losses += 1
        stats.win_rate = safe_div(stats.wins, stats.trades_count)
        stats.avg_return += (outcome.return_pct - stats.avg_return) / stats.trades_count

        price = f" at {outcome.fill_price:.2f}" if outcome.fill_price else ""
        note = f"{outcome.decision_type}{price} on {now:%Y-%m-%d} ({outcome.return_pct:+.2%})"
        if stats.best_return is None or outcome.return_pct > stats.best_return:
            stats.best_return = outcome.return_pct
            stats.best_entry_notes = note
        if stats.worst_return is None or outcome.return_pct < stats.worst_return:
            stats.worst_return = outcome.return_pct
            stats.best_exit_notes = f"Exit earlier than: {note}"

    def _update_regime_outcome(self, mem: AgentMemoryV1, outcome: ClassifiedOutcome) -> None:
        if not outcome.regime:
            return
        stats = mem.long_term.regime_memory.setdefault(outcome.regime, RegimeStatsV1())
        score = stats.strategy_counts.get(outcome.decision_type, 0)
        if outcome.label.is_success:
            stats.successes += 1
            score += 1
        elif outcome.label.is_failure:
            stats.failures += 1
            score -= 1
        stats.strategy_counts[outcome.decision_type] = score
        stats.success_rate = safe_div(stats.successes, stats.successes + stats.failures)
        stats.best_strategy = max(stats.strategy_counts, key=stats.strategy_counts.get)
        stats.worst_strategy = min(stats.strategy_counts, key=stats.strategy_counts.get)

    def _update_regime_memory(
        self, mem: AgentMemoryV1, regime: Optional[str], decisions_this_cycle: int
    ) -> None:
        if not regime:
            return
        stats = mem.long_term.regime_memory.setdefault(regime, RegimeStatsV1())
        stats.cycles_observed += 1
        stats.decisions_in_regime += decisions_this_cycle

    def _extract_patterns(self, mem: AgentMemoryV1, classified: List[ClassifiedOutcome]) -> None:
        cutoff = self.settings.pattern_reinforce_confidence
        successes = [o for o in classified if o.label.is_success]
        failures = [o for o in classified if o.label.is_failure]

        if successes:
            mean_conf = float(np.mean([o.confidence_score for o in successes]))
            mean_ret = float(np.mean([o.return_pct for o in successes]))
            if mean_conf > cutoff:
                pattern = _find(mem.long_term.success_patterns, HIGH_CONFIDENCE_PATTERN)
                if pattern is None:
                    mem.long_term.success_patterns.append(
                        PositivePatternV1(
                            pattern=HIGH_CONFIDENCE_PATTERN,
                            occurrences=1,
                            avg_return=mean_ret,
                            confidence=mean_conf,
                        )
                    )
                else:
                    pattern.occurrences += 1
                    pattern.confidence = (pattern.confidence + mean_conf) / 2
                    pattern.avg_return += (mean_ret - pattern.avg_return) / pattern.occurrences
                logger.debug(f"Reinforced {HIGH_CONFIDENCE_PATTERN} (confidence {mean_conf:.1f})")

        if failures:
            mean_conf = float(np.mean([o.confidence_score for o in failures]))
            mean_loss = float(np.mean([o.return_pct for o in failures]))
            if mean_conf > cutoff:
                pattern = _find(mem.long_term.failure_patterns, OVERCONFIDENT_PATTERN)
                if pattern is None:
                    mem.long_term.failure_patterns.append(
                        NegativePatternV1(
                            pattern=OVERCONFIDENT_PATTERN,
                            occurrences=1,
                            avg_loss=mean_loss,
                            confidence=mean_conf,
                        )
                    )
                else:
                    pattern.occurrences += 1
                    pattern.confidence = (pattern.confidence + mean_conf) / 2
                    pattern.avg_loss += (mean_loss - pattern.avg_loss) / pattern.occurrences

    def adapt_personality(
        self, config: AgentConfigV1, mem: AgentMemoryV1, now: datetime
    ) -> Optional[Tuple[float, float]]:
        """
        Nudge risk tolerance by the rolling success rate.

        Low success lowers it by the learning rate, high success raises it by
        half the learning rate; it never crosses the floor or ceiling.

        Returns:
            (old, new) if risk tolerance changed, else None
        """
        s = self.settings
        long_term = mem.long_term
        if long_term.total_decisions < s.min_outcomes_to_adapt:
            return None

        rate = safe_div(long_term.successful_decisions, long_term.total_decisions)
        personality = config.personality
        old = personality.risk_tolerance
        new = old

        if rate < s.low_success_rate and old > s.risk_tolerance_floor:
            new = max(s.risk_tolerance_floor, old - config.learning_rate)
        elif rate > s.high_success_rate and old < s.risk_tolerance_ceiling:
            new = min(s.risk_tolerance_ceiling, old + config.learning_rate / 2)

        if new == old:
            return None
        personality.risk_tolerance = new
        config.updated_at = now
        logger.info(
            f"Agent {config.agent_id} risk tolerance {old:g} -> {new:g} "
            f"(success rate {rate:.2f})"
        )
        return old, new
