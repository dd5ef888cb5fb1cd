"""Unit tests for outcome classification, the learning engine and performance."""

from datetime import timedelta

import numpy as np
import pytest

from capital_agent.decisions.ledger import DecisionLedger
from capital_agent.learning.engine import (
    HIGH_CONFIDENCE_PATTERN,
    OVERCONFIDENT_PATTERN,
    LearningEngine,
    classify_outcome,
    mark_to_market,
)
from capital_agent.learning.performance import (
    DecisionPnl,
    compute_performance,
    max_drawdown,
    sharpe_ratio,
    sortino_ratio,
)
from capital_agent.memory.store import MemoryStore
from capital_agent.schemas.decision import (
    DecisionStatus,
    ExecutionResultV1,
    ExitAction,
    OutcomeLabel,
)
from capital_agent.schemas.event import EventType
from capital_agent.schemas.settings import EngineSettingsV1

FILL = 500.5


@pytest.fixture
def ledger() -> DecisionLedger:
    return DecisionLedger()


@pytest.fixture
def store() -> MemoryStore:
    store = MemoryStore()
    store.allocate("agent_test")
    return store


@pytest.fixture
def engine(ledger, store, events, clock) -> LearningEngine:
    return LearningEngine(EngineSettingsV1(), ledger, store, events, clock=clock)


@pytest.fixture
def executed(ledger, store, make_decision, clock):
    """Book an executed decision filled at FILL, tracked in short-term memory."""

    def _executed(decision_id="dec_test_001", confidence_score=70.0, regime="bull_steady"):
        decision = make_decision(decision_id=decision_id, confidence_score=confidence_score)
        decision.regime = regime
        ledger.add(decision)
        for status in (DecisionStatus.APPROVED, DecisionStatus.EXECUTING):
            ledger.transition(decision_id, status, clock())

        def complete(d):
            d.execution_result = ExecutionResultV1(
                order_id="paper_1",
                actual_price=FILL,
                actual_amount=3750,
                completed_at=clock(),
            )
            d.transition(DecisionStatus.EXECUTED, clock())

        ledger.update(decision_id, complete)
        store.record_decision("agent_test", decision_id)
        return decision_id

    return _executed


class TestClassifyOutcome:
    @pytest.mark.parametrize(
        "value,label",
        [
            (112.5, OutcomeLabel.SUCCESS),
            (112.4, OutcomeLabel.PARTIAL_SUCCESS),
            (0.01, OutcomeLabel.PARTIAL_SUCCESS),
            (0.0, OutcomeLabel.NEUTRAL),
            (-37.4, OutcomeLabel.NEUTRAL),
            (-37.5, OutcomeLabel.PARTIAL_FAILURE),
            (-74.9, OutcomeLabel.PARTIAL_FAILURE),
            (-75.0, OutcomeLabel.FAILURE),
        ],
    )
    def test_ladder(self, value, label):
        assert classify_outcome(value, base_case=75, worst_case=-37.5) == label

    def test_mark_to_market_buy_and_sell(self, make_decision):
        decision = make_decision()
        decision.execution_result = ExecutionResultV1(actual_price=100.0, actual_amount=1000.0)
        assert mark_to_market(decision, 110.0) == pytest.approx(100.0)
        assert mark_to_market(decision, None) is None

        decision.action = ExitAction(description="exit", asset="SPY", amount=1000, amount_percent=1)
        assert mark_to_market(decision, 110.0) == pytest.approx(-100.0)

    def test_mark_to_market_without_fill(self, make_decision):
        assert mark_to_market(make_decision(), 100.0) is None


class TestLearningEngine:
    def test_checkpoint_before_wait_period(
        self, engine, executed, ledger, store, clock, agent_config
    ):
        executed()
        clock.advance(days=3)

        report = engine.learn(agent_config, {"SPY": 510.0}, "bull_steady")

        assert report.checkpoints == 1
        assert report.classified == []
        tracking = ledger.get("dec_test_001").outcome_tracking
        assert tracking.final_outcome is None
        assert tracking.checkpoints[0].value == pytest.approx(3750 * (510 - FILL) / FILL)
        assert store.snapshot("agent_test").long_term.total_decisions == 0

    def test_success_after_wait_raises_risk_tolerance(
        self, engine, executed, ledger, store, clock, agent_config, events
    ):
        executed()
        clock.advance(days=8)

        report = engine.learn(agent_config, {"SPY": 520.0}, "bull_steady", decisions_this_cycle=0)

        (outcome,) = report.classified
        assert outcome.label == OutcomeLabel.SUCCESS
        assert report.risk_tolerance_change == (50.0, 52.5)
        assert agent_config.personality.risk_tolerance == 52.5

        decision = ledger.get("dec_test_001")
        assert decision.outcome_tracking.final_outcome == OutcomeLabel.SUCCESS
        assert decision.outcome_tracking.lessons_learned

        long_term = store.snapshot("agent_test").long_term
        assert long_term.total_decisions == 1
        assert long_term.successful_decisions == 1
        assert long_term.asset_memory["SPY"].win_rate == 1.0
        regime = long_term.regime_memory["bull_steady"]
        assert regime.successes == 1
        assert regime.cycles_observed == 1
        assert regime.best_strategy == "position_entry"
        # confidence 70 does not exceed the reinforce cutoff
        assert long_term.success_patterns == []

        adapted = events.history(event_type=EventType.AGENT_PERSONALITY_ADAPTED)
        assert adapted[0].data == {"trait": "risk_tolerance", "old": 50.0, "new": 52.5}

    def test_failure_lowers_risk_tolerance(
        self, engine, executed, store, clock, agent_config
    ):
        executed(confidence_score=85)
        clock.advance(days=8)

        report = engine.learn(agent_config, {"SPY": 450.0}, "bull_steady")

        assert report.classified[0].label == OutcomeLabel.FAILURE
        assert agent_config.personality.risk_tolerance == 45.0
        long_term = store.snapshot("agent_test").long_term
        assert long_term.failed_decisions == 1
        (pattern,) = long_term.failure_patterns
        assert pattern.pattern == OVERCONFIDENT_PATTERN
        assert pattern.avg_loss < 0

    def test_classification_is_final(self, engine, executed, ledger, clock, agent_config):
        executed()
        clock.advance(days=8)
        engine.learn(agent_config, {"SPY": 520.0}, "bull_steady")
        clock.advance(days=1)
        report = engine.learn(agent_config, {"SPY": 400.0}, "bull_steady")

        assert report.classified == []
        assert report.checkpoints == 0
        assert ledger.get("dec_test_001").outcome_tracking.final_outcome == OutcomeLabel.SUCCESS

    def test_high_confidence_pattern_reinforced(
        self, engine, executed, store, clock, agent_config
    ):
        executed("d1", confidence_score=80)
        clock.advance(days=8)
        engine.learn(agent_config, {"SPY": 520.0}, "bull_steady")

        executed("d2", confidence_score=90)
        clock.advance(days=8)
        engine.learn(agent_config, {"SPY": 540.0}, "bull_steady")

        (pattern,) = store.snapshot("agent_test").long_term.success_patterns
        assert pattern.pattern == HIGH_CONFIDENCE_PATTERN
        assert pattern.occurrences == 2
        assert pattern.confidence == pytest.approx(85.0)

    def test_missing_quote_carries_value_forward(
        self, engine, executed, ledger, clock, agent_config
    ):
        executed()
        clock.advance(days=1)
        engine.learn(agent_config, {"SPY": 510.0}, None)
        clock.advance(days=1)
        engine.learn(agent_config, {}, None)

        first, second = ledger.get("dec_test_001").outcome_tracking.checkpoints
        assert second.value == first.value
        assert "carried forward" in second.notes

    def test_risk_tolerance_stays_within_bounds(
        self, engine, executed, clock, make_config
    ):
        config = make_config(agent_id="agent_test", personality={"risk_tolerance": 32})
        executed()
        clock.advance(days=8)
        engine.learn(config, {"SPY": 450.0}, None)
        assert config.personality.risk_tolerance == 30.0

    def test_learning_disabled(self, engine, executed, ledger, clock, make_config):
        config = make_config(agent_id="agent_test", learning_enabled=False)
        executed()
        clock.advance(days=8)
        report = engine.learn(config, {"SPY": 520.0}, "bull_steady")
        assert report.checkpoints == 0
        assert ledger.get("dec_test_001").outcome_tracking.checkpoints == []

    def test_unexecuted_decisions_not_tracked(
        self, engine, ledger, store, make_decision, clock, agent_config
    ):
        ledger.add(make_decision())
        store.record_decision("agent_test", "dec_test_001")
        clock.advance(days=8)
        report = engine.learn(agent_config, {"SPY": 520.0}, "bull_steady")
        assert report.checkpoints == 0


class TestPerformance:
    def _rows(self, pnls, start):
        return [
            DecisionPnl(amount=1000.0, pnl=p, completed_at=start + timedelta(days=i))
            for i, p in enumerate(pnls)
        ]

    def test_ratios_need_two_rows(self, clock):
        rows = self._rows([50.0], clock())
        assert sharpe_ratio(rows) == 0.0
        assert sortino_ratio(rows) == 0.0
        assert max_drawdown(rows) == 0.0

    def test_sharpe(self, clock):
        rows = self._rows([50.0, -10.0, 30.0], clock())
        returns = np.array([0.05, -0.01, 0.03])
        assert sharpe_ratio(rows) == pytest.approx(returns.mean() / returns.std(ddof=1))

    def test_sortino_without_downside_is_capped(self, clock):
        assert sortino_ratio(self._rows([10.0, 20.0], clock())) == 99.0

    def test_max_drawdown(self, clock):
        # committed 3000: 3000 -> 3100 -> 2900 -> 3000
        rows = self._rows([100.0, -200.0, 100.0], clock())
        assert max_drawdown(rows) == pytest.approx(200 / 3100)

    def test_compute_performance(self, engine, executed, ledger, store, clock, agent_config):
        executed()
        perf = compute_performance(
            "agent_test", ledger.for_agent("agent_test"), store.snapshot("agent_test"), clock()
        )
        assert perf.executed_decisions == 1
        assert perf.total_return == 0.0
        assert perf.win_rate == 0.0

        clock.advance(days=8)
        engine.learn(agent_config, {"SPY": 520.0}, "bull_steady")
        perf = compute_performance(
            "agent_test", ledger.for_agent("agent_test"), store.snapshot("agent_test"), clock()
        )

        expected = 3750 * (520 - FILL) / FILL
        assert perf.total_decisions == 1
        assert perf.classified_decisions == 1
        assert perf.total_return == pytest.approx(expected)
        assert perf.total_return_pct == pytest.approx(expected / 3750 * 100)
        assert perf.annualized_return == pytest.approx(expected / 3750 * 365 / 8 * 100)
        assert perf.win_rate == 1.0
        assert perf.avg_win == pytest.approx(expected)
        assert perf.adaptation_score == 20
