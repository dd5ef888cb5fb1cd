"""Property-based tests for agent core invariants using Hypothesis."""

from datetime import datetime, timedelta

import pytest
from hypothesis import HealthCheck, assume, given, settings, strategies as st

from capital_agent.agent.lifecycle import AgentManager
from capital_agent.boundaries.defaults import default_boundaries
from capital_agent.boundaries.engine import BoundaryContext, BoundaryEngine
from capital_agent.decisions.formulator import map_confidence
from capital_agent.decisions.ledger import DecisionLedger
from capital_agent.events import EventBus
from capital_agent.execution.adapter import InMemoryPortfolio, PaperExecutionAdapter
from capital_agent.learning.engine import LearningEngine
from capital_agent.memory.store import MemoryStore
from capital_agent.schemas.agent_config import AgentConfigV1
from capital_agent.schemas.decision import (
    ALLOWED_TRANSITIONS,
    TERMINAL_STATUSES,
    AgentDecisionV1,
    ConfidenceLevel,
    DecisionStatus,
    DecisionType,
    EntryAction,
    ExpectedOutcomeV1,
    ReasoningV1,
    ScenarioV1,
)
from capital_agent.schemas.memory import AgentMemoryV1
from capital_agent.schemas.portfolio import PortfolioStateV1
from capital_agent.schemas.settings import EngineSettingsV1
from capital_agent.sources.static import StaticObservationSource
from capital_agent.utils.helpers import SimulatedClock

START = datetime(2024, 1, 3, 12, 0)

LEVEL_ORDER = [
    ConfidenceLevel.VERY_LOW,
    ConfidenceLevel.LOW,
    ConfidenceLevel.MEDIUM,
    ConfidenceLevel.HIGH,
    ConfidenceLevel.VERY_HIGH,
]

scores = st.floats(min_value=0.0, max_value=100.0, allow_nan=False)
statuses = st.sampled_from(list(DecisionStatus))


def _decision(amount: float = 1_000.0) -> AgentDecisionV1:
    return AgentDecisionV1(
        decision_id="dec_prop",
        agent_id="agent_prop",
        timestamp=START,
        decision_type=DecisionType.POSITION_ENTRY,
        confidence=ConfidenceLevel.MEDIUM,
        confidence_score=70.0,
        action=EntryAction(
            description="entry", asset="SPY", amount=amount, amount_percent=1.0, timeframe="1W"
        ),
        reasoning=ReasoningV1(summary="property"),
        expected_outcome=ExpectedOutcomeV1(
            probability=0.7,
            best_case=ScenarioV1(description="best", value=amount * 0.05),
            base_case=ScenarioV1(description="base", value=amount * 0.02),
            worst_case=ScenarioV1(description="worst", value=-amount * 0.01),
            time_to_realization="1-2 weeks",
        ),
    )


@pytest.mark.property
class TestConfidenceMapping:
    @given(a=scores, b=scores)
    def test_mapping_is_monotonic(self, a: float, b: float):
        low, high = sorted((a, b))
        assert LEVEL_ORDER.index(map_confidence(low)) <= LEVEL_ORDER.index(map_confidence(high))


@pytest.mark.property
class TestStatusMachine:
    @given(targets=st.lists(statuses, min_size=1, max_size=12))
    def test_history_follows_allowed_transitions(self, targets):
        """
        Property: whatever sequence of moves is attempted, the status history
        only ever steps along allowed edges and stops at a terminal status.
        """
        decision = _decision()
        at = START
        for target in targets:
            at += timedelta(minutes=1)
            if decision.can_transition(target):
                decision.transition(target, at)

        history = [change.status for change in decision.status_history]
        assert history[0] == DecisionStatus.PENDING
        for before, after in zip(history, history[1:]):
            assert after in ALLOWED_TRANSITIONS[before]
        for status in history[:-1]:
            assert status not in TERMINAL_STATUSES

    @given(targets=st.lists(statuses, min_size=1, max_size=12))
    def test_ledger_try_transition_never_raises(self, targets):
        ledger = DecisionLedger()
        ledger.add(_decision())
        for target in targets:
            before = ledger.get("dec_prop").status
            moved = ledger.try_transition("dec_prop", target, START)
            assert moved == (target in ALLOWED_TRANSITIONS[before])


@pytest.mark.property
class TestRiskToleranceBounds:
    @given(
        start=st.floats(min_value=30.0, max_value=80.0),
        learning_rate=st.floats(min_value=0.0, max_value=40.0),
        outcomes=st.lists(st.booleans(), min_size=1, max_size=40),
    )
    def test_adaptation_stays_within_floor_and_ceiling(self, start, learning_rate, outcomes):
        engine_settings = EngineSettingsV1()
        engine = LearningEngine(engine_settings, DecisionLedger(), MemoryStore(), EventBus())
        config = AgentConfigV1(
            user_id="u",
            name="prop",
            learning_rate=learning_rate,
            personality={"risk_tolerance": start},
        )
        mem = AgentMemoryV1(agent_id=config.agent_id)

        for success in outcomes:
            mem.long_term.total_decisions += 1
            if success:
                mem.long_term.successful_decisions += 1
            engine.adapt_personality(config, mem, START)
            tolerance = config.personality.risk_tolerance
            assert engine_settings.risk_tolerance_floor <= tolerance
            assert tolerance <= engine_settings.risk_tolerance_ceiling


@pytest.mark.property
class TestBoundaryGate:
    @given(amount_pct=st.floats(min_value=0.01, max_value=60.0))
    def test_position_size_violation_iff_over_limit(self, amount_pct):
        assume(abs(amount_pct - 20.0) > 1e-6)
        config = AgentConfigV1(user_id="u", name="prop")
        config.boundaries = default_boundaries(config.mandate)
        portfolio = PortfolioStateV1(cash=100_000.0, peak_equity=100_000.0)
        decision = _decision(amount=1_000.0 * amount_pct)

        results = BoundaryEngine().check(
            decision, BoundaryContext(config=config, portfolio=portfolio, now=START)
        )

        position = next(r for r in results if r.boundary_id == "bound_position_size")
        assert position.passed == (amount_pct < 20.0)


@pytest.mark.property
class TestPaperPortfolio:
    @given(
        fills=st.lists(
            st.tuples(
                st.sampled_from(["buy", "sell"]),
                st.floats(min_value=0.1, max_value=100.0),
                st.floats(min_value=1.0, max_value=1_000.0),
            ),
            max_size=25,
        )
    )
    def test_cash_and_quantities_never_negative(self, fills):
        book = InMemoryPortfolio()
        book.open_account("agent_prop", 10_000.0)
        for side, quantity, price in fills:
            try:
                book.apply_fill("agent_prop", "SPY", side, quantity, price, fees=0.0)
            except ValueError:
                pass
            account = book.snapshot("agent_prop")
            assert account.cash >= -1e-6
            assert all(p.quantity > 0 for p in account.positions.values())


@pytest.mark.property
class TestDailyCap:
    @settings(
        max_examples=10,
        deadline=None,
        suppress_health_check=[HealthCheck.too_slow],
    )
    @given(cap=st.integers(min_value=0, max_value=4), cycles=st.integers(min_value=1, max_value=6))
    def test_decisions_per_day_never_exceed_cap(self, cap, cycles):
        clock = SimulatedClock(START)
        source = StaticObservationSource(clock=clock)
        book = InMemoryPortfolio()
        adapter = PaperExecutionAdapter(book, price_lookup=source.price_of)
        manager = AgentManager(
            source,
            adapter,
            book,
            settings=EngineSettingsV1(observation_timeout_seconds=1.0),
            clock=clock,
        )
        try:
            config = manager.create_agent(
                AgentConfigV1(
                    user_id="u",
                    name="capped",
                    autonomy_level="advisory",
                    min_confidence_to_act=50,
                    max_decisions_per_day=cap,
                ),
                start=False,
            )
            book.open_account(config.agent_id, 100_000.0)
            for _ in range(cycles):
                manager.run_cycle(config.agent_id)
            assert len(manager.get_decisions(config.agent_id)) == min(cap, cycles)
        finally:
            manager.shutdown()
