"""Unit tests for the decision formulator."""

import pytest

from capital_agent.analysis.analyzer import OpportunityAnalyzer
from capital_agent.decisions.formulator import (
    DecisionFormulator,
    infer_decision_type,
    map_confidence,
    time_to_realization,
)
from capital_agent.schemas.decision import (
    ConfidenceLevel,
    DecisionStatus,
    DecisionType,
    EntryAction,
    ExitAction,
    ReduceExposureAction,
)
from capital_agent.schemas.memory import AgentMemoryV1
from capital_agent.schemas.observation import QuoteV1
from capital_agent.schemas.portfolio import PortfolioStateV1
from capital_agent.schemas.settings import EngineSettingsV1
from tests.fixtures.scenarios import stressed_market


@pytest.fixture
def formulator(clock) -> DecisionFormulator:
    return DecisionFormulator(EngineSettingsV1(), clock=clock)


@pytest.fixture
def analyze(source, clock):
    analyzer = OpportunityAnalyzer(EngineSettingsV1(), clock=clock)

    def _analyze(config, portfolio):
        observations = [
            source.observe(config.agent_id, c) for c in EngineSettingsV1().observation_categories
        ]
        memory = AgentMemoryV1(agent_id=config.agent_id)
        return analyzer.analyze(config, observations, memory, portfolio)

    return _analyze


class TestConfidenceMapping:
    @pytest.mark.parametrize(
        "score,level",
        [
            (92, ConfidenceLevel.VERY_HIGH),
            (90, ConfidenceLevel.VERY_HIGH),
            (80, ConfidenceLevel.HIGH),
            (60, ConfidenceLevel.MEDIUM),
            (30, ConfidenceLevel.LOW),
            (10, ConfidenceLevel.VERY_LOW),
        ],
    )
    def test_map_confidence(self, score, level):
        assert map_confidence(score) == level

    @pytest.mark.parametrize(
        "action,decision_type",
        [
            ("long_SPY", DecisionType.POSITION_ENTRY),
            ("buy_dip", DecisionType.POSITION_ENTRY),
            ("short_SPY", DecisionType.POSITION_EXIT),
            ("reduce_exposure", DecisionType.RISK_REDUCTION),
            ("rebalance_portfolio", DecisionType.REBALANCE),
            ("hedge_tail", DecisionType.HEDGE_ACTION),
            ("rotate", DecisionType.ALLOCATION_CHANGE),
        ],
    )
    def test_infer_decision_type(self, action, decision_type):
        assert infer_decision_type(action) == decision_type

    def test_time_to_realization(self):
        assert time_to_realization("1W") == "1-2 weeks"
        assert time_to_realization("1D") == "1-3 days"
        assert time_to_realization("quarter") == "quarter"


class TestDecisionFormulator:
    def test_entry_decision(self, formulator, agent_config, analyze, empty_portfolio, clock):
        analysis = analyze(agent_config, empty_portfolio)
        decision = formulator.formulate(
            agent_config, analysis.recommendations[0], analysis, empty_portfolio
        )

        assert decision.status == DecisionStatus.PENDING
        assert decision.timestamp == clock()
        assert decision.decision_type == DecisionType.POSITION_ENTRY
        assert decision.confidence == ConfidenceLevel.MEDIUM
        assert decision.confidence_score == 70
        assert decision.regime == "bull_steady"
        assert decision.source_signal_id == analysis.recommendations[0].signal.signal_id

        action = decision.action
        assert isinstance(action, EntryAction)
        assert action.asset == "SPY"
        assert action.amount == pytest.approx(3750)
        assert action.amount_percent == pytest.approx(3.75)
        assert action.stop_loss == pytest.approx(495)
        assert action.target_price == pytest.approx(510)

        outcome = decision.expected_outcome
        assert outcome.probability == pytest.approx(0.7)
        assert outcome.base_case.value == pytest.approx(75)
        assert outcome.best_case.value == pytest.approx(187.5)
        assert outcome.worst_case.value == pytest.approx(-37.5)
        assert outcome.time_to_realization == "1-2 weeks"

    def test_reasoning_is_complete(self, formulator, agent_config, analyze, empty_portfolio):
        analysis = analyze(agent_config, empty_portfolio)
        decision = formulator.formulate(
            agent_config, analysis.recommendations[0], analysis, empty_portfolio
        )
        reasoning = decision.reasoning

        assert [f.factor for f in reasoning.factors] == [
            "opportunity_strength",
            "risk_assessment",
            "mandate_alignment",
        ]
        assert sum(f.weight for f in reasoning.factors) == pytest.approx(1.0)
        assert {a.action for a in reasoning.alternatives} == {"wait", "larger_position"}
        assert reasoning.risks[0].risk == "market_reversal"
        assert "balanced_growth" in reasoning.alignment_with_mandate

    def test_size_scales_with_risk_tolerance(self, formulator, make_config):
        timid = make_config(personality={"risk_tolerance": 0})
        bold = make_config(personality={"risk_tolerance": 100})
        assert formulator.position_size_pct(timid) == pytest.approx(2.5)
        assert formulator.position_size_pct(bold) == pytest.approx(5.0)

    def test_exit_needs_position(
        self, formulator, agent_config, analyze, source, empty_portfolio, invested_portfolio
    ):
        source.set_regime("bear_steady")
        source.set_quote("SPY", QuoteV1(price=500, change_pct=-1, trend="down"))
        analysis = analyze(agent_config, invested_portfolio)
        rec = analysis.recommendations[0]

        assert formulator.formulate(agent_config, rec, analysis, empty_portfolio) is None

        decision = formulator.formulate(agent_config, rec, analysis, invested_portfolio)
        assert isinstance(decision.action, ExitAction)
        assert decision.decision_type == DecisionType.POSITION_EXIT
        assert decision.action.amount == pytest.approx(3750)

    def test_reduce_exposure_cuts_largest_position(
        self, formulator, agent_config, analyze, source, empty_portfolio, invested_portfolio
    ):
        stressed_market(source)
        analysis = analyze(agent_config, invested_portfolio)
        rec = analysis.recommendations[0]

        assert formulator.formulate(agent_config, rec, analysis, empty_portfolio) is None

        decision = formulator.formulate(agent_config, rec, analysis, invested_portfolio)
        action = decision.action
        assert isinstance(action, ReduceExposureAction)
        assert action.asset == "SPY"
        assert action.amount == pytest.approx(12_500)
        assert action.reduction_percent == 50
        assert decision.decision_type == DecisionType.RISK_REDUCTION
        assert decision.confidence == ConfidenceLevel.VERY_HIGH

        rated = {r.risk: r.severity for r in decision.reasoning.risks if r.severity is not None}
        assert rated["elevated_volatility"] == 90
        assert decision.reasoning.risks[0].severity is None

    def test_no_equity(self, formulator, agent_config, analyze):
        broke = PortfolioStateV1(cash=0)
        analysis = analyze(agent_config, broke)
        rec = analysis.recommendations[0]
        assert formulator.formulate(agent_config, rec, analysis, broke) is None
