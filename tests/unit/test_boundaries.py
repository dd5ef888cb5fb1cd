"""Unit tests for default boundaries and the boundary engine."""

from datetime import datetime, timedelta

import pytest

from capital_agent.boundaries.defaults import (
    MANDATE_LIMITS,
    default_boundaries,
    merge_boundaries,
)
from capital_agent.boundaries.engine import BoundaryContext, BoundaryEngine
from capital_agent.schemas.agent_config import ActiveHoursV1, AgentMandate
from capital_agent.schemas.boundary import (
    AgentBoundaryV1,
    BoundaryCategory,
    BoundaryKind,
    BoundaryMetric,
    Comparator,
)
from capital_agent.schemas.decision import ExitAction
from capital_agent.schemas.portfolio import PortfolioStateV1


def _by_id(boundaries):
    return {b.boundary_id: b for b in boundaries}


def _boundary(metric, threshold, comparator=Comparator.LT, kind=BoundaryKind.HARD, **kw):
    return AgentBoundaryV1(
        boundary_id=kw.pop("boundary_id", f"bound_{metric}"),
        kind=kind,
        category=kw.pop("category", BoundaryCategory.RISK),
        name=kw.pop("name", metric),
        metric=metric,
        comparator=comparator,
        threshold=threshold,
        **kw,
    )


@pytest.fixture
def engine() -> BoundaryEngine:
    return BoundaryEngine()


@pytest.fixture
def ctx_for(clock):
    def _ctx(config, portfolio, last_trade_at=None):
        return BoundaryContext(
            config=config, portfolio=portfolio, now=clock(), last_trade_at=last_trade_at
        )

    return _ctx


class TestDefaultBoundaries:
    """Test the mandate table."""

    def test_every_mandate_has_limits(self):
        assert set(MANDATE_LIMITS) == set(AgentMandate)

    def test_capital_preservation_strictly_tighter(self):
        tight = _by_id(default_boundaries(AgentMandate.CAPITAL_PRESERVATION))
        loose = _by_id(default_boundaries(AgentMandate.AGGRESSIVE_GROWTH))
        hard_limits = (
            "bound_max_loss",
            "bound_max_drawdown",
            "bound_position_size",
            "bound_leverage",
        )
        for bid in hard_limits:
            assert tight[bid].threshold < loose[bid].threshold, bid
        assert tight["bound_cash_reserve"].threshold > loose["bound_cash_reserve"].threshold

    def test_hard_and_soft_split(self):
        boundaries = _by_id(default_boundaries(AgentMandate.BALANCED_GROWTH))
        hard = {bid for bid, b in boundaries.items() if b.kind == BoundaryKind.HARD}
        assert hard == {
            "bound_max_loss",
            "bound_max_drawdown",
            "bound_position_size",
            "bound_leverage",
        }
        assert boundaries["bound_sector_concentration"].threshold == 35
        assert boundaries["bound_correlated_assets"].threshold == 50

    def test_defaults_are_fresh(self):
        first = default_boundaries(AgentMandate.BALANCED_GROWTH)
        first[0].record_violation(datetime(2024, 1, 1))
        assert default_boundaries(AgentMandate.BALANCED_GROWTH)[0].violation_count == 0

    def test_merge_replaces_by_id_and_appends(self):
        defaults = default_boundaries(AgentMandate.BALANCED_GROWTH)
        override = _boundary(
            BoundaryMetric.POSITION_PCT, 8.0, boundary_id="bound_position_size"
        )
        extra = _boundary(BoundaryMetric.ORDER_VALUE, 5000.0, comparator=Comparator.LE)

        merged = merge_boundaries(defaults, [override, extra])

        assert [b.boundary_id for b in merged[: len(defaults)]] == [
            b.boundary_id for b in defaults
        ]
        assert _by_id(merged)["bound_position_size"].threshold == 8.0
        assert merged[-1].boundary_id == "bound_order_value"
        assert merged[-1] is not extra


class TestBoundaryEngine:
    """Test boundary evaluation against live portfolio state."""

    def test_small_entry_passes_defaults(
        self, engine, agent_config, make_decision, empty_portfolio, ctx_for
    ):
        agent_config.boundaries = default_boundaries(agent_config.mandate)
        results = engine.check(make_decision(), ctx_for(agent_config, empty_portfolio))
        assert len(results) == 7
        assert all(r.passed for r in results), [r.note for r in results if not r.passed]

    def test_oversized_position_fails_hard(
        self, engine, agent_config, make_decision, empty_portfolio, ctx_for
    ):
        agent_config.boundaries = default_boundaries(agent_config.mandate)
        results = _by_id(
            engine.check(make_decision(amount=25_000), ctx_for(agent_config, empty_portfolio))
        )
        failed = results["bound_position_size"]
        assert not failed.passed
        assert failed.kind == BoundaryKind.HARD
        assert failed.observed == pytest.approx(25.0)
        assert "does not hold" in failed.note

    def test_existing_position_counts_toward_size(
        self, engine, agent_config, make_decision, invested_portfolio, ctx_for
    ):
        # 25k SPY already held + 3.75k = 28.75% of 100k
        agent_config.boundaries = [_boundary(BoundaryMetric.POSITION_PCT, 20.0)]
        (result,) = engine.check(make_decision(), ctx_for(agent_config, invested_portfolio))
        assert not result.passed
        assert result.observed == pytest.approx(28.75)

    def test_violation_recorded_on_boundary(
        self, engine, agent_config, make_decision, empty_portfolio, ctx_for, clock
    ):
        agent_config.boundaries = [_boundary(BoundaryMetric.ORDER_VALUE, 1000.0)]
        engine.check(make_decision(), ctx_for(agent_config, empty_portfolio))
        assert agent_config.boundaries[0].violation_count == 1
        assert agent_config.boundaries[0].last_violation == clock()

    def test_disabled_boundaries_skipped(
        self, engine, agent_config, make_decision, empty_portfolio, ctx_for
    ):
        agent_config.boundaries = [_boundary(BoundaryMetric.ORDER_VALUE, 1.0, enabled=False)]
        assert engine.check(make_decision(), ctx_for(agent_config, empty_portfolio)) == []

    def test_max_loss_uses_worst_case(
        self, engine, agent_config, make_decision, empty_portfolio, ctx_for
    ):
        agent_config.boundaries = [
            _boundary(BoundaryMetric.POSITION_LOSS_PCT, 5.0, comparator=Comparator.LE)
        ]
        ok = make_decision(worst_case=-150.0, decision_id="d1")  # 4%
        bad = make_decision(worst_case=-400.0, decision_id="d2")
        assert engine.check(ok, ctx_for(agent_config, empty_portfolio))[0].passed
        assert not engine.check(bad, ctx_for(agent_config, empty_portfolio))[0].passed

    def test_cash_reserve(self, engine, agent_config, make_decision, invested_portfolio, ctx_for):
        agent_config.boundaries = [
            _boundary(BoundaryMetric.CASH_PCT, 58.0, comparator=Comparator.GE, kind="soft")
        ]
        (result,) = engine.check(make_decision(), ctx_for(agent_config, invested_portfolio))
        assert result.observed == pytest.approx(56.25)
        assert not result.passed

    def test_sector_exposure(
        self, engine, agent_config, make_decision, invested_portfolio, ctx_for
    ):
        agent_config.boundaries = [_boundary(BoundaryMetric.SECTOR_EXPOSURE_PCT, 20.0)]
        decision = make_decision(asset="AAPL", amount=6_000)
        (result,) = engine.check(decision, ctx_for(agent_config, invested_portfolio))
        assert result.observed == pytest.approx(21.0)
        assert not result.passed

    def test_leverage(self, engine, agent_config, make_decision, invested_portfolio, ctx_for):
        agent_config.boundaries = [
            _boundary(BoundaryMetric.LEVERAGE, 0.4, comparator=Comparator.LE)
        ]
        (result,) = engine.check(make_decision(), ctx_for(agent_config, invested_portfolio))
        assert result.observed == pytest.approx(0.4375)
        assert not result.passed

    def test_correlated_exposure(
        self, engine, agent_config, make_decision, invested_portfolio, ctx_for
    ):
        agent_config.boundaries = [_boundary(BoundaryMetric.CORRELATED_EXPOSURE_PCT, 50.0)]
        (result,) = engine.check(make_decision(), ctx_for(agent_config, invested_portfolio))
        assert result.observed == pytest.approx(43.75)
        assert result.passed

        # SOLV is an equity ticker, not a Solana pair
        (result,) = engine.check(
            make_decision(asset="SOLV"), ctx_for(agent_config, invested_portfolio)
        )
        assert result.observed == pytest.approx(43.75)

    def test_blocked_asset_from_boundary_and_personality(
        self, engine, make_config, make_decision, empty_portfolio, ctx_for
    ):
        config = make_config(personality={"avoided_assets": ["gme"]})
        config.boundaries = [
            _boundary(
                BoundaryMetric.BLOCKED_ASSET,
                0.0,
                comparator=Comparator.LE,
                category=BoundaryCategory.ASSET,
                symbols=["tsla"],
            )
        ]
        assert engine.check(make_decision(), ctx_for(config, empty_portfolio))[0].passed
        for asset in ("TSLA", "GME"):
            decision = make_decision(asset=asset, decision_id=f"d_{asset}")
            assert not engine.check(decision, ctx_for(config, empty_portfolio))[0].passed

    def test_minutes_since_last_trade(
        self, engine, agent_config, make_decision, empty_portfolio, ctx_for, clock
    ):
        agent_config.boundaries = [
            _boundary(
                BoundaryMetric.MINUTES_SINCE_LAST_TRADE,
                30.0,
                comparator=Comparator.GE,
                category=BoundaryCategory.TIMING,
            )
        ]
        never = ctx_for(agent_config, empty_portfolio)
        recent = ctx_for(agent_config, empty_portfolio, clock() - timedelta(minutes=10))
        (first,) = engine.check(make_decision(decision_id="d1"), never)
        (second,) = engine.check(make_decision(decision_id="d2"), recent)
        assert first.passed
        assert first.observed is None  # infinite is not recorded
        assert not second.passed
        assert second.observed == pytest.approx(10.0)

    def test_within_active_hours(
        self, engine, make_config, make_decision, empty_portfolio, ctx_for
    ):
        config = make_config(active_hours=ActiveHoursV1(start=14, end=16))
        config.boundaries = [
            _boundary(
                BoundaryMetric.WITHIN_ACTIVE_HOURS,
                1.0,
                comparator=Comparator.GE,
                category=BoundaryCategory.TIMING,
            )
        ]
        (result,) = engine.check(make_decision(), ctx_for(config, empty_portfolio))
        assert not result.passed

    def test_exit_not_blocked_by_exposure_limits(
        self, engine, agent_config, invested_portfolio, ctx_for, make_decision
    ):
        agent_config.boundaries = [
            _boundary(BoundaryMetric.POSITION_PCT, 1.0),
            _boundary(BoundaryMetric.ORDER_VALUE, 1000.0),
        ]
        decision = make_decision()
        decision.action = ExitAction(
            description="Exit SPY", asset="SPY", amount=5000, amount_percent=5
        )
        position, order = engine.check(decision, ctx_for(agent_config, invested_portfolio))
        assert position.passed
        assert position.note.startswith("not applicable")
        assert not order.passed

    def test_unknown_metric_fails_closed(
        self, engine, agent_config, make_decision, empty_portfolio, ctx_for
    ):
        agent_config.boundaries = [_boundary("esg_score", 50.0)]
        (result,) = engine.check(make_decision(), ctx_for(agent_config, empty_portfolio))
        assert not result.passed
        assert "no evaluator" in result.note

    def test_raising_evaluator_fails_closed(
        self, engine, agent_config, make_decision, empty_portfolio, ctx_for
    ):
        def broken(boundary, decision, ctx):
            raise RuntimeError("feed down")

        engine.register_evaluator("esg_score", broken)
        agent_config.boundaries = [_boundary("esg_score", 50.0)]
        (result,) = engine.check(make_decision(), ctx_for(agent_config, empty_portfolio))
        assert not result.passed
        assert "feed down" in result.note

    def test_custom_evaluator(self, engine, agent_config, make_decision, empty_portfolio, ctx_for):
        engine.register_evaluator("esg_score", lambda b, d, c: 72.0)
        agent_config.boundaries = [_boundary("esg_score", 60.0, comparator=Comparator.GE)]
        (result,) = engine.check(make_decision(), ctx_for(agent_config, empty_portfolio))
        assert result.passed
        assert result.observed == 72.0

    def test_no_equity_fails_closed(self, engine, agent_config, make_decision, ctx_for):
        agent_config.boundaries = default_boundaries(agent_config.mandate)
        results = _by_id(
            engine.check(make_decision(), ctx_for(agent_config, PortfolioStateV1(cash=0)))
        )
        assert not results["bound_position_size"].passed
        assert not results["bound_leverage"].passed
