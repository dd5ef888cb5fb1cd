"""Pytest configuration and shared fixtures for Capital Agent tests."""

from datetime import datetime
from typing import Any, Callable, Dict

import numpy as np
import pytest

from capital_agent.agent.lifecycle import AgentManager
from capital_agent.events import EventBus
from capital_agent.execution.adapter import InMemoryPortfolio, PaperExecutionAdapter
from capital_agent.schemas.agent_config import AgentConfigV1
from capital_agent.schemas.decision import (
    AgentDecisionV1,
    ConfidenceLevel,
    DecisionType,
    EntryAction,
    ExpectedOutcomeV1,
    ReasoningV1,
    ScenarioV1,
)
from capital_agent.schemas.portfolio import PortfolioStateV1, PositionV1
from capital_agent.schemas.settings import EngineSettingsV1
from capital_agent.sources.static import StaticObservationSource
from capital_agent.utils.helpers import SimulatedClock

# Wednesday, inside any sensible active-hours window
START = datetime(2024, 1, 3, 12, 0)

STARTING_CASH = 100_000.0


# ============================================================================
# Clock and Settings Fixtures
# ============================================================================


@pytest.fixture
def clock() -> SimulatedClock:
    """Manually advanced clock starting at a fixed weekday noon."""
    return SimulatedClock(START)


@pytest.fixture
def settings() -> EngineSettingsV1:
    """Engine settings with short timeouts for tests."""
    return EngineSettingsV1(
        cycle_interval_seconds=0.05,
        observation_timeout_seconds=0.5,
        execution_timeout_seconds=0.5,
    )


@pytest.fixture
def events(clock: SimulatedClock) -> EventBus:
    return EventBus(clock=clock)


# ============================================================================
# Config Fixtures
# ============================================================================


@pytest.fixture
def make_config() -> Callable[..., AgentConfigV1]:
    """Factory for agent configs; keyword arguments override the defaults."""

    def _make(**overrides: Any) -> AgentConfigV1:
        data: Dict[str, Any] = {
            "user_id": "user_1",
            "name": "Test Agent",
            "mandate": "balanced_growth",
            "autonomy_level": "full",
            "min_confidence_to_act": 50.0,
        }
        data.update(overrides)
        return AgentConfigV1(**data)

    return _make


@pytest.fixture
def agent_config(make_config) -> AgentConfigV1:
    return make_config(agent_id="agent_test")


# ============================================================================
# Market, Portfolio and Adapter Fixtures
# ============================================================================


@pytest.fixture
def source(clock: SimulatedClock) -> StaticObservationSource:
    """Calm bull market: SPY 500 trending up, VIX 18."""
    return StaticObservationSource(clock=clock)


@pytest.fixture
def portfolio() -> InMemoryPortfolio:
    return InMemoryPortfolio(sectors={"SPY": "broad_market", "AAPL": "technology"})


@pytest.fixture
def adapter(
    portfolio: InMemoryPortfolio, source: StaticObservationSource
) -> PaperExecutionAdapter:
    return PaperExecutionAdapter(portfolio, price_lookup=source.price_of)


@pytest.fixture
def empty_portfolio() -> PortfolioStateV1:
    return PortfolioStateV1(cash=STARTING_CASH, peak_equity=STARTING_CASH)


@pytest.fixture
def invested_portfolio() -> PortfolioStateV1:
    """60k cash plus 40k across two positions."""
    return PortfolioStateV1(
        cash=60_000.0,
        peak_equity=100_000.0,
        positions={
            "SPY": PositionV1(
                symbol="SPY",
                quantity=50,
                avg_price=500.0,
                last_price=500.0,
                sector="broad_market",
            ),
            "AAPL": PositionV1(
                symbol="AAPL",
                quantity=100,
                avg_price=150.0,
                last_price=150.0,
                sector="technology",
            ),
        },
    )


# ============================================================================
# Manager Fixtures
# ============================================================================


@pytest.fixture
def manager(source, adapter, portfolio, settings, events, clock):
    """Agent manager wired to the static source and paper adapter."""
    mgr = AgentManager(source, adapter, portfolio, settings=settings, events=events, clock=clock)
    yield mgr
    mgr.shutdown()


@pytest.fixture
def create_agent(manager: AgentManager, portfolio: InMemoryPortfolio, make_config):
    """Create an agent (loop not started) with a funded paper account."""

    def _create(**overrides: Any) -> AgentConfigV1:
        config = manager.create_agent(make_config(**overrides), start=False)
        portfolio.open_account(config.agent_id, STARTING_CASH)
        return config

    return _create


# ============================================================================
# Decision Fixtures
# ============================================================================


@pytest.fixture
def make_decision(clock: SimulatedClock) -> Callable[..., AgentDecisionV1]:
    """Factory for a pending SPY entry decision of a given amount."""

    def _make(
        agent_id: str = "agent_test",
        amount: float = 3_750.0,
        confidence_score: float = 70.0,
        worst_case: float = -37.5,
        decision_id: str = "dec_test_001",
        asset: str = "SPY",
    ) -> AgentDecisionV1:
        return AgentDecisionV1(
            decision_id=decision_id,
            agent_id=agent_id,
            timestamp=clock(),
            decision_type=DecisionType.POSITION_ENTRY,
            confidence=ConfidenceLevel.MEDIUM,
            confidence_score=confidence_score,
            action=EntryAction(
                description=f"Momentum entry in {asset}",
                asset=asset,
                amount=amount,
                amount_percent=amount / STARTING_CASH * 100,
                timeframe="1W",
            ),
            reasoning=ReasoningV1(summary=f"momentum opportunity in {asset}"),
            expected_outcome=ExpectedOutcomeV1(
                probability=0.7,
                best_case=ScenarioV1(description="Target reached quickly", value=187.5),
                base_case=ScenarioV1(description="Gradual move toward target", value=75.0),
                worst_case=ScenarioV1(description="Stop loss triggered", value=worst_case),
                time_to_realization="1-2 weeks",
            ),
            regime="bull_steady",
        )

    return _make


# ============================================================================
# Pytest Configuration
# ============================================================================


def pytest_configure(config: Any) -> None:
    """Configure pytest."""
    config.addinivalue_line("markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')")
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
    config.addinivalue_line("markers", "property: marks property-based tests")


# Set random seed for reproducibility in tests
np.random.seed(42)
