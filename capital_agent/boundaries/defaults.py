"""Mandate-sensitive default boundaries."""

from typing import Dict, List, NamedTuple

from capital_agent.schemas.agent_config import AgentMandate
from capital_agent.schemas.boundary import (
    AgentBoundaryV1,
    BoundaryCategory,
    BoundaryKind,
    BoundaryMetric,
    Comparator,
)


class MandateLimits(NamedTuple):
    """Threshold row of the mandate table."""

    max_loss_pct: float
    max_drawdown_pct: float
    max_position_pct: float
    max_leverage: float
    min_cash_pct: float


_BALANCED = MandateLimits(5.0, 20.0, 20.0, 1.5, 15.0)

MANDATE_LIMITS: Dict[AgentMandate, MandateLimits] = {
    AgentMandate.CAPITAL_PRESERVATION: MandateLimits(2.0, 10.0, 10.0, 1.0, 30.0),
    AgentMandate.AGGRESSIVE_GROWTH: MandateLimits(10.0, 30.0, 30.0, 3.0, 5.0),
    AgentMandate.BALANCED_GROWTH: _BALANCED,
    AgentMandate.INCOME_GENERATION: _BALANCED,
    AgentMandate.WEALTH_BUILDING: _BALANCED,
    AgentMandate.RETIREMENT_FOCUSED: _BALANCED,
    AgentMandate.CUSTOM: _BALANCED,
}

SECTOR_CONCENTRATION_PCT = 35.0
CORRELATED_EXPOSURE_PCT = 50.0


def default_boundaries(mandate: AgentMandate) -> List[AgentBoundaryV1]:
    """
    Build the default boundary set for a mandate.

    A deterministic table lookup: capital preservation gets strictly tighter
    loss, drawdown, position and leverage limits than aggressive growth.

    Args:
        mandate: Agent mandate

    Returns:
        Fresh list of boundaries (safe to mutate)
    """
    limits = MANDATE_LIMITS[mandate]
    return [
        AgentBoundaryV1(
            boundary_id="bound_max_loss",
            kind=BoundaryKind.HARD,
            category=BoundaryCategory.RISK,
            name="Maximum Single Loss",
            description="Never lose more than X% on a single position",
            metric=BoundaryMetric.POSITION_LOSS_PCT,
            comparator=Comparator.LE,
            threshold=limits.max_loss_pct,
        ),
        AgentBoundaryV1(
            boundary_id="bound_max_drawdown",
            kind=BoundaryKind.HARD,
            category=BoundaryCategory.RISK,
            name="Maximum Portfolio Drawdown",
            description="Never let portfolio drawdown exceed X%",
            metric=BoundaryMetric.PORTFOLIO_DRAWDOWN_PCT,
            comparator=Comparator.LT,
            threshold=limits.max_drawdown_pct,
        ),
        AgentBoundaryV1(
            boundary_id="bound_position_size",
            kind=BoundaryKind.HARD,
            category=BoundaryCategory.ALLOCATION,
            name="Maximum Position Size",
            description="No single position larger than X% of portfolio",
            metric=BoundaryMetric.POSITION_PCT,
            comparator=Comparator.LT,
            threshold=limits.max_position_pct,
        ),
        AgentBoundaryV1(
            boundary_id="bound_leverage",
            kind=BoundaryKind.HARD,
            category=BoundaryCategory.RISK,
            name="Maximum Leverage",
            description="Never use leverage above X",
            metric=BoundaryMetric.LEVERAGE,
            comparator=Comparator.LE,
            threshold=limits.max_leverage,
        ),
        AgentBoundaryV1(
            boundary_id="bound_cash_reserve",
            kind=BoundaryKind.SOFT,
            category=BoundaryCategory.ALLOCATION,
            name="Minimum Cash Reserve",
            description="Maintain at least X% in cash",
            metric=BoundaryMetric.CASH_PCT,
            comparator=Comparator.GE,
            threshold=limits.min_cash_pct,
        ),
        AgentBoundaryV1(
            boundary_id="bound_sector_concentration",
            kind=BoundaryKind.SOFT,
            category=BoundaryCategory.ALLOCATION,
            name="Sector Concentration Limit",
            description="No more than X% in any single sector",
            metric=BoundaryMetric.SECTOR_EXPOSURE_PCT,
            comparator=Comparator.LT,
            threshold=SECTOR_CONCENTRATION_PCT,
        ),
        AgentBoundaryV1(
            boundary_id="bound_correlated_assets",
            kind=BoundaryKind.SOFT,
            category=BoundaryCategory.RISK,
            name="Correlated Assets Limit",
            description="Limit exposure to highly correlated assets",
            metric=BoundaryMetric.CORRELATED_EXPOSURE_PCT,
            comparator=Comparator.LT,
            threshold=CORRELATED_EXPOSURE_PCT,
        ),
    ]


def merge_boundaries(
    defaults: List[AgentBoundaryV1], overrides: List[AgentBoundaryV1]
) -> List[AgentBoundaryV1]:
    """
    Merge operator overrides over defaults.

    An override with a default's id replaces it in place; the rest are appended.
    """
    by_id = {b.boundary_id: b for b in overrides}
    merged = [by_id.pop(b.boundary_id, b) for b in defaults]
    merged.extend(b for b in overrides if b.boundary_id in by_id)
    return [b.model_copy(deep=True) for b in merged]
