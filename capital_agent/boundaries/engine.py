"""
Boundary engine.

Evaluates each enabled boundary's condition against the decision's concrete
action and the agent's live portfolio state. Every metric has a real
evaluator; a boundary whose metric cannot be evaluated fails.
"""

import logging
import math
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, List, Optional

from capital_agent.execution.adapter import infer_asset_class
from capital_agent.schemas.agent_config import AgentConfigV1
from capital_agent.schemas.boundary import (
    AgentBoundaryV1,
    BoundaryCheckResultV1,
    BoundaryMetric,
)
from capital_agent.schemas.decision import AgentDecisionV1
from capital_agent.schemas.portfolio import PortfolioStateV1
from capital_agent.utils.helpers import safe_div

logger = logging.getLogger(__name__)


@dataclass
class BoundaryContext:
    """Live state a boundary is evaluated against."""

    config: AgentConfigV1
    portfolio: PortfolioStateV1
    now: datetime
    last_trade_at: Optional[datetime] = None


Evaluator = Callable[[AgentBoundaryV1, AgentDecisionV1, BoundaryContext], float]

# Metrics evaluated even for actions that reduce exposure
ALWAYS_EVALUATED = frozenset(
    {
        BoundaryMetric.ORDER_VALUE,
        BoundaryMetric.DECISION_CONFIDENCE,
        BoundaryMetric.WITHIN_ACTIVE_HOURS,
    }
)


# ----------------------------------------------------------------------------
# Built-in evaluators: each returns the observed value of its metric
# ----------------------------------------------------------------------------


def _position_loss_pct(b: AgentBoundaryV1, d: AgentDecisionV1, ctx: BoundaryContext) -> float:
    worst = d.expected_outcome.worst_case.value
    return safe_div(abs(min(worst, 0.0)), d.action.amount) * 100


def _portfolio_drawdown_pct(b: AgentBoundaryV1, d: AgentDecisionV1, ctx: BoundaryContext) -> float:
    worst = abs(min(d.expected_outcome.worst_case.value, 0.0))
    return ctx.portfolio.drawdown_pct + safe_div(worst, ctx.portfolio.equity, math.inf) * 100


def _leverage(b: AgentBoundaryV1, d: AgentDecisionV1, ctx: BoundaryContext) -> float:
    return safe_div(ctx.portfolio.gross_exposure + d.action.amount, ctx.portfolio.equity, math.inf)


def _correlated_exposure_pct(
    b: AgentBoundaryV1, d: AgentDecisionV1, ctx: BoundaryContext
) -> float:
    asset_class = infer_asset_class(d.action.asset).value
    exposure = ctx.portfolio.asset_class_value(asset_class) + d.action.amount
    return safe_div(exposure, ctx.portfolio.equity, math.inf) * 100


def _position_pct(b: AgentBoundaryV1, d: AgentDecisionV1, ctx: BoundaryContext) -> float:
    exposure = ctx.portfolio.position_value(d.action.asset) + d.action.amount
    return safe_div(exposure, ctx.portfolio.equity, math.inf) * 100


def _cash_pct(b: AgentBoundaryV1, d: AgentDecisionV1, ctx: BoundaryContext) -> float:
    remaining = ctx.portfolio.cash - d.action.amount
    return safe_div(remaining, ctx.portfolio.equity) * 100


def _sector_exposure_pct(b: AgentBoundaryV1, d: AgentDecisionV1, ctx: BoundaryContext) -> float:
    sector = ctx.portfolio.sector_of(d.action.asset)
    if sector is None:
        return _position_pct(b, d, ctx)
    exposure = ctx.portfolio.sector_value(sector) + d.action.amount
    return safe_div(exposure, ctx.portfolio.equity, math.inf) * 100


def _blocked_asset(b: AgentBoundaryV1, d: AgentDecisionV1, ctx: BoundaryContext) -> float:
    asset = d.action.asset.upper()
    blocked = set(b.symbols) | set(ctx.config.personality.avoided_assets)
    return 1.0 if asset in blocked else 0.0


def _minutes_since_last_trade(
    b: AgentBoundaryV1, d: AgentDecisionV1, ctx: BoundaryContext
) -> float:
    if ctx.last_trade_at is None:
        return math.inf
    return (ctx.now - ctx.last_trade_at).total_seconds() / 60


def _within_active_hours(b: AgentBoundaryV1, d: AgentDecisionV1, ctx: BoundaryContext) -> float:
    config = ctx.config
    if not config.active_on_weekends and ctx.now.weekday() >= 5:
        return 0.0
    if config.active_hours is None:
        return 1.0
    return 1.0 if config.active_hours.contains(ctx.now.hour) else 0.0


def _order_value(b: AgentBoundaryV1, d: AgentDecisionV1, ctx: BoundaryContext) -> float:
    return d.action.amount


def _decision_confidence(b: AgentBoundaryV1, d: AgentDecisionV1, ctx: BoundaryContext) -> float:
    return d.confidence_score


BUILTIN_EVALUATORS: Dict[str, Evaluator] = {
    BoundaryMetric.POSITION_LOSS_PCT: _position_loss_pct,
    BoundaryMetric.PORTFOLIO_DRAWDOWN_PCT: _portfolio_drawdown_pct,
    BoundaryMetric.LEVERAGE: _leverage,
    BoundaryMetric.CORRELATED_EXPOSURE_PCT: _correlated_exposure_pct,
    BoundaryMetric.POSITION_PCT: _position_pct,
    BoundaryMetric.CASH_PCT: _cash_pct,
    BoundaryMetric.SECTOR_EXPOSURE_PCT: _sector_exposure_pct,
    BoundaryMetric.BLOCKED_ASSET: _blocked_asset,
    BoundaryMetric.MINUTES_SINCE_LAST_TRADE: _minutes_since_last_trade,
    BoundaryMetric.WITHIN_ACTIVE_HOURS: _within_active_hours,
    BoundaryMetric.ORDER_VALUE: _order_value,
    BoundaryMetric.DECISION_CONFIDENCE: _decision_confidence,
}


class BoundaryEngine:
    """
    Checks decisions against an agent's boundaries.

    Custom metrics are supported through ``register_evaluator``.

    Example:
        >>> engine = BoundaryEngine()
        >>> results = engine.check(decision, ctx)
        >>> any(not r.passed and r.kind == "hard" for r in results)
        False
    """

    def __init__(self):
        self._evaluators: Dict[str, Evaluator] = dict(BUILTIN_EVALUATORS)
        self._lock = threading.Lock()

    def register_evaluator(self, metric: str, evaluator: Evaluator) -> None:
        """Register (or replace) the evaluator for ``metric``."""
        with self._lock:
            self._evaluators[metric] = evaluator
        logger.info(f"Registered boundary evaluator for metric '{metric}'")

    def evaluator_for(self, metric: str) -> Optional[Evaluator]:
        with self._lock:
            return self._evaluators.get(metric)

    def check(self, decision: AgentDecisionV1, ctx: BoundaryContext) -> List[BoundaryCheckResultV1]:
        """
        Evaluate every enabled boundary of ``ctx.config`` against ``decision``.

        A failing boundary has its violation counter incremented and its
        violation timestamp set. The caller must hold the agent's lock, since
        boundaries live on the agent's config.

        Args:
            decision: Formulated decision
            ctx: Live evaluation context

        Returns:
            One result per enabled boundary
        """
        results: List[BoundaryCheckResultV1] = []
        for boundary in ctx.config.boundaries:
            if not boundary.enabled:
                continue
            result = self._evaluate(boundary, decision, ctx)
            if not result.passed:
                boundary.record_violation(ctx.now)
                logger.warning(
                    f"Decision {decision.decision_id} violates {boundary.kind.value} boundary "
                    f"'{boundary.boundary_id}': {result.note}"
                )
            results.append(result)
        return results

    def _evaluate(
        self, boundary: AgentBoundaryV1, decision: AgentDecisionV1, ctx: BoundaryContext
    ) -> BoundaryCheckResultV1:
        def result(passed: bool, observed: Optional[float], note: str) -> BoundaryCheckResultV1:
            return BoundaryCheckResultV1(
                boundary_id=boundary.boundary_id,
                kind=boundary.kind,
                category=boundary.category,
                passed=passed,
                observed=observed if observed is None or math.isfinite(observed) else None,
                threshold=boundary.threshold,
                note=note,
            )

        if not decision.action.increases_exposure and boundary.metric not in ALWAYS_EVALUATED:
            return result(True, None, "not applicable: action reduces exposure")

        evaluator = self.evaluator_for(boundary.metric)
        if evaluator is None:
            return result(False, None, f"no evaluator for metric '{boundary.metric}'")

        try:
            observed = float(evaluator(boundary, decision, ctx))
        except Exception as e:
            logger.error(
                f"Evaluator for '{boundary.metric}' raised on {decision.decision_id}: {e}",
                exc_info=True,
            )
            return result(False, None, f"evaluator error: {e}")

        passed = boundary.comparator.holds(observed, boundary.threshold)
        note = (
            f"{boundary.metric}={observed:.4g} {boundary.comparator.value} {boundary.threshold:g}"
        )
        if not passed:
            note = f"{boundary.name}: {note} does not hold"
        return result(passed, observed, note)
