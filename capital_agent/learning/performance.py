"""Performance rollup from executed decisions.

Pure derived data: recomputable at any time from the decision ledger and
memory. A decision's P&L is its latest outcome checkpoint value.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List

import numpy as np

from capital_agent.schemas.decision import AgentDecisionV1, DecisionStatus
from capital_agent.schemas.memory import AgentMemoryV1
from capital_agent.schemas.performance import AgentPerformanceV1
from capital_agent.utils.helpers import clamp, safe_div

logger = logging.getLogger(__name__)

DAYS_PER_YEAR = 365


@dataclass
class DecisionPnl:
    """P&L of one executed decision."""

    amount: float
    pnl: float
    completed_at: datetime

    @property
    def return_pct(self) -> float:
        return safe_div(self.pnl, self.amount)


def collect_pnl(decisions: List[AgentDecisionV1]) -> List[DecisionPnl]:
    """Executed decisions with fills, in completion order."""
    rows: List[DecisionPnl] = []
    for d in decisions:
        result = d.execution_result
        if d.status != DecisionStatus.EXECUTED or result is None or result.completed_at is None:
            continue
        rows.append(
            DecisionPnl(
                amount=result.actual_amount or d.action.amount,
                pnl=d.outcome_tracking.latest_value or 0.0,
                completed_at=result.completed_at,
            )
        )
    rows.sort(key=lambda r: r.completed_at)
    return rows


def sharpe_ratio(rows: List[DecisionPnl]) -> float:
    """
    Per-decision Sharpe ratio (not annualised).

    Example:
        >>> sharpe_ratio([])
        0.0
    """
    if len(rows) < 2:
        return 0.0
    returns = np.array([r.return_pct for r in rows])
    std = np.std(returns, ddof=1)
    if std < 1e-9:
        return 0.0
    return float(np.mean(returns) / std)


def sortino_ratio(rows: List[DecisionPnl]) -> float:
    """Like Sharpe but only penalizes downside. Capped at 99.0 with no downside."""
    if len(rows) < 2:
        return 0.0
    returns = np.array([r.return_pct for r in rows])
    downside = returns[returns < 0]
    if len(downside) == 0:
        return 99.0
    if len(downside) < 2:
        return 0.0
    downside_std = np.std(downside, ddof=1)
    if downside_std < 1e-9:
        return 0.0
    return float(np.mean(returns) / downside_std)


def max_drawdown(rows: List[DecisionPnl]) -> float:
    """Maximum drawdown of cumulative P&L over committed capital, as a decimal."""
    if len(rows) < 2:
        return 0.0
    base = sum(r.amount for r in rows)
    curve = base + np.cumsum([r.pnl for r in rows])
    curve = np.concatenate([[base], curve])
    running_max = np.maximum.accumulate(curve)
    drawdown = (running_max - curve) / np.where(running_max > 0, running_max, 1.0)
    return float(np.max(drawdown))


def profit_factor(rows: List[DecisionPnl]) -> float:
    gross_profit = sum(r.pnl for r in rows if r.pnl > 0)
    gross_loss = abs(sum(r.pnl for r in rows if r.pnl < 0))
    return safe_div(gross_profit, gross_loss)


def compute_performance(
    agent_id: str,
    decisions: List[AgentDecisionV1],
    memory: AgentMemoryV1,
    now: datetime,
) -> AgentPerformanceV1:
    """
    Recompute an agent's performance rollup.

    Args:
        agent_id: Agent
        decisions: All of the agent's decisions
        memory: Memory snapshot (pattern and regime counts)
        now: Computation time

    Returns:
        Fresh AgentPerformanceV1
    """
    rows = collect_pnl(decisions)
    classified = [d for d in decisions if d.outcome_tracking.final_outcome is not None]
    wins = [r.pnl for r in rows if r.pnl > 0]
    losses = [abs(r.pnl) for r in rows if r.pnl < 0]

    committed = sum(r.amount for r in rows)
    total = sum(r.pnl for r in rows)
    total_pct = safe_div(total, committed)

    annualized = 0.0
    if rows:
        days = (now - rows[0].completed_at).total_seconds() / 86400
        # Simple (non-compounded) annualisation
        if days >= 1:
            annualized = total_pct * DAYS_PER_YEAR / days

    volatility = float(np.std([r.return_pct for r in rows], ddof=1)) if len(rows) > 1 else 0.0
    long_term = memory.long_term

    return AgentPerformanceV1(
        agent_id=agent_id,
        computed_at=now,
        total_return=total,
        total_return_pct=total_pct * 100,
        annualized_return=annualized * 100,
        sharpe_ratio=sharpe_ratio(rows),
        sortino_ratio=sortino_ratio(rows),
        max_drawdown=max_drawdown(rows) * 100,
        volatility=volatility,
        total_decisions=len(decisions),
        executed_decisions=len(rows),
        classified_decisions=len(classified),
        win_rate=safe_div(len(wins), len(wins) + len(losses)),
        avg_win=float(np.mean(wins)) if wins else 0.0,
        avg_loss=float(np.mean(losses)) if losses else 0.0,
        profit_factor=profit_factor(rows),
        learning_score=clamp(len(long_term.success_patterns) * 10, 0, 100),
        adaptation_score=clamp(len(long_term.regime_memory) * 20, 0, 100),
    )
