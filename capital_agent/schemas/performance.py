"""Agent performance rollup schema. Pure derived data."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class AgentPerformanceV1(BaseModel):
    """Cached performance rollup, recomputable from decisions and memory."""

    agent_id: str
    computed_at: Optional[datetime] = None

    # Returns
    total_return: float = 0.0
    total_return_pct: float = 0.0
    annualized_return: float = 0.0

    # Risk
    sharpe_ratio: float = 0.0
    sortino_ratio: float = 0.0
    max_drawdown: float = 0.0
    volatility: float = 0.0

    # Decision quality
    total_decisions: int = 0
    executed_decisions: int = 0
    classified_decisions: int = 0
    win_rate: float = Field(default=0.0, ge=0, le=1)
    avg_win: float = 0.0
    avg_loss: float = 0.0
    profit_factor: float = 0.0

    # Learning
    learning_score: float = Field(default=0.0, ge=0, le=100)
    adaptation_score: float = Field(default=0.0, ge=0, le=100)
