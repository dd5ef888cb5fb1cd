"""Agent memory schemas (short-term and long-term)."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from capital_agent.schemas.observation import ObservationV1


class ShortTermMemoryV1(BaseModel):
    """Rolling working memory. Newest entries first."""

    recent_observations: List[ObservationV1] = Field(default_factory=list)
    recent_decisions: List[str] = Field(default_factory=list, description="Decision ids")
    context: Dict[str, Any] = Field(default_factory=dict)
    active_alerts: List[str] = Field(default_factory=list)


class PositivePatternV1(BaseModel):
    pattern: str
    asset: Optional[str] = None
    occurrences: int = Field(default=0, ge=0)
    avg_return: float = 0.0
    confidence: float = Field(default=0.0, ge=0, le=100)


class NegativePatternV1(BaseModel):
    pattern: str
    asset: Optional[str] = None
    occurrences: int = Field(default=0, ge=0)
    avg_loss: float = 0.0
    confidence: float = Field(default=0.0, ge=0, le=100)


class RegimeStatsV1(BaseModel):
    """What the agent has seen and done in one regime."""

    cycles_observed: int = 0
    decisions_in_regime: int = 0
    successes: int = 0
    failures: int = 0
    success_rate: float = 0.0
    best_strategy: Optional[str] = None
    worst_strategy: Optional[str] = None
    strategy_counts: Dict[str, int] = Field(default_factory=dict)


class AssetStatsV1(BaseModel):
    trades_count: int = 0
    wins: int = 0
    losses: int = 0
    win_rate: float = 0.0
    avg_return: float = 0.0
    best_return: Optional[float] = None
    worst_return: Optional[float] = None
    best_entry_notes: str = ""
    best_exit_notes: str = ""


class LongTermMemoryV1(BaseModel):
    """Outcome counters (classified decisions only) and learned patterns."""

    total_decisions: int = 0
    successful_decisions: int = 0
    failed_decisions: int = 0
    success_patterns: List[PositivePatternV1] = Field(default_factory=list)
    failure_patterns: List[NegativePatternV1] = Field(default_factory=list)
    regime_memory: Dict[str, RegimeStatsV1] = Field(default_factory=dict)
    asset_memory: Dict[str, AssetStatsV1] = Field(default_factory=dict)


class AgentMemoryV1(BaseModel):
    """One memory object per agent; lives as long as the agent."""

    agent_id: str
    short_term: ShortTermMemoryV1 = Field(default_factory=ShortTermMemoryV1)
    long_term: LongTermMemoryV1 = Field(default_factory=LongTermMemoryV1)
