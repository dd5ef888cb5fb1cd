"""Boundary and boundary-check schemas."""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class BoundaryKind(str, Enum):
    """Whether a boundary blocks a decision or only advises."""

    HARD = "hard"  # Must hold for a decision to be approved
    SOFT = "soft"  # Violation is recorded but does not block


class BoundaryCategory(str, Enum):
    """Boundary category. Each category has its own evaluators."""

    RISK = "risk"
    ALLOCATION = "allocation"
    ASSET = "asset"
    TIMING = "timing"
    EXECUTION = "execution"
    CUSTOM = "custom"


class Comparator(str, Enum):
    """Comparison between an observed metric and a boundary threshold."""

    LT = "<"
    LE = "<="
    GT = ">"
    GE = ">="

    def holds(self, observed: float, threshold: float) -> bool:
        """Return True if ``observed <op> threshold`` holds."""
        if self is Comparator.LT:
            return observed < threshold
        if self is Comparator.LE:
            return observed <= threshold
        if self is Comparator.GT:
            return observed > threshold
        return observed >= threshold


class BoundaryMetric:
    """Metric name constants understood by the built-in evaluators."""

    # risk
    POSITION_LOSS_PCT = "position_loss_percent"
    PORTFOLIO_DRAWDOWN_PCT = "portfolio_drawdown"
    LEVERAGE = "leverage"
    CORRELATED_EXPOSURE_PCT = "correlated_exposure"
    # allocation
    POSITION_PCT = "position_percent"
    CASH_PCT = "cash_percent"
    SECTOR_EXPOSURE_PCT = "sector_exposure"
    # asset
    BLOCKED_ASSET = "blocked_asset"
    # timing
    MINUTES_SINCE_LAST_TRADE = "minutes_since_last_trade"
    WITHIN_ACTIVE_HOURS = "within_active_hours"
    # execution
    ORDER_VALUE = "order_value"
    DECISION_CONFIDENCE = "decision_confidence"


class AgentBoundaryV1(BaseModel):
    """
    A named hard or soft limit a decision must respect.

    The logical ``condition`` reads ``"<metric> <comparator> threshold"`` and
    is evaluated by the boundary engine against the decision's concrete
    action and the agent's live portfolio state.
    """

    boundary_id: str = Field(..., description="Unique boundary identifier")
    kind: BoundaryKind = Field(..., description="hard or soft")
    category: BoundaryCategory = Field(..., description="Boundary category")
    name: str = Field(..., description="Human-readable name")
    description: str = Field(default="", description="What the boundary protects against")
    metric: str = Field(..., description="Metric evaluated against the threshold")
    comparator: Comparator = Field(
        default=Comparator.LT, description="How the metric compares to the threshold"
    )
    threshold: float = Field(..., description="Threshold value")
    condition: str = Field(default="", description="Logical condition description")
    symbols: List[str] = Field(
        default_factory=list, description="Symbols the boundary applies to (asset boundaries)"
    )
    enabled: bool = Field(default=True, description="Only enabled boundaries are evaluated")
    violation_count: int = Field(default=0, ge=0, description="Number of recorded violations")
    last_violation: Optional[datetime] = Field(None, description="Timestamp of last violation")

    @field_validator("boundary_id", "metric")
    @classmethod
    def must_be_nonempty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be empty")
        return v.strip()

    @field_validator("symbols")
    @classmethod
    def normalise_symbols(cls, v: List[str]) -> List[str]:
        return [s.strip().upper() for s in v if s.strip()]

    @model_validator(mode="after")
    def fill_condition(self) -> "AgentBoundaryV1":
        if not self.condition:
            self.condition = f"{self.metric} {self.comparator.value} threshold"
        return self

    def record_violation(self, at: datetime) -> None:
        """Increment the violation counter and stamp the violation time."""
        self.violation_count += 1
        self.last_violation = at


class BoundaryCheckResultV1(BaseModel):
    """Result of evaluating one boundary against one decision. Immutable."""

    model_config = ConfigDict(frozen=True)

    boundary_id: str
    kind: BoundaryKind
    category: BoundaryCategory
    passed: bool
    observed: Optional[float] = None
    threshold: Optional[float] = None
    note: Optional[str] = None
