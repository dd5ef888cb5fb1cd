"""Agent configuration schema with comprehensive validation."""

import uuid
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from capital_agent.schemas.boundary import AgentBoundaryV1


class AgentMandate(str, Enum):
    """High-level investment objective. Seeds default boundaries."""

    AGGRESSIVE_GROWTH = "aggressive_growth"
    BALANCED_GROWTH = "balanced_growth"
    INCOME_GENERATION = "income_generation"
    CAPITAL_PRESERVATION = "capital_preservation"
    WEALTH_BUILDING = "wealth_building"
    RETIREMENT_FOCUSED = "retirement_focused"
    CUSTOM = "custom"


class AutonomyLevel(str, Enum):
    """How much human approval a decision needs before execution."""

    FULL = "full"  # Approved decisions execute immediately
    SUPERVISED = "supervised"  # Approval needed above an amount threshold
    ADVISORY = "advisory"  # Every decision waits for a human


class ExplanationStyle(str, Enum):
    CONCISE = "concise"
    DETAILED = "detailed"
    EDUCATIONAL = "educational"


class KnownBiasV1(BaseModel):
    """A known behavioral bias with its mitigation note."""

    bias: str = Field(..., description="Bias name (e.g. 'recency')")
    mitigation: str = Field(default="", description="How the agent compensates")


class PersonalityV1(BaseModel):
    """Agent personality profile. Traits are 0-100."""

    risk_tolerance: float = Field(default=50.0, ge=0, le=100)
    patience: float = Field(default=50.0, ge=0, le=100)
    decisiveness: float = Field(default=50.0, ge=0, le=100)
    contrarianism: float = Field(default=50.0, ge=0, le=100)
    adaptability: float = Field(default=50.0, ge=0, le=100)
    known_biases: List[KnownBiasV1] = Field(default_factory=list)
    explanation_style: ExplanationStyle = ExplanationStyle.DETAILED
    preferred_timeframes: List[str] = Field(default_factory=lambda: ["1D", "1W"])
    preferred_asset_classes: List[str] = Field(default_factory=lambda: ["equity"])
    avoided_assets: List[str] = Field(default_factory=list)

    @field_validator("avoided_assets")
    @classmethod
    def normalise_assets(cls, v: List[str]) -> List[str]:
        return [s.strip().upper() for s in v if s.strip()]


class ActiveHoursV1(BaseModel):
    """Active-hours window in local hours. ``end`` is exclusive; wraps midnight."""

    start: int = Field(..., ge=0, le=23)
    end: int = Field(..., ge=0, le=23)

    def contains(self, hour: int) -> bool:
        if self.start == self.end:
            return True
        if self.start < self.end:
            return self.start <= hour < self.end
        return hour >= self.start or hour < self.end


class AgentConfigV1(BaseModel):
    """
    Complete agent configuration.

    Created once by the operator. Personality is mutated by the learning
    engine; boundaries and autonomy by explicit operator updates.

    Example:
        >>> config = AgentConfigV1(user_id="u1", name="Growth", mandate="aggressive_growth")
        >>> config.autonomy_level
        <AutonomyLevel.SUPERVISED: 'supervised'>
    """

    agent_id: str = Field(default_factory=lambda: f"agent_{uuid.uuid4().hex[:12]}")
    user_id: str = Field(..., description="Owning user")
    name: str = Field(..., description="Display name")
    mandate: AgentMandate
    custom_mandate: Optional[str] = Field(None, description="Free-text mandate when mandate=custom")
    personality: PersonalityV1 = Field(default_factory=PersonalityV1)
    boundaries: List[AgentBoundaryV1] = Field(
        default_factory=list, description="Operator overrides merged over mandate defaults"
    )

    # Operating limits
    max_capital_per_decision_pct: float = Field(default=5.0, gt=0, le=100)
    min_confidence_to_act: float = Field(default=60.0, ge=0, le=100)
    max_decisions_per_day: int = Field(default=10, ge=0)
    max_drawdown_tolerance: float = Field(default=20.0, gt=0, le=100)

    # Autonomy
    autonomy_level: AutonomyLevel = AutonomyLevel.SUPERVISED
    require_approval_above: float = Field(default=10000.0, description="Amount threshold")

    # Learning
    learning_enabled: bool = True
    learning_rate: float = Field(default=5.0, ge=0, le=100, description="Risk-tolerance step")

    # Schedule
    active_hours: Optional[ActiveHoursV1] = None
    active_on_weekends: bool = True

    # Notifications: decision types that emit a decisionNotification event
    notify_on: List[str] = Field(default_factory=list)

    watchlist: List[str] = Field(default_factory=lambda: ["SPY"])

    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    @field_validator("agent_id", "user_id", "name")
    @classmethod
    def must_be_nonempty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be empty")
        return v.strip()

    @field_validator("watchlist")
    @classmethod
    def watchlist_must_be_nonempty(cls, v: List[str]) -> List[str]:
        symbols = [s.strip().upper() for s in v if s.strip()]
        if not symbols:
            raise ValueError("watchlist must not be empty")
        return symbols

    @model_validator(mode="after")
    def custom_mandate_needs_text(self) -> "AgentConfigV1":
        if self.mandate == AgentMandate.CUSTOM and not (self.custom_mandate or "").strip():
            raise ValueError("custom_mandate is required when mandate is 'custom'")
        return self
