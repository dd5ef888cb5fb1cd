"""Opportunity, risk and recommendation schemas produced by the analyzer."""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from capital_agent.schemas.observation import QuoteV1


class SignalKind(str, Enum):
    ALPHA = "alpha"
    ARBITRAGE = "arbitrage"
    MOMENTUM = "momentum"
    MEAN_REVERSION = "mean_reversion"
    BREAKOUT = "breakout"
    YIELD = "yield"
    INEFFICIENCY = "inefficiency"


class SignalDirection(str, Enum):
    LONG = "long"
    SHORT = "short"
    NEUTRAL = "neutral"


class OpportunitySignalV1(BaseModel):
    """A scored, directional hypothesis about an asset."""

    signal_id: str
    timestamp: datetime
    asset: str
    kind: SignalKind
    direction: SignalDirection
    strength: float = Field(..., ge=0, le=100)
    confidence: float = Field(..., ge=0, le=100)
    timeframe: str = "1D"
    expected_return: float = Field(..., description="Expected return as a fraction")
    expected_risk: float = Field(..., ge=0, description="Expected risk as a fraction")
    source: str = Field(..., description="Rule or pattern that produced the signal")
    expires_at: Optional[datetime] = None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and now >= self.expires_at


class RiskAssessmentV1(BaseModel):
    """An identified risk condition."""

    risk_type: str
    severity: float = Field(..., ge=0, le=100)
    description: str


class RecommendationKind(str, Enum):
    OPPORTUNITY = "opportunity"
    REDUCE_EXPOSURE = "reduce_exposure"


class RecommendationV1(BaseModel):
    """A ranked recommendation handed to the decision formulator."""

    action: str = Field(..., description="e.g. 'long_SPY' or 'reduce_exposure'")
    kind: RecommendationKind
    priority: float = Field(..., ge=0, le=100)
    reasoning: str
    signal: Optional[OpportunitySignalV1] = None
    risk: Optional[RiskAssessmentV1] = None


class AnalysisResultV1(BaseModel):
    """Output of the analyze phase."""

    opportunities: List[OpportunitySignalV1] = Field(default_factory=list)
    risks: List[RiskAssessmentV1] = Field(default_factory=list)
    recommendations: List[RecommendationV1] = Field(default_factory=list)
    regime: Optional[str] = None
    quotes: Dict[str, QuoteV1] = Field(default_factory=dict)
