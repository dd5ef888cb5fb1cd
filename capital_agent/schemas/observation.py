"""Observation schemas.

Observation payloads are a tagged union keyed on ``kind`` so the analyzer
can dispatch on payload type instead of probing optional fields.
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Dict, Literal, Optional, Union

from pydantic import BaseModel, Field, model_validator


class ObservationCategory(str, Enum):
    """Observation category tag."""

    PRICE = "price"
    VOLUME = "volume"
    SENTIMENT = "sentiment"
    NEWS = "news"
    ECONOMIC = "economic"
    REGIME = "regime"
    CORRELATION = "correlation"
    VOLATILITY = "volatility"


class QuoteV1(BaseModel):
    """Latest quote for one symbol."""

    price: float = Field(..., gt=0, description="Last price")
    change_pct: float = Field(default=0.0, description="Change since previous close (%)")
    trend: Literal["up", "down", "flat"] = Field(default="flat", description="Short-term trend")


class PricePayload(BaseModel):
    kind: Literal["price"] = "price"
    quotes: Dict[str, QuoteV1] = Field(default_factory=dict)


class VolatilityPayload(BaseModel):
    kind: Literal["volatility"] = "volatility"
    vix: float = Field(..., ge=0)
    implied_vol: float = Field(default=0.0, ge=0)
    realized_vol: float = Field(default=0.0, ge=0)
    vol_of_vol: float = Field(default=0.0, ge=0)
    term_structure: Literal["contango", "backwardation", "flat"] = "contango"


class SentimentPayload(BaseModel):
    kind: Literal["sentiment"] = "sentiment"
    fear_greed: float = Field(..., ge=0, le=100)
    put_call_ratio: float = Field(default=1.0, ge=0)
    social_sentiment: str = "neutral"
    news_flow: str = "mixed"


class RegimePayload(BaseModel):
    kind: Literal["regime"] = "regime"
    current: str
    confidence: float = Field(default=0.5, ge=0, le=1)
    transition_probability: float = Field(default=0.0, ge=0, le=1)
    potential_next_regime: Optional[str] = None


class CorrelationPayload(BaseModel):
    kind: Literal["correlation"] = "correlation"
    stock_bond: float = Field(..., ge=-1, le=1)
    stock_crypto: float = Field(default=0.0, ge=-1, le=1)
    dollar_equity: float = Field(default=0.0, ge=-1, le=1)
    breakdown_risk: Literal["low", "medium", "high"] = "low"


class MetricsPayload(BaseModel):
    """Generic numeric payload for extension categories (volume, news, economic)."""

    kind: Literal["metrics"] = "metrics"
    values: Dict[str, float] = Field(default_factory=dict)
    labels: Dict[str, str] = Field(default_factory=dict)


class EmptyPayload(BaseModel):
    """Placeholder for an observation that could not be collected."""

    kind: Literal["empty"] = "empty"
    reason: str = "unavailable"


ObservationPayload = Annotated[
    Union[
        PricePayload,
        VolatilityPayload,
        SentimentPayload,
        RegimePayload,
        CorrelationPayload,
        MetricsPayload,
        EmptyPayload,
    ],
    Field(discriminator="kind"),
]

# Payload kinds that may be carried by any category
_UNIVERSAL_KINDS = {"metrics", "empty"}


class ObservationV1(BaseModel):
    """One environment signal collected during the observe phase."""

    timestamp: datetime = Field(..., description="Collection time")
    category: ObservationCategory = Field(..., description="Category tag")
    asset: Optional[str] = Field(None, description="Asset the observation refers to, if any")
    payload: ObservationPayload = Field(..., description="Category-specific payload")
    significance: float = Field(..., ge=0, le=100, description="How significant (0-100)")
    actionability: float = Field(..., ge=0, le=100, description="How actionable (0-100)")

    @model_validator(mode="after")
    def payload_matches_category(self) -> "ObservationV1":
        kind = self.payload.kind
        if kind not in _UNIVERSAL_KINDS and kind != self.category.value:
            raise ValueError(
                f"payload kind '{kind}' does not match category '{self.category.value}'"
            )
        return self

    @property
    def is_empty(self) -> bool:
        return isinstance(self.payload, EmptyPayload)

    @classmethod
    def empty(
        cls, category: ObservationCategory, reason: str, timestamp: datetime
    ) -> "ObservationV1":
        """Low-significance empty observation used when the source times out or fails."""
        return cls(
            timestamp=timestamp,
            category=category,
            payload=EmptyPayload(reason=reason),
            significance=0.0,
            actionability=0.0,
        )
