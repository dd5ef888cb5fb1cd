"""Engine settings: every tunable threshold of the agent core."""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from capital_agent.errors import ConfigurationError
from capital_agent.schemas.observation import ObservationCategory

logger = logging.getLogger(__name__)

ENV_PREFIX = "CAPITAL_AGENT_"


class EngineSettingsV1(BaseModel):
    """
    Tunable defaults for the agent core.

    The outcome ladder multipliers, the seven-day wait and the pattern
    cutoffs are product-level choices; they live here rather than in code.
    """

    # Scheduling and timeouts
    cycle_interval_seconds: float = Field(default=60.0, gt=0)
    observation_timeout_seconds: float = Field(default=5.0, gt=0)
    execution_timeout_seconds: float = Field(default=30.0, gt=0)

    # Bounded windows
    short_term_observations: int = Field(default=100, gt=0)
    observation_log_size: int = Field(default=1000, gt=0)
    short_term_decisions: int = Field(default=100, gt=0)
    opportunity_log_size: int = Field(default=100, gt=0)

    # Decide phase
    top_recommendations: int = Field(default=3, gt=0)

    # Pattern memory
    pattern_replay_confidence: float = Field(default=60.0, ge=0, le=100)
    pattern_reinforce_confidence: float = Field(default=70.0, ge=0, le=100)

    # Risk assessment
    high_severity_threshold: float = Field(default=70.0, ge=0, le=100)
    vix_threshold: float = Field(default=25.0, ge=0)
    stock_bond_correlation_threshold: float = Field(default=0.5, ge=-1, le=1)
    regime_transition_threshold: float = Field(default=0.5, ge=0, le=1)

    # Outcome classification
    outcome_wait_days: float = Field(default=7.0, ge=0)
    success_multiplier: float = Field(default=1.5, gt=0)
    partial_failure_multiplier: float = Field(default=2.0, gt=0)

    # Personality adaptation
    low_success_rate: float = Field(default=0.4, ge=0, le=1)
    high_success_rate: float = Field(default=0.7, ge=0, le=1)
    risk_tolerance_floor: float = Field(default=30.0, ge=0, le=100)
    risk_tolerance_ceiling: float = Field(default=80.0, ge=0, le=100)
    min_outcomes_to_adapt: int = Field(default=1, ge=1)

    # Execution estimates
    fee_rate: float = Field(default=0.001, ge=0)
    slippage_rate: float = Field(default=0.001, ge=0)

    observation_categories: List[ObservationCategory] = Field(
        default_factory=lambda: [
            ObservationCategory.PRICE,
            ObservationCategory.VOLATILITY,
            ObservationCategory.SENTIMENT,
            ObservationCategory.REGIME,
            ObservationCategory.CORRELATION,
        ]
    )

    @field_validator("observation_categories")
    @classmethod
    def categories_must_be_nonempty(cls, v: List[ObservationCategory]) -> List[ObservationCategory]:
        if not v:
            raise ValueError("observation_categories must not be empty")
        return v

    @model_validator(mode="after")
    def validate_bands(self) -> "EngineSettingsV1":
        if self.low_success_rate > self.high_success_rate:
            raise ValueError("low_success_rate must be <= high_success_rate")
        if self.risk_tolerance_floor > self.risk_tolerance_ceiling:
            raise ValueError("risk_tolerance_floor must be <= risk_tolerance_ceiling")
        return self


def _env_overrides() -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    for name, field in EngineSettingsV1.model_fields.items():
        raw = os.environ.get(f"{ENV_PREFIX}{name.upper()}")
        if raw is None:
            continue
        if field.annotation is not None and "List" in str(field.annotation):
            overrides[name] = [part.strip() for part in raw.split(",") if part.strip()]
        else:
            overrides[name] = raw
    return overrides


def load_settings(path: Optional[Union[str, Path]] = None) -> EngineSettingsV1:
    """
    Load engine settings.

    Reads an optional JSON file, then applies ``CAPITAL_AGENT_<FIELD>``
    environment overrides.

    Args:
        path: Optional path to a JSON settings file

    Returns:
        Validated EngineSettingsV1

    Raises:
        ConfigurationError: If the file is unreadable or values are invalid
    """
    data: Dict[str, Any] = {}
    if path is not None:
        try:
            with open(path) as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Cannot read settings file {path}: {e}") from e

    overrides = _env_overrides()
    if overrides:
        logger.debug(f"Applying environment overrides: {sorted(overrides)}")
    data.update(overrides)

    try:
        return EngineSettingsV1.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid engine settings: {e}") from e
