"""Pre-flight validation of agent configurations."""

import logging
from collections import Counter
from typing import Any, Dict, Iterable, Union

from pydantic import ValidationError

from capital_agent.errors import ConfigurationError
from capital_agent.schemas.agent_config import AgentConfigV1, AgentMandate
from capital_agent.schemas.boundary import AgentBoundaryV1

logger = logging.getLogger(__name__)


def validate_agent_config(config: Union[AgentConfigV1, Dict[str, Any]]) -> AgentConfigV1:
    """
    Parse and validate an agent configuration before the agent is created.

    Args:
        config: AgentConfigV1 or a raw dict

    Returns:
        Validated AgentConfigV1

    Raises:
        ConfigurationError: If the config is malformed or inconsistent

    Example:
        >>> raw = {"user_id": "u1", "name": "A", "mandate": "income_generation"}
        >>> cfg = validate_agent_config(raw)
        >>> cfg.mandate.value
        'income_generation'
    """
    if not isinstance(config, AgentConfigV1):
        try:
            config = AgentConfigV1.model_validate(config)
        except ValidationError as e:
            raise ConfigurationError(f"Malformed agent config: {e}") from e

    check_config_consistency(config)
    logger.debug(f"Config for agent {config.agent_id} passed pre-flight validation")
    return config


def check_boundary_ids(boundaries: Iterable[AgentBoundaryV1]) -> None:
    """Raise ConfigurationError if two boundaries share an id."""
    counts = Counter(b.boundary_id for b in boundaries)
    duplicates = sorted(bid for bid, n in counts.items() if n > 1)
    if duplicates:
        raise ConfigurationError(f"Duplicate boundary ids: {', '.join(duplicates)}")


def check_config_consistency(config: AgentConfigV1) -> None:
    """
    Check cross-field consistency of an agent configuration.

    Validates:
    - Boundary ids are unique
    - A custom mandate carries text
    - The approval threshold is non-negative

    Warns (without failing) when the daily decision cap is zero.

    Raises:
        ConfigurationError: If configuration is inconsistent
    """
    check_boundary_ids(config.boundaries)

    if config.mandate == AgentMandate.CUSTOM and not (config.custom_mandate or "").strip():
        raise ConfigurationError("Mandate 'custom' requires custom_mandate text")

    if config.require_approval_above < 0:
        raise ConfigurationError(
            f"require_approval_above must be >= 0, got {config.require_approval_above}"
        )

    if config.max_decisions_per_day == 0:
        logger.warning(
            f"Agent {config.agent_id} has max_decisions_per_day=0 and will never decide"
        )
