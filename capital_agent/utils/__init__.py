"""Capital Agent utilities."""

from capital_agent.utils.helpers import (
    Clock,
    SimulatedClock,
    clamp,
    generate_id,
    safe_div,
    timeframe_to_timedelta,
)
from capital_agent.utils.logging import configure_logging, get_logger
from capital_agent.utils.validation import check_config_consistency, validate_agent_config

__all__ = [
    "configure_logging",
    "get_logger",
    "validate_agent_config",
    "check_config_consistency",
    "generate_id",
    "safe_div",
    "clamp",
    "timeframe_to_timedelta",
    "SimulatedClock",
    "Clock",
]
