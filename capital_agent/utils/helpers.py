"""Helper utilities for Capital Agent."""

import uuid
from datetime import datetime, timedelta
from typing import Callable, Optional


def generate_id(prefix: str) -> str:
    """
    Generate a unique, prefixed identifier.

    Example:
        >>> generate_id("dec").startswith("dec_")
        True
    """
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


def safe_div(numerator: float, denominator: float, default: float = 0.0) -> float:
    """
    Safely divide two numbers, returning default if denominator is near zero.

    Args:
        numerator: Numerator
        denominator: Denominator
        default: Value to return if division is unsafe (default: 0.0)

    Returns:
        numerator / denominator if safe, else default

    Example:
        >>> safe_div(10, 2)
        5.0
        >>> safe_div(10, 0)
        0.0
    """
    if abs(denominator) > 1e-12:
        return numerator / denominator
    return default


def clamp(value: float, min_value: float, max_value: float) -> float:
    """
    Clamp value to range [min_value, max_value].

    Example:
        >>> clamp(15, 0, 10)
        10
    """
    return max(min_value, min(max_value, value))


_TIMEFRAME_UNITS = {
    "M": timedelta(minutes=1),
    "H": timedelta(hours=1),
    "D": timedelta(days=1),
    "W": timedelta(weeks=1),
}


def timeframe_to_timedelta(timeframe: str) -> timedelta:
    """
    Convert a timeframe label such as "15M", "4H", "1D" or "1W" to a timedelta.

    Unknown labels map to one day.

    Example:
        >>> timeframe_to_timedelta("1W")
        datetime.timedelta(days=7)
    """
    label = timeframe.strip().upper()
    if len(label) < 2 or label[-1] not in _TIMEFRAME_UNITS:
        return timedelta(days=1)
    try:
        count = int(label[:-1])
    except ValueError:
        return timedelta(days=1)
    return _TIMEFRAME_UNITS[label[-1]] * count


class SimulatedClock:
    """
    Manually advanced clock.

    Used wherever the core accepts a ``clock`` callable, so that multi-day
    outcome tracking can be driven without waiting.

    Example:
        >>> clock = SimulatedClock(datetime(2024, 1, 1, 12, 0))
        >>> clock.advance(hours=6)
        >>> clock()
        datetime.datetime(2024, 1, 1, 18, 0)
    """

    def __init__(self, start: Optional[datetime] = None):
        self._now = start or datetime.now()

    def __call__(self) -> datetime:
        return self._now

    def advance(self, **kwargs: float) -> None:
        self._now = self._now + timedelta(**kwargs)

    def set(self, moment: datetime) -> None:
        self._now = moment


Clock = Callable[[], datetime]
