"""Logging configuration for Capital Agent."""

import logging
import sys
from pathlib import Path
from typing import Optional

PACKAGE_LOGGER = "capital_agent"

# Agents cycle on their own threads; the thread name tells their lines apart
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(threadName)-20s | %(name)-30s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _level(name: str) -> int:
    return getattr(logging, name.upper(), logging.INFO)


def configure_logging(
    log_file: Optional[Path] = None,
    log_level: str = "INFO",
    console_level: str = "INFO",
    library_level: str = "WARNING",
) -> None:
    """
    Configure logging for agent runs.

    Console and optional file handlers share one pipe-separated format that
    carries the thread name, so the ``scheduler-<agent id>`` threads of
    concurrently running agents can be told apart. Loggers outside the
    ``capital_agent`` namespace only pass records at ``library_level`` or above.

    Args:
        log_file: Path to log file. If None, logs to console only.
        log_level: Logging level for file output (default: INFO)
        console_level: Logging level for console output (default: INFO)
        library_level: Threshold for third-party loggers (default: WARNING)

    Example:
        >>> from pathlib import Path
        >>> configure_logging(
        ...     log_file=Path("logs/agents.log"),
        ...     log_level="DEBUG",
        ...     console_level="INFO"
        ... )
    """
    file_log_level = _level(log_level)
    console_log_level = _level(console_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(_level(library_level))
    root_logger.handlers.clear()

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(
        min(file_log_level, console_log_level) if log_file else console_log_level
    )

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(console_log_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        file_handler.setLevel(file_log_level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)
        package_logger.info(f"Logging configured: file={log_file}, level={log_level}")
    else:
        package_logger.info(f"Logging configured: console only, level={console_level}")


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger inside the ``capital_agent`` namespace.

    Module loggers (``__name__``) already live there. Scripts and host code
    get their name prefixed so their records follow the agent log levels
    rather than ``library_level``.

    Example:
        >>> get_logger("simple_agent").name
        'capital_agent.simple_agent'
    """
    if name == PACKAGE_LOGGER or name.startswith(PACKAGE_LOGGER + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{PACKAGE_LOGGER}.{name}")
