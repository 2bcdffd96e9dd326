"""Structured Logging Configuration.

This module configures structlog for the pipeline. Log lines are event names
with keyword context, rendered as JSON for production log aggregation or as
colored console output for local runs.

Configuration:
- JSON output format (default) or console renderer
- Context binding support (run IDs, tags, item IDs)
- Log levels: DEBUG, INFO, WARNING, ERROR, CRITICAL

Usage:
    from funnel.utils.logging import get_logger

    log = get_logger(__name__)
    log.info("stage_completed", stage="score", succeeded=3)
"""

import logging
import sys
from typing import Any

import structlog


def configure_logging(level: str = "INFO", json_output: bool = True) -> None:
    """Configure structlog processors and the stdlib root handler.

    Safe to call more than once; the latest call wins.

    Args:
        level: Log level name (e.g. "INFO", "DEBUG")
        json_output: Render JSON (True) or human-friendly console output (False)
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
        force=True,
    )

    renderer: Any = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )


def get_logger(name: str) -> Any:
    """Get a structured logger instance for the given module.

    Args:
        name: Module name (typically __name__)

    Returns:
        structlog bound logger with the module name attached
    """
    return structlog.get_logger(name).bind(logger=name)
