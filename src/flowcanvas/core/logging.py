# src/flowcanvas/core/logging.py
"""Structured logging setup.

Log output goes to stderr so that commands printing a script or JSON
snapshot on stdout stay pipeable.
"""

import logging
import sys
from typing import Any

import structlog


def configure_logging(level: str | int = "INFO", json_output: bool = False) -> None:
    """Configure structlog on top of stdlib logging.

    Safe to call more than once; the last call wins.
    """
    numeric_level = logging.getLevelName(level.upper()) if isinstance(level, str) else level
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=numeric_level,
        force=True,
    )

    renderer: Any = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer(colors=False)
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


def get_logger(name: str | None = None, **initial_values: Any) -> Any:
    """Return a structlog logger, optionally bound to a component name."""
    if name is None:
        return structlog.get_logger(**initial_values)
    return structlog.get_logger(name, **initial_values)


__all__ = (
    "configure_logging",
    "get_logger",
)
