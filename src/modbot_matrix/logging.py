"""Structured logging setup."""

from __future__ import annotations

import logging
from typing import Any

import structlog

TRACE = 5

LOG_LEVELS: dict[str, int] = {
    "trace": TRACE,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}
DEFAULT_LOG_LEVEL = "warn"


def resolve_log_level(name: str | None) -> int:
    """Map a config log level name to a numeric level; unknown names mean warn."""
    if not name:
        return LOG_LEVELS[DEFAULT_LOG_LEVEL]
    return LOG_LEVELS.get(name.strip().lower(), LOG_LEVELS[DEFAULT_LOG_LEVEL])


def setup_logging(level_name: str | None) -> int:
    level = resolve_log_level(level_name)
    logging.basicConfig(level=level, format="%(message)s")
    logging.getLogger().setLevel(level)
    # matrix-nio logs through the stdlib
    logging.getLogger("nio").setLevel(max(level, logging.DEBUG))
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )
    return level


def get_logger(name: str | None = None, **initial: Any) -> Any:
    return structlog.get_logger(name, **initial)
