from __future__ import annotations

import logging
from typing import Any

import structlog


def resolve_level(name: str | int) -> int:
    if isinstance(name, int):
        return name
    level = getattr(logging, name.upper(), None)
    return level if isinstance(level, int) else logging.INFO


def configure_logging(level: str | int = logging.INFO) -> None:
    numeric = resolve_level(level)
    logging.basicConfig(format="%(message)s", level=numeric)
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(**initial_values: Any) -> structlog.BoundLogger:
    # Lazy proxy: the concrete logger is built on first use, after configure_logging.
    return structlog.get_logger(**initial_values)


__all__ = ["configure_logging", "get_logger", "resolve_level"]
