"""Structured logging for safe_tables.

Library loggers are structlog loggers over standard library loggers named
under "safe_tables", so nothing is emitted until the embedding application
configures logging, either through setup_logging() or its own setup.
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog
from structlog.types import Processor

from safe_tables.config import Settings, get_settings

ROOT_LOGGER = "safe_tables"


def _renderer(log_format: str) -> Processor:
    if log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=False)


def setup_logging(
    level: str | None = None,
    log_format: str | None = None,
    settings: Settings | None = None,
) -> None:
    """
    Configure structlog and the "safe_tables" standard library logger.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL). Defaults to
            the `log_level` setting.
        log_format: 'json' or 'console'. Defaults to the `log_format` setting.
        settings: Settings to read defaults from instead of get_settings().
    """
    settings = settings or get_settings()
    level_no = getattr(logging, (level or settings.log_level).upper())

    logging.basicConfig(format="%(message)s", stream=sys.stderr)
    logging.getLogger(ROOT_LOGGER).setLevel(level_no)

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        _renderer(log_format or settings.log_format),
    ]
    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None, **initial_context: Any) -> structlog.stdlib.BoundLogger:
    """Return a bound logger over the standard library logger `name`."""
    return structlog.wrap_logger(
        logging.getLogger(name or ROOT_LOGGER),
        wrapper_class=structlog.stdlib.BoundLogger,
        **initial_context,
    )
