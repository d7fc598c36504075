"""
Structured logging setup.

Call ``configure_logging()`` once at startup (the CLI does). Library modules
only acquire loggers with ``get_logger`` and never configure output.
"""

from __future__ import annotations

import logging
import os
import sys

import structlog
from structlog.stdlib import LoggerFactory, add_logger_name

from .config import ENV_LOG_FORMAT, ENV_LOG_LEVEL


def configure_logging(level: str | None = None, fmt: str | None = None) -> None:
    """Configure structlog over stdlib logging.

    ``fmt`` is ``console`` (default) or ``json``.
    """
    resolved_level = (level or os.getenv(ENV_LOG_LEVEL) or "WARNING").upper()
    resolved_fmt = (fmt or os.getenv(ENV_LOG_FORMAT) or "console").lower()

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, resolved_level, logging.WARNING),
    )

    processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        add_logger_name,
    ]
    if resolved_fmt == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(area: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(f"hybrid_store.{area}")
