"""Structlog setup shared by the CLI, the HTTP boundary and the test suite."""

from __future__ import annotations

import logging
import sys
from typing import Any, Optional

import structlog

from reviewscout.config import get_settings


def configure_logging(
    level: Optional[str] = None,
    fmt: Optional[str] = None,
    renderer: Optional[Any] = None,
) -> None:
    """Configure structlog with level filtering and a renderer writing to stderr."""
    obs = get_settings().observability
    level_name = (level or obs.log_level).upper()
    if renderer is None:
        if (fmt or obs.log_format) == "json":
            renderer = structlog.processors.JSONRenderer()
        else:
            renderer = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level_name, logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )
