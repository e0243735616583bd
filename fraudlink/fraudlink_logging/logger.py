"""
Structured logging for the fraud engine.

Every record carries event_type, level, logger name and an ISO-8601 UTC
timestamp, plus whatever context the caller passes (cluster_id, counts,
error). Output goes to stderr so CLI tools can keep stdout for results.

LOG_LEVEL (default INFO) and LOG_FORMAT (json | console, default json) are
read when the module is first imported. Nothing from fraudlink is imported
here so any module can log without import cycles.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Any

import structlog


def _build_processors(log_format: str) -> list[Any]:
    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True, key="timestamp"),
        structlog.processors.format_exc_info,
        structlog.processors.EventRenamer("event_type"),
    ]
    if log_format == "console":
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))
    else:
        processors.append(structlog.processors.JSONRenderer(sort_keys=True))
    return processors


def configure_structlog(level: str | None = None, log_format: str | None = None) -> None:
    """Configure structlog for the process; arguments override the env vars."""
    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).strip().upper()
    fmt = (log_format or os.getenv("LOG_FORMAT", "json")).strip().lower()
    structlog.configure(
        processors=_build_processors(fmt),
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, level_name, logging.INFO)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


if not structlog.is_configured():
    configure_structlog()


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Module logger. First positional argument is the snake_case event:

        logger.info("clusters_built", cluster_count=3, linked_accounts=9)
    """
    return structlog.get_logger(name).bind(logger=name)


def bind_cluster(cluster_id: str) -> structlog.BoundLogger:
    """Logger with cluster_id attached to every call."""
    return get_logger("fraudlink.cluster").bind(cluster_id=cluster_id)
