"""
Structured logging for the ledger pipeline.

structlog with ISO timestamps, level and an ``event_type`` key. JSON by
default (LOG_FORMAT=json); LOG_FORMAT=console renders for humans.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Any, TextIO

import structlog


def _rename_event(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    if "event" in event_dict and "event_type" not in event_dict:
        event_dict["event_type"] = event_dict.pop("event")
    if "logger_name" in event_dict:
        event_dict["logger"] = event_dict.pop("logger_name")
    return event_dict


def configure_structlog(level: str | None = None, fmt: str | None = None, stream: TextIO | None = None) -> None:
    """
    Configure structlog globally. Safe to call again: loggers are not cached,
    so module-level loggers pick up the new level and renderer.
    """
    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    fmt = (fmt or os.getenv("LOG_FORMAT", "json")).strip().lower()
    stream = stream or sys.stdout

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        _rename_event,
    ]
    if fmt == "console":
        processors.append(structlog.dev.ConsoleRenderer(colors=stream.isatty()))
    else:
        processors.append(structlog.processors.JSONRenderer(default=str))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, level_name, logging.INFO)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=stream),
        cache_logger_on_first_use=False,
    )


if not structlog.is_configured():
    configure_structlog()


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Return a structured logger for a module, tagged with ``logger=<name>``.

        logger = get_logger(__name__)
        logger.info("ledger_written", transaction_hash=tx_hash, week_id=week)
    """
    return structlog.get_logger(logger_name=name)
