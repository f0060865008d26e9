"""Structured logging for the FDBMS billing core."""

import logging
import sys
from datetime import date
from decimal import Decimal
from typing import Any, Literal

import structlog

from fdbms.config.settings import get_settings


def money_as_text(
    logger: Any, method_name: str, event_dict: structlog.types.EventDict
) -> structlog.types.EventDict:
    """Render Decimal amounts and dates as plain strings.

    Keeps ``12.50`` from showing up as ``Decimal('12.50')`` in either renderer.
    """
    for key, value in event_dict.items():
        if isinstance(value, Decimal):
            event_dict[key] = str(value)
        elif isinstance(value, date):
            event_dict[key] = value.isoformat()
    return event_dict


def configure_logging(
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] | None = None,
    format: Literal["json", "console"] | None = None,
) -> None:
    """Configure structured logging for the billing core.

    Args:
        level: Log level. Defaults to ``LOG_LEVEL`` from settings.
        format: ``json`` for log shipping, ``console`` for a terminal.
            Defaults to ``LOG_FORMAT`` from settings.
    """
    settings = get_settings()
    log_level = level or settings.log_level
    log_format = format or settings.log_format

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level),
    )

    if log_format == "json":
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(
            colors=sys.stdout.isatty(),
            exception_formatter=structlog.dev.plain_traceback,
        )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            money_as_text,
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str, **context: Any) -> structlog.stdlib.BoundLogger:
    """Logger for a billing module, with optional context bound to every event."""
    logger = structlog.get_logger(name)
    return logger.bind(**context) if context else logger
