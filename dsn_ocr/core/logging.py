"""Structured logging configuration using structlog.

- Debug: pretty console output with colors
- Otherwise: JSON lines for log aggregation

The engine logs through module-level `structlog.get_logger(__name__)`
loggers; calling `configure_logging()` is optional and left to the host
application.
"""

from __future__ import annotations

import logging
import sys
from typing import Optional, cast

import structlog

from .config import get_settings


def configure_logging(debug: Optional[bool] = None) -> None:
    """Configure structured logging for the engine.

    Args:
        debug: Force debug output on/off. Defaults to `Settings.debug`.
    """
    if debug is None:
        debug = get_settings().debug

    log_level = logging.DEBUG if debug else logging.INFO

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
    )

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if debug:
        processors: list[structlog.types.Processor] = [
            *shared_processors,
            structlog.dev.ConsoleRenderer(colors=True),
        ]
    else:
        processors = [
            *shared_processors,
            structlog.processors.format_exc_info,
            # JSONRenderer must be last
            structlog.processors.JSONRenderer(),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance.

    Args:
        name: Logger name. If None, uses the calling module's name.

    Returns:
        A structured logger instance.
    """
    return cast(structlog.stdlib.BoundLogger, structlog.get_logger(name))


SCAN_SESSION_KEY = "scan_session"


def bind_scan_context(session_id: str) -> None:
    """Attach the scan session id to every log line on this thread."""
    structlog.contextvars.bind_contextvars(**{SCAN_SESSION_KEY: session_id})


def unbind_scan_context() -> None:
    structlog.contextvars.unbind_contextvars(SCAN_SESSION_KEY)


def get_scan_session() -> str | None:
    return structlog.contextvars.get_contextvars().get(SCAN_SESSION_KEY)
