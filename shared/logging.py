"""
Centralized structured logging for Page of Us.

Provides:
- setup_logging(): configure stdlib logging + structlog from LoggingSettings
- get_logger(): get a structlog logger bound to a module name
- log_with_context(): bind common context (user_id, client, ...) to a logger

Development renders a coloured console; production emits JSON. Sensitive
keys (passwords, tokens, secrets) are redacted before rendering.
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime, timezone
from typing import Optional

import structlog
from structlog.stdlib import BoundLogger
from structlog.types import EventDict, Processor

from config import LoggingSettings

# Sensitive fields to redact from logs
REDACTED_FIELDS = {
    "password",
    "password_hash",
    "token",
    "token_hash",
    "login_token",
    "authorization",
    "cookie",
    "secret",
    "key",
}

_SENSITIVE_FRAGMENTS = ("password", "token", "secret", "key")
_NEVER_REDACT = {"level", "event", "timestamp", "logger"}


def get_logger(name: str) -> BoundLogger:
    """
    Get a configured logger instance.

    Example:
        >>> log = get_logger(__name__)
        >>> log.info("session_started", user_id="123")
    """
    return structlog.get_logger(name)


def log_with_context(logger: BoundLogger, **context) -> BoundLogger:
    """Bind context to a logger for all subsequent log calls."""
    return logger.bind(**context)


def add_timestamp(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Add ISO format timestamp to event dict."""
    event_dict["timestamp"] = datetime.now(timezone.utc).isoformat()
    return event_dict


def redact_sensitive_fields(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Redact sensitive fields from logs."""
    for key in list(event_dict.keys()):
        if key in _NEVER_REDACT:
            continue
        lowered = key.lower()
        if lowered in REDACTED_FIELDS or any(
            fragment in lowered for fragment in _SENSITIVE_FRAGMENTS
        ):
            event_dict[key] = "***REDACTED***"
    return event_dict


def _shared_processors() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_timestamp,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        redact_sensitive_fields,
    ]


def configure_structlog(log_format: str) -> None:
    """
    Configure structlog processors.

    "json": machine-readable output for production
    anything else: pretty console output with colours
    """
    if log_format == "json":
        renderer: Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(
            colors=True,
            pad_event=15,
            sort_keys=False,
        )

    structlog.configure(
        processors=_shared_processors()
        + [structlog.processors.format_exc_info, renderer],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def configure_stdlib_logging(log_level: str) -> None:
    """Route stdlib logging to stdout at *log_level* and quiet noisy libraries."""
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO),
    )

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("pymongo").setLevel(logging.WARNING)
    logging.getLogger("pymongo.connection").setLevel(logging.WARNING)
    logging.getLogger("pymongo.serverSelection").setLevel(logging.WARNING)
    logging.getLogger("pymongo.topology").setLevel(logging.WARNING)


def setup_logging(settings: Optional[LoggingSettings] = None) -> None:
    """
    Initialize logging for the application.

    Called once from create_app() before anything else logs.
    """
    if settings is None:
        settings = LoggingSettings()

    configure_stdlib_logging(settings.log_level)
    configure_structlog(settings.log_format)

    get_logger(__name__).info(
        "logging_initialized",
        log_level=settings.log_level,
        log_format=settings.log_format,
    )
