"""Structured logging configuration for Roundtable.

JSON output for production, human-readable output for local development.
Every record carries the id of the debate session it was logged from, when
there is one.

Environment Variables:
    LOG_FORMAT: Set to "json" for JSON output, anything else for human-readable.
    LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR). Defaults to INFO.
"""

import copy
import logging
import os
import sys
from contextvars import ContextVar
from typing import Any

from pythonjsonlogger import jsonlogger

# Session-scoped context; asyncio tasks inherit a copy at creation time
_session_id: ContextVar[str | None] = ContextVar("session_id", default=None)

LOG_FORMAT = os.getenv("LOG_FORMAT", "").lower()
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()


def get_session_id() -> str | None:
    """Get the current debate session id from context."""
    return _session_id.get()


def set_session_id(session_id: str | None) -> None:
    """Set the debate session id in context."""
    _session_id.set(session_id)


class SessionAwareJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter that includes the session id."""

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record["timestamp"] = self.formatTime(record, self.datefmt)
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["message"] = record.getMessage()

        session_id = get_session_id()
        if session_id:
            log_record["session_id"] = session_id

        if hasattr(record, "extra_fields"):
            log_record.update(record.extra_fields)


class SessionAwareFormatter(logging.Formatter):
    """Human-readable formatter that prefixes the session id."""

    def format(self, record: logging.LogRecord) -> str:
        session_id = get_session_id()
        if not session_id:
            return super().format(record)

        # Prefix a copy so other handlers see the original record
        record = copy.copy(record)
        record.msg = f"[{session_id}] {record.getMessage()}"
        record.args = ()
        return super().format(record)


def build_formatter(log_format: str) -> logging.Formatter:
    """Return the formatter for the given LOG_FORMAT value."""
    if log_format == "json":
        return SessionAwareJsonFormatter(
            fmt="%(timestamp)s %(level)s %(logger)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S%z",
        )
    return SessionAwareFormatter(
        fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def setup_logging() -> None:
    """Configure structured logging based on environment.

    Call once at application startup before any logging occurs.
    """
    level = getattr(logging, LOG_LEVEL, logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(build_formatter(LOG_FORMAT))
    root_logger.addHandler(handler)

    # Token-level httpx chatter drowns out session logs
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))

    logging.getLogger(__name__).info(
        "Logging configured. Format: %s, Level: %s",
        "json" if LOG_FORMAT == "json" else "human-readable",
        LOG_LEVEL,
    )
