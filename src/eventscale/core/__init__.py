"""Core primitives: logging, errors, settings, persistence."""

from eventscale.core.errors import ErrorCategory, ErrorContext, EventScaleError
from eventscale.core.logging import LogContext, configure_logging, get_logger
from eventscale.core.settings import EventScaleSettings, get_settings
from eventscale.core.sqlite_conn import SqliteConnection, connect

__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "EventScaleError",
    "EventScaleSettings",
    "LogContext",
    "SqliteConnection",
    "configure_logging",
    "connect",
    "get_logger",
    "get_settings",
]
