"""Tests for structured logging configuration."""

import structlog
from structlog.contextvars import get_contextvars

from eventscale.core.logging import LogContext, clear_context, configure_logging


class TestConfigureLogging:
    def teardown_method(self):
        structlog.reset_defaults()
        clear_context()

    def test_json_renderer(self):
        configure_logging(level="INFO", json_format=True)
        processors = structlog.get_config()["processors"]
        assert isinstance(processors[-1], structlog.processors.JSONRenderer)
        assert structlog.contextvars.merge_contextvars in processors

    def test_console_renderer(self):
        configure_logging(level="DEBUG", json_format=False)
        processors = structlog.get_config()["processors"]
        assert isinstance(processors[-1], structlog.dev.ConsoleRenderer)


class TestLogContext:
    def teardown_method(self):
        clear_context()

    def test_binds_and_unbinds(self):
        with LogContext(event_id="evt-1", execution="evt-1"):
            assert get_contextvars() == {"event_id": "evt-1", "execution": "evt-1"}
        assert get_contextvars() == {}
