"""Tests for EventScaleSettings and the derived component configs."""

import pytest
from pydantic import ValidationError

from eventscale.core.settings import EventScaleSettings


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    for key in ("EVENTSCALE_LOOKAHEAD_HOURS", "EVENTSCALE_AUTOMATION_PAGE_SIZE", "EVENTSCALE_LOG_FORMAT"):
        monkeypatch.delenv(key, raising=False)


class TestDefaults:
    def test_defaults(self):
        settings = EventScaleSettings()
        assert settings.lookahead_hours == 24
        assert settings.periodic_cron == "0 23 * * *"
        assert settings.automation_page_size == 50
        assert settings.catalog_page_size == 20
        assert settings.api_call_delay_seconds == 1.0
        assert settings.sdk_max_attempts == 40
        assert settings.queue_max_receive_count == 3

    def test_component_configs(self):
        settings = EventScaleSettings(lookahead_hours=12, api_call_delay_seconds=0, poll_timeout_seconds=60)
        assert settings.scheduler_config().lookahead_hours == 12
        assert settings.discovery_config().api_call_delay_seconds == 0
        assert settings.polling_config().poll_timeout_seconds == 60
        assert settings.queue_config().max_receive_count == 3


class TestEnvironment:
    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("EVENTSCALE_LOOKAHEAD_HOURS", "6")
        assert EventScaleSettings().lookahead_hours == 6

    def test_page_size_capped_at_service_maximum(self):
        with pytest.raises(ValidationError):
            EventScaleSettings(automation_page_size=51)

    def test_retry_mode_validated(self):
        with pytest.raises(ValidationError):
            EventScaleSettings(sdk_retry_mode="eventually")

    def test_json_logs(self):
        assert EventScaleSettings(log_format="json").json_logs is True
        assert EventScaleSettings(log_format="console").json_logs is False
