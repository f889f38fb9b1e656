"""Settings for eventscale.

All tunables (lookahead window, batch sizes, inter-call delay, polling and
retry budgets) live in one ``EventScaleSettings`` object read from the
environment.  Components never read it directly: they receive the small
frozen config values produced by :meth:`EventScaleSettings.scheduler_config`
and friends, so tests build those values by hand.

Manifesto:
    Configuration should be explicit, validated, and environment-driven.
    Process-wide constants make per-environment tuning impossible and force
    tests to monkeypatch module globals.

    - **Pydantic validation:** Type-checked at startup, not runtime
    - **Environment-driven:** Reads ``EVENTSCALE_*`` env vars and ``.env``
    - **Injected:** Constructors take config values, never the settings object

Examples:
    >>> from eventscale.core.settings import EventScaleSettings
    >>> settings = EventScaleSettings(lookahead_hours=12)
    >>> settings.scheduler_config().lookahead_hours
    12

Tags:
    settings, configuration, pydantic, environment, eventscale
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# ── Component config values ──────────────────────────────────────────────


@dataclass(frozen=True)
class SchedulerConfig:
    """Scheduler tunables."""

    lookahead_hours: int = 24
    periodic_cron: str = "0 23 * * *"
    scan_on_start: bool = True


@dataclass(frozen=True)
class DiscoveryConfig:
    """Discovery pagination and rate-limit tunables."""

    automation_page_size: int = 50
    catalog_page_size: int = 20
    api_call_delay_seconds: float = 1.0
    throttle_max_attempts: int = 5


@dataclass(frozen=True)
class PollingConfig:
    """Workflow engine polling and store-write retry tunables."""

    poll_interval_seconds: float = 30.0
    poll_timeout_seconds: float = 7200.0
    store_write_max_retries: int = 5
    store_write_base_delay_seconds: float = 1.0


@dataclass(frozen=True)
class QueueConfig:
    """Work queue delivery tunables."""

    visibility_timeout_seconds: int = 300
    max_receive_count: int = 3
    dispatch_batch_size: int = 1


# ── Settings ─────────────────────────────────────────────────────────────


class EventScaleSettings(BaseSettings):
    """Process settings, read from ``EVENTSCALE_*`` environment variables.

    Fields
    ──────
    database_path          : sqlite file holding events, queue and executions
    lookahead_hours        : scheduler window (events starting within it are enqueued)
    periodic_cron          : cron expression of the daily periodic scan (UTC)
    automation_page_size   : list_documents page size (service maximum is 50)
    api_call_delay_seconds : fixed delay inserted between discovery API calls
    sdk_max_attempts       : botocore retry budget per call
    queue_max_receive_count: deliveries before a message is dead-lettered (0 = drop)
    """

    model_config = SettingsConfigDict(
        env_prefix="EVENTSCALE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Storage ──────────────────────────────────────────────────
    database_path: Path = Field(
        default_factory=lambda: Path.home() / ".eventscale" / "eventscale.db",
        description="sqlite database file",
    )

    # ── Scheduler ────────────────────────────────────────────────
    lookahead_hours: int = Field(default=24, ge=1)
    periodic_cron: str = "0 23 * * *"
    scan_on_start: bool = True
    tick_interval_seconds: float = Field(default=10.0, gt=0)

    # ── Discovery ────────────────────────────────────────────────
    automation_page_size: int = 50
    catalog_page_size: int = Field(default=20, ge=1)
    api_call_delay_seconds: float = Field(default=1.0, ge=0)
    throttle_max_attempts: int = Field(default=5, ge=1)
    tag_key: str | None = None
    tag_value: str | None = None

    # ── AWS SDK ──────────────────────────────────────────────────
    sdk_max_attempts: int = Field(default=40, ge=1)
    sdk_retry_mode: str = "standard"
    aws_region: str | None = None

    # ── Workflow engine ──────────────────────────────────────────
    poll_interval_seconds: float = Field(default=30.0, gt=0)
    poll_timeout_seconds: float = Field(default=7200.0, gt=0)
    store_write_max_retries: int = Field(default=5, ge=0)
    store_write_base_delay_seconds: float = Field(default=1.0, ge=0)

    # ── Work queue ───────────────────────────────────────────────
    queue_visibility_timeout_seconds: int = Field(default=300, ge=0)
    queue_max_receive_count: int = Field(default=3, ge=0)
    dispatch_batch_size: int = Field(default=1, ge=1)

    # ── Backends / notifications ─────────────────────────────────
    event_bus_name: str | None = None
    provisioned_product_prefix: str = "eventscale"
    automation_teardown_parameter: str = "Action"
    automation_teardown_value: str = "Destroy"

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    log_format: str | None = None

    @field_validator("automation_page_size")
    @classmethod
    def _check_page_size(cls, value: int) -> int:
        if not 1 <= value <= 50:
            raise ValueError("automation_page_size must be between 1 and 50")
        return value

    @field_validator("sdk_retry_mode")
    @classmethod
    def _check_retry_mode(cls, value: str) -> str:
        if value not in ("legacy", "standard", "adaptive"):
            raise ValueError(f"unknown sdk_retry_mode: {value}")
        return value

    @field_validator("log_format")
    @classmethod
    def _check_log_format(cls, value: str | None) -> str | None:
        if value is not None and value not in ("json", "console"):
            raise ValueError("log_format must be 'json' or 'console'")
        return value

    # ── Derived config values ────────────────────────────────────

    def scheduler_config(self) -> SchedulerConfig:
        return SchedulerConfig(
            lookahead_hours=self.lookahead_hours,
            periodic_cron=self.periodic_cron,
            scan_on_start=self.scan_on_start,
        )

    def discovery_config(self) -> DiscoveryConfig:
        return DiscoveryConfig(
            automation_page_size=self.automation_page_size,
            catalog_page_size=self.catalog_page_size,
            api_call_delay_seconds=self.api_call_delay_seconds,
            throttle_max_attempts=self.throttle_max_attempts,
        )

    def polling_config(self) -> PollingConfig:
        return PollingConfig(
            poll_interval_seconds=self.poll_interval_seconds,
            poll_timeout_seconds=self.poll_timeout_seconds,
            store_write_max_retries=self.store_write_max_retries,
            store_write_base_delay_seconds=self.store_write_base_delay_seconds,
        )

    def queue_config(self) -> QueueConfig:
        return QueueConfig(
            visibility_timeout_seconds=self.queue_visibility_timeout_seconds,
            max_receive_count=self.queue_max_receive_count,
            dispatch_batch_size=self.dispatch_batch_size,
        )

    @property
    def json_logs(self) -> bool | None:
        """Renderer choice for ``configure_logging`` (None = auto-detect)."""
        if self.log_format is None:
            return None
        return self.log_format == "json"


def get_settings(**overrides) -> EventScaleSettings:
    """Build settings from the environment, applying keyword overrides."""
    return EventScaleSettings(**overrides)


__all__ = [
    "DiscoveryConfig",
    "EventScaleSettings",
    "PollingConfig",
    "QueueConfig",
    "SchedulerConfig",
    "get_settings",
]
