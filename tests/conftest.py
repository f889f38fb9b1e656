"""
Shared pytest fixtures for eventscale tests.

This module provides:
- A controllable clock, so windows, waits and timeouts are deterministic
- In-memory sqlite connection, EventStore and WorkQueue
- Event factories
- botocore ``ClientError`` construction and fake AWS clients
- A lifecycle engine wired to fake backends and an in-process Status Bus

Usage:
    def test_something(store, clock, make_event):
        event = store.create_event(make_event(starts_in=timedelta(hours=2)))
        clock.advance(hours=2)
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from eventscale.backends.automation import AutomationBackend
from eventscale.backends.catalog import CatalogBackend
from eventscale.bus.status_bus import StatusBus, StatusMessage
from eventscale.core.settings import PollingConfig, QueueConfig
from eventscale.core.sqlite_conn import connect
from eventscale.domain.models import Event, OrchestrationType, ProvisioningParameter
from eventscale.queue.work_queue import WorkQueue
from eventscale.store.event_store import EventStore
from eventscale.workflow.engine import WorkflowEngine
from eventscale.workflow.ledger import ExecutionLedger
from eventscale.workflow.lifecycle import LifecycleServices, build_lifecycle_registry

FIXED_NOW = datetime(2026, 5, 1, 8, 0, 0, tzinfo=UTC)


class Clock:
    """Mutable "now" handed to components as their ``clock`` callable."""

    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now

    def set(self, now: datetime) -> datetime:
        self.now = now
        return self.now


# =============================================================================
# Persistence
# =============================================================================


@pytest.fixture
def clock() -> Clock:
    return Clock()


@pytest.fixture
def conn():
    """In-memory SQLite with the full eventscale schema."""
    db = connect(":memory:")
    yield db
    db.close()


@pytest.fixture
def store(conn, clock) -> EventStore:
    return EventStore(conn, clock=clock)


@pytest.fixture
def queue(conn, clock) -> WorkQueue:
    return WorkQueue(conn, QueueConfig(visibility_timeout_seconds=300, max_receive_count=3), clock=clock)


# =============================================================================
# Factories
# =============================================================================


@pytest.fixture
def make_event(clock):
    """Build (not store) an Event relative to the test clock."""

    def _make(
        *,
        name: str = "game-day",
        starts_in: timedelta = timedelta(hours=2),
        duration: timedelta = timedelta(hours=2),
        orchestration_type: OrchestrationType = OrchestrationType.AUTOMATION,
        target: str = "ScaleOutWebTier",
        version: str | None = None,
        parameters: list[ProvisioningParameter] | None = None,
    ) -> Event:
        starts = clock() + starts_in
        return Event.create(
            name=name,
            event_starts_ts=starts,
            event_ends_ts=starts + duration,
            orchestration_type=orchestration_type,
            document_or_product_reference=target,
            version_or_artifact_id=version,
            provisioning_parameters=parameters
            if parameters is not None
            else [ProvisioningParameter(key="InstanceCount", default_value="4")],
        )

    return _make


@pytest.fixture
def client_error():
    """Build a real botocore ClientError."""

    def _make(
        code: str,
        message: str = "boom",
        *,
        status: int = 400,
        retry_attempts: int = 0,
        operation: str = "Operation",
    ) -> ClientError:
        response: dict[str, Any] = {
            "Error": {"Code": code, "Message": message},
            "ResponseMetadata": {"HTTPStatusCode": status, "RetryAttempts": retry_attempts},
        }
        return ClientError(response, operation)

    return _make


@pytest.fixture
def ssm_client() -> MagicMock:
    """Fake ``ssm`` client: one automation run that succeeds on first poll."""
    client = MagicMock(name="ssm")
    client.start_automation_execution.return_value = {"AutomationExecutionId": "exec-1"}
    client.get_automation_execution.return_value = {
        "AutomationExecution": {
            "AutomationExecutionId": "exec-1",
            "AutomationExecutionStatus": "Success",
            "DocumentVersion": "3",
            "Parameters": {"InstanceCount": ["4"]},
            "Outputs": {"Endpoint": ["https://example.test"]},
        }
    }
    return client


@pytest.fixture
def sc_client() -> MagicMock:
    """Fake ``servicecatalog`` client for one product with two artifacts."""
    client = MagicMock(name="servicecatalog")
    client.describe_product.return_value = {
        "ProvisioningArtifacts": [
            {"Id": "pa-old", "Name": "v1", "CreatedTime": datetime(2025, 1, 1, tzinfo=UTC)},
            {"Id": "pa-new", "Name": "v2", "CreatedTime": datetime(2026, 1, 1, tzinfo=UTC)},
        ]
    }
    client.list_launch_paths.return_value = {"LaunchPathSummaries": [{"Id": "lp-1"}, {"Id": "lp-2"}]}
    client.provision_product.return_value = {"RecordDetail": {"RecordId": "rec-provision"}}
    client.terminate_provisioned_product.return_value = {"RecordDetail": {"RecordId": "rec-terminate"}}
    client.describe_record.return_value = {
        "RecordDetail": {"RecordId": "rec-provision", "Status": "SUCCEEDED", "ProvisionedProductId": "pp-1"},
        "RecordOutputs": [{"OutputKey": "Url", "OutputValue": "https://shop.test"}],
    }
    return client


# =============================================================================
# Lifecycle wiring
# =============================================================================


@pytest.fixture
def bus() -> StatusBus:
    return StatusBus()


@pytest.fixture
def published(bus) -> list[StatusMessage]:
    """Every message published on the bus, in order."""
    messages: list[StatusMessage] = []
    bus.subscribe("*", messages.append)
    return messages


@pytest.fixture
def backends(ssm_client, sc_client) -> dict:
    return {
        OrchestrationType.AUTOMATION: AutomationBackend(ssm_client),
        OrchestrationType.CATALOG: CatalogBackend(sc_client),
    }


@pytest.fixture
def polling() -> PollingConfig:
    return PollingConfig(
        poll_interval_seconds=30.0,
        poll_timeout_seconds=600.0,
        store_write_max_retries=2,
        store_write_base_delay_seconds=1.0,
    )


@pytest.fixture
def ledger(conn, clock) -> ExecutionLedger:
    return ExecutionLedger(conn, clock=clock)


@pytest.fixture
def engine(ledger, store, backends, bus, polling, clock) -> WorkflowEngine:
    registry = build_lifecycle_registry(LifecycleServices(store, backends, bus, polling))
    return WorkflowEngine(ledger, registry, clock=clock)
