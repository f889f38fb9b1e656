"""Tests for the orchestration worker that ties the components together."""

from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from eventscale.core.settings import EventScaleSettings
from eventscale.domain.models import EventStatus
from eventscale.runtime import OrchestrationWorker


@pytest.fixture
def settings(tmp_path):
    return EventScaleSettings(database_path=tmp_path / "unused.db", scan_on_start=True)


@pytest.fixture
def worker(conn, backends, settings, bus, clock):
    return OrchestrationWorker(conn, backends, settings, bus=bus, clock=clock)


def test_tick_runs_event_to_scaled(worker, make_event):
    event = worker.store.create_event(make_event(starts_in=timedelta(hours=2)))

    report = worker.tick_once()

    assert report.dispatch.started == 1
    assert report.advanced == 1
    assert worker.store.get_event(event.id).event_status == EventStatus.SCALED
    assert report.to_dict()["dispatched"] == 1


def test_periodic_scan_enqueues_far_event_later(worker, clock, make_event):
    event = worker.store.create_event(make_event(starts_in=timedelta(hours=30)))
    worker.tick_once()
    assert worker.store.get_event(event.id).event_status == EventStatus.REGISTERED

    clock.set(worker.scheduler.next_periodic_at)
    report = worker.tick_once()
    assert report.scheduler.enqueued == [event.id]
    assert worker.store.get_event(event.id).event_status == EventStatus.SCALED


def test_repeated_ticks_are_idempotent(worker, ssm_client, make_event):
    worker.store.create_event(make_event())
    worker.tick_once()
    worker.tick_once()
    assert ssm_client.start_automation_execution.call_count == 1


@pytest.mark.asyncio
async def test_async_tick(worker, make_event):
    event = worker.store.create_event(make_event())
    await worker.tick()
    assert worker.store.get_event(event.id).event_status == EventStatus.SCALED


def test_start_and_stop_with_backend(worker):
    backend = MagicMock()
    backend.name = "fake"
    backend.health.return_value = {"healthy": True}

    assert worker.start(backend) is backend
    backend.start.assert_called_once_with(worker.tick, worker.settings.tick_interval_seconds)
    assert worker.health()["running"]
    assert worker.start(MagicMock()) is backend

    worker.stop()
    backend.stop.assert_called_once()
    assert not worker.is_running
    assert worker.health()["queue_depth"] == 0
