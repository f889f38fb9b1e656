"""Tests for the Scheduler's periodic and change-notification paths."""

from datetime import UTC, datetime, timedelta
from unittest.mock import MagicMock

import pytest

from eventscale.core.errors import ConfigError, QueueError, StoreError
from eventscale.core.settings import SchedulerConfig
from eventscale.queue.messages import parse_message
from eventscale.scheduling.scheduler import Scheduler


@pytest.fixture
def scheduler(store, queue, clock):
    return Scheduler(store, queue, SchedulerConfig(lookahead_hours=24), clock=clock)


def _queued_ids(queue):
    return [parse_message(m.body)["id"] for m in queue.list_ready()]


class TestImmediatePath:
    @pytest.mark.parametrize(
        "starts_in,expected",
        [
            (timedelta(0), True),
            (timedelta(hours=2), True),
            (timedelta(hours=23, minutes=59), True),
            (timedelta(hours=24), False),
            (timedelta(hours=30), False),
            (timedelta(minutes=-1), False),
        ],
    )
    def test_window(self, scheduler, make_event, starts_in, expected):
        assert scheduler.on_event_inserted(make_event(starts_in=starts_in)) is expected

    def test_insert_listener_enqueues(self, scheduler, store, queue, make_event):
        store.add_insert_listener(scheduler.on_event_inserted)
        event = store.create_event(make_event(starts_in=timedelta(hours=2)))
        assert _queued_ids(queue) == [event.id]

    def test_missing_start_skipped(self, scheduler, make_event):
        event = make_event()
        event.event_starts_ts = None
        assert scheduler.on_event_inserted(event) is False

    def test_enqueue_failure_does_not_raise(self, store, clock, make_event):
        queue = MagicMock()
        queue.enqueue.side_effect = QueueError("disk full")
        scheduler = Scheduler(store, queue, clock=clock)
        assert scheduler.on_event_inserted(make_event()) is False


class TestPeriodicPath:
    def test_far_event_picked_up_once_inside_window(self, scheduler, store, queue, clock, make_event):
        store.add_insert_listener(scheduler.on_event_inserted)
        event = store.create_event(make_event(starts_in=timedelta(hours=30)))
        assert queue.depth() == 0

        assert scheduler.run_periodic().enqueued == []
        clock.advance(hours=7)
        run = scheduler.run_periodic()
        assert run.enqueued == [event.id]
        assert _queued_ids(queue) == [event.id]

    def test_window_is_inclusive(self, scheduler, store, clock, make_event):
        at_end = store.create_event(make_event(starts_in=timedelta(hours=24)))
        assert scheduler.run_periodic().enqueued == [at_end.id]

    def test_one_failure_does_not_undo_others(self, store, clock, make_event):
        first = store.create_event(make_event(starts_in=timedelta(hours=1)))
        second = store.create_event(make_event(starts_in=timedelta(hours=2)))
        queue = MagicMock()
        queue.enqueue.side_effect = [QueueError("throttled"), "msg-2"]
        run = Scheduler(store, queue, clock=clock).run_periodic()
        assert run.failed == [first.id]
        assert run.enqueued == [second.id]
        assert not run.ok

    def test_query_failure_reported(self, queue, clock):
        store = MagicMock()
        store.get_events_starting_between.side_effect = StoreError("no such table")
        run = Scheduler(store, queue, clock=clock).run_periodic()
        assert run.error == "no such table"
        assert queue.depth() == 0


class TestTick:
    def test_first_tick_scans_when_configured(self, store, queue, clock, make_event):
        store.create_event(make_event())
        scheduler = Scheduler(store, queue, SchedulerConfig(scan_on_start=True), clock=clock)
        run = scheduler.tick()
        assert len(run.enqueued) == 1
        assert scheduler.next_periodic_at == datetime(2026, 5, 1, 23, 0, tzinfo=UTC)

    def test_cron_due(self, store, queue, clock):
        scheduler = Scheduler(store, queue, SchedulerConfig(scan_on_start=False), clock=clock)
        assert scheduler.tick() is None
        clock.set(datetime(2026, 5, 1, 22, 59, tzinfo=UTC))
        assert scheduler.tick() is None
        clock.set(datetime(2026, 5, 1, 23, 0, tzinfo=UTC))
        assert scheduler.tick() is not None
        assert scheduler.next_periodic_at == datetime(2026, 5, 2, 23, 0, tzinfo=UTC)

    def test_invalid_cron(self, store, queue):
        with pytest.raises(ConfigError):
            Scheduler(store, queue, SchedulerConfig(periodic_cron="every day"))
