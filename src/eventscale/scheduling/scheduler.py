"""
Scheduler: finds Events about to start and enqueues them.

Two independent paths write to the same Work Queue:

Architecture:
    ::

        periodic (daily cron, default 23:00 UTC)
            store.get_events_starting_between(now, now + lookahead)
            └── enqueue each  (a failure on one Event does not undo the others)

        change notification (EventStore insert listener)
            hours = (event_starts_ts - now) / 1h
            ├── 0 <= hours < lookahead  → enqueue
            ├── hours >= lookahead      → skip, the periodic path picks it up later
            └── hours < 0 or no start   → skip and log

    Both paths can enqueue the same Event.  Deduplication is NOT done here:
    the dispatcher's idempotency key (the Event id as execution name) is
    the single source of truth.

Example:
    >>> scheduler = Scheduler(store, queue, SchedulerConfig())
    >>> store.add_insert_listener(scheduler.on_event_inserted)
    >>> scheduler.tick()          # runs the periodic path when the cron is due

Tags:
    scheduler, lookahead, cron, croniter, eventscale
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from croniter import croniter

from eventscale.core.errors import ConfigError, EventScaleError
from eventscale.core.logging import get_logger
from eventscale.core.settings import SchedulerConfig
from eventscale.core.timestamps import ensure_utc, to_iso8601, utc_now
from eventscale.domain.models import Event
from eventscale.queue.messages import build_message, encode_message
from eventscale.queue.work_queue import WorkQueue
from eventscale.store.event_store import EventStore

logger = get_logger(__name__)

_HOUR = timedelta(hours=1)


@dataclass
class SchedulerRun:
    """Outcome of one scheduler pass."""

    path: str
    enqueued: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and not self.failed


class Scheduler:
    """Enqueues Events whose start falls inside the lookahead window."""

    def __init__(
        self,
        store: EventStore,
        queue: WorkQueue,
        config: SchedulerConfig | None = None,
        *,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.queue = queue
        self.config = config or SchedulerConfig()
        self._clock = clock
        self._next_periodic_at: datetime | None = None
        if not croniter.is_valid(self.config.periodic_cron):
            raise ConfigError(f"Invalid periodic cron expression: {self.config.periodic_cron!r}")

    @property
    def lookahead(self) -> timedelta:
        return timedelta(hours=self.config.lookahead_hours)

    @property
    def next_periodic_at(self) -> datetime | None:
        return self._next_periodic_at

    def next_periodic_run(self, after: datetime) -> datetime:
        return croniter(self.config.periodic_cron, ensure_utc(after)).get_next(datetime)

    # =========================================================================
    # PATHS
    # =========================================================================

    def run_periodic(self, now: datetime | None = None) -> SchedulerRun:
        """Enqueue every Event starting in ``[now, now + lookahead]``."""
        now = now or self._clock()
        run = SchedulerRun(path="periodic")
        try:
            events = self.store.get_events_starting_between(now, now + self.lookahead)
        except EventScaleError as e:
            run.error = e.message
            logger.error("periodic_query_failed", **e.to_dict())
            return run

        for event in events:
            try:
                self.enqueue_event(event, path=run.path)
                run.enqueued.append(event.id)
            except EventScaleError as e:
                run.failed.append(event.id)
                logger.error("event_enqueue_failed", event_id=event.id, path=run.path, error=e.message)

        logger.info(
            "periodic_scan_completed",
            window_start=to_iso8601(now),
            window_end=to_iso8601(now + self.lookahead),
            found=len(events),
            enqueued=len(run.enqueued),
            failed=len(run.failed),
        )
        return run

    def on_event_inserted(self, event: Event) -> bool:
        """Change-notification path. Returns True if *event* was enqueued."""
        now = self._clock()
        if event.event_starts_ts is None:
            logger.warning("event_skipped_missing_start", event_id=event.id)
            return False

        hours = self.hours_until_start(event, now)
        if not 0 <= hours < self.config.lookahead_hours:
            if hours < 0:
                logger.warning("event_skipped_in_past", event_id=event.id, hours_diff=round(hours, 3))
            else:
                logger.info("event_outside_window", event_id=event.id, hours_diff=round(hours, 3))
            return False

        try:
            self.enqueue_event(event, path="immediate")
        except EventScaleError as e:
            logger.error("event_enqueue_failed", event_id=event.id, path="immediate", error=e.message)
            return False
        return True

    @staticmethod
    def hours_until_start(event: Event, now: datetime) -> float:
        return (ensure_utc(event.event_starts_ts) - ensure_utc(now)) / _HOUR

    def enqueue_event(self, event: Event, *, path: str) -> str:
        message_id = self.queue.enqueue(encode_message(build_message(event)))
        logger.info("event_enqueued", event_id=event.id, path=path, message_id=message_id)
        return message_id

    # =========================================================================
    # TICK
    # =========================================================================

    def tick(self, now: datetime | None = None) -> SchedulerRun | None:
        """Run the periodic path if its cron time has been reached.

        The first tick runs it immediately when ``scan_on_start`` is set.
        """
        now = now or self._clock()
        if self._next_periodic_at is None:
            self._next_periodic_at = self.next_periodic_run(now)
            if self.config.scan_on_start:
                return self.run_periodic(now)
            logger.debug("periodic_scan_scheduled", next_run=to_iso8601(self._next_periodic_at))
            return None

        if now < self._next_periodic_at:
            return None
        self._next_periodic_at = self.next_periodic_run(now)
        return self.run_periodic(now)
