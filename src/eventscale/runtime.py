"""
Orchestration worker: wires the components together and ticks them.

Architecture:
    ::

        OrchestrationWorker.from_settings(settings)
        ├── SqliteConnection ── EventStore ── insert listener ─► Scheduler.on_event_inserted
        ├── WorkQueue
        ├── StatusBus ── log_subscriber, EventBridgePublisher (if event_bus_name)
        ├── backends {Automation, Catalog}
        ├── WorkflowEngine (ExecutionLedger + lifecycle registry)
        ├── Scheduler
        └── Dispatcher

        tick():  scheduler.tick() → dispatcher.drain() → engine.run_due()

    A :class:`SchedulerBackend` decides when ``tick`` runs; the CLI's
    ``worker`` command uses :class:`ThreadSchedulerBackend`.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from eventscale.backends import BackendMap, build_backends, make_client
from eventscale.bus import EventBridgePublisher, StatusBus, log_subscriber
from eventscale.core.errors import EventScaleError
from eventscale.core.logging import get_logger
from eventscale.core.settings import EventScaleSettings
from eventscale.core.sqlite_conn import connect
from eventscale.core.timestamps import utc_now
from eventscale.queue import Dispatcher, DispatchResult, WorkQueue
from eventscale.scheduling import Scheduler, SchedulerBackend, SchedulerRun, ThreadSchedulerBackend
from eventscale.store import EventStore
from eventscale.workflow import (
    ExecutionLedger,
    LifecycleServices,
    WorkflowEngine,
    build_lifecycle_registry,
)

logger = get_logger(__name__)


@dataclass
class TickReport:
    """What one worker tick did."""

    scheduler: SchedulerRun | None
    dispatch: DispatchResult
    advanced: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "scheduler": None if self.scheduler is None else {
                "path": self.scheduler.path,
                "enqueued": len(self.scheduler.enqueued),
                "failed": len(self.scheduler.failed),
                "error": self.scheduler.error,
            },
            "dispatched": self.dispatch.started,
            "duplicates": self.dispatch.duplicate,
            "rejected": self.dispatch.rejected,
            "advanced": self.advanced,
        }


class OrchestrationWorker:
    """One scheduler, one dispatcher and one engine sharing a connection."""

    def __init__(
        self,
        conn,
        backends: BackendMap,
        settings: EventScaleSettings | None = None,
        *,
        bus: StatusBus | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.settings = settings or EventScaleSettings()
        self.conn = conn
        self._clock = clock

        self.bus = bus or StatusBus()
        self.store = EventStore(conn, clock=clock)
        self.queue = WorkQueue(conn, self.settings.queue_config(), clock=clock)
        services = LifecycleServices(
            store=self.store,
            backends=backends,
            bus=self.bus,
            polling=self.settings.polling_config(),
        )
        self.engine = WorkflowEngine(
            ExecutionLedger(conn, clock=clock),
            build_lifecycle_registry(services),
            clock=clock,
        )
        self.scheduler = Scheduler(self.store, self.queue, self.settings.scheduler_config(), clock=clock)
        self.dispatcher = Dispatcher(self.queue, self.engine, self.store, self.settings.queue_config())
        self.store.add_insert_listener(self.scheduler.on_event_inserted)
        self._backend: SchedulerBackend | None = None

    @classmethod
    def from_settings(cls, settings: EventScaleSettings | None = None) -> OrchestrationWorker:
        """Open the configured database and build AWS-backed collaborators."""
        settings = settings or EventScaleSettings()
        bus = StatusBus()
        bus.subscribe("*", log_subscriber)
        if settings.event_bus_name:
            bus.subscribe("*", EventBridgePublisher(make_client("events", settings), settings.event_bus_name))
        return cls(connect(settings.database_path), build_backends(settings), settings, bus=bus)

    # =========================================================================
    # TICK
    # =========================================================================

    def tick_once(self, now: datetime | None = None) -> TickReport:
        """Run one scheduler due check, dispatcher drain and engine pass."""
        now = now or self._clock()
        run = self.scheduler.tick(now)
        dispatched = self.dispatcher.drain()
        advanced = self.engine.run_due(now)
        report = TickReport(scheduler=run, dispatch=dispatched, advanced=advanced)
        logger.debug("worker_tick", **report.to_dict())
        return report

    async def tick(self) -> None:
        """Tick callback for a :class:`SchedulerBackend`."""
        try:
            self.tick_once()
        except EventScaleError as e:
            logger.error("worker_tick_failed", **e.to_dict())

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def start(self, backend: SchedulerBackend | None = None) -> SchedulerBackend:
        if self._backend is not None:
            logger.warning("worker_already_running")
            return self._backend
        self._backend = backend or ThreadSchedulerBackend()
        logger.info(
            "worker_starting",
            backend=self._backend.name,
            interval_seconds=self.settings.tick_interval_seconds,
        )
        self._backend.start(self.tick, self.settings.tick_interval_seconds)
        return self._backend

    def stop(self) -> None:
        if self._backend is None:
            return
        self._backend.stop()
        self._backend = None
        logger.info("worker_stopped")

    @property
    def is_running(self) -> bool:
        return self._backend is not None

    def health(self) -> dict[str, Any]:
        return {
            "running": self.is_running,
            "backend": self._backend.health() if self._backend else None,
            "queue_depth": self.queue.depth(),
            "dead_letters": len(self.queue.list_dead()),
            "next_periodic_scan": self.scheduler.next_periodic_at.isoformat()
            if self.scheduler.next_periodic_at
            else None,
        }
