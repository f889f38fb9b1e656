"""Scheduler and the timing backends that tick the worker."""

from eventscale.scheduling.protocol import BackendHealth, SchedulerBackend, TickCallback
from eventscale.scheduling.scheduler import Scheduler, SchedulerRun
from eventscale.scheduling.thread_backend import ThreadSchedulerBackend

__all__ = [
    "BackendHealth",
    "Scheduler",
    "SchedulerBackend",
    "SchedulerRun",
    "ThreadSchedulerBackend",
    "TickCallback",
]
