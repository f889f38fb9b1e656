"""
Dispatcher: one workflow execution per queue message.

The Event id is the execution name, so a redelivered or doubly-enqueued
message starts nothing new; the engine reports the duplicate and the
message is acknowledged.  Dispatch is fire-and-forget: the Dispatcher
never waits for the execution to progress.

::

    receive ─► parse ──invalid──► nack (dead-letters after max receives)
                 │
                 ▼
            store lookup ──missing / terminal──► ack, logged as rejected
                 │
                 ▼
            engine.start_execution(event id, "main", message)
                 ├── started    ─► ack
                 ├── duplicate  ─► ack
                 └── error      ─► nack (redelivered later)
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from eventscale.core.errors import EventScaleError
from eventscale.core.logging import get_logger
from eventscale.core.settings import QueueConfig
from eventscale.queue.messages import parse_message
from eventscale.queue.work_queue import QueueMessage, WorkQueue
from eventscale.store.event_store import EventStore
from eventscale.workflow.engine import WorkflowEngine
from eventscale.workflow.lifecycle import MAIN_WORKFLOW

logger = get_logger(__name__)


class DispatchOutcome(str, Enum):
    STARTED = "started"
    DUPLICATE = "duplicate"
    REJECTED = "rejected"
    INVALID = "invalid"
    FAILED = "failed"


@dataclass
class DispatchResult:
    """Counts from one :meth:`Dispatcher.drain`."""

    started: int = 0
    duplicate: int = 0
    rejected: int = 0
    invalid: int = 0
    failed: int = 0

    def record(self, outcome: DispatchOutcome) -> None:
        setattr(self, outcome.value, getattr(self, outcome.value) + 1)

    @property
    def received(self) -> int:
        return self.started + self.duplicate + self.rejected + self.invalid + self.failed


class Dispatcher:
    """Drains the Work Queue into the workflow engine."""

    def __init__(
        self,
        queue: WorkQueue,
        engine: WorkflowEngine,
        store: EventStore,
        config: QueueConfig | None = None,
        *,
        workflow: str = MAIN_WORKFLOW,
    ):
        self.queue = queue
        self.engine = engine
        self.store = store
        self.config = config or QueueConfig()
        self.workflow = workflow

    def drain(self, max_messages: int | None = None) -> DispatchResult:
        """Dispatch up to *max_messages* (default: the current queue depth)."""
        result = DispatchResult()
        limit = self.queue.depth() if max_messages is None else max_messages
        batch_size = max(1, self.config.dispatch_batch_size)

        while result.received < limit:
            messages = self.queue.receive(max_messages=min(batch_size, limit - result.received))
            if not messages:
                break
            for message in messages:
                result.record(self.dispatch(message))

        if result.received:
            logger.info(
                "dispatch_drained",
                started=result.started,
                duplicate=result.duplicate,
                rejected=result.rejected,
                invalid=result.invalid,
                failed=result.failed,
            )
        return result

    def dispatch(self, message: QueueMessage) -> DispatchOutcome:
        """Handle one received message and settle it on the queue."""
        try:
            body = parse_message(message.body)
        except EventScaleError as e:
            self.queue.nack(message.id, e.message)
            logger.error("dispatch_invalid_message", message_id=message.id, error=e.message)
            return DispatchOutcome.INVALID

        event_id = body["id"]
        try:
            event = self.store.find_event(event_id)
            if event is None or event.event_status.is_terminal:
                self.queue.ack(message.id)
                logger.warning(
                    "dispatch_rejected",
                    event_id=event_id,
                    message_id=message.id,
                    reason="missing" if event is None else f"status {event.event_status.value}",
                )
                return DispatchOutcome.REJECTED

            started = self.engine.start_execution(event_id, self.workflow, body).started
        except EventScaleError as e:
            self.queue.nack(message.id, e.message)
            logger.error("dispatch_failed", event_id=event_id, message_id=message.id, error=e.message)
            return DispatchOutcome.FAILED

        self.queue.ack(message.id)
        if started:
            logger.info("dispatch_started", event_id=event_id, message_id=message.id)
            return DispatchOutcome.STARTED
        logger.info("dispatch_duplicate", event_id=event_id, message_id=message.id)
        return DispatchOutcome.DUPLICATE
