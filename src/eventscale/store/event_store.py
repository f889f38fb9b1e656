"""Event Store - durable keyed storage for Event records.

Events live in the ``events`` table under ``(pk=id, sk='Event')``.  The
``(sk, event_starts_ts)`` index is the secondary access path used by the
scheduler to list events of one type starting inside a time range.

Architecture:

    .. code-block:: text

        EventStore
        ┌───────────────────────────────────────────────────────────┐
        │  READS                       WRITES                        │
        │  ─────                       ──────                        │
        │  get_event()                 create_event()  → listeners   │
        │  find_event()                update_event_status()         │
        │  get_events_starting_between()  (transition-checked)       │
        │  list_events()               delete_event()                │
        │                                (registered|ended|failed)   │
        └───────────────────────────────────────────────────────────┘

    Insert listeners are the change-notification path: the scheduler
    registers ``on_event_inserted`` so a newly created event inside the
    lookahead window is enqueued immediately.

Example:
    >>> store = EventStore(conn)
    >>> event = store.create_event(Event.create(...))
    >>> store.update_event_status(event.id, EventStatus.DEPLOY)
"""

import json
import sqlite3
from collections.abc import Callable
from datetime import datetime
from typing import Any

from eventscale.core.errors import (
    EventNotFoundError,
    EventStateError,
    InvalidEventError,
    StoreError,
)
from eventscale.core.logging import get_logger
from eventscale.core.timestamps import ensure_utc, from_iso8601, to_iso8601, utc_now
from eventscale.domain.models import (
    DELETABLE_STATUSES,
    EVENT_SORT_KEY,
    Event,
    EventStatus,
    OrchestrationType,
    ProvisioningParameter,
    validate_event_transition,
)

logger = get_logger(__name__)

InsertListener = Callable[[Event], None]

_COLUMNS = """
    pk, sk, name, additional_notes, event_starts_ts, event_ends_ts,
    orchestration_type, document_or_product_reference, version_or_artifact_id,
    provisioning_parameters, event_status, outputs, created, updated
"""


class EventStore:
    """Reads and writes Event records.

    Database failures surface as :class:`StoreError` (retryable), so the
    workflow engine can retry a lost status write before proceeding.
    """

    def __init__(self, conn, *, clock: Callable[[], datetime] = utc_now):
        """Initialize with a database connection.

        Args:
            conn: Connection satisfying :class:`eventscale.core.protocols.Connection`
            clock: Source of "now" for ``updated`` stamps
        """
        self._conn = conn
        self._clock = clock
        self._insert_listeners: list[InsertListener] = []

    # =========================================================================
    # CHANGE NOTIFICATION
    # =========================================================================

    def add_insert_listener(self, listener: InsertListener) -> None:
        """Register a callable invoked with every newly created Event."""
        self._insert_listeners.append(listener)

    def _notify_inserted(self, event: Event) -> None:
        for listener in self._insert_listeners:
            try:
                listener(event)
            except Exception as e:
                logger.error(
                    "insert_listener_failed",
                    event_id=event.id,
                    listener=getattr(listener, "__qualname__", repr(listener)),
                    error=str(e),
                )

    # =========================================================================
    # WRITES
    # =========================================================================

    def create_event(self, event: Event) -> Event:
        """Persist a new Event in ``registered`` status and notify listeners.

        Raises:
            InvalidEventError: timestamps missing or ``starts >= ends``
            StoreError: the insert failed (including a duplicate id)
        """
        if event.event_starts_ts is None or event.event_ends_ts is None:
            raise InvalidEventError("event_starts_ts and event_ends_ts are required")
        if ensure_utc(event.event_starts_ts) >= ensure_utc(event.event_ends_ts):
            raise InvalidEventError(
                f"event_starts_ts must be before event_ends_ts "
                f"({to_iso8601(event.event_starts_ts)} >= {to_iso8601(event.event_ends_ts)})"
            )

        now = self._clock()
        event.event_status = EventStatus.REGISTERED
        event.outputs = None
        event.created = now
        event.updated = now

        self._write(
            f"INSERT INTO events ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                event.id,
                EVENT_SORT_KEY,
                event.name,
                event.additional_notes,
                to_iso8601(event.event_starts_ts),
                to_iso8601(event.event_ends_ts),
                event.orchestration_type.value,
                event.document_or_product_reference,
                event.version_or_artifact_id,
                json.dumps([p.to_dict() for p in event.provisioning_parameters]),
                event.event_status.value,
                None,
                to_iso8601(now),
                to_iso8601(now),
            ),
        )
        logger.info(
            "event_created",
            event_id=event.id,
            orchestration_type=event.orchestration_type.value,
            starts=to_iso8601(event.event_starts_ts),
        )
        self._notify_inserted(event)
        return event

    def update_event_status(
        self,
        event_id: str,
        status: EventStatus,
        outputs: Any | None = None,
    ) -> Event:
        """Move an Event to *status*, optionally attaching backend *outputs*.

        Re-applying the current status is a no-op (so a retried write is
        safe); any other move must be allowed by the transition table.

        Raises:
            EventNotFoundError: no such Event
            InvalidTransitionError: the move is not allowed
            StoreError: the update failed
        """
        status = EventStatus(status)
        event = self.get_event(event_id)

        if event.event_status == status and outputs is None:
            logger.debug("event_status_unchanged", event_id=event_id, status=status.value)
            return event
        if event.event_status != status:
            validate_event_transition(event.event_status, status)

        now = self._clock()
        if outputs is not None:
            self._write(
                "UPDATE events SET event_status = ?, outputs = ?, updated = ? WHERE pk = ? AND sk = ?",
                (status.value, json.dumps(outputs), to_iso8601(now), event_id, EVENT_SORT_KEY),
            )
            event.outputs = outputs
        else:
            self._write(
                "UPDATE events SET event_status = ?, updated = ? WHERE pk = ? AND sk = ?",
                (status.value, to_iso8601(now), event_id, EVENT_SORT_KEY),
            )

        logger.info(
            "event_status_updated",
            event_id=event_id,
            previous=event.event_status.value,
            status=status.value,
        )
        event.event_status = status
        event.updated = now
        return event

    def delete_event(self, event_id: str) -> None:
        """Delete an Event that is not mid-lifecycle.

        Raises:
            EventNotFoundError: no such Event
            EventStateError: status is not registered, ended or failed
        """
        event = self.get_event(event_id)
        if event.event_status not in DELETABLE_STATUSES:
            raise EventStateError(
                f"Event {event_id} cannot be deleted while in status '{event.event_status.value}'"
            ).with_context(event_id=event_id)
        self._write("DELETE FROM events WHERE pk = ? AND sk = ?", (event_id, EVENT_SORT_KEY))
        logger.info("event_deleted", event_id=event_id, status=event.event_status.value)

    # =========================================================================
    # READS
    # =========================================================================

    def find_event(self, event_id: str) -> Event | None:
        """Get an Event by id, or None."""
        rows = self._read(
            f"SELECT {_COLUMNS} FROM events WHERE pk = ? AND sk = ?",
            (event_id, EVENT_SORT_KEY),
        )
        return self._row_to_event(rows[0]) if rows else None

    def get_event(self, event_id: str) -> Event:
        """Get an Event by id.

        Raises:
            EventNotFoundError: no such Event
        """
        event = self.find_event(event_id)
        if event is None:
            raise EventNotFoundError(event_id)
        return event

    def get_events_starting_between(self, start: datetime, end: datetime) -> list[Event]:
        """List Events whose ``event_starts_ts`` is in ``[start, end]`` (inclusive)."""
        rows = self._read(
            f"""
            SELECT {_COLUMNS} FROM events
            WHERE sk = ? AND event_starts_ts BETWEEN ? AND ?
            ORDER BY event_starts_ts ASC
            """,
            (EVENT_SORT_KEY, to_iso8601(start), to_iso8601(end)),
        )
        return [self._row_to_event(row) for row in rows]

    def list_events(self, status: EventStatus | None = None, limit: int = 100) -> list[Event]:
        """List Events, soonest start first."""
        query = f"SELECT {_COLUMNS} FROM events WHERE sk = ?"
        params: list[Any] = [EVENT_SORT_KEY]
        if status:
            query += " AND event_status = ?"
            params.append(EventStatus(status).value)
        query += " ORDER BY event_starts_ts ASC LIMIT ?"
        params.append(limit)
        return [self._row_to_event(row) for row in self._read(query, tuple(params))]

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _write(self, sql: str, params: tuple) -> None:
        try:
            self._conn.execute(sql, params)
            self._conn.commit()
        except sqlite3.Error as e:
            self._conn.rollback()
            raise StoreError(f"Event store write failed: {e}", cause=e) from e

    def _read(self, sql: str, params: tuple) -> list:
        try:
            self._conn.execute(sql, params)
            return self._conn.fetchall()
        except sqlite3.Error as e:
            raise StoreError(f"Event store read failed: {e}", cause=e) from e

    def _row_to_event(self, row) -> Event:
        return Event(
            id=row["pk"],
            name=row["name"],
            additional_notes=row["additional_notes"],
            event_starts_ts=from_iso8601(row["event_starts_ts"]),
            event_ends_ts=from_iso8601(row["event_ends_ts"]),
            orchestration_type=OrchestrationType(row["orchestration_type"]),
            document_or_product_reference=row["document_or_product_reference"],
            version_or_artifact_id=row["version_or_artifact_id"],
            provisioning_parameters=[
                ProvisioningParameter.from_dict(p)
                for p in json.loads(row["provisioning_parameters"] or "[]")
            ],
            event_status=EventStatus(row["event_status"]),
            outputs=json.loads(row["outputs"]) if row["outputs"] else None,
            created=from_iso8601(row["created"]),
            updated=from_iso8601(row["updated"]),
        )
