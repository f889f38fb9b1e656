"""Execution ledger - persistent record of workflow executions and their history.

Architecture:

    .. code-block:: text

        ExecutionLedger: durable engine state
        ┌───────────────────────────────────────────────────────────┐
        │  EXECUTION STATE            HISTORY                       │
        │  ───────────────            ───────                       │
        │  create()  INSERT OR IGNORE record_event()                │
        │  get()                      get_events()                  │
        │  save()                                                   │
        │  claim() / release()     lease while advancing            │
        │  list_executions()                                        │
        │  list_due(now)                                            │
        ├───────────────────────────────────────────────────────────┤
        │  ┌─────────────────────┐     ┌───────────────────────────┐│
        │  │ workflow_executions │────>│ workflow_execution_events ││
        │  │ (name = event id)   │     │ (append-only)             ││
        │  └─────────────────────┘     └───────────────────────────┘│
        └───────────────────────────────────────────────────────────┘

    ``create`` is the idempotency point: the primary key on ``name`` makes a
    second start with the same name a no-op that returns False.  ``claim`` is
    the exclusion point: an engine only advances an execution while it holds
    an unexpired lease, and ``save`` with an owner writes only under that lease.
"""

import json
import sqlite3
from collections.abc import Callable
from datetime import datetime
from typing import Any

from eventscale.core.errors import ExecutionClaimLostError, StoreError
from eventscale.core.timestamps import from_iso8601, to_iso8601, utc_now
from eventscale.workflow.models import (
    ExecutionEvent,
    ExecutionEventType,
    Frame,
    WorkflowExecution,
    WorkflowStatus,
)

_COLUMNS = """
    name, workflow, status, input, context, stack, wake_at, error,
    started_at, updated_at, completed_at
"""


class ExecutionLedger:
    """CRUD for ``workflow_executions`` plus the append-only event history."""

    def __init__(self, conn, *, clock: Callable[[], datetime] = utc_now):
        """Initialize with a database connection.

        Args:
            conn: Connection satisfying :class:`eventscale.core.protocols.Connection`
            clock: Source of "now" for history timestamps
        """
        self._conn = conn
        self._clock = clock

    # =========================================================================
    # EXECUTION STATE
    # =========================================================================

    def create(self, execution: WorkflowExecution) -> bool:
        """Insert *execution*; return False if the name already exists."""
        cursor = self._write(
            f"""
            INSERT OR IGNORE INTO workflow_executions ({_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            self._params(execution),
        )
        created = cursor.rowcount == 1
        if created:
            self.record_event(execution.name, ExecutionEventType.STARTED, {"workflow": execution.workflow})
        return created

    def save(self, execution: WorkflowExecution, owner: str | None = None) -> None:
        """Persist the full mutable state of *execution*.

        Raises:
            ExecutionClaimLostError: *owner* given and no longer holds the lease
        """
        sql = """
            UPDATE workflow_executions
            SET status = ?, context = ?, stack = ?, wake_at = ?, error = ?,
                updated_at = ?, completed_at = ?
            WHERE name = ?
        """
        params: tuple = (
            execution.status.value,
            json.dumps(execution.context, default=str),
            json.dumps([f.to_dict() for f in execution.stack]),
            to_iso8601(execution.wake_at),
            json.dumps(execution.error, default=str) if execution.error else None,
            to_iso8601(execution.updated_at),
            to_iso8601(execution.completed_at),
            execution.name,
        )
        if owner is not None:
            sql += " AND claimed_by = ?"
            params += (owner,)
        cursor = self._write(sql, params)
        if owner is not None and cursor.rowcount == 0:
            raise ExecutionClaimLostError(execution.name, owner)

    def claim(self, name: str, owner: str, now: datetime, until: datetime) -> bool:
        """Take the lease on a running execution; False if another owner holds it."""
        cursor = self._write(
            """
            UPDATE workflow_executions
            SET claimed_by = ?, claimed_until = ?
            WHERE name = ? AND status = ?
              AND (claimed_by IS NULL OR claimed_by = ? OR claimed_until <= ?)
            """,
            (owner, to_iso8601(until), name, WorkflowStatus.RUNNING.value, owner, to_iso8601(now)),
        )
        return cursor.rowcount == 1

    def release(self, name: str, owner: str) -> None:
        self._write(
            """
            UPDATE workflow_executions
            SET claimed_by = NULL, claimed_until = NULL
            WHERE name = ? AND claimed_by = ?
            """,
            (name, owner),
        )

    def get(self, name: str) -> WorkflowExecution | None:
        rows = self._read(f"SELECT {_COLUMNS} FROM workflow_executions WHERE name = ?", (name,))
        return self._row_to_execution(rows[0]) if rows else None

    def list_executions(
        self,
        status: WorkflowStatus | None = None,
        limit: int = 100,
    ) -> list[WorkflowExecution]:
        """List executions, most recently started first."""
        query = f"SELECT {_COLUMNS} FROM workflow_executions WHERE 1=1"
        params: list[Any] = []
        if status:
            query += " AND status = ?"
            params.append(WorkflowStatus(status).value)
        query += " ORDER BY started_at DESC LIMIT ?"
        params.append(limit)
        return [self._row_to_execution(row) for row in self._read(query, tuple(params))]

    def list_due(self, now: datetime, limit: int = 100) -> list[str]:
        """Names of running executions whose suspension has elapsed."""
        rows = self._read(
            """
            SELECT name FROM workflow_executions
            WHERE status = ? AND (wake_at IS NULL OR wake_at <= ?)
            ORDER BY wake_at ASC
            LIMIT ?
            """,
            (WorkflowStatus.RUNNING.value, to_iso8601(now), limit),
        )
        return [row["name"] for row in rows]

    # =========================================================================
    # HISTORY
    # =========================================================================

    def record_event(
        self,
        name: str,
        event_type: ExecutionEventType | str,
        data: dict[str, Any] | None = None,
    ) -> None:
        self._write(
            """
            INSERT INTO workflow_execution_events (execution_name, event_type, timestamp, data)
            VALUES (?, ?, ?, ?)
            """,
            (
                name,
                event_type.value if hasattr(event_type, "value") else str(event_type),
                to_iso8601(self._clock()),
                json.dumps(data or {}, default=str),
            ),
        )

    def get_events(self, name: str) -> list[ExecutionEvent]:
        """History of one execution in the order it was written."""
        rows = self._read(
            """
            SELECT id, execution_name, event_type, timestamp, data
            FROM workflow_execution_events
            WHERE execution_name = ?
            ORDER BY id ASC
            """,
            (name,),
        )
        return [ExecutionEvent.from_row(row, json.loads(row["data"] or "{}")) for row in rows]

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _write(self, sql: str, params: tuple) -> Any:
        try:
            cursor = self._conn.execute(sql, params)
            self._conn.commit()
            return cursor
        except sqlite3.Error as e:
            self._conn.rollback()
            raise StoreError(f"Execution ledger write failed: {e}", cause=e) from e

    def _read(self, sql: str, params: tuple) -> list:
        try:
            self._conn.execute(sql, params)
            return self._conn.fetchall()
        except sqlite3.Error as e:
            raise StoreError(f"Execution ledger read failed: {e}", cause=e) from e

    @staticmethod
    def _params(execution: WorkflowExecution) -> tuple:
        return (
            execution.name,
            execution.workflow,
            execution.status.value,
            json.dumps(execution.input),
            json.dumps(execution.context, default=str),
            json.dumps([f.to_dict() for f in execution.stack]),
            to_iso8601(execution.wake_at),
            json.dumps(execution.error, default=str) if execution.error else None,
            to_iso8601(execution.started_at),
            to_iso8601(execution.updated_at),
            to_iso8601(execution.completed_at),
        )

    @staticmethod
    def _row_to_execution(row) -> WorkflowExecution:
        return WorkflowExecution(
            name=row["name"],
            workflow=row["workflow"],
            status=WorkflowStatus(row["status"]),
            input=json.loads(row["input"]),
            context=json.loads(row["context"] or "{}"),
            stack=[Frame.from_dict(f) for f in json.loads(row["stack"] or "[]")],
            wake_at=from_iso8601(row["wake_at"]),
            error=json.loads(row["error"]) if row["error"] else None,
            started_at=from_iso8601(row["started_at"]),
            updated_at=from_iso8601(row["updated_at"]),
            completed_at=from_iso8601(row["completed_at"]),
        )
