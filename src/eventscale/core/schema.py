"""
Tables used by eventscale.

Defines table names and DDL statements for the event store, the work
queue and the workflow execution ledger.  All timestamps are stored as
normalized UTC ISO-8601 strings (``2026-05-01T10:00:00.000000+00:00``) so that
range queries on ``event_starts_ts`` are plain lexicographic comparisons.

Architecture:
    ::

        Table Registry (TABLES):
        ┌────────────────────────────────────────────────────────────┐
        │ events           → events            (pk, sk) primary key  │
        │ work_queue       → work_queue        ready | dead          │
        │ executions       → workflow_executions   name = event id   │
        │ execution_events → workflow_execution_events (append-only) │
        └────────────────────────────────────────────────────────────┘

        Access paths:
        ┌────────────────────────────────────────────────────────────┐
        │ events by id          → (pk, sk='Event')                    │
        │ events by type + time → idx_events_sk_starts (sk, starts)   │
        │ due executions        → idx_executions_wake (status, wake)  │
        │ visible messages      → idx_work_queue_visible              │
        └────────────────────────────────────────────────────────────┘

Examples:
    >>> from eventscale.core.schema import init_schema
    >>> init_schema(conn)
"""

from __future__ import annotations

TABLES = {
    "events": "events",
    "work_queue": "work_queue",
    "executions": "workflow_executions",
    "execution_events": "workflow_execution_events",
}


DDL = {
    # =========================================================================
    # EVENTS: one row per Event, sort key is always 'Event'
    # =========================================================================
    "events": """
        CREATE TABLE IF NOT EXISTS events (
            pk TEXT NOT NULL,
            sk TEXT NOT NULL DEFAULT 'Event',
            name TEXT NOT NULL,
            additional_notes TEXT,
            event_starts_ts TEXT,
            event_ends_ts TEXT,
            orchestration_type TEXT NOT NULL,
            document_or_product_reference TEXT NOT NULL,
            version_or_artifact_id TEXT,
            provisioning_parameters TEXT NOT NULL DEFAULT '[]',  -- JSON list
            event_status TEXT NOT NULL,
            outputs TEXT,                                        -- JSON, set at 'scaled'
            created TEXT NOT NULL,
            updated TEXT NOT NULL,
            PRIMARY KEY (pk, sk)
        )
    """,
    "events_idx_sk_starts": """
        CREATE INDEX IF NOT EXISTS idx_events_sk_starts
        ON events(sk, event_starts_ts)
    """,
    # =========================================================================
    # WORK_QUEUE: at-least-once delivery with visibility timeout
    # =========================================================================
    "work_queue": """
        CREATE TABLE IF NOT EXISTS work_queue (
            id TEXT PRIMARY KEY,
            body TEXT NOT NULL,                    -- JSON Event snapshot
            enqueued_at TEXT NOT NULL,
            visible_at TEXT NOT NULL,
            receive_count INTEGER NOT NULL DEFAULT 0,
            status TEXT NOT NULL DEFAULT 'ready',  -- ready | dead
            last_error TEXT
        )
    """,
    "work_queue_idx_visible": """
        CREATE INDEX IF NOT EXISTS idx_work_queue_visible
        ON work_queue(status, visible_at)
    """,
    # =========================================================================
    # WORKFLOW_EXECUTIONS: durable engine state, name is the idempotency key
    # =========================================================================
    "executions": """
        CREATE TABLE IF NOT EXISTS workflow_executions (
            name TEXT PRIMARY KEY,
            workflow TEXT NOT NULL,
            status TEXT NOT NULL,       -- running | succeeded | failed
            input TEXT NOT NULL,        -- JSON
            context TEXT NOT NULL,      -- JSON, grows as steps complete
            stack TEXT NOT NULL,        -- JSON list of frames
            wake_at TEXT,               -- suspended until (NULL = runnable now)
            error TEXT,                 -- JSON error dict
            started_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            completed_at TEXT,
            claimed_by TEXT,            -- engine holding the lease while advancing
            claimed_until TEXT          -- lease expiry, taken over once passed
        )
    """,
    "executions_idx_wake": """
        CREATE INDEX IF NOT EXISTS idx_executions_wake
        ON workflow_executions(status, wake_at)
    """,
    "execution_events": """
        CREATE TABLE IF NOT EXISTS workflow_execution_events (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            execution_name TEXT NOT NULL,
            event_type TEXT NOT NULL,
            timestamp TEXT NOT NULL,
            data TEXT                   -- JSON
        )
    """,
    "execution_events_idx_name": """
        CREATE INDEX IF NOT EXISTS idx_execution_events_name
        ON workflow_execution_events(execution_name, id)
    """,
}


def init_schema(conn) -> None:
    """
    Create all tables and indexes.

    Safe to call multiple times (CREATE IF NOT EXISTS).
    """
    for _name, ddl in DDL.items():
        conn.execute(ddl)
    conn.commit()
