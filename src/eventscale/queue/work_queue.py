"""Work Queue: durable at-least-once delivery backed by the ``work_queue`` table.

ARCHITECTURE
────────────
::

    WorkQueue(conn, config)
      ├── .enqueue(body)              ─ new 'ready' message, visible now
      ├── .receive(max_messages)      ─ hide for visibility_timeout, bump receive_count
      ├── .ack(message_id)            ─ delete (processed)
      ├── .nack(message_id, error)    ─ visible again, or 'dead' after max_receive_count
      ├── .list_ready() / .list_dead()
      └── .redrive(message_id=None)   ─ dead → ready

A message that is received and neither acked nor nacked (worker crash)
becomes visible again when its visibility timeout expires, so delivery is
at-least-once.  The dispatcher's idempotent start makes redelivery safe.

With ``max_receive_count = 0`` there is no redrive policy: a failed
delivery drops the message permanently (logged at error level).

Example::

    queue = WorkQueue(conn, QueueConfig(max_receive_count=3))
    queue.enqueue(encode_message(build_message(event)))
    for message in queue.receive(max_messages=1):
        ...
        queue.ack(message.id)
"""

import sqlite3
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

from eventscale.core.errors import QueueError
from eventscale.core.logging import get_logger
from eventscale.core.settings import QueueConfig
from eventscale.core.timestamps import from_iso8601, to_iso8601, utc_now

logger = get_logger(__name__)

STATUS_READY = "ready"
STATUS_DEAD = "dead"


@dataclass
class QueueMessage:
    """One row of the work queue."""

    id: str
    body: str
    enqueued_at: datetime
    visible_at: datetime
    receive_count: int
    status: str
    last_error: str | None = None


class WorkQueue:
    """sqlite-backed queue with visibility timeout and dead-lettering."""

    def __init__(
        self,
        conn,
        config: QueueConfig | None = None,
        *,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._conn = conn
        self.config = config or QueueConfig()
        self._clock = clock

    def enqueue(self, body: str) -> str:
        """Add a message and return its id."""
        message_id = str(uuid.uuid4())
        now = to_iso8601(self._clock())
        self._write(
            """
            INSERT INTO work_queue (id, body, enqueued_at, visible_at, receive_count, status)
            VALUES (?, ?, ?, ?, 0, ?)
            """,
            (message_id, body, now, now, STATUS_READY),
        )
        logger.debug("message_enqueued", message_id=message_id)
        return message_id

    def receive(
        self,
        max_messages: int = 1,
        visibility_timeout: int | None = None,
    ) -> list[QueueMessage]:
        """Take up to *max_messages* visible messages and hide them."""
        now = self._clock()
        timeout = self.config.visibility_timeout_seconds if visibility_timeout is None else visibility_timeout
        hidden_until = to_iso8601(now + timedelta(seconds=timeout))

        rows = self._read(
            """
            SELECT id, body, enqueued_at, visible_at, receive_count, status, last_error
            FROM work_queue
            WHERE status = ? AND visible_at <= ?
            ORDER BY enqueued_at ASC
            LIMIT ?
            """,
            (STATUS_READY, to_iso8601(now), max_messages),
        )
        messages = []
        for row in rows:
            self._write(
                "UPDATE work_queue SET visible_at = ?, receive_count = receive_count + 1 WHERE id = ?",
                (hidden_until, row["id"]),
            )
            message = self._row_to_message(row)
            message.receive_count += 1
            message.visible_at = from_iso8601(hidden_until)
            messages.append(message)
        return messages

    def ack(self, message_id: str) -> None:
        """Delete a processed message."""
        self._write("DELETE FROM work_queue WHERE id = ?", (message_id,))

    def nack(self, message_id: str, error: str) -> None:
        """Report a failed delivery.

        The message becomes visible again unless it has been received
        ``max_receive_count`` times, in which case it is dead-lettered.
        """
        rows = self._read("SELECT receive_count FROM work_queue WHERE id = ?", (message_id,))
        if not rows:
            return
        receive_count = rows[0]["receive_count"]

        if self.config.max_receive_count == 0:
            self._write("DELETE FROM work_queue WHERE id = ?", (message_id,))
            logger.error("message_dropped", message_id=message_id, error=error)
            return

        if receive_count >= self.config.max_receive_count:
            self._write(
                "UPDATE work_queue SET status = ?, last_error = ? WHERE id = ?",
                (STATUS_DEAD, error, message_id),
            )
            logger.error(
                "message_dead_lettered",
                message_id=message_id,
                receive_count=receive_count,
                error=error,
            )
            return

        self._write(
            "UPDATE work_queue SET visible_at = ?, last_error = ? WHERE id = ?",
            (to_iso8601(self._clock()), error, message_id),
        )
        logger.warning("message_returned", message_id=message_id, receive_count=receive_count, error=error)

    def list_ready(self, limit: int = 100) -> list[QueueMessage]:
        return self._list(STATUS_READY, limit)

    def list_dead(self, limit: int = 100) -> list[QueueMessage]:
        return self._list(STATUS_DEAD, limit)

    def redrive(self, message_id: str | None = None) -> int:
        """Move dead messages (one, or all) back to ready. Returns the count."""
        now = to_iso8601(self._clock())
        if message_id:
            sql = "UPDATE work_queue SET status = ?, receive_count = 0, visible_at = ? WHERE status = ? AND id = ?"
            params: tuple = (STATUS_READY, now, STATUS_DEAD, message_id)
        else:
            sql = "UPDATE work_queue SET status = ?, receive_count = 0, visible_at = ? WHERE status = ?"
            params = (STATUS_READY, now, STATUS_DEAD)
        count = self._write(sql, params)
        logger.info("messages_redriven", count=count, message_id=message_id)
        return count

    def depth(self) -> int:
        rows = self._read("SELECT COUNT(*) AS n FROM work_queue WHERE status = ?", (STATUS_READY,))
        return rows[0]["n"]

    # -- internals ---------------------------------------------------------

    def _list(self, status: str, limit: int) -> list[QueueMessage]:
        rows = self._read(
            """
            SELECT id, body, enqueued_at, visible_at, receive_count, status, last_error
            FROM work_queue WHERE status = ? ORDER BY enqueued_at ASC LIMIT ?
            """,
            (status, limit),
        )
        return [self._row_to_message(row) for row in rows]

    def _write(self, sql: str, params: tuple) -> int:
        try:
            cursor = self._conn.execute(sql, params)
            self._conn.commit()
            return cursor.rowcount
        except sqlite3.Error as e:
            self._conn.rollback()
            raise QueueError(f"Work queue write failed: {e}", cause=e) from e

    def _read(self, sql: str, params: tuple) -> list:
        try:
            self._conn.execute(sql, params)
            return self._conn.fetchall()
        except sqlite3.Error as e:
            raise QueueError(f"Work queue read failed: {e}", cause=e) from e

    @staticmethod
    def _row_to_message(row) -> QueueMessage:
        return QueueMessage(
            id=row["id"],
            body=row["body"],
            enqueued_at=from_iso8601(row["enqueued_at"]),
            visible_at=from_iso8601(row["visible_at"]),
            receive_count=row["receive_count"],
            status=row["status"],
            last_error=row["last_error"],
        )
