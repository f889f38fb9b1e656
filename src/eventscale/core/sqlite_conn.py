"""SQLite connection adapter.

Wraps a raw :class:`sqlite3.Connection` to satisfy the
:class:`~eventscale.core.protocols.Connection` protocol, and provides
``connect()`` which opens the configured database file and creates the
schema.

Usage::

    from eventscale.core.sqlite_conn import SqliteConnection

    conn = SqliteConnection(":memory:")
    conn.execute("SELECT event_status FROM events WHERE pk = ?", (event_id,))
    row = conn.fetchone()
"""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Any

from eventscale.core.logging import get_logger

logger = get_logger(__name__)


class SqliteConnection:
    """Adapter: ``sqlite3.Connection`` → ``Connection`` protocol.

    Maintains a single cursor so that ``execute`` / ``fetchone`` /
    ``fetchall`` operate on the same result set.
    """

    def __init__(self, path: str = ":memory:", *, row_factory: Any = sqlite3.Row) -> None:
        self._conn = sqlite3.connect(path, check_same_thread=False)
        self._conn.row_factory = row_factory
        self._cursor = self._conn.cursor()

    # -- Connection protocol -----------------------------------------------

    def execute(self, sql: str, params: tuple = ()) -> Any:
        self._cursor.execute(sql, params)
        return self._cursor

    def executemany(self, sql: str, params: list[tuple]) -> Any:
        self._cursor.executemany(sql, params)
        return self._cursor

    def fetchone(self) -> Any:
        return self._cursor.fetchone()

    def fetchall(self) -> list:
        return self._cursor.fetchall()

    def commit(self) -> None:
        self._conn.commit()

    def rollback(self) -> None:
        self._conn.rollback()

    def close(self) -> None:
        self._conn.close()

    # -- convenience -------------------------------------------------------

    @property
    def rowcount(self) -> int:
        """Rows affected by the last ``execute``."""
        return self._cursor.rowcount

    @property
    def raw(self) -> sqlite3.Connection:
        """Access the underlying ``sqlite3.Connection`` (e.g. for pragmas)."""
        return self._conn

    def __repr__(self) -> str:
        return f"SqliteConnection({self._conn!r})"


def connect(path: str | Path = ":memory:") -> SqliteConnection:
    """Open *path* (creating parent directories) and ensure the schema exists."""
    from eventscale.core.schema import init_schema

    target = str(path)
    if target != ":memory:":
        Path(target).expanduser().parent.mkdir(parents=True, exist_ok=True)
        target = str(Path(target).expanduser())
    conn = SqliteConnection(target)
    if target != ":memory:":
        conn.execute("PRAGMA journal_mode=WAL")
    init_schema(conn)
    logger.debug("database_opened", path=target)
    return conn
