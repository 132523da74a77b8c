"""Shared SQLite handle with re-entrant write transactions."""

from __future__ import annotations

import sqlite3
import uuid
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from threading import RLock
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence


def now_iso() -> str:
    """Return current UTC time as ISO 8601 string with Z suffix."""
    return datetime.now(UTC).isoformat(timespec="microseconds").replace("+00:00", "Z")


def new_id(prefix: str) -> str:
    """Generate a prefixed identifier, e.g. ``t-<uuid4>``."""
    return f"{prefix}-{uuid.uuid4()}"


class Database:
    """
    One SQLite connection shared by every entity store.

    The connection runs in autocommit mode; grouped writes go through
    ``transaction()``, which issues ``BEGIN IMMEDIATE`` so that the write
    lock is taken before any precondition is read. Nested ``transaction()``
    calls on the same thread join the outer transaction.
    """

    def __init__(self, db_path: str) -> None:
        self._lock = RLock()
        self._depth = 0
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._db = sqlite3.connect(db_path, check_same_thread=False, isolation_level=None)
        self._db.row_factory = sqlite3.Row
        self._db.execute("PRAGMA journal_mode=WAL")
        self._db.execute("PRAGMA foreign_keys=ON")
        self._db.execute("PRAGMA busy_timeout=5000")

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Run the enclosed block as one atomic write transaction."""
        with self._lock:
            if self._depth > 0:
                self._depth += 1
                try:
                    yield
                finally:
                    self._depth -= 1
                return

            self._db.execute("BEGIN IMMEDIATE")
            self._depth = 1
            try:
                yield
            except BaseException:
                self._depth = 0
                self._db.execute("ROLLBACK")
                raise
            self._depth = 0
            self._db.execute("COMMIT")

    def executescript(self, script: str) -> None:
        """Run a DDL script."""
        with self._lock:
            self._db.executescript(script)

    def execute(self, sql: str, params: Sequence[Any] = ()) -> int:
        """Execute a write statement and return the number of affected rows."""
        with self._lock:
            cursor = self._db.execute(sql, params)
            return int(cursor.rowcount)

    def fetch_one(self, sql: str, params: Sequence[Any] = ()) -> dict[str, Any] | None:
        """Fetch a single row as a dict, or None."""
        with self._lock:
            row = self._db.execute(sql, params).fetchone()
        if row is None:
            return None
        return dict(row)

    def fetch_all(self, sql: str, params: Sequence[Any] = ()) -> list[dict[str, Any]]:
        """Fetch all rows as dicts."""
        with self._lock:
            rows = self._db.execute(sql, params).fetchall()
        return [dict(row) for row in rows]

    def fetch_scalar(self, sql: str, params: Sequence[Any] = ()) -> Any:
        """Fetch the first column of the first row, or None."""
        with self._lock:
            row = self._db.execute(sql, params).fetchone()
        if row is None:
            return None
        return row[0]

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            self._db.close()
