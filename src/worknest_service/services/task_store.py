"""SQLite-backed task storage."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from worknest_service.services.database import Database


class TaskStore:
    """Storage for tasks and their remaining-worker capacity."""

    _TASK_COLUMNS: tuple[str, ...] = (
        "task_id",
        "task_title",
        "task_detail",
        "submission_info",
        "task_image_url",
        "completion_date",
        "buyer_email",
        "buyer_name",
        "payable_amount",
        "required_workers",
        "remaining_workers",
        "total_payable_amount",
        "created_at",
        "updated_at",
    )
    _TASK_COLUMNS_SQL = ", ".join(_TASK_COLUMNS)
    _TASK_INSERT_SQL = (
        "INSERT INTO tasks (" + _TASK_COLUMNS_SQL + ") VALUES ("
        + ", ".join("?" for _ in _TASK_COLUMNS)
        + ")"
    )
    _TASK_SELECT_BASE_SQL = "SELECT " + _TASK_COLUMNS_SQL + " FROM tasks"  # nosec B608

    def __init__(self, database: Database) -> None:
        self._db = database
        self._db.executescript(
            """
            CREATE TABLE IF NOT EXISTS tasks (
                task_id TEXT PRIMARY KEY,
                task_title TEXT NOT NULL,
                task_detail TEXT NOT NULL,
                submission_info TEXT,
                task_image_url TEXT,
                completion_date TEXT,
                buyer_email TEXT NOT NULL,
                buyer_name TEXT NOT NULL,
                payable_amount INTEGER NOT NULL CHECK (payable_amount > 0),
                required_workers INTEGER NOT NULL CHECK (required_workers > 0),
                remaining_workers INTEGER NOT NULL,
                total_payable_amount INTEGER NOT NULL,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                CHECK (remaining_workers >= 0 AND remaining_workers <= required_workers),
                CHECK (total_payable_amount = payable_amount * required_workers)
            );

            CREATE INDEX IF NOT EXISTS ix_tasks_buyer ON tasks(buyer_email, created_at);
            """
        )

    def insert_task(self, task: dict[str, Any]) -> None:
        """Insert a new task row."""
        self._db.execute(
            self._TASK_INSERT_SQL,
            tuple(task[column] for column in self._TASK_COLUMNS),
        )

    def get_task(self, task_id: str) -> dict[str, Any] | None:
        """Fetch a task by ID."""
        return self._db.fetch_one(self._TASK_SELECT_BASE_SQL + " WHERE task_id = ?", (task_id,))

    def list_tasks(
        self,
        buyer_email: str | None,
        available_only: bool,
        limit: int | None,
        offset: int | None,
    ) -> list[dict[str, Any]]:
        """List tasks with optional filters, newest first."""
        query = self._TASK_SELECT_BASE_SQL
        clauses: list[str] = []
        params: list[object] = []

        if buyer_email is not None:
            clauses.append("buyer_email = ?")
            params.append(buyer_email)
        if available_only:
            clauses.append("remaining_workers > 0")

        if len(clauses) > 0:
            query += " WHERE " + " AND ".join(clauses)

        query += " ORDER BY created_at DESC"

        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)
            if offset is not None:
                query += " OFFSET ?"
                params.append(offset)

        return self._db.fetch_all(query, params)

    def update_task(self, task_id: str, updates: dict[str, Any]) -> int:
        """Update task columns. Returns the number of affected rows."""
        if len(updates) == 0:
            return 0

        if any(column not in self._TASK_COLUMNS for column in updates):
            msg = "Attempted to update unknown task column"
            raise ValueError(msg)

        set_clause = ", ".join(f"{column} = ?" for column in updates)
        params: list[object] = list(updates.values())

        query = "UPDATE tasks SET " + set_clause + " WHERE task_id = ?"  # nosec B608
        params.append(task_id)

        return self._db.execute(query, params)

    def take_slot(self, task_id: str, now: str) -> int:
        """Consume one worker slot if any remain."""
        return self._db.execute(
            "UPDATE tasks SET remaining_workers = remaining_workers - 1, updated_at = ? "
            "WHERE task_id = ? AND remaining_workers > 0",
            (now, task_id),
        )

    def return_slot(self, task_id: str, now: str) -> int:
        """Give one worker slot back, never exceeding the required count."""
        return self._db.execute(
            "UPDATE tasks SET remaining_workers = remaining_workers + 1, updated_at = ? "
            "WHERE task_id = ? AND remaining_workers < required_workers",
            (now, task_id),
        )

    def delete_task(self, task_id: str) -> int:
        """Delete a task. Returns the number of affected rows."""
        return self._db.execute("DELETE FROM tasks WHERE task_id = ?", (task_id,))

    def count_tasks(self) -> int:
        """Count all tasks."""
        return int(self._db.fetch_scalar("SELECT COUNT(*) FROM tasks"))

    def unconsumed_escrow(self) -> int:
        """Coins held for slots no submission has taken yet."""
        return int(
            self._db.fetch_scalar(
                "SELECT COALESCE(SUM(payable_amount * remaining_workers), 0) FROM tasks"
            )
        )
