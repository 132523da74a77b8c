"""SQLite-backed submission storage."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from worknest_service.services.database import Database


class SubmissionStore:
    """Storage for worker submissions against tasks."""

    _COLUMNS: tuple[str, ...] = (
        "submission_id",
        "task_id",
        "task_title",
        "payable_amount",
        "worker_email",
        "worker_name",
        "buyer_email",
        "buyer_name",
        "submission_details",
        "status",
        "submitted_at",
        "decided_at",
    )
    _COLUMNS_SQL = ", ".join(_COLUMNS)
    _SELECT_SQL = "SELECT " + _COLUMNS_SQL + " FROM submissions"  # nosec B608

    def __init__(self, database: Database) -> None:
        self._db = database
        self._db.executescript(
            """
            CREATE TABLE IF NOT EXISTS submissions (
                submission_id TEXT PRIMARY KEY,
                task_id TEXT NOT NULL,
                task_title TEXT NOT NULL,
                payable_amount INTEGER NOT NULL CHECK (payable_amount > 0),
                worker_email TEXT NOT NULL,
                worker_name TEXT NOT NULL,
                buyer_email TEXT NOT NULL,
                buyer_name TEXT NOT NULL,
                submission_details TEXT NOT NULL,
                status TEXT NOT NULL CHECK (status IN ('pending', 'approved', 'rejected')),
                submitted_at TEXT NOT NULL,
                decided_at TEXT
            );

            CREATE INDEX IF NOT EXISTS ix_submissions_task_worker
                ON submissions(task_id, worker_email, status);
            CREATE INDEX IF NOT EXISTS ix_submissions_buyer
                ON submissions(buyer_email, status);
            CREATE INDEX IF NOT EXISTS ix_submissions_worker
                ON submissions(worker_email, submitted_at);
            """
        )

    def insert_submission(self, submission: dict[str, Any]) -> None:
        """Insert a new submission row."""
        self._db.execute(
            "INSERT INTO submissions (" + self._COLUMNS_SQL + ") VALUES ("  # nosec B608
            + ", ".join("?" for _ in self._COLUMNS)
            + ")",
            tuple(submission[column] for column in self._COLUMNS),
        )

    def get_submission(self, submission_id: str) -> dict[str, Any] | None:
        """Fetch a submission by ID."""
        return self._db.fetch_one(self._SELECT_SQL + " WHERE submission_id = ?", (submission_id,))

    def transition(self, submission_id: str, from_status: str, to_status: str, now: str) -> int:
        """Move a submission between states only if it is still in from_status."""
        return self._db.execute(
            "UPDATE submissions SET status = ?, decided_at = ? "
            "WHERE submission_id = ? AND status = ?",
            (to_status, now, submission_id, from_status),
        )

    def has_active(self, task_id: str, worker_email: str) -> bool:
        """True if the worker holds a pending or approved submission on the task."""
        row = self._db.fetch_one(
            "SELECT 1 FROM submissions WHERE task_id = ? AND worker_email = ? "
            "AND status IN ('pending', 'approved') LIMIT 1",
            (task_id, worker_email),
        )
        return row is not None

    def list_submissions(self, status: str | None) -> list[dict[str, Any]]:
        """List all submissions, newest first."""
        if status is None:
            return self._db.fetch_all(self._SELECT_SQL + " ORDER BY submitted_at DESC")
        return self._db.fetch_all(
            self._SELECT_SQL + " WHERE status = ? ORDER BY submitted_at DESC", (status,)
        )

    def list_for_buyer(self, buyer_email: str, status: str | None) -> list[dict[str, Any]]:
        """Submissions made against a buyer's tasks."""
        query = self._SELECT_SQL + " WHERE buyer_email = ?"
        params: list[object] = [buyer_email]
        if status is not None:
            query += " AND status = ?"
            params.append(status)
        query += " ORDER BY submitted_at DESC"
        return self._db.fetch_all(query, params)

    def list_for_worker(
        self,
        worker_email: str,
        limit: int | None,
        offset: int | None,
    ) -> list[dict[str, Any]]:
        """A worker's own submissions, newest first."""
        query = self._SELECT_SQL + " WHERE worker_email = ? ORDER BY submitted_at DESC"
        params: list[object] = [worker_email]
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)
            if offset is not None:
                query += " OFFSET ?"
                params.append(offset)
        return self._db.fetch_all(query, params)

    def count_for_worker(self, worker_email: str) -> int:
        """Number of submissions a worker has made."""
        return int(
            self._db.fetch_scalar(
                "SELECT COUNT(*) FROM submissions WHERE worker_email = ?", (worker_email,)
            )
        )

    def pending_escrow(self) -> int:
        """Coins held for submissions still awaiting a decision."""
        return int(
            self._db.fetch_scalar(
                "SELECT COALESCE(SUM(payable_amount), 0) FROM submissions WHERE status = 'pending'"
            )
        )
