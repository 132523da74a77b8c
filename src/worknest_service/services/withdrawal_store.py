"""SQLite-backed withdrawal request storage."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from worknest_service.services.database import Database


class WithdrawalStore:
    """Storage for worker payout requests."""

    _COLUMNS: tuple[str, ...] = (
        "withdrawal_id",
        "worker_email",
        "worker_name",
        "withdrawal_coin",
        "withdrawal_amount",
        "payment_system",
        "account_number",
        "status",
        "requested_at",
        "approved_at",
    )
    _COLUMNS_SQL = ", ".join(_COLUMNS)
    _SELECT_SQL = "SELECT " + _COLUMNS_SQL + " FROM withdrawals"  # nosec B608

    def __init__(self, database: Database) -> None:
        self._db = database
        self._db.executescript(
            """
            CREATE TABLE IF NOT EXISTS withdrawals (
                withdrawal_id TEXT PRIMARY KEY,
                worker_email TEXT NOT NULL,
                worker_name TEXT NOT NULL,
                withdrawal_coin INTEGER NOT NULL CHECK (withdrawal_coin > 0),
                withdrawal_amount REAL NOT NULL CHECK (withdrawal_amount > 0),
                payment_system TEXT NOT NULL,
                account_number TEXT NOT NULL,
                status TEXT NOT NULL CHECK (status IN ('pending', 'approved')),
                requested_at TEXT NOT NULL,
                approved_at TEXT
            );

            CREATE INDEX IF NOT EXISTS ix_withdrawals_worker
                ON withdrawals(worker_email, requested_at);
            """
        )

    def insert_withdrawal(self, withdrawal: dict[str, Any]) -> None:
        """Insert a new withdrawal request."""
        self._db.execute(
            "INSERT INTO withdrawals (" + self._COLUMNS_SQL + ") VALUES ("  # nosec B608
            + ", ".join("?" for _ in self._COLUMNS)
            + ")",
            tuple(withdrawal[column] for column in self._COLUMNS),
        )

    def get_withdrawal(self, withdrawal_id: str) -> dict[str, Any] | None:
        """Fetch a withdrawal request by ID."""
        return self._db.fetch_one(self._SELECT_SQL + " WHERE withdrawal_id = ?", (withdrawal_id,))

    def mark_approved(self, withdrawal_id: str, now: str) -> int:
        """Approve a request only if it is still pending."""
        return self._db.execute(
            "UPDATE withdrawals SET status = 'approved', approved_at = ? "
            "WHERE withdrawal_id = ? AND status = 'pending'",
            (now, withdrawal_id),
        )

    def list_withdrawals(self, status: str | None) -> list[dict[str, Any]]:
        """List requests, newest first."""
        if status is None:
            return self._db.fetch_all(self._SELECT_SQL + " ORDER BY requested_at DESC")
        return self._db.fetch_all(
            self._SELECT_SQL + " WHERE status = ? ORDER BY requested_at DESC", (status,)
        )

    def list_for_worker(self, worker_email: str) -> list[dict[str, Any]]:
        """A worker's own requests, newest first."""
        return self._db.fetch_all(
            self._SELECT_SQL + " WHERE worker_email = ? ORDER BY requested_at DESC",
            (worker_email,),
        )
