"""Notification storage doubling as the push outbox."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from worknest_service.services.database import new_id

if TYPE_CHECKING:
    from worknest_service.services.database import Database


class NotificationStore:
    """
    Durable notifications.

    Rows with ``pushed_at IS NULL`` form the outbox that the dispatcher
    drains; readers poll the same rows regardless of push outcome.
    """

    _SELECT_SQL = (
        "SELECT notification_id, message, to_email, action_route, is_read, created_at, "
        "pushed_at FROM notifications"
    )

    def __init__(self, database: Database) -> None:
        self._db = database
        self._db.executescript(
            """
            CREATE TABLE IF NOT EXISTS notifications (
                seq INTEGER PRIMARY KEY AUTOINCREMENT,
                notification_id TEXT NOT NULL UNIQUE,
                message TEXT NOT NULL,
                to_email TEXT NOT NULL,
                action_route TEXT NOT NULL,
                is_read INTEGER NOT NULL DEFAULT 0,
                created_at TEXT NOT NULL,
                pushed_at TEXT
            );

            CREATE INDEX IF NOT EXISTS ix_notifications_recipient
                ON notifications(to_email, seq);
            CREATE INDEX IF NOT EXISTS ix_notifications_outbox
                ON notifications(pushed_at, seq);
            """
        )

    @staticmethod
    def _to_dict(row: dict[str, Any]) -> dict[str, Any]:
        row["is_read"] = bool(row["is_read"])
        return row

    def append(self, to_email: str, message: str, action_route: str, now: str) -> dict[str, Any]:
        """Append a notification to the outbox."""
        notification_id = new_id("n")
        self._db.execute(
            "INSERT INTO notifications "
            "(notification_id, message, to_email, action_route, is_read, created_at) "
            "VALUES (?, ?, ?, ?, 0, ?)",
            (notification_id, message, to_email, action_route, now),
        )
        return {
            "notification_id": notification_id,
            "message": message,
            "to_email": to_email,
            "action_route": action_route,
            "is_read": False,
            "created_at": now,
            "pushed_at": None,
        }

    def get_notification(self, notification_id: str) -> dict[str, Any] | None:
        """Fetch a notification by ID."""
        row = self._db.fetch_one(
            self._SELECT_SQL + " WHERE notification_id = ?", (notification_id,)
        )
        return None if row is None else self._to_dict(row)

    def list_for_recipient(self, to_email: str) -> list[dict[str, Any]]:
        """A recipient's notifications, newest first."""
        rows = self._db.fetch_all(
            self._SELECT_SQL + " WHERE to_email = ? ORDER BY seq DESC", (to_email,)
        )
        return [self._to_dict(row) for row in rows]

    def mark_read(self, notification_id: str) -> int:
        """Set the read flag."""
        return self._db.execute(
            "UPDATE notifications SET is_read = 1 WHERE notification_id = ?",
            (notification_id,),
        )

    def unpushed(self, limit: int) -> list[dict[str, Any]]:
        """Oldest notifications not yet handed to the push transport."""
        rows = self._db.fetch_all(
            self._SELECT_SQL + " WHERE pushed_at IS NULL ORDER BY seq ASC LIMIT ?", (limit,)
        )
        return [self._to_dict(row) for row in rows]

    def mark_pushed(self, notification_id: str, now: str) -> int:
        """Stamp a notification as dispatched."""
        return self._db.execute(
            "UPDATE notifications SET pushed_at = ? "
            "WHERE notification_id = ? AND pushed_at IS NULL",
            (now, notification_id),
        )
