"""SQLite-backed user account storage."""

from __future__ import annotations

import sqlite3
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from worknest_service.services.database import Database


class DuplicateUserError(Exception):
    """Raised when inserting a user whose email is already registered."""


class UserStore:
    """Storage for user accounts and their coin balances."""

    _COLUMNS: tuple[str, ...] = (
        "user_id",
        "email",
        "name",
        "photo_url",
        "role",
        "coins",
        "created_at",
        "last_login_at",
    )
    _SELECT_SQL = (
        "SELECT user_id, email, name, photo_url, role, coins, created_at, last_login_at "
        "FROM users"
    )

    def __init__(self, database: Database) -> None:
        self._db = database
        self._db.executescript(
            """
            CREATE TABLE IF NOT EXISTS users (
                user_id TEXT PRIMARY KEY,
                email TEXT NOT NULL UNIQUE,
                name TEXT NOT NULL,
                photo_url TEXT,
                role TEXT NOT NULL CHECK (role IN ('admin', 'buyer', 'worker')),
                coins INTEGER NOT NULL DEFAULT 0 CHECK (coins >= 0),
                created_at TEXT NOT NULL,
                last_login_at TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS ix_users_role_coins ON users(role, coins);
            """
        )

    def insert(self, user: dict[str, Any]) -> None:
        """Insert a new user row."""
        values = tuple(user[column] for column in self._COLUMNS)
        try:
            self._db.execute(
                "INSERT INTO users (user_id, email, name, photo_url, role, coins, created_at, "
                "last_login_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                values,
            )
        except sqlite3.IntegrityError as exc:
            if "unique" in str(exc).lower():
                raise DuplicateUserError(f"User {user['email']} already exists") from exc
            raise

    def get_by_email(self, email: str) -> dict[str, Any] | None:
        """Fetch a user by email."""
        return self._db.fetch_one(self._SELECT_SQL + " WHERE email = ?", (email,))

    def get_by_id(self, user_id: str) -> dict[str, Any] | None:
        """Fetch a user by ID."""
        return self._db.fetch_one(self._SELECT_SQL + " WHERE user_id = ?", (user_id,))

    def list_users(self, role: str | None) -> list[dict[str, Any]]:
        """List users, optionally filtered by role, newest first."""
        if role is None:
            return self._db.fetch_all(self._SELECT_SQL + " ORDER BY created_at DESC")
        return self._db.fetch_all(
            self._SELECT_SQL + " WHERE role = ? ORDER BY created_at DESC", (role,)
        )

    def top_workers(self, limit: int) -> list[dict[str, Any]]:
        """Workers with the highest coin balances."""
        return self._db.fetch_all(
            self._SELECT_SQL + " WHERE role = 'worker' ORDER BY coins DESC, created_at LIMIT ?",
            (limit,),
        )

    def touch_login(self, email: str, now: str) -> int:
        """Update the last-login timestamp."""
        return self._db.execute("UPDATE users SET last_login_at = ? WHERE email = ?", (now, email))

    def set_role(self, email: str, role: str) -> int:
        """Change a user's role."""
        return self._db.execute("UPDATE users SET role = ? WHERE email = ?", (role, email))

    def delete_by_id(self, user_id: str) -> int:
        """Hard-delete a user."""
        return self._db.execute("DELETE FROM users WHERE user_id = ?", (user_id,))

    def add_coins_within_limit(self, email: str, amount: int, limit: int) -> int:
        """
        Increase a balance unless it would pass ``limit``.

        Returns affected rows (0 if the user is unknown or at the limit).
        """
        return self._db.execute(
            "UPDATE users SET coins = coins + ? WHERE email = ? AND coins <= ? - ?",
            (amount, email, limit, amount),
        )

    def subtract_coins_if_available(self, email: str, amount: int) -> int:
        """Decrease a balance only if it covers the amount, in one statement."""
        return self._db.execute(
            "UPDATE users SET coins = coins - ? WHERE email = ? AND coins >= ?",
            (amount, email, amount),
        )

    def count_by_role(self) -> dict[str, int]:
        """Number of users per role."""
        rows = self._db.fetch_all("SELECT role, COUNT(*) AS n FROM users GROUP BY role")
        counts = {"admin": 0, "buyer": 0, "worker": 0}
        for row in rows:
            counts[str(row["role"])] = int(row["n"])
        return counts

    def total_coins(self) -> int:
        """Sum of all balances."""
        return int(self._db.fetch_scalar("SELECT COALESCE(SUM(coins), 0) FROM users"))
