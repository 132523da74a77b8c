"""Append-only payment record storage."""

from __future__ import annotations

import sqlite3
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from worknest_service.services.database import Database

PAYMENT_TYPES = frozenset({"made", "give", "get"})


class DuplicatePaymentError(Exception):
    """Raised when a payment with the same (type, reference) already exists."""


class PaymentStore:
    """
    Append-only ledger of coin movements that cross an account boundary.

    ``made``: a buyer bought coins with cash.
    ``give``: a buyer's escrow paid a worker for an approved submission.
    ``get``: a worker cashed out coins through a withdrawal.

    Rows are never updated or deleted. ``(type, reference)`` is unique, so
    a submission or withdrawal can be paid at most once and a gateway
    transaction can be recorded at most once.
    """

    _COLUMNS: tuple[str, ...] = (
        "payment_id",
        "type",
        "payer_email",
        "payee_email",
        "coins",
        "cash_amount",
        "reference",
        "created_at",
    )
    _COLUMNS_SQL = ", ".join(_COLUMNS)
    _SELECT_SQL = "SELECT " + _COLUMNS_SQL + " FROM payments"  # nosec B608

    def __init__(self, database: Database) -> None:
        self._db = database
        self._db.executescript(
            """
            CREATE TABLE IF NOT EXISTS payments (
                payment_id TEXT PRIMARY KEY,
                type TEXT NOT NULL CHECK (type IN ('made', 'give', 'get')),
                payer_email TEXT NOT NULL,
                payee_email TEXT NOT NULL,
                coins INTEGER NOT NULL CHECK (coins > 0),
                cash_amount REAL,
                reference TEXT NOT NULL,
                created_at TEXT NOT NULL
            );

            CREATE UNIQUE INDEX IF NOT EXISTS ux_payments_type_reference
                ON payments(type, reference);
            CREATE INDEX IF NOT EXISTS ix_payments_payer ON payments(payer_email, created_at);
            CREATE INDEX IF NOT EXISTS ix_payments_payee ON payments(payee_email, created_at);
            """
        )

    def append(self, payment: dict[str, Any]) -> None:
        """Append a payment record."""
        if payment["type"] not in PAYMENT_TYPES:
            msg = f"Unknown payment type: {payment['type']}"
            raise ValueError(msg)
        try:
            self._db.execute(
                "INSERT INTO payments (" + self._COLUMNS_SQL + ") VALUES ("  # nosec B608
                + ", ".join("?" for _ in self._COLUMNS)
                + ")",
                tuple(payment[column] for column in self._COLUMNS),
            )
        except sqlite3.IntegrityError as exc:
            if "unique" in str(exc).lower():
                raise DuplicatePaymentError(
                    f"Payment {payment['type']}:{payment['reference']} already recorded"
                ) from exc
            raise

    def get_by_reference(self, payment_type: str, reference: str) -> dict[str, Any] | None:
        """Look up the record for a given (type, reference)."""
        return self._db.fetch_one(
            self._SELECT_SQL + " WHERE type = ? AND reference = ?",
            (payment_type, reference),
        )

    def list_for_email(self, email: str) -> list[dict[str, Any]]:
        """Payments where the email is payer or payee, newest first."""
        return self._db.fetch_all(
            self._SELECT_SQL + " WHERE payer_email = ? OR payee_email = ? ORDER BY created_at DESC",
            (email, email),
        )

    def totals_by_type(self) -> dict[str, dict[str, float]]:
        """Coin and cash totals per payment type."""
        rows = self._db.fetch_all(
            "SELECT type, COALESCE(SUM(coins), 0) AS coins, "
            "COALESCE(SUM(cash_amount), 0) AS cash FROM payments GROUP BY type"
        )
        totals: dict[str, dict[str, float]] = {
            payment_type: {"coins": 0, "cash": 0.0} for payment_type in sorted(PAYMENT_TYPES)
        }
        for row in rows:
            totals[str(row["type"])] = {"coins": int(row["coins"]), "cash": float(row["cash"])}
        return totals
