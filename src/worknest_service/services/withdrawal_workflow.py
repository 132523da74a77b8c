"""Worker payout requests and their admin approval."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from worknest_service.core.exceptions import ServiceError
from worknest_service.logging import get_logger
from worknest_service.services.database import new_id, now_iso
from worknest_service.services.payment_store import DuplicatePaymentError
from worknest_service.services.validation import (
    is_positive_number,
    require_positive_int,
    require_text,
)

if TYPE_CHECKING:
    from worknest_service.services.database import Database
    from worknest_service.services.ledger import Ledger
    from worknest_service.services.notification_store import NotificationStore
    from worknest_service.services.payment_store import PaymentStore
    from worknest_service.services.user_store import UserStore
    from worknest_service.services.withdrawal_store import WithdrawalStore

_VALID_STATUSES = frozenset({"pending", "approved"})


class WithdrawalWorkflow:
    """
    Manages withdrawal requests: pending -> approved.

    The worker's balance is not touched when the request is filed. On
    approval the status flip, the conditional debit and the ``get``
    payment record happen in one transaction; if the balance no longer
    covers the request, nothing changes.
    """

    def __init__(
        self,
        database: Database,
        withdrawals: WithdrawalStore,
        users: UserStore,
        payments: PaymentStore,
        ledger: Ledger,
        notifications: NotificationStore,
        min_coins: int,
    ) -> None:
        self._db = database
        self._withdrawals = withdrawals
        self._users = users
        self._payments = payments
        self._ledger = ledger
        self._notifications = notifications
        self._min_coins = min_coins
        self._logger = get_logger(__name__)

    def request(self, worker: dict[str, Any], data: dict[str, Any]) -> dict[str, Any]:
        """
        File a pending withdrawal request.

        Raises:
            ServiceError: VALIDATION_ERROR.
        """
        coins = require_positive_int(data, "withdrawal_coin")
        cash_amount = data.get("withdrawal_amount")
        if cash_amount is None:
            raise ServiceError(
                "VALIDATION_ERROR",
                "Missing required field: withdrawal_amount",
                400,
                {"field": "withdrawal_amount"},
            )
        if not is_positive_number(cash_amount):
            raise ServiceError(
                "VALIDATION_ERROR",
                "withdrawal_amount must be a finite positive number",
                400,
                {"field": "withdrawal_amount"},
            )
        payment_system = require_text(data, "payment_system")
        account_number = require_text(data, "account_number")

        if coins < self._min_coins:
            raise ServiceError(
                "VALIDATION_ERROR",
                f"At least {self._min_coins} coins are required to withdraw",
                400,
                {"min_coins": self._min_coins},
            )

        now = now_iso()
        withdrawal = {
            "withdrawal_id": new_id("w"),
            "worker_email": worker["email"],
            "worker_name": worker["name"],
            "withdrawal_coin": coins,
            "withdrawal_amount": float(cash_amount),
            "payment_system": payment_system,
            "account_number": account_number,
            "status": "pending",
            "requested_at": now,
            "approved_at": None,
        }

        with self._db.transaction():
            self._withdrawals.insert_withdrawal(withdrawal)
            for admin in self._users.list_users("admin"):
                self._notifications.append(
                    admin["email"],
                    f"{worker['name']} requested a withdrawal of {coins} coins.",
                    "/dashboard/admin-home",
                    now,
                )

        self._logger.info(
            "Withdrawal requested",
            extra={
                "withdrawal_id": withdrawal["withdrawal_id"],
                "worker_email": worker["email"],
                "coins": coins,
            },
        )
        return withdrawal

    def approve(self, withdrawal_id: str) -> dict[str, Any]:
        """
        Approve a pending request and debit the worker.

        Raises:
            ServiceError: WITHDRAWAL_NOT_FOUND, INVALID_STATE,
                INSUFFICIENT_FUNDS, USER_NOT_FOUND.
        """
        now = now_iso()
        with self._db.transaction():
            withdrawal = self._withdrawals.get_withdrawal(withdrawal_id)
            if withdrawal is None:
                raise ServiceError("WITHDRAWAL_NOT_FOUND", "Withdrawal not found", 404, {})

            if self._withdrawals.mark_approved(withdrawal_id, now) != 1:
                raise ServiceError(
                    "INVALID_STATE",
                    "Withdrawal has already been approved",
                    409,
                    {"status": "approved"},
                )

            coins = int(withdrawal["withdrawal_coin"])
            self._ledger.debit(withdrawal["worker_email"], coins, withdrawal_id)
            try:
                self._payments.append(
                    {
                        "payment_id": new_id("p"),
                        "type": "get",
                        "payer_email": withdrawal["worker_email"],
                        "payee_email": withdrawal["worker_email"],
                        "coins": coins,
                        "cash_amount": withdrawal["withdrawal_amount"],
                        "reference": withdrawal_id,
                        "created_at": now,
                    }
                )
            except DuplicatePaymentError as exc:
                raise ServiceError(
                    "INVALID_STATE",
                    "Withdrawal has already been paid out",
                    409,
                    {},
                ) from exc

            self._notifications.append(
                withdrawal["worker_email"],
                f"Your withdrawal of {coins} coins via {withdrawal['payment_system']} "
                "was approved.",
                "/dashboard/withdrawals",
                now,
            )
            withdrawal.update({"status": "approved", "approved_at": now})

        self._logger.info(
            "Withdrawal approved",
            extra={
                "withdrawal_id": withdrawal_id,
                "worker_email": withdrawal["worker_email"],
                "coins": coins,
            },
        )
        return withdrawal

    def update_status(self, withdrawal_id: str, data: dict[str, Any]) -> dict[str, Any]:
        """Apply a status update; only ``approved`` is a valid target."""
        status = require_text(data, "status")
        if status != "approved":
            raise ServiceError(
                "VALIDATION_ERROR",
                "status can only be set to 'approved'",
                400,
                {"field": "status"},
            )
        return self.approve(withdrawal_id)

    def list_all(self, status: str | None) -> list[dict[str, Any]]:
        """All requests, optionally filtered by status."""
        if status is not None and status not in _VALID_STATUSES:
            raise ServiceError(
                "VALIDATION_ERROR",
                f"status must be one of {sorted(_VALID_STATUSES)}",
                400,
                {},
            )
        return self._withdrawals.list_withdrawals(status)

    def list_for_worker(self, worker_email: str) -> list[dict[str, Any]]:
        """A worker's own requests."""
        return self._withdrawals.list_for_worker(worker_email)
