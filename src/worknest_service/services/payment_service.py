"""Coin purchases through the card payment gateway."""

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
    from worknest_service.clients.payment_gateway_client import PaymentGatewayClient
    from worknest_service.services.database import Database
    from worknest_service.services.ledger import Ledger
    from worknest_service.services.notification_store import NotificationStore
    from worknest_service.services.payment_store import PaymentStore


class PaymentService:
    """
    Buyers purchase coins with cash.

    The browser confirms the card payment with the gateway using the
    client secret from ``create_intent``; it then reports the gateway
    transaction id to ``record_purchase``. A transaction id is credited
    at most once, so retried reports return the original record.
    """

    def __init__(
        self,
        database: Database,
        payments: PaymentStore,
        ledger: Ledger,
        notifications: NotificationStore,
        gateway: PaymentGatewayClient,
    ) -> None:
        self._db = database
        self._payments = payments
        self._ledger = ledger
        self._notifications = notifications
        self._gateway = gateway
        self._logger = get_logger(__name__)

    async def create_intent(self, data: dict[str, Any]) -> dict[str, Any]:
        """
        Ask the gateway for a payment intent.

        ``price`` is in major currency units; the gateway expects cents.

        Raises:
            ServiceError: VALIDATION_ERROR, PAYMENT_GATEWAY_UNAVAILABLE.
        """
        price = data.get("price")
        if price is None:
            raise ServiceError(
                "VALIDATION_ERROR", "Missing required field: price", 400, {"field": "price"}
            )
        if not is_positive_number(price):
            raise ServiceError(
                "VALIDATION_ERROR",
                "price must be a finite positive number",
                400,
                {"field": "price"},
            )
        amount = round(float(price) * 100)
        return await self._gateway.create_payment_intent(amount)

    def record_purchase(self, buyer: dict[str, Any], data: dict[str, Any]) -> dict[str, Any]:
        """
        Credit purchased coins and append a ``made`` payment record.

        Returns:
            dict with keys: payment (the record), duplicate (bool)

        Raises:
            ServiceError: VALIDATION_ERROR, USER_NOT_FOUND, INVALID_STATE (the
                transaction was recorded for another account).
        """
        transaction_id = require_text(data, "transaction_id")
        coins = require_positive_int(data, "coins")
        price = data.get("price")
        if price is not None and not is_positive_number(price):
            raise ServiceError(
                "VALIDATION_ERROR",
                "price must be a finite positive number",
                400,
                {"field": "price"},
            )

        existing = self._payments.get_by_reference("made", transaction_id)
        if existing is not None:
            return self._replayed(buyer, existing)

        now = now_iso()
        payment = {
            "payment_id": new_id("p"),
            "type": "made",
            "payer_email": buyer["email"],
            "payee_email": buyer["email"],
            "coins": coins,
            "cash_amount": None if price is None else float(price),
            "reference": transaction_id,
            "created_at": now,
        }
        try:
            with self._db.transaction():
                self._payments.append(payment)
                self._ledger.credit(buyer["email"], coins, transaction_id)
                self._notifications.append(
                    buyer["email"],
                    f"{coins} coins were added to your balance.",
                    "/dashboard/payment-history",
                    now,
                )
        except DuplicatePaymentError:
            existing = self._payments.get_by_reference("made", transaction_id)
            return self._replayed(buyer, existing)

        self._logger.info(
            "Coins purchased",
            extra={"buyer_email": buyer["email"], "coins": coins, "reference": transaction_id},
        )
        return {"payment": payment, "duplicate": False}

    @staticmethod
    def _replayed(buyer: dict[str, Any], existing: dict[str, Any]) -> dict[str, Any]:
        if existing["payer_email"] != buyer["email"]:
            raise ServiceError(
                "INVALID_STATE",
                "This transaction was already recorded for another account",
                409,
                {},
            )
        return {"payment": existing, "duplicate": True}

    def list_for_email(self, email: str) -> list[dict[str, Any]]:
        """Payment history for an account."""
        return self._payments.list_for_email(email)
