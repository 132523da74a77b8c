"""Ledger primitives: atomic coin-balance mutations on user accounts."""

from __future__ import annotations

from typing import TYPE_CHECKING

from worknest_service.core.exceptions import ServiceError
from worknest_service.logging import get_logger
from worknest_service.services.validation import MAX_AMOUNT

if TYPE_CHECKING:
    from worknest_service.services.database import Database
    from worknest_service.services.user_store import UserStore


class Ledger:
    """
    Credits and debits user coin balances.

    Every debit is a single conditional update (``coins >= amount``), so the
    affordability check and the mutation cannot be separated by another
    writer. Each primitive joins the caller's transaction when one is open;
    a failed debit raises and the caller's whole transaction rolls back.
    """

    def __init__(self, database: Database, users: UserStore) -> None:
        self._db = database
        self._users = users
        self._logger = get_logger(__name__)

    @staticmethod
    def _check_amount(amount: int) -> None:
        valid = isinstance(amount, int) and not isinstance(amount, bool)
        if not valid or not 0 <= amount <= MAX_AMOUNT:
            raise ServiceError(
                "VALIDATION_ERROR",
                f"Amount must be an integer between 0 and {MAX_AMOUNT}",
                400,
                {},
            )

    def balance(self, email: str) -> int:
        """
        Current coin balance.

        Raises:
            ServiceError: USER_NOT_FOUND.
        """
        user = self._users.get_by_email(email)
        if user is None:
            raise ServiceError("USER_NOT_FOUND", "User not found", 404, {})
        return int(user["coins"])

    def credit(self, email: str, amount: int, reference: str) -> None:
        """
        Add coins to an account. A zero amount performs no write.

        A balance never grows past ``MAX_AMOUNT``.

        Raises:
            ServiceError: VALIDATION_ERROR, USER_NOT_FOUND.
        """
        self._check_amount(amount)
        if amount == 0:
            return

        with self._db.transaction():
            if self._users.add_coins_within_limit(email, amount, MAX_AMOUNT) == 0:
                user = self._users.get_by_email(email)
                if user is None:
                    raise ServiceError("USER_NOT_FOUND", "User not found", 404, {})
                raise ServiceError(
                    "VALIDATION_ERROR",
                    f"Balance cannot exceed {MAX_AMOUNT} coins",
                    400,
                    {"balance": int(user["coins"]), "amount": amount},
                )

        self._logger.info(
            "Coins credited",
            extra={"email": email, "amount": amount, "reference": reference},
        )

    def debit(self, email: str, amount: int, reference: str) -> None:
        """
        Remove coins from an account only if the balance covers them.

        A zero amount performs no write.

        Raises:
            ServiceError: VALIDATION_ERROR, USER_NOT_FOUND, INSUFFICIENT_FUNDS.
        """
        self._check_amount(amount)
        if amount == 0:
            return

        with self._db.transaction():
            if self._users.subtract_coins_if_available(email, amount) == 0:
                # Distinguish between not found and insufficient funds
                user = self._users.get_by_email(email)
                if user is None:
                    raise ServiceError("USER_NOT_FOUND", "User not found", 404, {})
                raise ServiceError(
                    "INSUFFICIENT_FUNDS",
                    "Insufficient coins for this operation",
                    400,
                    {"balance": int(user["coins"]), "required": amount},
                )

        self._logger.info(
            "Coins debited",
            extra={"email": email, "amount": amount, "reference": reference},
        )
