"""User accounts: sign-in, roles and platform statistics."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from worknest_service.core.exceptions import ServiceError
from worknest_service.logging import get_logger
from worknest_service.services.database import new_id, now_iso
from worknest_service.services.user_store import DuplicateUserError
from worknest_service.services.validation import optional_text, require_text

if TYPE_CHECKING:
    from worknest_service.services.database import Database
    from worknest_service.services.notification_store import NotificationStore
    from worknest_service.services.payment_store import PaymentStore
    from worknest_service.services.submission_store import SubmissionStore
    from worknest_service.services.task_store import TaskStore
    from worknest_service.services.user_store import UserStore

ROLES = frozenset({"admin", "buyer", "worker"})
SELF_SERVICE_ROLES = frozenset({"buyer", "worker"})


class UserService:
    """Account management on top of the user store."""

    def __init__(
        self,
        database: Database,
        users: UserStore,
        tasks: TaskStore,
        submissions: SubmissionStore,
        payments: PaymentStore,
        notifications: NotificationStore,
        starting_coins: dict[str, int],
        best_workers_limit: int,
    ) -> None:
        self._db = database
        self._users = users
        self._tasks = tasks
        self._submissions = submissions
        self._payments = payments
        self._notifications = notifications
        self._starting_coins = starting_coins
        self._best_workers_limit = best_workers_limit
        self._logger = get_logger(__name__)

    def _load_user(self, email: str) -> dict[str, Any]:
        user = self._users.get_by_email(email)
        if user is None:
            raise ServiceError("USER_NOT_FOUND", "User not found", 404, {})
        return user

    def sign_in(self, email: str, data: dict[str, Any]) -> dict[str, Any]:
        """
        Create the account on first sign-in, or refresh its login time.

        New accounts start with the coin balance configured for their
        role. Admin cannot be self-assigned.

        Returns:
            dict with keys: user, created (bool)
        """
        now = now_iso()
        existing = self._users.get_by_email(email)
        if existing is not None:
            self._users.touch_login(email, now)
            existing["last_login_at"] = now
            return {"user": existing, "created": False}

        name = require_text(data, "name")
        role = data.get("role", "worker")
        if not isinstance(role, str) or role not in SELF_SERVICE_ROLES:
            raise ServiceError(
                "VALIDATION_ERROR",
                f"role must be one of {sorted(SELF_SERVICE_ROLES)}",
                400,
                {"field": "role"},
            )

        coins = self._starting_coins[role]
        user = {
            "user_id": new_id("u"),
            "email": email,
            "name": name,
            "photo_url": optional_text(data, "photo_url"),
            "role": role,
            "coins": coins,
            "created_at": now,
            "last_login_at": now,
        }
        try:
            with self._db.transaction():
                self._users.insert(user)
                self._notifications.append(
                    email,
                    f"Welcome to WorkNest, {name}! You start with {coins} coins.",
                    "/dashboard",
                    now,
                )
        except DuplicateUserError:
            # Concurrent first sign-in of the same email.
            return {"user": self._load_user(email), "created": False}

        self._logger.info(
            "User registered", extra={"email": email, "role": role, "coins": coins}
        )
        return {"user": user, "created": True}

    def find_user(self, email: str) -> dict[str, Any] | None:
        """Fetch an account, or None if the email never signed in."""
        return self._users.get_by_email(email)

    def get_user(self, email: str) -> dict[str, Any]:
        """Fetch an account."""
        return self._load_user(email)

    def get_role(self, email: str) -> str:
        """Role of an account."""
        return str(self._load_user(email)["role"])

    def list_users(self, role: str | None) -> list[dict[str, Any]]:
        """All accounts, optionally filtered by role."""
        if role is not None and role not in ROLES:
            raise ServiceError(
                "VALIDATION_ERROR", f"role must be one of {sorted(ROLES)}", 400, {"field": "role"}
            )
        return self._users.list_users(role)

    def best_workers(self) -> list[dict[str, Any]]:
        """Public leaderboard of the richest workers."""
        return [
            {"name": user["name"], "photo_url": user["photo_url"], "coins": user["coins"]}
            for user in self._users.top_workers(self._best_workers_limit)
        ]

    def set_role(self, email: str, data: dict[str, Any]) -> dict[str, Any]:
        """Change an account's role."""
        role = require_text(data, "role")
        if role not in ROLES:
            raise ServiceError(
                "VALIDATION_ERROR", f"role must be one of {sorted(ROLES)}", 400, {"field": "role"}
            )
        with self._db.transaction():
            user = self._load_user(email)
            self._users.set_role(email, role)
            user["role"] = role
        self._logger.info("User role changed", extra={"email": email, "role": role})
        return user

    def delete_user(self, user_id: str) -> dict[str, Any]:
        """Remove an account. Its coins leave circulation with it."""
        with self._db.transaction():
            user = self._users.get_by_id(user_id)
            if user is None:
                raise ServiceError("USER_NOT_FOUND", "User not found", 404, {})
            self._users.delete_by_id(user_id)
        self._logger.info(
            "User deleted",
            extra={"user_id": user_id, "email": user["email"], "coins": user["coins"]},
        )
        return user

    def get_stats(self) -> dict[str, Any]:
        """Platform totals for the admin dashboard."""
        totals = self._payments.totals_by_type()
        return {
            "users_by_role": self._users.count_by_role(),
            "total_coins": self._users.total_coins(),
            "total_tasks": self._tasks.count_tasks(),
            "escrow": {
                "unconsumed": self._tasks.unconsumed_escrow(),
                "pending_submissions": self._submissions.pending_escrow(),
            },
            "payments": totals,
        }
