"""Task lifecycle management: creation, edits and deletion with coin escrow."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from worknest_service.core.exceptions import ServiceError
from worknest_service.logging import get_logger
from worknest_service.services.database import new_id, now_iso
from worknest_service.services.validation import (
    optional_non_negative_int,
    optional_positive_int,
    optional_text,
    require_positive_int,
    require_text,
    require_total_within_limit,
)

if TYPE_CHECKING:
    from worknest_service.services.database import Database
    from worknest_service.services.ledger import Ledger
    from worknest_service.services.notification_store import NotificationStore
    from worknest_service.services.task_store import TaskStore
    from worknest_service.services.user_store import UserStore

MAX_TITLE_LENGTH = 200
MAX_DETAIL_LENGTH = 10000

_EDITABLE_FIELDS = (
    "task_title",
    "task_detail",
    "submission_info",
    "required_workers",
    "remaining_workers",
    "payable_amount",
    "total_payable_amount",
)


class TaskManager:
    """
    Manages the task lifecycle and the buyer's escrow behind it.

    A buyer pays ``payable_amount * required_workers`` up front. Edits
    settle the difference against the buyer's current balance, and
    deleting a task refunds the capacity no submission has taken yet.
    Every operation runs in one storage transaction together with its
    ledger mutation and notification.
    """

    def __init__(
        self,
        database: Database,
        tasks: TaskStore,
        users: UserStore,
        ledger: Ledger,
        notifications: NotificationStore,
    ) -> None:
        self._db = database
        self._tasks = tasks
        self._users = users
        self._ledger = ledger
        self._notifications = notifications
        self._logger = get_logger(__name__)

    def _load_task(self, task_id: str) -> dict[str, Any]:
        task = self._tasks.get_task(task_id)
        if task is None:
            raise ServiceError("TASK_NOT_FOUND", "Task not found", 404, {})
        return task

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_task(self, task_id: str) -> dict[str, Any]:
        """Fetch one task."""
        return self._load_task(task_id)

    def list_tasks(
        self,
        buyer_email: str | None,
        available_only: bool,
        limit: int | None,
        offset: int | None,
    ) -> list[dict[str, Any]]:
        """List tasks, newest first."""
        return self._tasks.list_tasks(buyer_email, available_only, limit, offset)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create_task(self, buyer: dict[str, Any], data: dict[str, Any]) -> dict[str, Any]:
        """
        Create a task and escrow its full cost from the buyer.

        Raises:
            ServiceError: VALIDATION_ERROR, INSUFFICIENT_FUNDS, USER_NOT_FOUND.
        """
        title = require_text(data, "task_title", MAX_TITLE_LENGTH)
        detail = require_text(data, "task_detail", MAX_DETAIL_LENGTH)
        payable_amount = require_positive_int(data, "payable_amount")
        required_workers = require_positive_int(data, "required_workers")

        total = require_total_within_limit(
            payable_amount * required_workers, "total_payable_amount"
        )
        now = now_iso()
        task = {
            "task_id": new_id("t"),
            "task_title": title,
            "task_detail": detail,
            "submission_info": optional_text(data, "submission_info"),
            "task_image_url": optional_text(data, "task_image_url"),
            "completion_date": optional_text(data, "completion_date"),
            "buyer_email": buyer["email"],
            "buyer_name": buyer["name"],
            "payable_amount": payable_amount,
            "required_workers": required_workers,
            "remaining_workers": required_workers,
            "total_payable_amount": total,
            "created_at": now,
            "updated_at": now,
        }

        with self._db.transaction():
            self._ledger.debit(buyer["email"], total, task["task_id"])
            self._tasks.insert_task(task)
            self._notifications.append(
                buyer["email"],
                f"Your task '{title}' is live. {total} coins are held for "
                f"{required_workers} worker(s).",
                "/dashboard/my-tasks",
                now,
            )

        self._logger.info(
            "Task created",
            extra={"task_id": task["task_id"], "buyer_email": buyer["email"], "total": total},
        )
        return task

    def update_task(
        self,
        caller: dict[str, Any],
        task_id: str,
        data: dict[str, Any],
    ) -> dict[str, Any]:
        """
        Edit a task and settle the escrow difference with its buyer.

        Capacity is set either as a ``remaining_workers`` target (open
        slots from now on, on top of those already taken) or as a new
        ``required_workers`` total. Taken slots are never given back, and
        the per-worker price is frozen once any slot is taken. The
        resulting coin delta is debited (or refunded) together with the
        task update; the read and the write share one write-locked
        transaction.

        Raises:
            ServiceError: VALIDATION_ERROR, TASK_NOT_FOUND, FORBIDDEN,
                INVALID_STATE, INSUFFICIENT_FUNDS.
        """
        if not any(data.get(field_name) is not None for field_name in _EDITABLE_FIELDS):
            raise ServiceError(
                "VALIDATION_ERROR",
                "No editable fields supplied",
                400,
                {"fields": list(_EDITABLE_FIELDS)},
            )

        new_title = (
            require_text(data, "task_title", MAX_TITLE_LENGTH)
            if data.get("task_title") is not None
            else None
        )
        new_detail = (
            require_text(data, "task_detail", MAX_DETAIL_LENGTH)
            if data.get("task_detail") is not None
            else None
        )
        new_submission_info = optional_text(data, "submission_info")
        requested_required = optional_positive_int(data, "required_workers")
        requested_remaining = optional_non_negative_int(data, "remaining_workers")
        requested_payable = optional_positive_int(data, "payable_amount")
        requested_total = optional_positive_int(data, "total_payable_amount")

        now = now_iso()
        with self._db.transaction():
            task = self._load_task(task_id)
            if task["buyer_email"] != caller["email"]:
                raise ServiceError("FORBIDDEN", "Only the task's buyer can edit it", 403, {})

            required = int(task["required_workers"])
            remaining = int(task["remaining_workers"])
            payable = int(task["payable_amount"])
            consumed = required - remaining

            new_required = requested_required if requested_required is not None else required
            if requested_remaining is not None:
                target_required = consumed + requested_remaining
                if requested_required is not None and requested_required != target_required:
                    raise ServiceError(
                        "VALIDATION_ERROR",
                        "required_workers must equal taken slots plus remaining_workers",
                        400,
                        {"taken_slots": consumed, "expected": target_required},
                    )
                if target_required < 1:
                    raise ServiceError(
                        "VALIDATION_ERROR",
                        "A task must keep at least one worker slot",
                        400,
                        {"field": "remaining_workers"},
                    )
                new_required = target_required
            new_payable = requested_payable if requested_payable is not None else payable

            if new_payable != payable and consumed > 0:
                raise ServiceError(
                    "INVALID_STATE",
                    "payable_amount cannot change after workers have submitted",
                    409,
                    {"taken_slots": consumed},
                )
            if new_required < consumed:
                raise ServiceError(
                    "VALIDATION_ERROR",
                    f"required_workers cannot be lower than the {consumed} slot(s) already taken",
                    400,
                    {"taken_slots": consumed},
                )

            new_remaining = new_required - consumed
            new_total = require_total_within_limit(
                new_payable * new_required, "total_payable_amount"
            )
            if requested_total is not None and requested_total != new_total:
                raise ServiceError(
                    "VALIDATION_ERROR",
                    "total_payable_amount must equal payable_amount * required_workers",
                    400,
                    {"expected": new_total},
                )

            delta = new_total - int(task["total_payable_amount"])
            if delta > 0:
                self._ledger.debit(task["buyer_email"], delta, task_id)
            elif delta < 0:
                self._ledger.credit(task["buyer_email"], -delta, task_id)

            updates: dict[str, Any] = {
                "required_workers": new_required,
                "remaining_workers": new_remaining,
                "payable_amount": new_payable,
                "total_payable_amount": new_total,
                "updated_at": now,
            }
            if new_title is not None:
                updates["task_title"] = new_title
            if new_detail is not None:
                updates["task_detail"] = new_detail
            if new_submission_info is not None:
                updates["submission_info"] = new_submission_info

            self._tasks.update_task(task_id, updates)

            if delta != 0:
                settled = "charged" if delta > 0 else "refunded"
                self._notifications.append(
                    task["buyer_email"],
                    f"Task '{updates.get('task_title', task['task_title'])}' updated: "
                    f"{abs(delta)} coins {settled}.",
                    "/dashboard/my-tasks",
                    now,
                )

            task.update(updates)

        self._logger.info(
            "Task updated",
            extra={"task_id": task_id, "coin_delta": delta, "required_workers": new_required},
        )
        return task

    def delete_task(self, caller: dict[str, Any], task_id: str) -> dict[str, Any]:
        """
        Delete a task and refund its unconsumed capacity to the buyer.

        Slots already taken by submissions stay in escrow for those
        submissions; only ``payable_amount * remaining_workers`` returns.

        Raises:
            ServiceError: TASK_NOT_FOUND, FORBIDDEN, USER_NOT_FOUND.
        """
        now = now_iso()
        with self._db.transaction():
            task = self._load_task(task_id)
            if task["buyer_email"] != caller["email"] and caller["role"] != "admin":
                raise ServiceError("FORBIDDEN", "Only the task's buyer can delete it", 403, {})

            if self._users.get_by_email(task["buyer_email"]) is None:
                raise ServiceError("USER_NOT_FOUND", "Task owner no longer exists", 404, {})

            remaining = int(task["remaining_workers"])
            refund = int(task["payable_amount"]) * remaining

            self._tasks.delete_task(task_id)
            self._ledger.credit(task["buyer_email"], refund, task_id)
            self._notifications.append(
                task["buyer_email"],
                f"Task '{task['task_title']}' deleted. {refund} coins refunded.",
                "/dashboard/my-tasks",
                now,
            )

        self._logger.info(
            "Task deleted",
            extra={"task_id": task_id, "buyer_email": task["buyer_email"], "refund": refund},
        )
        return {"task_id": task_id, "refund": refund}
