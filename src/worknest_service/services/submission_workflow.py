"""Submission state machine: pending -> approved | rejected."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from worknest_service.core.exceptions import ServiceError
from worknest_service.logging import get_logger
from worknest_service.services.database import new_id, now_iso
from worknest_service.services.payment_store import DuplicatePaymentError
from worknest_service.services.validation import require_text

if TYPE_CHECKING:
    from worknest_service.services.database import Database
    from worknest_service.services.ledger import Ledger
    from worknest_service.services.notification_store import NotificationStore
    from worknest_service.services.payment_store import PaymentStore
    from worknest_service.services.submission_store import SubmissionStore
    from worknest_service.services.task_store import TaskStore

MAX_DETAILS_LENGTH = 10000

_VALID_STATUSES = frozenset({"pending", "approved", "rejected"})


class SubmissionWorkflow:
    """
    Worker claims against tasks and the buyer's decision on them.

    Submitting takes one slot of the task's capacity. Approval pays the
    worker the per-worker price out of the buyer's escrow; rejection gives
    the slot back. Both decisions are a conditional ``pending -> X``
    transition, so a submission is decided, and paid, at most once.
    """

    def __init__(
        self,
        database: Database,
        tasks: TaskStore,
        submissions: SubmissionStore,
        payments: PaymentStore,
        ledger: Ledger,
        notifications: NotificationStore,
        allow_multiple_per_worker: bool,
    ) -> None:
        self._db = database
        self._tasks = tasks
        self._submissions = submissions
        self._payments = payments
        self._ledger = ledger
        self._notifications = notifications
        self._allow_multiple_per_worker = allow_multiple_per_worker
        self._logger = get_logger(__name__)

    @staticmethod
    def _check_status_filter(status: str | None) -> None:
        if status is not None and status not in _VALID_STATUSES:
            raise ServiceError(
                "VALIDATION_ERROR",
                f"status must be one of {sorted(_VALID_STATUSES)}",
                400,
                {},
            )

    def _load_for_decision(self, submission_id: str, caller: dict[str, Any]) -> dict[str, Any]:
        submission = self._submissions.get_submission(submission_id)
        if submission is None:
            raise ServiceError("SUBMISSION_NOT_FOUND", "Submission not found", 404, {})
        if submission["buyer_email"] != caller["email"]:
            raise ServiceError(
                "FORBIDDEN",
                "Only the task's buyer can review this submission",
                403,
                {},
            )
        return submission

    def _transition(self, submission: dict[str, Any], to_status: str, now: str) -> None:
        affected = self._submissions.transition(
            submission["submission_id"], "pending", to_status, now
        )
        if affected != 1:
            current = self._submissions.get_submission(submission["submission_id"])
            status = current["status"] if current is not None else "missing"
            raise ServiceError(
                "INVALID_STATE",
                f"Submission is already {status}",
                409,
                {"status": status},
            )

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def submit(self, worker: dict[str, Any], data: dict[str, Any]) -> dict[str, Any]:
        """
        Create a pending submission and take one slot from the task.

        Raises:
            ServiceError: VALIDATION_ERROR, TASK_NOT_FOUND, FORBIDDEN,
                DUPLICATE_SUBMISSION, INVALID_STATE.
        """
        task_id = require_text(data, "task_id")
        details = require_text(data, "submission_details", MAX_DETAILS_LENGTH)
        now = now_iso()

        with self._db.transaction():
            task = self._tasks.get_task(task_id)
            if task is None:
                raise ServiceError("TASK_NOT_FOUND", "Task not found", 404, {})
            if task["buyer_email"] == worker["email"]:
                raise ServiceError("FORBIDDEN", "Cannot submit to your own task", 403, {})

            if not self._allow_multiple_per_worker and self._submissions.has_active(
                task_id, worker["email"]
            ):
                raise ServiceError(
                    "DUPLICATE_SUBMISSION",
                    "You already have an active submission for this task",
                    409,
                    {},
                )

            if self._tasks.take_slot(task_id, now) != 1:
                raise ServiceError(
                    "INVALID_STATE",
                    "Task has no remaining worker slots",
                    409,
                    {"remaining_workers": 0},
                )

            submission = {
                "submission_id": new_id("s"),
                "task_id": task_id,
                "task_title": task["task_title"],
                "payable_amount": task["payable_amount"],
                "worker_email": worker["email"],
                "worker_name": worker["name"],
                "buyer_email": task["buyer_email"],
                "buyer_name": task["buyer_name"],
                "submission_details": details,
                "status": "pending",
                "submitted_at": now,
                "decided_at": None,
            }
            self._submissions.insert_submission(submission)
            self._notifications.append(
                task["buyer_email"],
                f"{worker['name']} submitted work for '{task['task_title']}'.",
                "/dashboard/buyer-home",
                now,
            )

        self._logger.info(
            "Submission created",
            extra={
                "submission_id": submission["submission_id"],
                "task_id": task_id,
                "worker_email": worker["email"],
            },
        )
        return submission

    def approve(self, caller: dict[str, Any], submission_id: str) -> dict[str, Any]:
        """
        Approve a pending submission and pay the worker.

        Raises:
            ServiceError: SUBMISSION_NOT_FOUND, FORBIDDEN, INVALID_STATE, USER_NOT_FOUND.
        """
        now = now_iso()
        with self._db.transaction():
            submission = self._load_for_decision(submission_id, caller)
            self._transition(submission, "approved", now)

            amount = int(submission["payable_amount"])
            self._ledger.credit(submission["worker_email"], amount, submission_id)
            try:
                self._payments.append(
                    {
                        "payment_id": new_id("p"),
                        "type": "give",
                        "payer_email": submission["buyer_email"],
                        "payee_email": submission["worker_email"],
                        "coins": amount,
                        "cash_amount": None,
                        "reference": submission_id,
                        "created_at": now,
                    }
                )
            except DuplicatePaymentError as exc:
                raise ServiceError(
                    "INVALID_STATE",
                    "Submission has already been paid",
                    409,
                    {},
                ) from exc

            self._notifications.append(
                submission["worker_email"],
                f"You earned {amount} coins from {submission['buyer_name']} "
                f"for completing '{submission['task_title']}'.",
                "/dashboard/worker-home",
                now,
            )
            submission.update({"status": "approved", "decided_at": now})

        self._logger.info(
            "Submission approved",
            extra={
                "submission_id": submission_id,
                "worker_email": submission["worker_email"],
                "amount": amount,
            },
        )
        return submission

    def reject(self, caller: dict[str, Any], submission_id: str) -> dict[str, Any]:
        """
        Reject a pending submission and return its slot to the task.

        If the task has been deleted since, the slot's escrow is refunded
        to the buyer instead.

        Raises:
            ServiceError: SUBMISSION_NOT_FOUND, FORBIDDEN, INVALID_STATE.
        """
        now = now_iso()
        with self._db.transaction():
            submission = self._load_for_decision(submission_id, caller)
            self._transition(submission, "rejected", now)

            task_id = submission["task_id"]
            if self._tasks.return_slot(task_id, now) != 1:
                if self._tasks.get_task(task_id) is not None:
                    raise ServiceError(
                        "INVALID_STATE",
                        "Task capacity is already full",
                        409,
                        {},
                    )
                self._ledger.credit(
                    submission["buyer_email"], int(submission["payable_amount"]), submission_id
                )

            self._notifications.append(
                submission["worker_email"],
                f"Your submission for '{submission['task_title']}' was rejected.",
                "/dashboard/my-submissions",
                now,
            )
            submission.update({"status": "rejected", "decided_at": now})

        self._logger.info(
            "Submission rejected",
            extra={"submission_id": submission_id, "task_id": submission["task_id"]},
        )
        return submission

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_all(self, status: str | None) -> list[dict[str, Any]]:
        """All submissions."""
        self._check_status_filter(status)
        return self._submissions.list_submissions(status)

    def list_for_buyer(self, buyer_email: str, status: str | None) -> list[dict[str, Any]]:
        """Submissions against a buyer's tasks."""
        self._check_status_filter(status)
        return self._submissions.list_for_buyer(buyer_email, status)

    def list_for_worker(
        self,
        worker_email: str,
        limit: int | None,
        offset: int | None,
    ) -> dict[str, Any]:
        """A worker's submissions with the total count for pagination."""
        return {
            "submissions": self._submissions.list_for_worker(worker_email, limit, offset),
            "total": self._submissions.count_for_worker(worker_email),
        }
