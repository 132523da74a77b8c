"""Service layer components."""

from worknest_service.services.ledger import Ledger
from worknest_service.services.notifications import (
    NotificationDispatcher,
    NotificationService,
    PushHub,
)
from worknest_service.services.payment_service import PaymentService
from worknest_service.services.submission_workflow import SubmissionWorkflow
from worknest_service.services.task_manager import TaskManager
from worknest_service.services.user_service import UserService
from worknest_service.services.withdrawal_workflow import WithdrawalWorkflow

__all__ = [
    "Ledger",
    "NotificationDispatcher",
    "NotificationService",
    "PaymentService",
    "PushHub",
    "SubmissionWorkflow",
    "TaskManager",
    "UserService",
    "WithdrawalWorkflow",
]
