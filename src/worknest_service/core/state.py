"""Application state management."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from worknest_service.clients.identity_client import IdentityClient
    from worknest_service.clients.payment_gateway_client import PaymentGatewayClient
    from worknest_service.services.database import Database
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


@dataclass
class AppState:
    """Runtime application state."""

    start_time: datetime = field(default_factory=lambda: datetime.now(UTC))
    database: Database | None = None
    ledger: Ledger | None = None
    identity_client: IdentityClient | None = None
    payment_gateway: PaymentGatewayClient | None = None
    user_service: UserService | None = None
    task_manager: TaskManager | None = None
    submission_workflow: SubmissionWorkflow | None = None
    withdrawal_workflow: WithdrawalWorkflow | None = None
    payment_service: PaymentService | None = None
    notification_service: NotificationService | None = None
    push_hub: PushHub | None = None
    dispatcher: NotificationDispatcher | None = None

    @property
    def uptime_seconds(self) -> float:
        """Calculate uptime in seconds."""
        return (datetime.now(UTC) - self.start_time).total_seconds()

    @property
    def started_at(self) -> str:
        """ISO format start time."""
        return self.start_time.isoformat(timespec="seconds").replace("+00:00", "Z")


# Global application state container
_state_container: dict[str, AppState | None] = {"app_state": None}


def get_app_state() -> AppState:
    """Get the current application state."""
    app_state = _state_container["app_state"]
    if app_state is None:
        msg = "Application state not initialized"
        raise RuntimeError(msg)
    return app_state


def init_app_state() -> AppState:
    """Initialize application state. Called during startup."""
    app_state = AppState()
    _state_container["app_state"] = app_state
    return app_state


def reset_app_state() -> None:
    """Reset application state. Used in testing."""
    _state_container["app_state"] = None
