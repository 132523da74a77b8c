"""Shared test helpers: config text, service wiring and account seeding."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from worknest_service.services.database import Database, new_id, now_iso
from worknest_service.services.ledger import Ledger
from worknest_service.services.notification_store import NotificationStore
from worknest_service.services.payment_store import PaymentStore
from worknest_service.services.submission_store import SubmissionStore
from worknest_service.services.submission_workflow import SubmissionWorkflow
from worknest_service.services.task_manager import TaskManager
from worknest_service.services.task_store import TaskStore
from worknest_service.services.user_service import UserService
from worknest_service.services.user_store import UserStore
from worknest_service.services.withdrawal_store import WithdrawalStore
from worknest_service.services.withdrawal_workflow import WithdrawalWorkflow


def make_config_yaml(
    db_path: str,
    log_directory: str,
    *,
    allow_multiple_per_worker: bool = False,
    min_coins: int = 200,
) -> str:
    """Render a complete config file for tests."""
    return f"""\
service:
  name: "worknest"
  version: "0.1.0"
server:
  host: "127.0.0.1"
  port: 5000
  log_level: "info"
logging:
  level: "WARNING"
  directory: "{log_directory}"
database:
  path: "{db_path}"
identity:
  base_url: "http://localhost:8001"
  verify_path: "/tokens/verify"
  timeout_seconds: 5
payments:
  base_url: "http://localhost:8999"
  payment_intents_path: "/v1/payment_intents"
  secret_key: "sk_test_secret"
  currency: "usd"
  timeout_seconds: 5
accounts:
  worker_starting_coins: 10
  buyer_starting_coins: 50
  best_workers_limit: 6
submissions:
  allow_multiple_per_worker: {"true" if allow_multiple_per_worker else "false"}
withdrawals:
  min_coins: {min_coins}
notifications:
  poll_interval_seconds: 0.05
  batch_size: 100
  queue_size: 10
  keepalive_seconds: 15
request:
  max_body_size: 1048576
"""


@dataclass
class Services:
    """Everything a lifecycle test needs, wired over one database."""

    database: Database
    users: UserStore
    tasks: TaskStore
    submissions: SubmissionStore
    withdrawals: WithdrawalStore
    payments: PaymentStore
    notifications: NotificationStore
    ledger: Ledger
    user_service: UserService
    task_manager: TaskManager
    submission_workflow: SubmissionWorkflow
    withdrawal_workflow: WithdrawalWorkflow


def build_services(
    db_path: str,
    *,
    allow_multiple_per_worker: bool = False,
    min_coins: int = 200,
) -> Services:
    """Construct stores and services the same way the lifespan does."""
    database = Database(db_path)
    users = UserStore(database)
    tasks = TaskStore(database)
    submissions = SubmissionStore(database)
    withdrawals = WithdrawalStore(database)
    payments = PaymentStore(database)
    notifications = NotificationStore(database)
    ledger = Ledger(database, users)
    return Services(
        database=database,
        users=users,
        tasks=tasks,
        submissions=submissions,
        withdrawals=withdrawals,
        payments=payments,
        notifications=notifications,
        ledger=ledger,
        user_service=UserService(
            database=database,
            users=users,
            tasks=tasks,
            submissions=submissions,
            payments=payments,
            notifications=notifications,
            starting_coins={"worker": 10, "buyer": 50},
            best_workers_limit=6,
        ),
        task_manager=TaskManager(
            database=database,
            tasks=tasks,
            users=users,
            ledger=ledger,
            notifications=notifications,
        ),
        submission_workflow=SubmissionWorkflow(
            database=database,
            tasks=tasks,
            submissions=submissions,
            payments=payments,
            ledger=ledger,
            notifications=notifications,
            allow_multiple_per_worker=allow_multiple_per_worker,
        ),
        withdrawal_workflow=WithdrawalWorkflow(
            database=database,
            withdrawals=withdrawals,
            users=users,
            payments=payments,
            ledger=ledger,
            notifications=notifications,
            min_coins=min_coins,
        ),
    )


def seed_user(users: UserStore, email: str, role: str, coins: int) -> dict[str, Any]:
    """Insert an account directly and return it."""
    now = now_iso()
    user = {
        "user_id": new_id("u"),
        "email": email,
        "name": email.split("@")[0].title(),
        "photo_url": None,
        "role": role,
        "coins": coins,
        "created_at": now,
        "last_login_at": now,
    }
    users.insert(user)
    return user


def task_payload(**overrides: Any) -> dict[str, Any]:
    """A valid task creation body: 10 coins for each of 5 workers."""
    payload: dict[str, Any] = {
        "task_title": "Label 20 images",
        "task_detail": "Draw bounding boxes around every car.",
        "submission_info": "Link to the annotation file",
        "payable_amount": 10,
        "required_workers": 5,
    }
    payload.update(overrides)
    return payload


def coin_supply(services: Services) -> int:
    """User balances plus every coin still held in escrow."""
    return (
        services.users.total_coins()
        + services.tasks.unconsumed_escrow()
        + services.submissions.pending_escrow()
    )
