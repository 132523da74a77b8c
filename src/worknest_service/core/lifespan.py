"""Application lifecycle management."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from worknest_service.clients.identity_client import IdentityClient
from worknest_service.clients.payment_gateway_client import PaymentGatewayClient
from worknest_service.config import get_settings
from worknest_service.core.state import init_app_state
from worknest_service.logging import get_logger, setup_logging
from worknest_service.services.database import Database
from worknest_service.services.ledger import Ledger
from worknest_service.services.notification_store import NotificationStore
from worknest_service.services.notifications import (
    NotificationDispatcher,
    NotificationService,
    PushHub,
)
from worknest_service.services.payment_service import PaymentService
from worknest_service.services.payment_store import PaymentStore
from worknest_service.services.submission_store import SubmissionStore
from worknest_service.services.submission_workflow import SubmissionWorkflow
from worknest_service.services.task_manager import TaskManager
from worknest_service.services.task_store import TaskStore
from worknest_service.services.user_service import UserService
from worknest_service.services.user_store import UserStore
from worknest_service.services.withdrawal_store import WithdrawalStore
from worknest_service.services.withdrawal_workflow import WithdrawalWorkflow

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from fastapi import FastAPI


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    """Manage application lifecycle."""
    # === STARTUP ===
    settings = get_settings()

    setup_logging(settings.logging.level, settings.service.name, settings.logging.directory)
    logger = get_logger(__name__)

    state = init_app_state()

    database = Database(settings.database.path)
    state.database = database

    users = UserStore(database)
    tasks = TaskStore(database)
    submissions = SubmissionStore(database)
    withdrawals = WithdrawalStore(database)
    payments = PaymentStore(database)
    notifications = NotificationStore(database)

    ledger = Ledger(database, users)
    state.ledger = ledger

    identity_client = IdentityClient(
        base_url=settings.identity.base_url,
        verify_path=settings.identity.verify_path,
        timeout_seconds=settings.identity.timeout_seconds,
    )
    state.identity_client = identity_client

    payment_gateway = PaymentGatewayClient(
        base_url=settings.payments.base_url,
        payment_intents_path=settings.payments.payment_intents_path,
        secret_key=settings.payments.secret_key,
        currency=settings.payments.currency,
        timeout_seconds=settings.payments.timeout_seconds,
    )
    state.payment_gateway = payment_gateway

    state.user_service = UserService(
        database=database,
        users=users,
        tasks=tasks,
        submissions=submissions,
        payments=payments,
        notifications=notifications,
        starting_coins={
            "worker": settings.accounts.worker_starting_coins,
            "buyer": settings.accounts.buyer_starting_coins,
        },
        best_workers_limit=settings.accounts.best_workers_limit,
    )
    state.task_manager = TaskManager(
        database=database,
        tasks=tasks,
        users=users,
        ledger=ledger,
        notifications=notifications,
    )
    state.submission_workflow = SubmissionWorkflow(
        database=database,
        tasks=tasks,
        submissions=submissions,
        payments=payments,
        ledger=ledger,
        notifications=notifications,
        allow_multiple_per_worker=settings.submissions.allow_multiple_per_worker,
    )
    state.withdrawal_workflow = WithdrawalWorkflow(
        database=database,
        withdrawals=withdrawals,
        users=users,
        payments=payments,
        ledger=ledger,
        notifications=notifications,
        min_coins=settings.withdrawals.min_coins,
    )
    state.payment_service = PaymentService(
        database=database,
        payments=payments,
        ledger=ledger,
        notifications=notifications,
        gateway=payment_gateway,
    )

    push_hub = PushHub(queue_size=settings.notifications.queue_size)
    state.push_hub = push_hub
    state.notification_service = NotificationService(
        store=notifications,
        hub=push_hub,
        keepalive_seconds=settings.notifications.keepalive_seconds,
    )
    dispatcher = NotificationDispatcher(
        store=notifications,
        hub=push_hub,
        poll_interval_seconds=settings.notifications.poll_interval_seconds,
        batch_size=settings.notifications.batch_size,
    )
    state.dispatcher = dispatcher
    dispatcher.start()

    logger.info(
        "Service starting",
        extra={
            "service": settings.service.name,
            "version": settings.service.version,
            "port": settings.server.port,
            "db_path": settings.database.path,
            "identity_base_url": settings.identity.base_url,
            "payments_base_url": settings.payments.base_url,
        },
    )

    yield  # Application runs here

    # === SHUTDOWN ===
    logger.info("Service shutting down", extra={"uptime_seconds": state.uptime_seconds})

    await dispatcher.stop()

    await identity_client.close()
    await payment_gateway.close()

    database.close()
