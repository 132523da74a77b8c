"""Unit tests for the withdrawal workflow."""

from __future__ import annotations

import pytest
from freezegun import freeze_time

from tests.helpers import seed_user
from worknest_service.core.exceptions import ServiceError

WORKER = "rich.worker@example.com"


@pytest.fixture
def rich_worker(services) -> dict[str, object]:
    """A worker holding 500 coins."""
    return seed_user(services.users, WORKER, "worker", 500)


def _request_body(**overrides) -> dict[str, object]:
    body: dict[str, object] = {
        "withdrawal_coin": 200,
        "withdrawal_amount": 10,
        "payment_system": "bkash",
        "account_number": "01700000000",
    }
    body.update(overrides)
    return body


@pytest.mark.unit
def test_request_leaves_balance_and_notifies_admins(services, rich_worker, admin) -> None:
    withdrawal = services.withdrawal_workflow.request(rich_worker, _request_body())

    assert withdrawal["status"] == "pending"
    assert services.ledger.balance(WORKER) == 500
    admin_inbox = services.notifications.list_for_recipient("admin@example.com")
    assert len(admin_inbox) == 1


@pytest.mark.unit
@pytest.mark.parametrize(
    "overrides",
    [
        {"withdrawal_coin": None},
        {"withdrawal_amount": None},
        {"withdrawal_amount": -3},
        {"payment_system": ""},
        {"account_number": None},
        {"withdrawal_coin": 199},
        {"withdrawal_coin": 10**30},
        {"withdrawal_amount": float("inf")},
        {"withdrawal_amount": float("nan")},
        {"withdrawal_amount": 1e300},
    ],
)
def test_request_validation(services, rich_worker, overrides) -> None:
    with pytest.raises(ServiceError) as exc_info:
        services.withdrawal_workflow.request(rich_worker, _request_body(**overrides))
    assert exc_info.value.error == "VALIDATION_ERROR"
    assert services.withdrawals.list_withdrawals(None) == []


@pytest.mark.unit
def test_approve_debits_and_records_payment_once(services, rich_worker) -> None:
    withdrawal = services.withdrawal_workflow.request(rich_worker, _request_body())

    approved = services.withdrawal_workflow.update_status(
        withdrawal["withdrawal_id"], {"status": "approved"}
    )

    assert approved["status"] == "approved"
    assert services.ledger.balance(WORKER) == 300
    record = services.payments.get_by_reference("get", withdrawal["withdrawal_id"])
    assert record["coins"] == 200
    assert record["cash_amount"] == 10

    with pytest.raises(ServiceError) as exc_info:
        services.withdrawal_workflow.approve(withdrawal["withdrawal_id"])

    assert exc_info.value.error == "INVALID_STATE"
    assert services.ledger.balance(WORKER) == 300


@pytest.mark.unit
def test_approve_with_insufficient_balance_stays_pending(services) -> None:
    worker = seed_user(services.users, "poor@example.com", "worker", 250)
    withdrawal = services.withdrawal_workflow.request(worker, _request_body())
    services.ledger.debit("poor@example.com", 100, "spent")

    with pytest.raises(ServiceError) as exc_info:
        services.withdrawal_workflow.approve(withdrawal["withdrawal_id"])

    assert exc_info.value.error == "INSUFFICIENT_FUNDS"
    stored = services.withdrawals.get_withdrawal(withdrawal["withdrawal_id"])
    assert stored["status"] == "pending"
    assert services.payments.get_by_reference("get", withdrawal["withdrawal_id"]) is None


@pytest.mark.unit
def test_update_status_rejects_other_targets(services, rich_worker) -> None:
    withdrawal = services.withdrawal_workflow.request(rich_worker, _request_body())

    with pytest.raises(ServiceError) as exc_info:
        services.withdrawal_workflow.update_status(
            withdrawal["withdrawal_id"], {"status": "pending"}
        )

    assert exc_info.value.error == "VALIDATION_ERROR"


@pytest.mark.unit
def test_approve_unknown_withdrawal(services) -> None:
    with pytest.raises(ServiceError) as exc_info:
        services.withdrawal_workflow.approve("w-missing")
    assert exc_info.value.error == "WITHDRAWAL_NOT_FOUND"


@pytest.mark.unit
def test_listings(services, rich_worker) -> None:
    first = services.withdrawal_workflow.request(rich_worker, _request_body())
    services.withdrawal_workflow.request(rich_worker, _request_body(withdrawal_coin=250))
    services.withdrawal_workflow.approve(first["withdrawal_id"])

    assert len(services.withdrawal_workflow.list_all(None)) == 2
    assert len(services.withdrawal_workflow.list_all("pending")) == 1
    assert len(services.withdrawal_workflow.list_for_worker(WORKER)) == 2


@pytest.mark.unit
def test_approval_timestamps(services, rich_worker) -> None:
    with freeze_time("2026-05-01 09:00:00"):
        withdrawal = services.withdrawal_workflow.request(rich_worker, _request_body())
    with freeze_time("2026-05-02 10:30:00"):
        approved = services.withdrawal_workflow.approve(withdrawal["withdrawal_id"])

    assert approved["requested_at"] == "2026-05-01T09:00:00.000000Z"
    assert approved["approved_at"] == "2026-05-02T10:30:00.000000Z"
