"""Concurrent writers on the same database file."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

import pytest

from tests.helpers import build_services, seed_user, task_payload
from worknest_service.core.exceptions import ServiceError


def _attempt(operation, *args) -> str:
    try:
        operation(*args)
    except ServiceError as exc:
        return exc.error
    return "ok"


@pytest.mark.unit
def test_concurrent_approvals_pay_exactly_once(tmp_path) -> None:
    db_path = str(tmp_path / "shared.db")
    first = build_services(db_path)
    second = build_services(db_path)

    buyer = seed_user(first.users, "buyer@example.com", "buyer", 100)
    worker = seed_user(first.users, "worker@example.com", "worker", 0)
    task = first.task_manager.create_task(buyer, task_payload())
    submission = first.submission_workflow.submit(
        worker, {"task_id": task["task_id"], "submission_details": "done"}
    )

    with ThreadPoolExecutor(max_workers=2) as pool:
        futures = [
            pool.submit(
                _attempt,
                wired.submission_workflow.approve,
                buyer,
                submission["submission_id"],
            )
            for wired in (first, second)
        ]
        outcomes = sorted(future.result() for future in futures)

    assert outcomes == ["INVALID_STATE", "ok"]
    assert first.ledger.balance("worker@example.com") == 10
    assert len(first.payments.list_for_email("worker@example.com")) == 1

    first.database.close()
    second.database.close()


@pytest.mark.unit
def test_concurrent_submissions_never_overfill_task(tmp_path) -> None:
    db_path = str(tmp_path / "shared.db")
    first = build_services(db_path)
    second = build_services(db_path)

    buyer = seed_user(first.users, "buyer@example.com", "buyer", 100)
    task = first.task_manager.create_task(buyer, task_payload(required_workers=1))
    workers = [
        seed_user(first.users, f"worker{index}@example.com", "worker", 0) for index in range(2)
    ]

    with ThreadPoolExecutor(max_workers=2) as pool:
        futures = [
            pool.submit(
                _attempt,
                wired.submission_workflow.submit,
                submitter,
                {"task_id": task["task_id"], "submission_details": "done"},
            )
            for wired, submitter in zip((first, second), workers, strict=True)
        ]
        outcomes = sorted(future.result() for future in futures)

    assert outcomes == ["INVALID_STATE", "ok"]
    assert first.tasks.get_task(task["task_id"])["remaining_workers"] == 0

    first.database.close()
    second.database.close()


@pytest.mark.unit
def test_concurrent_debits_never_overdraw(tmp_path) -> None:
    db_path = str(tmp_path / "shared.db")
    wired = [build_services(db_path) for _ in range(4)]
    seed_user(wired[0].users, "buyer@example.com", "buyer", 100)

    with ThreadPoolExecutor(max_workers=4) as pool:
        futures = [
            pool.submit(_attempt, services.ledger.debit, "buyer@example.com", 40, f"ref-{i}")
            for i, services in enumerate(wired)
        ]
        outcomes = [future.result() for future in futures]

    assert outcomes.count("ok") == 2
    assert outcomes.count("INSUFFICIENT_FUNDS") == 2
    assert wired[0].ledger.balance("buyer@example.com") == 20

    for services in wired:
        services.database.close()


@pytest.mark.unit
def test_concurrent_edit_and_submission_are_serialized(tmp_path) -> None:
    db_path = str(tmp_path / "shared.db")
    first = build_services(db_path)
    second = build_services(db_path)

    buyer = seed_user(first.users, "buyer@example.com", "buyer", 100)
    worker = seed_user(first.users, "worker@example.com", "worker", 0)
    task = first.task_manager.create_task(buyer, task_payload(required_workers=2))

    with ThreadPoolExecutor(max_workers=2) as pool:
        edit = pool.submit(
            _attempt,
            first.task_manager.update_task,
            buyer,
            task["task_id"],
            {"required_workers": 1},
        )
        submit = pool.submit(
            _attempt,
            second.submission_workflow.submit,
            worker,
            {"task_id": task["task_id"], "submission_details": "done"},
        )
        outcomes = [edit.result(), submit.result()]

    assert outcomes == ["ok", "ok"]
    stored = first.tasks.get_task(task["task_id"])
    assert stored["required_workers"] == 1
    assert stored["remaining_workers"] == 0
    assert stored["total_payable_amount"] == 10
    assert first.ledger.balance("buyer@example.com") == 90

    first.database.close()
    second.database.close()
