"""Withdrawal endpoints."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from worknest_service.core.access import authorize
from worknest_service.core.state import get_app_state
from worknest_service.routers.validation import read_json

if TYPE_CHECKING:
    from worknest_service.services.withdrawal_workflow import WithdrawalWorkflow

router = APIRouter()


def _workflow() -> WithdrawalWorkflow:
    state = get_app_state()
    if state.withdrawal_workflow is None:
        msg = "WithdrawalWorkflow not initialized"
        raise RuntimeError(msg)
    return state.withdrawal_workflow


@router.post("/withdrawals", status_code=201)
async def request_withdrawal(request: Request) -> JSONResponse:
    """File a payout request."""
    worker = await authorize(request, "request_withdrawal")
    data = await read_json(request)
    withdrawal = await run_in_threadpool(_workflow().request, worker, data)
    return JSONResponse(
        status_code=201,
        content={
            "success": True,
            "withdrawal_id": withdrawal["withdrawal_id"],
            "withdrawal": withdrawal,
        },
    )


@router.get("/withdrawals")
async def list_withdrawals(request: Request) -> dict[str, Any]:
    """All payout requests."""
    await authorize(request, "list_withdrawals")
    status = request.query_params.get("status")
    withdrawals = await run_in_threadpool(_workflow().list_all, status)
    return {"withdrawals": withdrawals}


@router.get("/withdrawals/worker/{email}")
async def worker_withdrawals(email: str, request: Request) -> dict[str, Any]:
    """The caller's own payout requests."""
    await authorize(request, "worker_withdrawals")
    withdrawals = await run_in_threadpool(_workflow().list_for_worker, email)
    return {"withdrawals": withdrawals}


@router.put("/withdrawals/{withdrawal_id}")
async def update_withdrawal(withdrawal_id: str, request: Request) -> dict[str, Any]:
    """Approve a payout request."""
    await authorize(request, "update_withdrawal")
    data = await read_json(request)
    withdrawal = await run_in_threadpool(_workflow().update_status, withdrawal_id, data)
    return {"success": True, "withdrawal": withdrawal}
