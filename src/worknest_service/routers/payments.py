"""Coin purchase endpoints."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from worknest_service.core.access import authorize
from worknest_service.core.state import get_app_state
from worknest_service.routers.validation import read_json

if TYPE_CHECKING:
    from worknest_service.services.payment_service import PaymentService

router = APIRouter()


def _payment_service() -> PaymentService:
    state = get_app_state()
    if state.payment_service is None:
        msg = "PaymentService not initialized"
        raise RuntimeError(msg)
    return state.payment_service


@router.post("/payment-intent")
async def create_payment_intent(request: Request) -> dict[str, Any]:
    """Create a gateway payment intent for a coin package."""
    await authorize(request, "create_payment_intent")
    data = await read_json(request)
    intent = await _payment_service().create_intent(data)
    return {"success": True, "clientSecret": intent["client_secret"], **intent}


@router.post("/payments")
async def record_payment(request: Request) -> JSONResponse:
    """Record a confirmed purchase and credit the coins."""
    buyer = await authorize(request, "record_payment")
    data = await read_json(request)
    result = await run_in_threadpool(_payment_service().record_purchase, buyer, data)
    payment = result["payment"]
    return JSONResponse(
        status_code=200 if result["duplicate"] else 201,
        content={
            "success": True,
            "duplicate": result["duplicate"],
            "payment_id": payment["payment_id"],
            "payment": payment,
        },
    )


@router.get("/payments/{email}")
async def list_payments(email: str, request: Request) -> dict[str, Any]:
    """Payment history for an account."""
    await authorize(request, "list_payments")
    payments = await run_in_threadpool(_payment_service().list_for_email, email)
    return {"payments": payments}
