"""User account endpoints."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from worknest_service.core.access import authorize
from worknest_service.core.exceptions import ServiceError
from worknest_service.core.state import get_app_state
from worknest_service.routers.validation import read_json

if TYPE_CHECKING:
    from worknest_service.services.user_service import UserService

router = APIRouter()


def _user_service() -> UserService:
    state = get_app_state()
    if state.user_service is None:
        msg = "UserService not initialized"
        raise RuntimeError(msg)
    return state.user_service


@router.post("/users")
async def sign_in(request: Request) -> JSONResponse:
    """Register the caller on first sign-in; later calls refresh the login time."""
    identity = await authorize(request, "sign_in")
    data = await read_json(request)

    if data.get("email") is not None and data["email"] != identity["email"]:
        raise ServiceError(
            "FORBIDDEN", "email does not match the authenticated identity", 403, {}
        )

    result = await run_in_threadpool(_user_service().sign_in, identity["email"], data)
    return JSONResponse(
        status_code=201 if result["created"] else 200,
        content={
            "success": True,
            "created": result["created"],
            "user_id": result["user"]["user_id"],
            "user": result["user"],
        },
    )


@router.get("/users")
async def list_users(request: Request) -> dict[str, Any]:
    """List all accounts."""
    await authorize(request, "list_users")
    role = request.query_params.get("role")
    users = await run_in_threadpool(_user_service().list_users, role)
    return {"users": users}


@router.get("/users/{email}/role")
async def get_role(email: str, request: Request) -> dict[str, Any]:
    """Return the caller's own role."""
    await authorize(request, "get_role")
    role = await run_in_threadpool(_user_service().get_role, email)
    return {"email": email, "role": role}


@router.patch("/users/{email}/role")
async def set_role(email: str, request: Request) -> dict[str, Any]:
    """Change an account's role."""
    await authorize(request, "set_role")
    data = await read_json(request)
    user = await run_in_threadpool(_user_service().set_role, email, data)
    return {"success": True, "user": user}


@router.get("/users/{email}")
async def get_user(email: str, request: Request) -> dict[str, Any]:
    """Fetch an account (self or admin)."""
    await authorize(request, "get_user")
    return await run_in_threadpool(_user_service().get_user, email)


@router.delete("/users/{user_id}")
async def delete_user(user_id: str, request: Request) -> dict[str, Any]:
    """Remove an account."""
    await authorize(request, "delete_user")
    user = await run_in_threadpool(_user_service().delete_user, user_id)
    return {"success": True, "user_id": user["user_id"]}


@router.get("/best-workers")
async def best_workers() -> dict[str, Any]:
    """Public leaderboard of top-earning workers."""
    workers = await run_in_threadpool(_user_service().best_workers)
    return {"workers": workers}


@router.get("/admin/stats")
async def admin_stats(request: Request) -> dict[str, Any]:
    """Platform statistics."""
    await authorize(request, "admin_stats")
    return await run_in_threadpool(_user_service().get_stats)
