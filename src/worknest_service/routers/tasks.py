"""Task lifecycle endpoints."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from worknest_service.core.access import authorize
from worknest_service.core.exceptions import ServiceError
from worknest_service.core.state import get_app_state
from worknest_service.routers.validation import parse_pagination, read_json

if TYPE_CHECKING:
    from worknest_service.services.task_manager import TaskManager

router = APIRouter()


def _task_manager() -> TaskManager:
    state = get_app_state()
    if state.task_manager is None:
        msg = "TaskManager not initialized"
        raise RuntimeError(msg)
    return state.task_manager


# ---------------------------------------------------------------------------
# POST /tasks and GET /tasks (MUST be before /tasks/{task_id})
# ---------------------------------------------------------------------------


@router.post("/tasks", status_code=201)
async def create_task(request: Request) -> JSONResponse:
    """Create a task and escrow its total cost from the buyer."""
    buyer = await authorize(request, "create_task")
    data = await read_json(request)
    task = await run_in_threadpool(_task_manager().create_task, buyer, data)
    return JSONResponse(
        status_code=201,
        content={"success": True, "task_id": task["task_id"], "task": task},
    )


@router.get("/tasks")
async def list_tasks(request: Request) -> dict[str, Any]:
    """List tasks, optionally by buyer or only those with open slots."""
    await authorize(request, "list_tasks")
    buyer_email = request.query_params.get("buyer")
    available_raw = request.query_params.get("available")
    if available_raw is not None and available_raw not in ("true", "false"):
        raise ServiceError("VALIDATION_ERROR", "available must be 'true' or 'false'", 400, {})
    limit, offset = parse_pagination(request)

    tasks = await run_in_threadpool(
        _task_manager().list_tasks,
        buyer_email,
        available_raw == "true",
        limit,
        offset,
    )
    return {"tasks": tasks}


# ---------------------------------------------------------------------------
# Single task
# ---------------------------------------------------------------------------


@router.get("/tasks/{task_id}")
async def get_task(task_id: str, request: Request) -> dict[str, Any]:
    """Fetch one task."""
    await authorize(request, "get_task")
    return await run_in_threadpool(_task_manager().get_task, task_id)


@router.put("/tasks/{task_id}")
async def update_task(task_id: str, request: Request) -> dict[str, Any]:
    """Edit a task and settle the coin difference."""
    caller = await authorize(request, "update_task")
    data = await read_json(request)
    task = await run_in_threadpool(_task_manager().update_task, caller, task_id, data)
    return {"success": True, "task": task}


@router.delete("/tasks/{task_id}")
async def delete_task(task_id: str, request: Request) -> dict[str, Any]:
    """Delete a task and refund its unconsumed capacity."""
    caller = await authorize(request, "delete_task")
    result = await run_in_threadpool(_task_manager().delete_task, caller, task_id)
    return {"success": True, **result}
