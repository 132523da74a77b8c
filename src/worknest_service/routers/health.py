"""Health check endpoint."""

from __future__ import annotations

from fastapi import APIRouter
from starlette.concurrency import run_in_threadpool

from worknest_service.core.state import get_app_state
from worknest_service.schemas import HealthResponse

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Check service health and return statistics."""
    state = get_app_state()
    total_tasks = 0
    users_by_role: dict[str, int] = {}
    if state.user_service is not None:
        stats = await run_in_threadpool(state.user_service.get_stats)
        total_tasks = stats["total_tasks"]
        users_by_role = stats["users_by_role"]
    return HealthResponse(
        status="ok",
        uptime_seconds=state.uptime_seconds,
        started_at=state.started_at,
        total_tasks=total_tasks,
        users_by_role=users_by_role,
        dispatcher_running=state.dispatcher is not None and state.dispatcher.running,
    )
