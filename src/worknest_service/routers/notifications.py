"""Notification endpoints, including the live SSE stream."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, Request
from sse_starlette.sse import EventSourceResponse
from starlette.concurrency import run_in_threadpool

from worknest_service.core.access import authorize
from worknest_service.core.state import get_app_state

if TYPE_CHECKING:
    from worknest_service.services.notifications import NotificationService

router = APIRouter()


def _notification_service() -> NotificationService:
    state = get_app_state()
    if state.notification_service is None:
        msg = "NotificationService not initialized"
        raise RuntimeError(msg)
    return state.notification_service


@router.get("/notifications/stream")
async def notification_stream(request: Request) -> EventSourceResponse:
    """Server-Sent Events stream of the caller's notifications."""
    caller = await authorize(request, "notification_stream")
    return EventSourceResponse(
        _notification_service().stream(caller["email"]),
        headers={"X-Accel-Buffering": "no"},
    )


@router.get("/notifications")
async def list_notifications(request: Request) -> dict[str, Any]:
    """The caller's notifications, newest first."""
    await authorize(request, "list_notifications")
    to_email = request.query_params["toEmail"]
    notifications = await run_in_threadpool(
        _notification_service().list_for_recipient, to_email
    )
    return {"notifications": notifications}


@router.patch("/notifications/{notification_id}/read")
async def mark_notification_read(notification_id: str, request: Request) -> dict[str, Any]:
    """Flag one of the caller's notifications as read."""
    caller = await authorize(request, "mark_notification_read")
    notification = await run_in_threadpool(
        _notification_service().mark_read, caller, notification_id
    )
    return {"success": True, "notification": notification}
