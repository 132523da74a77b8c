"""Submission endpoints."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from worknest_service.core.access import authorize
from worknest_service.core.state import get_app_state
from worknest_service.routers.validation import parse_pagination, read_json

if TYPE_CHECKING:
    from worknest_service.services.submission_workflow import SubmissionWorkflow

router = APIRouter()


def _workflow() -> SubmissionWorkflow:
    state = get_app_state()
    if state.submission_workflow is None:
        msg = "SubmissionWorkflow not initialized"
        raise RuntimeError(msg)
    return state.submission_workflow


@router.post("/submissions", status_code=201)
async def submit_work(request: Request) -> JSONResponse:
    """Submit work against a task, taking one of its slots."""
    worker = await authorize(request, "submit_work")
    data = await read_json(request)
    submission = await run_in_threadpool(_workflow().submit, worker, data)
    return JSONResponse(
        status_code=201,
        content={
            "success": True,
            "submission_id": submission["submission_id"],
            "submission": submission,
        },
    )


@router.get("/submissions")
async def list_submissions(request: Request) -> dict[str, Any]:
    """All submissions."""
    await authorize(request, "list_submissions")
    status = request.query_params.get("status")
    submissions = await run_in_threadpool(_workflow().list_all, status)
    return {"submissions": submissions}


@router.get("/submissions/buyer/{email}")
async def buyer_submissions(email: str, request: Request) -> dict[str, Any]:
    """Submissions against the caller's tasks."""
    await authorize(request, "buyer_submissions")
    status = request.query_params.get("status")
    submissions = await run_in_threadpool(_workflow().list_for_buyer, email, status)
    return {"submissions": submissions}


@router.get("/my-submissions/{worker_email}")
async def worker_submissions(worker_email: str, request: Request) -> dict[str, Any]:
    """The caller's own submissions, paginated."""
    await authorize(request, "worker_submissions")
    limit, offset = parse_pagination(request)
    return await run_in_threadpool(_workflow().list_for_worker, worker_email, limit, offset)


@router.post("/submissions/approve/{submission_id}")
async def approve_submission(submission_id: str, request: Request) -> dict[str, Any]:
    """Approve a pending submission and pay the worker."""
    caller = await authorize(request, "approve_submission")
    submission = await run_in_threadpool(_workflow().approve, caller, submission_id)
    return {"success": True, "submission": submission}


@router.patch("/submissions/reject/{submission_id}")
async def reject_submission(submission_id: str, request: Request) -> dict[str, Any]:
    """Reject a pending submission and reopen its slot."""
    caller = await authorize(request, "reject_submission")
    submission = await run_in_threadpool(_workflow().reject, caller, submission_id)
    return {"success": True, "submission": submission}
