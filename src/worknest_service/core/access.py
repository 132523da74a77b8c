"""Bearer-token identity resolution and the per-operation access policy table."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from starlette.concurrency import run_in_threadpool

from worknest_service.core.exceptions import ServiceError
from worknest_service.core.state import get_app_state

if TYPE_CHECKING:
    from fastapi import Request

ANY_ROLE = frozenset({"admin", "buyer", "worker"})
ADMIN = frozenset({"admin"})
BUYER = frozenset({"buyer"})
WORKER = frozenset({"worker"})


@dataclass(frozen=True)
class Policy:
    """
    Who may invoke an operation.

    ``roles=None`` admits any verified identity, registered or not.
    ``self_param`` names a path or query parameter that must equal the
    caller's email; ``admin_override`` lets admins skip that check.
    """

    roles: frozenset[str] | None
    self_param: str | None = None
    admin_override: bool = False


POLICIES: dict[str, Policy] = {
    "sign_in": Policy(roles=None),
    "list_users": Policy(roles=ADMIN),
    "get_user": Policy(roles=ANY_ROLE, self_param="email", admin_override=True),
    "get_role": Policy(roles=ANY_ROLE, self_param="email"),
    "set_role": Policy(roles=ADMIN),
    "delete_user": Policy(roles=ADMIN),
    "admin_stats": Policy(roles=ADMIN),
    "create_task": Policy(roles=BUYER),
    "list_tasks": Policy(roles=ANY_ROLE),
    "get_task": Policy(roles=ANY_ROLE),
    "update_task": Policy(roles=BUYER),
    "delete_task": Policy(roles=frozenset({"buyer", "admin"})),
    "submit_work": Policy(roles=WORKER),
    "list_submissions": Policy(roles=ADMIN),
    "buyer_submissions": Policy(roles=BUYER, self_param="email"),
    "worker_submissions": Policy(roles=WORKER, self_param="worker_email"),
    "approve_submission": Policy(roles=BUYER),
    "reject_submission": Policy(roles=BUYER),
    "request_withdrawal": Policy(roles=WORKER),
    "list_withdrawals": Policy(roles=ADMIN),
    "worker_withdrawals": Policy(roles=WORKER, self_param="email"),
    "update_withdrawal": Policy(roles=ADMIN),
    "create_payment_intent": Policy(roles=BUYER),
    "record_payment": Policy(roles=BUYER),
    "list_payments": Policy(roles=ANY_ROLE, self_param="email", admin_override=True),
    "list_notifications": Policy(roles=ANY_ROLE, self_param="toEmail"),
    "notification_stream": Policy(roles=ANY_ROLE),
    "mark_notification_read": Policy(roles=ANY_ROLE),
}


def extract_bearer_token(authorization: str | None) -> str:
    """Extract the token from an ``Authorization: Bearer <token>`` header."""
    if authorization is None:
        raise ServiceError("UNAUTHORIZED", "Missing Authorization header", 401, {})

    if not authorization.startswith("Bearer "):
        raise ServiceError(
            "UNAUTHORIZED", "Authorization header must use Bearer scheme", 401, {}
        )

    token = authorization[len("Bearer ") :].strip()
    if not token:
        raise ServiceError("UNAUTHORIZED", "Bearer token must not be empty", 401, {})

    return token


def _self_value(request: Request, param: str) -> str | None:
    if param in request.path_params:
        return str(request.path_params[param])
    return request.query_params.get(param)


async def authorize(request: Request, operation: str) -> dict[str, Any]:
    """
    Resolve the caller and check it against the operation's policy.

    Returns:
        The caller's stored account, or ``{"email": ...}`` for operations
        open to unregistered identities.

    Raises:
        ServiceError: UNAUTHORIZED, FORBIDDEN, VALIDATION_ERROR (missing owner
            parameter), IDENTITY_SERVICE_UNAVAILABLE.
    """
    policy = POLICIES[operation]
    token = extract_bearer_token(request.headers.get("authorization"))

    state = get_app_state()
    if state.identity_client is None or state.user_service is None:
        msg = "Access control not initialized"
        raise RuntimeError(msg)

    identity = await state.identity_client.verify_token(token)
    email = str(identity["email"])

    if policy.roles is None:
        return {"email": email}

    user = await run_in_threadpool(state.user_service.find_user, email)
    if user is None:
        raise ServiceError("FORBIDDEN", "No account exists for this identity", 403, {})
    if user["role"] not in policy.roles:
        raise ServiceError(
            "FORBIDDEN",
            "Your role is not allowed to perform this operation",
            403,
            {"role": user["role"]},
        )

    if policy.self_param is not None:
        owner = _self_value(request, policy.self_param)
        if owner is None:
            raise ServiceError(
                "VALIDATION_ERROR",
                f"Missing required query parameter: {policy.self_param}",
                400,
                {},
            )
        bypass = policy.admin_override and user["role"] == "admin"
        if not bypass and owner != email:
            raise ServiceError(
                "FORBIDDEN", "You can only access your own records", 403, {}
            )

    return user
