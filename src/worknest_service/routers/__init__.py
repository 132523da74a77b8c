"""API routers."""

from worknest_service.routers import (
    health,
    notifications,
    payments,
    submissions,
    tasks,
    users,
    withdrawals,
)

__all__ = [
    "health",
    "notifications",
    "payments",
    "submissions",
    "tasks",
    "users",
    "withdrawals",
]
