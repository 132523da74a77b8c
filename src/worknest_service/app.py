"""FastAPI application factory."""

from __future__ import annotations

from fastapi import FastAPI

from worknest_service.config import get_settings
from worknest_service.core.exceptions import register_exception_handlers
from worknest_service.core.lifespan import lifespan
from worknest_service.core.middleware import RequestValidationMiddleware
from worknest_service.routers import (
    health,
    notifications,
    payments,
    submissions,
    tasks,
    users,
    withdrawals,
)


def create_app() -> FastAPI:
    """
    Create and configure FastAPI application.

    Returns:
        Configured FastAPI instance with all routers registered.
    """
    settings = get_settings()

    app = FastAPI(
        title=f"{settings.service.name} Service",
        version=settings.service.version,
        lifespan=lifespan,
    )

    register_exception_handlers(app)

    app.include_router(health.router, tags=["Operations"])
    app.include_router(users.router, tags=["Users"])
    app.include_router(tasks.router, tags=["Tasks"])
    app.include_router(submissions.router, tags=["Submissions"])
    app.include_router(withdrawals.router, tags=["Withdrawals"])
    app.include_router(payments.router, tags=["Payments"])
    app.include_router(notifications.router, tags=["Notifications"])

    app.add_middleware(
        RequestValidationMiddleware,
        max_body_size=settings.request.max_body_size,
    )

    return app
