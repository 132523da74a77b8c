"""Router test fixtures with mocked identity provider and payment gateway."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any
from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient

from tests.helpers import make_config_yaml, seed_user
from worknest_service.app import create_app
from worknest_service.config import clear_settings_cache
from worknest_service.core.exceptions import ServiceError
from worknest_service.core.lifespan import lifespan
from worknest_service.core.state import get_app_state, reset_app_state
from worknest_service.services.user_store import UserStore

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from pathlib import Path

ADMIN_EMAIL = "admin@example.com"
BUYER_EMAIL = "buyer@example.com"
WORKER_EMAIL = "worker@example.com"

TOKENS = {
    "tok-admin": ADMIN_EMAIL,
    "tok-buyer": BUYER_EMAIL,
    "tok-worker": WORKER_EMAIL,
    "tok-newcomer": "newcomer@example.com",
}


def auth(token: str) -> dict[str, str]:
    """Authorization header for a token from the test token table."""
    return {"Authorization": f"Bearer {token}"}


def _verify(token: str) -> dict[str, Any]:
    if token not in TOKENS:
        raise ServiceError("FORBIDDEN", "Invalid or expired credential", 403, {})
    return {"valid": True, "email": TOKENS[token]}


@pytest.fixture
async def app(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> AsyncIterator[Any]:
    """Create a test app with temp database and mocked external services."""
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        make_config_yaml(str(tmp_path / "worknest.db"), str(tmp_path / "logs"))
    )
    monkeypatch.setenv("CONFIG_PATH", str(config_path))

    clear_settings_cache()
    reset_app_state()

    test_app = create_app()
    async with lifespan(test_app):
        state = get_app_state()

        # Mock identity provider: tokens resolve through the TOKENS table
        mock_identity = AsyncMock()
        mock_identity.close = AsyncMock()
        mock_identity.verify_token = AsyncMock(side_effect=_verify)
        state.identity_client = mock_identity

        # Mock payment gateway: intents always succeed
        mock_gateway = AsyncMock()
        mock_gateway.close = AsyncMock()
        mock_gateway.create_payment_intent = AsyncMock(
            side_effect=lambda amount: {
                "client_secret": "pi_test_secret",
                "payment_intent_id": "pi_test",
                "amount": amount,
                "currency": "usd",
            }
        )
        state.payment_gateway = mock_gateway
        if state.payment_service is not None:
            state.payment_service._gateway = mock_gateway

        users = UserStore(state.database)
        seed_user(users, ADMIN_EMAIL, "admin", 0)
        seed_user(users, BUYER_EMAIL, "buyer", 100)
        seed_user(users, WORKER_EMAIL, "worker", 0)

        yield test_app

    reset_app_state()
    clear_settings_cache()


@pytest.fixture
async def client(app: Any) -> AsyncIterator[AsyncClient]:
    """Create an async HTTP client for the test app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
