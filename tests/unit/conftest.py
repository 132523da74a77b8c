"""Unit test fixtures: cache reset and a wired service graph."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from tests.helpers import build_services, seed_user
from worknest_service.config import clear_settings_cache
from worknest_service.core.state import reset_app_state

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path

    from tests.helpers import Services


@pytest.fixture(autouse=True)
def _clear_caches():
    """Clear settings cache and app state between tests."""
    clear_settings_cache()
    reset_app_state()
    yield
    clear_settings_cache()
    reset_app_state()


@pytest.fixture
def services(tmp_path: Path) -> Iterator[Services]:
    """Stores and services over a fresh database file."""
    wired = build_services(str(tmp_path / "worknest.db"))
    yield wired
    wired.database.close()


@pytest.fixture
def buyer(services: Services) -> dict[str, object]:
    """A buyer holding 100 coins."""
    return seed_user(services.users, "buyer@example.com", "buyer", 100)


@pytest.fixture
def worker(services: Services) -> dict[str, object]:
    """A worker holding no coins."""
    return seed_user(services.users, "worker@example.com", "worker", 0)


@pytest.fixture
def admin(services: Services) -> dict[str, object]:
    """An admin account."""
    return seed_user(services.users, "admin@example.com", "admin", 0)
