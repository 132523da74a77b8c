"""Unit tests for AppState lifecycle helpers."""

from __future__ import annotations

import time

import pytest

from worknest_service.core.state import AppState, get_app_state, init_app_state, reset_app_state


@pytest.mark.unit
def test_app_state_init() -> None:
    """AppState initializes with empty dependency fields."""
    state = AppState()
    assert state.database is None
    assert state.identity_client is None
    assert state.payment_gateway is None
    assert state.task_manager is None
    assert state.dispatcher is None


@pytest.mark.unit
def test_app_state_uptime() -> None:
    state = AppState()
    time.sleep(0.001)
    assert state.uptime_seconds > 0


@pytest.mark.unit
def test_app_state_started_at() -> None:
    state = AppState()
    assert state.started_at.endswith("Z")
    assert "T" in state.started_at


@pytest.mark.unit
def test_get_app_state_uninitialized() -> None:
    reset_app_state()
    with pytest.raises(RuntimeError):
        get_app_state()


@pytest.mark.unit
def test_init_app_state() -> None:
    state = init_app_state()
    assert get_app_state() is state
