"""Configuration loading tests."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from tests.helpers import make_config_yaml
from worknest_service.config import (
    REDACTION_MARKER,
    Settings,
    clear_settings_cache,
    get_safe_config,
    get_settings,
)


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    """Write a valid config file and point CONFIG_PATH at it."""
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        make_config_yaml(str(tmp_path / "worknest.db"), str(tmp_path / "logs"))
    )
    monkeypatch.setenv("CONFIG_PATH", str(config_path))
    return config_path


@pytest.mark.unit
def test_config_loads_from_yaml(config_file) -> None:
    settings = get_settings()

    assert isinstance(settings, Settings)
    assert settings.service.name == "worknest"
    assert settings.accounts.buyer_starting_coins == 50
    assert settings.submissions.allow_multiple_per_worker is False
    assert settings.notifications.poll_interval_seconds == 0.05


@pytest.mark.unit
def test_settings_are_cached_until_cleared(config_file) -> None:
    first = get_settings()
    assert get_settings() is first

    clear_settings_cache()
    assert get_settings() is not first


@pytest.mark.unit
def test_missing_section_fails(config_file) -> None:
    text = config_file.read_text()
    config_file.write_text(text.split("withdrawals:")[0])

    with pytest.raises(ValidationError):
        get_settings()


@pytest.mark.unit
def test_unknown_key_fails(config_file) -> None:
    config_file.write_text(config_file.read_text() + "extra_section:\n  enabled: true\n")

    with pytest.raises(ValidationError):
        get_settings()


@pytest.mark.unit
def test_safe_config_redacts_secret_key(config_file) -> None:
    safe = get_safe_config()

    assert safe["payments"]["secret_key"] == REDACTION_MARKER
    assert safe["payments"]["currency"] == "usd"
    assert get_settings().payments.secret_key == "sk_test_secret"
