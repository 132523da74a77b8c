"""
Configuration management for the WorkNest service.

Loads configuration from YAML with ZERO defaults.
Every value must be explicitly specified or startup fails.
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict

REDACTION_MARKER = "***REDACTED***"

_SENSITIVE_KEYS = frozenset({"secret_key"})


class ServiceConfig(BaseModel):
    """Service identity configuration."""

    model_config = ConfigDict(extra="forbid")
    name: str
    version: str


class ServerConfig(BaseModel):
    """HTTP server configuration."""

    model_config = ConfigDict(extra="forbid")
    host: str
    port: int
    log_level: str


class LoggingConfig(BaseModel):
    """Logging configuration."""

    model_config = ConfigDict(extra="forbid")
    level: str
    directory: str


class DatabaseConfig(BaseModel):
    """Database configuration."""

    model_config = ConfigDict(extra="forbid")
    path: str


class IdentityConfig(BaseModel):
    """Identity provider connection configuration."""

    model_config = ConfigDict(extra="forbid")
    base_url: str
    verify_path: str
    timeout_seconds: int


class PaymentsConfig(BaseModel):
    """Payment gateway connection configuration."""

    model_config = ConfigDict(extra="forbid")
    base_url: str
    payment_intents_path: str
    secret_key: str
    currency: str
    timeout_seconds: int


class AccountsConfig(BaseModel):
    """Account creation and leaderboard configuration."""

    model_config = ConfigDict(extra="forbid")
    worker_starting_coins: int
    buyer_starting_coins: int
    best_workers_limit: int


class SubmissionsConfig(BaseModel):
    """Submission policy configuration."""

    model_config = ConfigDict(extra="forbid")
    allow_multiple_per_worker: bool


class WithdrawalsConfig(BaseModel):
    """Withdrawal policy configuration."""

    model_config = ConfigDict(extra="forbid")
    min_coins: int


class NotificationsConfig(BaseModel):
    """Notification dispatcher and push stream configuration."""

    model_config = ConfigDict(extra="forbid")
    poll_interval_seconds: float
    batch_size: int
    queue_size: int
    keepalive_seconds: int


class RequestConfig(BaseModel):
    """Request handling configuration."""

    model_config = ConfigDict(extra="forbid")
    max_body_size: int


class Settings(BaseModel):
    """
    Root configuration container.

    All fields are REQUIRED. No defaults exist.
    Missing fields cause immediate startup failure.
    """

    model_config = ConfigDict(extra="forbid")
    service: ServiceConfig
    server: ServerConfig
    logging: LoggingConfig
    database: DatabaseConfig
    identity: IdentityConfig
    payments: PaymentsConfig
    accounts: AccountsConfig
    submissions: SubmissionsConfig
    withdrawals: WithdrawalsConfig
    notifications: NotificationsConfig
    request: RequestConfig


def get_config_path() -> Path:
    """Determine configuration file path."""
    env_path = os.environ.get("CONFIG_PATH")
    if env_path:
        return Path(env_path)
    return Path.cwd() / "config.yaml"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load and cache settings from the YAML config file."""
    config_path = get_config_path()
    raw = yaml.safe_load(config_path.read_text())
    if not isinstance(raw, dict):
        msg = f"Invalid config file: {config_path}"
        raise ValueError(msg)
    return Settings(**raw)


def clear_settings_cache() -> None:
    """Drop cached settings so the next call reloads from disk."""
    get_settings.cache_clear()


def _redact(value: Any) -> Any:
    if isinstance(value, dict):
        return {
            key: REDACTION_MARKER if key in _SENSITIVE_KEYS else _redact(item)
            for key, item in value.items()
        }
    return value


def get_safe_config() -> dict[str, Any]:
    """Get configuration with sensitive values redacted."""
    redacted: dict[str, Any] = _redact(get_settings().model_dump())
    return redacted
