"""Field validation helpers shared by the lifecycle services."""

from __future__ import annotations

import math
from typing import Any

from worknest_service.core.exceptions import ServiceError

# Largest integer a JSON client can represent exactly.
MAX_AMOUNT = 2**53 - 1


def is_positive_int(value: object) -> bool:
    """Check if value is a positive integer (not float, not bool) up to MAX_AMOUNT."""
    return isinstance(value, int) and not isinstance(value, bool) and 0 < value <= MAX_AMOUNT


def is_positive_number(value: object) -> bool:
    """Check if value is a finite positive int or float (not bool) up to MAX_AMOUNT."""
    if not isinstance(value, int | float) or isinstance(value, bool):
        return False
    return math.isfinite(value) and 0 < value <= MAX_AMOUNT


def require_text(data: dict[str, Any], field_name: str, max_length: int | None = None) -> str:
    """Return a required non-empty string field, stripped."""
    value = data.get(field_name)
    if value is None:
        raise ServiceError(
            "VALIDATION_ERROR",
            f"Missing required field: {field_name}",
            400,
            {"field": field_name},
        )
    if not isinstance(value, str) or not value.strip():
        raise ServiceError(
            "VALIDATION_ERROR",
            f"{field_name} must be a non-empty string",
            400,
            {"field": field_name},
        )
    if max_length is not None and len(value) > max_length:
        raise ServiceError(
            "VALIDATION_ERROR",
            f"{field_name} must not exceed {max_length} characters",
            400,
            {"field": field_name},
        )
    return value.strip()


def optional_text(data: dict[str, Any], field_name: str) -> str | None:
    """Return an optional string field, or None when absent or null."""
    value = data.get(field_name)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ServiceError(
            "VALIDATION_ERROR",
            f"{field_name} must be a string",
            400,
            {"field": field_name},
        )
    return value


def require_positive_int(data: dict[str, Any], field_name: str) -> int:
    """Return a required positive integer field."""
    if data.get(field_name) is None:
        raise ServiceError(
            "VALIDATION_ERROR",
            f"Missing required field: {field_name}",
            400,
            {"field": field_name},
        )
    value = data[field_name]
    if not is_positive_int(value):
        raise ServiceError(
            "VALIDATION_ERROR",
            f"{field_name} must be a positive integer no greater than {MAX_AMOUNT}",
            400,
            {"field": field_name},
        )
    return int(value)


def optional_positive_int(data: dict[str, Any], field_name: str) -> int | None:
    """Return an optional positive integer field, or None when absent."""
    if data.get(field_name) is None:
        return None
    return require_positive_int(data, field_name)


def optional_non_negative_int(data: dict[str, Any], field_name: str) -> int | None:
    """Return an optional integer field in ``[0, MAX_AMOUNT]``, or None when absent."""
    value = data.get(field_name)
    if value is None:
        return None
    if (
        not isinstance(value, int)
        or isinstance(value, bool)
        or value < 0
        or value > MAX_AMOUNT
    ):
        raise ServiceError(
            "VALIDATION_ERROR",
            f"{field_name} must be a non-negative integer no greater than {MAX_AMOUNT}",
            400,
            {"field": field_name},
        )
    return value


def require_total_within_limit(total: int, field_name: str) -> int:
    """Reject a derived coin total that exceeds MAX_AMOUNT."""
    if total > MAX_AMOUNT:
        raise ServiceError(
            "VALIDATION_ERROR",
            f"{field_name} must not exceed {MAX_AMOUNT} coins",
            400,
            {"field": field_name, "max": MAX_AMOUNT},
        )
    return total
