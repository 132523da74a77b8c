"""Shared request parsing helpers for the routers."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from worknest_service.core.exceptions import ServiceError

if TYPE_CHECKING:
    from fastapi import Request


def parse_json_body(raw_body: bytes) -> dict[str, Any]:
    """Parse JSON body, raising ServiceError on failure."""
    try:
        data = json.loads(raw_body)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ServiceError(
            "INVALID_JSON",
            "Request body is not valid JSON",
            400,
            {},
        ) from exc

    if not isinstance(data, dict):
        raise ServiceError(
            "INVALID_JSON",
            "Request body must be a JSON object",
            400,
            {},
        )

    return data


async def read_json(request: Request) -> dict[str, Any]:
    """Read and parse the request body; an empty body is an empty object."""
    body = await request.body()
    return {} if body == b"" else parse_json_body(body)


def parse_pagination(request: Request) -> tuple[int | None, int | None]:
    """Parse optional ``limit`` and ``offset`` query parameters."""
    limit_raw = request.query_params.get("limit")
    offset_raw = request.query_params.get("offset")

    limit: int | None = None
    offset: int | None = None

    if limit_raw is not None:
        try:
            limit = int(limit_raw)
        except ValueError as exc:
            raise ServiceError("VALIDATION_ERROR", "limit must be an integer", 400, {}) from exc
        if limit <= 0:
            raise ServiceError("VALIDATION_ERROR", "limit must be >= 1", 400, {})

    if offset_raw is not None:
        try:
            offset = int(offset_raw)
        except ValueError as exc:
            raise ServiceError("VALIDATION_ERROR", "offset must be an integer", 400, {}) from exc
        if offset < 0:
            raise ServiceError("VALIDATION_ERROR", "offset must be >= 0", 400, {})
        if limit is None:
            limit = -1

    return limit, offset
