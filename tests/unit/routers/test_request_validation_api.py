"""Content-type, body size and JSON parsing checks."""

from __future__ import annotations

import pytest

from tests.unit.routers.conftest import auth


@pytest.mark.unit
async def test_wrong_content_type_is_415(client):
    response = await client.post(
        "/tasks",
        content=b"task_title=x",
        headers={**auth("tok-buyer"), "Content-Type": "application/x-www-form-urlencoded"},
    )
    assert response.status_code == 415
    assert response.json()["error"] == "UNSUPPORTED_MEDIA_TYPE"


@pytest.mark.unit
async def test_oversized_body_is_413(client):
    response = await client.post(
        "/submissions",
        content=b"{" + b" " * 1048577 + b"}",
        headers={**auth("tok-worker"), "Content-Type": "application/json"},
    )
    assert response.status_code == 413
    assert response.json()["error"] == "PAYLOAD_TOO_LARGE"


@pytest.mark.unit
async def test_malformed_json_is_400(client):
    response = await client.post(
        "/tasks",
        content=b"{not json",
        headers={**auth("tok-buyer"), "Content-Type": "application/json"},
    )
    assert response.status_code == 400
    assert response.json()["error"] == "INVALID_JSON"


@pytest.mark.unit
async def test_json_array_body_is_400(client):
    response = await client.post("/tasks", json=[1, 2], headers=auth("tok-buyer"))
    assert response.status_code == 400
    assert response.json()["error"] == "INVALID_JSON"


@pytest.mark.unit
async def test_body_less_transitions_skip_content_type_check(client):
    response = await client.post("/submissions/approve/s-missing", headers=auth("tok-buyer"))
    assert response.status_code == 404
    assert response.json()["error"] == "SUBMISSION_NOT_FOUND"


@pytest.mark.unit
async def test_bad_pagination_is_400(client):
    response = await client.get("/tasks?limit=zero", headers=auth("tok-worker"))
    assert response.status_code == 400
    assert response.json()["error"] == "VALIDATION_ERROR"
