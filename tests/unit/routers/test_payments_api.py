"""Coin purchase endpoint tests."""

from __future__ import annotations

import pytest

from tests.unit.routers.conftest import BUYER_EMAIL, auth
from worknest_service.core.exceptions import ServiceError
from worknest_service.core.state import get_app_state


@pytest.mark.unit
async def test_payment_intent_returns_client_secret(client):
    response = await client.post("/payment-intent", json={"price": 5}, headers=auth("tok-buyer"))

    assert response.status_code == 200
    assert response.json()["clientSecret"] == "pi_test_secret"
    get_app_state().payment_gateway.create_payment_intent.assert_awaited_once_with(500)


@pytest.mark.unit
async def test_payment_intent_gateway_down_is_500(client):
    get_app_state().payment_gateway.create_payment_intent.side_effect = ServiceError(
        "PAYMENT_GATEWAY_UNAVAILABLE", "Cannot connect to payment gateway", 500, {}
    )

    response = await client.post("/payment-intent", json={"price": 5}, headers=auth("tok-buyer"))

    assert response.status_code == 500
    assert response.json()["error"] == "PAYMENT_GATEWAY_UNAVAILABLE"


@pytest.mark.unit
async def test_record_purchase_is_idempotent(client):
    body = {"transaction_id": "pi_777", "coins": 100, "price": 5}

    first = await client.post("/payments", json=body, headers=auth("tok-buyer"))
    second = await client.post("/payments", json=body, headers=auth("tok-buyer"))

    assert first.status_code == 201
    assert second.status_code == 200
    assert second.json()["duplicate"] is True
    profile = await client.get(f"/users/{BUYER_EMAIL}", headers=auth("tok-buyer"))
    assert profile.json()["coins"] == 200


@pytest.mark.unit
async def test_workers_cannot_buy_coins(client):
    response = await client.post(
        "/payments",
        json={"transaction_id": "pi_1", "coins": 100},
        headers=auth("tok-worker"),
    )
    assert response.status_code == 403


@pytest.mark.unit
async def test_payment_history_self_or_admin(client):
    own = await client.get(f"/payments/{BUYER_EMAIL}", headers=auth("tok-buyer"))
    other = await client.get(f"/payments/{BUYER_EMAIL}", headers=auth("tok-worker"))
    admin = await client.get(f"/payments/{BUYER_EMAIL}", headers=auth("tok-admin"))

    assert own.status_code == 200
    assert other.status_code == 403
    assert admin.status_code == 200


@pytest.mark.unit
@pytest.mark.parametrize("raw_price", [b"1e400", b"Infinity", b"NaN"])
async def test_payment_intent_with_non_finite_price_is_400(client, raw_price):
    response = await client.post(
        "/payment-intent",
        content=b'{"price": ' + raw_price + b"}",
        headers={**auth("tok-buyer"), "content-type": "application/json"},
    )

    assert response.status_code == 400
    assert response.json()["error"] == "VALIDATION_ERROR"
    get_app_state().payment_gateway.create_payment_intent.assert_not_awaited()


@pytest.mark.unit
async def test_replaying_another_buyers_transaction_is_409(client):
    body = {"transaction_id": "pi_shared", "coins": 100, "price": 5}
    first = await client.post("/payments", json=body, headers=auth("tok-buyer"))
    assert first.status_code == 201

    sign_up = await client.post(
        "/users", json={"name": "Second Buyer", "role": "buyer"}, headers=auth("tok-newcomer")
    )
    assert sign_up.status_code == 201

    replay = await client.post("/payments", json=body, headers=auth("tok-newcomer"))

    assert replay.status_code == 409
    assert replay.json()["error"] == "INVALID_STATE"
    assert BUYER_EMAIL not in replay.text
