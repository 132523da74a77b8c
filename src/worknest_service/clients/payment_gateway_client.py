"""Async HTTP client for the card payment gateway."""

from __future__ import annotations

from typing import Any

import httpx

from worknest_service.core.exceptions import ServiceError
from worknest_service.logging import get_logger


class PaymentGatewayClient:
    """
    Client for creating payment intents.

    The gateway captures the card payment on the client side; WorkNest
    only asks it for a payment intent and hands the returned client
    secret to the browser.
    """

    def __init__(
        self,
        base_url: str,
        payment_intents_path: str,
        secret_key: str,
        currency: str,
        timeout_seconds: int,
    ) -> None:
        self._base_url = base_url
        self._payment_intents_path = payment_intents_path
        self._currency = currency
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=httpx.Timeout(timeout_seconds),
            headers={"Authorization": f"Bearer {secret_key}"},
        )

    async def create_payment_intent(self, amount: int) -> dict[str, Any]:
        """
        Create a payment intent for an amount in minor currency units.

        Returns:
            dict with keys: client_secret, payment_intent_id, amount, currency

        Raises:
            ServiceError: PAYMENT_GATEWAY_UNAVAILABLE (500) on connection,
                timeout, rejected request or malformed response
        """
        logger = get_logger(__name__)

        try:
            response = await self._client.post(
                self._payment_intents_path,
                data={
                    "amount": str(amount),
                    "currency": self._currency,
                    "payment_method_types[]": "card",
                },
            )
        except (httpx.ConnectError, httpx.TimeoutException) as exc:
            logger.warning(
                "Payment gateway connection failed",
                extra={"error": str(exc), "base_url": self._base_url},
            )
            raise ServiceError(
                error="PAYMENT_GATEWAY_UNAVAILABLE",
                message="Cannot connect to payment gateway",
                status_code=500,
                details={},
            ) from exc
        except httpx.HTTPError as exc:
            logger.warning(
                "Payment gateway HTTP error",
                extra={"error": str(exc), "base_url": self._base_url},
            )
            raise ServiceError(
                error="PAYMENT_GATEWAY_UNAVAILABLE",
                message="Payment gateway request failed",
                status_code=500,
                details={},
            ) from exc

        if response.status_code != 200:
            logger.warning(
                "Payment gateway unexpected status",
                extra={"status_code": response.status_code, "base_url": self._base_url},
            )
            raise ServiceError(
                error="PAYMENT_GATEWAY_UNAVAILABLE",
                message="Payment gateway rejected the payment intent",
                status_code=500,
                details={},
            )

        body: dict[str, Any] = response.json()
        client_secret = body.get("client_secret")
        if not isinstance(client_secret, str) or not client_secret:
            raise ServiceError(
                error="PAYMENT_GATEWAY_UNAVAILABLE",
                message="Payment gateway response is missing the client secret",
                status_code=500,
                details={},
            )

        return {
            "client_secret": client_secret,
            "payment_intent_id": body.get("id"),
            "amount": amount,
            "currency": self._currency,
        }

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()
