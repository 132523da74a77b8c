"""Async HTTP client for the external identity provider."""

from __future__ import annotations

from typing import Any

import httpx

from worknest_service.core.exceptions import ServiceError
from worknest_service.logging import get_logger


class IdentityClient:
    """
    Client for bearer-token verification.

    Delegates credential checks to the identity provider via
    ``POST <verify_path> {"token": ...}``. The provider answers with
    ``{"valid": bool, "email": str}``; WorkNest never sees passwords.
    """

    def __init__(
        self,
        base_url: str,
        verify_path: str,
        timeout_seconds: int,
    ) -> None:
        self._base_url = base_url
        self._verify_path = verify_path
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=httpx.Timeout(timeout_seconds),
        )

    async def verify_token(self, token: str) -> dict[str, Any]:
        """
        Resolve a bearer token to an authenticated identity.

        Args:
            token: Opaque bearer token from the Authorization header

        Returns:
            dict with keys: valid (bool), email (str)

        Raises:
            ServiceError: FORBIDDEN (403) if the provider rejects the token
            ServiceError: IDENTITY_SERVICE_UNAVAILABLE (500) on connection/timeout/unexpected errors
        """
        logger = get_logger(__name__)

        try:
            response = await self._client.post(
                self._verify_path,
                json={"token": token},
            )
        except (httpx.ConnectError, httpx.TimeoutException) as exc:
            logger.warning(
                "Identity provider connection failed",
                extra={"error": str(exc), "base_url": self._base_url},
            )
            raise ServiceError(
                error="IDENTITY_SERVICE_UNAVAILABLE",
                message="Cannot connect to identity provider",
                status_code=500,
                details={},
            ) from exc
        except httpx.HTTPError as exc:
            logger.warning(
                "Identity provider HTTP error",
                extra={"error": str(exc), "base_url": self._base_url},
            )
            raise ServiceError(
                error="IDENTITY_SERVICE_UNAVAILABLE",
                message="Identity provider request failed",
                status_code=500,
                details={},
            ) from exc

        if response.status_code in (401, 403):
            raise ServiceError(
                error="FORBIDDEN",
                message="Invalid or expired credential",
                status_code=403,
                details={},
            )

        if response.status_code != 200:
            logger.warning(
                "Identity provider unexpected status",
                extra={
                    "status_code": response.status_code,
                    "base_url": self._base_url,
                },
            )
            raise ServiceError(
                error="IDENTITY_SERVICE_UNAVAILABLE",
                message="Identity provider returned unexpected status",
                status_code=500,
                details={},
            )

        result: dict[str, Any] = response.json()

        email = result.get("email")
        if not result.get("valid", False) or not isinstance(email, str) or not email:
            raise ServiceError(
                error="FORBIDDEN",
                message="Invalid or expired credential",
                status_code=403,
                details={},
            )

        return result

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()
