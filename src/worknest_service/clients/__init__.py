"""HTTP clients for the identity provider and the payment gateway."""

from worknest_service.clients.identity_client import IdentityClient
from worknest_service.clients.payment_gateway_client import PaymentGatewayClient

__all__ = ["IdentityClient", "PaymentGatewayClient"]
