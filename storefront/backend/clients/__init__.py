"""External service clients – re-exports the public client types."""

from __future__ import annotations

from storefront.backend.clients.backend import (
    AuthClient,
    AuthUser,
    BackendClient,
    Query,
    Session,
    StorageClient,
    Subscription,
    build_public_url,
)
from storefront.backend.clients.payments import (
    PaymentHandle,
    PaymentPrefill,
    PaymentResult,
    StripeGateway,
)

__all__ = [
    "AuthClient",
    "AuthUser",
    "BackendClient",
    "PaymentHandle",
    "PaymentPrefill",
    "PaymentResult",
    "Query",
    "Session",
    "StorageClient",
    "StripeGateway",
    "Subscription",
    "build_public_url",
]
