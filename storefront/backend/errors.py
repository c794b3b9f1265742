"""Exception hierarchy shared by clients, services and routes.

Every failure is scoped to the single operation that raised it. Routes turn
these into JSON responses in :mod:`storefront.backend.api.app`; nothing is
retried automatically.
"""

from __future__ import annotations


class StorefrontError(Exception):
    """Base class for all storefront failures."""

    status_code = 500
    redirect: str | None = None

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class AuthenticationRequired(StorefrontError):
    """No valid session; the caller should send the user to the login page."""

    status_code = 401
    redirect = "/login"


class NotFound(StorefrontError):
    status_code = 404


class NotApproved(StorefrontError):
    """Company or product exists but has not been approved yet."""

    status_code = 403

    def __init__(self, message: str, redirect: str | None = "/company/dashboard"):
        super().__init__(message)
        self.redirect = redirect


class Conflict(StorefrontError):
    """Duplicate join row (already in cart, already reviewed, ...)."""

    status_code = 409


class ValidationFailed(StorefrontError):
    """Form-level validation error with per-field messages."""

    status_code = 422

    def __init__(self, message: str, errors: dict[str, str] | None = None):
        super().__init__(message)
        self.errors = errors or {}


class PaymentFailed(StorefrontError):
    """The payment gateway reported a failure description."""

    status_code = 402


class BackendError(StorefrontError):
    """Error response from the backend-as-a-service."""

    status_code = 502

    def __init__(
        self,
        message: str,
        code: str | None = None,
        status: int | None = None,
        details: str | None = None,
    ):
        super().__init__(message)
        self.code = code
        self.status = status
        self.details = details

    @property
    def is_no_rows(self) -> bool:
        """True when a single-row read matched nothing."""
        return self.code == "PGRST116"


class BackendUnavailable(StorefrontError):
    """Transport failure talking to the backend-as-a-service."""

    status_code = 503
