"""FastAPI dependencies – per-request session and backend client.

The shopper's backend access token arrives as ``Authorization: Bearer``; it
is validated against the auth service on every request and the backend
client is scoped to it so row-level security sees the right user.
"""

from __future__ import annotations

from typing import Any

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from storefront.backend.clients import BackendClient, Session, StripeGateway
from storefront.backend.core.dashboard import DashboardStore
from storefront.backend.errors import AuthenticationRequired

_bearer = HTTPBearer(auto_error=False)


def get_settings(request: Request) -> dict[str, Any]:
    return request.app.state.config


def get_backend(request: Request) -> BackendClient:
    return request.app.state.backend


def get_gateway(request: Request) -> StripeGateway:
    return request.app.state.gateway


def get_store(request: Request) -> DashboardStore:
    return request.app.state.dashboard


def get_session(
    backend: BackendClient = Depends(get_backend),
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer),
) -> Session | None:
    """The caller's session, or ``None`` when no token was sent."""
    if credentials is None or not credentials.credentials:
        return None
    return backend.auth.get_user(credentials.credentials)


def require_session(session: Session | None = Depends(get_session)) -> Session:
    if session is None:
        raise AuthenticationRequired("Authentication required.")
    return session


def get_db(
    backend: BackendClient = Depends(get_backend),
    session: Session | None = Depends(get_session),
) -> BackendClient:
    """Backend client acting as the caller (anonymous without a session)."""
    return backend.for_session(session) if session is not None else backend
