"""Auth and profile routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from storefront.backend.api.deps import get_backend, get_db, get_settings, require_session
from storefront.backend.clients import BackendClient, Session
from storefront.backend.schemas import (
    AddressFormIn,
    CredentialsIn,
    MessageOut,
    OAuthCallbackIn,
    ProfileCompletionIn,
    ProfileOut,
    RegistrationIn,
    SessionOut,
)
from storefront.backend.services import auth

router = APIRouter(tags=["account"])


@router.post("/auth/login", response_model=SessionOut)
def login(body: CredentialsIn, backend: BackendClient = Depends(get_backend)) -> SessionOut:
    return auth.sign_in(backend, body)


@router.post("/auth/signup", response_model=SessionOut, status_code=status.HTTP_201_CREATED)
def signup(body: CredentialsIn, backend: BackendClient = Depends(get_backend)) -> SessionOut:
    return auth.sign_up(backend, body)


@router.post("/auth/register", response_model=SessionOut, status_code=status.HTTP_201_CREATED)
def register(body: RegistrationIn, backend: BackendClient = Depends(get_backend)) -> SessionOut:
    return auth.register(backend, body)


@router.get("/auth/oauth/{provider}")
def oauth_start(
    provider: str,
    redirect_to: str | None = None,
    backend: BackendClient = Depends(get_backend),
    settings: dict = Depends(get_settings),
) -> dict[str, str]:
    """URL to send the browser to for provider sign-in (e.g. ``google``)."""
    target = redirect_to or settings["auth"]["oauth_redirect_url"]
    return {"url": auth.oauth_redirect(backend, provider, target)}


@router.post("/auth/callback", response_model=SessionOut)
def oauth_callback(body: OAuthCallbackIn, backend: BackendClient = Depends(get_backend)) -> SessionOut:
    return auth.oauth_callback(backend, body.access_token, body.refresh_token)


@router.post("/auth/logout", response_model=MessageOut)
def logout(
    session: Session = Depends(require_session),
    backend: BackendClient = Depends(get_backend),
) -> MessageOut:
    auth.sign_out(backend, session)
    return MessageOut(title="Logged out", description="You have been signed out.")


@router.get("/auth/redirect")
def role_redirect(
    session: Session = Depends(require_session),
    db: BackendClient = Depends(get_db),
) -> dict[str, str]:
    return {"redirect": auth.role_redirect(db, session.user.id)}


@router.get("/profile", response_model=ProfileOut)
def get_profile(
    session: Session = Depends(require_session),
    db: BackendClient = Depends(get_db),
) -> ProfileOut:
    return auth.profile_status(db, session)


@router.post("/profile/complete", response_model=ProfileOut)
def complete_profile(
    body: ProfileCompletionIn,
    session: Session = Depends(require_session),
    db: BackendClient = Depends(get_db),
) -> ProfileOut:
    return auth.complete_profile(db, session, body)


@router.put("/profile/address", response_model=ProfileOut)
def save_address(
    body: AddressFormIn,
    session: Session = Depends(require_session),
    db: BackendClient = Depends(get_db),
) -> ProfileOut:
    return auth.save_address(db, session, body)
