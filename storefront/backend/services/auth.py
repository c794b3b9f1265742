"""Account service – sign-in, registration, profiles and addresses.

Every function takes a :class:`BackendClient` (scoped to the signed-in user
where a session exists) and returns API schemas. Profile rows live in
``user_profiles`` keyed by the auth user id.
"""

from __future__ import annotations

import logging

from storefront.backend.clients import BackendClient, Session
from storefront.backend.core.addresses import (
    add_address,
    dump_addresses,
    find_address,
    new_address,
    profile_needs_completion,
    replace_address,
    validate_address,
)
from storefront.backend.errors import AuthenticationRequired, BackendError, NotFound, StorefrontError, ValidationFailed
from storefront.backend.schemas import (
    AddressFormIn,
    CredentialsIn,
    ProfileCompletionIn,
    ProfileOut,
    RegistrationIn,
    SessionOut,
    UserProfile,
)

logger = logging.getLogger(__name__)

COMPANY_HOME = "/company/dashboard"
SHOP_HOME = "/"


def require_user(session: Session | None) -> str:
    """Return the signed-in user id or raise :class:`AuthenticationRequired`."""
    if session is None or not session.user.id:
        raise AuthenticationRequired("Please log in to continue.")
    return session.user.id


def get_profile(db: BackendClient, user_id: str) -> UserProfile | None:
    row = db.table("user_profiles").select("*").eq("id", user_id).maybe_single()
    return UserProfile.model_validate(row) if row else None


def is_company_user(db: BackendClient, user_id: str) -> bool:
    return db.table("companies").select("user_id").eq("user_id", user_id).maybe_single() is not None


def role_redirect(db: BackendClient, user_id: str) -> str:
    """Company users land on their dashboard, everyone else on the shop."""
    try:
        return COMPANY_HOME if is_company_user(db, user_id) else SHOP_HOME
    except StorefrontError as exc:
        logger.error("Error during role redirect for %s: %s", user_id, exc)
        return SHOP_HOME


def ensure_profile(db: BackendClient, session: Session) -> ProfileOut:
    """Load the user's profile, creating the initial row on first sign-in."""
    profile = get_profile(db, session.user.id)
    if profile is None:
        logger.info("Creating initial profile for %s", session.user.id)
        try:
            db.table("user_profiles").insert({"id": session.user.id, "email": session.user.email}).execute()
        except BackendError as exc:
            logger.error("Error creating initial profile: %s", exc)
            raise StorefrontError("Failed to create initial profile.") from exc
        profile = UserProfile(id=session.user.id, email=session.user.email)
    return ProfileOut(profile=profile, needs_completion=profile_needs_completion(profile))


def _session_out(db: BackendClient, session: Session) -> SessionOut:
    scoped = db.for_session(session)
    redirect = role_redirect(scoped, session.user.id)
    # company accounts never see the shopper profile prompt
    needs_completion = False
    if redirect != COMPANY_HOME:
        needs_completion = ensure_profile(scoped, session).needs_completion
    return SessionOut(
        access_token=session.access_token,
        refresh_token=session.refresh_token,
        user_id=session.user.id,
        email=session.user.email,
        needs_profile_completion=needs_completion,
        redirect=redirect,
    )


def sign_in(db: BackendClient, credentials: CredentialsIn) -> SessionOut:
    session = db.auth.sign_in_with_password(credentials.email, credentials.password)
    logger.info("User %s signed in", session.user.id)
    return _session_out(db, session)


def sign_up(db: BackendClient, credentials: CredentialsIn) -> SessionOut:
    """Create an auth user; without a session the user must confirm by email first."""
    user, session = db.auth.sign_up(credentials.email, credentials.password)
    if session is None:
        logger.info("User %s registered, awaiting email confirmation", user.id)
        return SessionOut(user_id=user.id, email=user.email, redirect="/login")
    return _session_out(db, session)


def register(db: BackendClient, data: RegistrationIn) -> SessionOut:
    """Sign up and store the profile, with a first address when one is complete."""
    user, session = db.auth.sign_up(data.email, data.password)
    writer = db.for_session(session) if session is not None else db

    addresses = []
    address = data.address
    if address and address.address_line1 and address.pincode and address.country and address.primary_phone:
        if not address.name:
            address = address.model_copy(update={"name": data.name})
        addresses = add_address([], new_address(address))

    try:
        writer.table("user_profiles").upsert(
            {
                "id": user.id,
                "email": user.email,
                "name": data.name,
                "phone": data.primary_phone,
                "addresses": dump_addresses(addresses),
            },
            on_conflict="id",
        ).execute()
    except BackendError as exc:
        logger.error("Error saving user profile: %s", exc)
        raise StorefrontError("Failed to save profile details.") from exc

    logger.info("Registered user %s with %d address(es)", user.id, len(addresses))
    return SessionOut(
        access_token=session.access_token if session else None,
        refresh_token=session.refresh_token if session else None,
        user_id=user.id,
        email=user.email,
        redirect="/login",
    )


def oauth_redirect(db: BackendClient, provider: str, callback_url: str) -> str:
    return db.auth.oauth_url(provider, callback_url)


def oauth_callback(db: BackendClient, access_token: str, refresh_token: str | None = None) -> SessionOut:
    """Adopt tokens from the OAuth redirect and pick the landing page by role."""
    session = db.auth.set_session(access_token, refresh_token)
    return _session_out(db, session)


def sign_out(db: BackendClient, session: Session) -> None:
    db.auth.sign_out(session)


def complete_profile(db: BackendClient, session: Session, data: ProfileCompletionIn) -> ProfileOut:
    """Save name and phone, appending the address when one was entered."""
    user_id = require_user(session)
    current = get_profile(db, user_id)
    addresses = current.addresses if current else []

    if data.address is not None:
        errors = validate_address(data.address, data.name, data.phone)
        if errors:
            raise ValidationFailed("Please fill all mandatory fields.", errors)
        addresses = add_address(addresses, new_address(data.address))

    db.table("user_profiles").upsert(
        {
            "id": user_id,
            "email": (current.email if current else None) or session.user.email,
            "name": data.name,
            "phone": data.phone,
            "addresses": dump_addresses(addresses),
        },
        on_conflict="id",
    ).execute()
    logger.info("Profile completed for %s", user_id)

    profile = UserProfile(
        id=user_id,
        email=(current.email if current else None) or session.user.email,
        name=data.name,
        phone=data.phone,
        addresses=addresses,
        created_at=current.created_at if current else None,
    )
    return ProfileOut(profile=profile, needs_completion=profile_needs_completion(profile))


def save_address(db: BackendClient, session: Session, data: AddressFormIn) -> ProfileOut:
    """Create or edit one address; the saved address becomes the only default."""
    user_id = require_user(session)
    profile = get_profile(db, user_id)
    if profile is None:
        raise NotFound("Profile not found.")

    errors = validate_address(data.address, data.profile_name, data.address.primary_phone)
    if errors:
        raise ValidationFailed("Please fill all mandatory fields.", errors)

    if data.address_id:
        if find_address(profile.addresses, data.address_id) is None:
            raise NotFound("Address not found.")
        addresses = replace_address(profile.addresses, data.address_id, data.address)
    else:
        address = new_address(data.address.model_copy(update={"is_default": True}))
        addresses = add_address(profile.addresses, address)

    row = (
        db.table("user_profiles")
        .update(
            {
                "name": data.profile_name,
                "phone": data.address.primary_phone,
                "addresses": dump_addresses(addresses),
            }
        )
        .eq("id", user_id)
        .single()
    )
    updated = UserProfile.model_validate(row)
    return ProfileOut(profile=updated, needs_completion=profile_needs_completion(updated))


def profile_status(db: BackendClient, session: Session) -> ProfileOut:
    """Current profile plus whether the completion prompt should be shown."""
    require_user(session)
    out = ensure_profile(db, session)
    if out.needs_completion and is_company_user(db, session.user.id):
        out.needs_completion = False
    return out
