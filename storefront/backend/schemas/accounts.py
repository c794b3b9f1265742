"""Pydantic schemas for profiles, addresses, companies and auth I/O."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# ── Stored shapes ───────────────────────────────────────────────────────────


class Address(BaseModel):
    """One entry of ``user_profiles.addresses`` (stored with camelCase keys).

    ``house_number``/``street``/``area`` belong to the older address schema and
    are only read as fallbacks for the three address lines.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    name: str = ""
    address_line1: str = ""
    address_line2: str | None = None
    address_line3: str | None = None
    city: str = ""
    state: str = ""
    pincode: str = ""
    country: str = "India"
    primary_phone: str = ""
    secondary_phone: str | None = None
    is_default: bool = False
    lat: float | None = None
    lng: float | None = None
    house_number: str | None = None
    street: str | None = None
    area: str | None = None


class ShippingAddress(BaseModel):
    """Snapshot copied into ``orders.shipping_address``."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    name: str = ""
    phone: str = ""
    address_line1: str | None = None
    address_line2: str | None = None
    address_line3: str | None = None
    city: str = ""
    state: str = ""
    pincode: str = ""
    country: str = ""
    lat: float | None = None
    lng: float | None = None


class UserProfile(BaseModel):
    id: str
    email: str | None = None
    name: str | None = None
    phone: str | None = None
    addresses: list[Address] = Field(default_factory=list)
    created_at: str | None = None


class Company(BaseModel):
    id: str
    user_id: str | None = None
    company_name: str = ""
    company_logo_url: str | None = None
    is_approved: bool = False


class CompanyStatus(BaseModel):
    id: str
    is_approved: bool


# ── Request models ──────────────────────────────────────────────────────────


class AddressIn(BaseModel):
    """Address fields as typed into a form."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    name: str = ""
    address_line1: str = ""
    address_line2: str | None = None
    address_line3: str | None = None
    city: str = ""
    state: str = ""
    pincode: str = ""
    country: str = "India"
    primary_phone: str = ""
    secondary_phone: str | None = None
    is_default: bool = True
    lat: float | None = None
    lng: float | None = None


class CredentialsIn(BaseModel):
    email: str = Field(..., min_length=3)
    password: str = Field(..., min_length=6)


class RegistrationIn(CredentialsIn):
    name: str = ""
    primary_phone: str = ""
    address: AddressIn | None = None


class ProfileCompletionIn(BaseModel):
    name: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=10)
    address: AddressIn | None = None


class AddressFormIn(BaseModel):
    """Profile name plus one address, editing ``address_id`` when given."""

    profile_name: str = Field(..., min_length=1)
    address: AddressIn
    address_id: str | None = None


class OAuthCallbackIn(BaseModel):
    access_token: str
    refresh_token: str | None = None


# ── Response models ─────────────────────────────────────────────────────────


class SessionOut(BaseModel):
    access_token: str | None = None
    refresh_token: str | None = None
    user_id: str
    email: str | None = None
    needs_profile_completion: bool = False
    redirect: str | None = None


class ProfileOut(BaseModel):
    profile: UserProfile
    needs_completion: bool
