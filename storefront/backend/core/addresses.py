"""Shipping address rules.

Addresses live as a JSON list on the user profile. By convention exactly one
entry carries ``isDefault``; every write path here keeps that true, but the
backend does not enforce it, so readers fall back to the first entry.
"""

from __future__ import annotations

import uuid

from storefront.backend.schemas.accounts import Address, AddressIn, ShippingAddress, UserProfile

REQUIRED_ADDRESS_FIELDS: dict[str, str] = {
    "address_line1": "Address Line 1",
    "city": "City",
    "state": "State",
    "pincode": "Pincode",
}


def address_lines(address: Address) -> tuple[str, str | None, str | None]:
    """Lines 1–3, falling back to house number / street / area of older records."""
    return (
        address.address_line1 or address.house_number or "",
        address.address_line2 or address.street or None,
        address.address_line3 or address.area or None,
    )


def default_address(addresses: list[Address]) -> Address | None:
    for address in addresses:
        if address.is_default:
            return address
    return addresses[0] if addresses else None


def find_address(addresses: list[Address], address_id: str) -> Address | None:
    return next((a for a in addresses if a.id == address_id), None)


def validate_address(address: AddressIn, name: str = "", phone: str = "") -> dict[str, str]:
    """Field → message for every missing mandatory value."""
    errors: dict[str, str] = {}
    if not name.strip():
        errors["name"] = "Name is required"
    if not phone.strip():
        errors["primary_phone"] = "Phone is required"
    for field_name, label in REQUIRED_ADDRESS_FIELDS.items():
        if not str(getattr(address, field_name) or "").strip():
            errors[field_name] = f"{label} is required"
    return errors


def new_address(data: AddressIn, address_id: str | None = None) -> Address:
    """Build a stored address from form fields; the name defaults to ``line1, city``."""
    name = data.name or f"{data.address_line1}, {data.city}"
    values = data.model_dump(exclude={"name"})
    return Address(id=address_id or str(uuid.uuid4()), name=name, **values)


def add_address(addresses: list[Address], address: Address) -> list[Address]:
    """Append ``address``; when it is the default every other entry loses the flag."""
    if address.is_default:
        addresses = [a.model_copy(update={"is_default": False}) for a in addresses]
    else:
        addresses = list(addresses)
        if not addresses:
            address = address.model_copy(update={"is_default": True})
    return [*addresses, address]


def replace_address(addresses: list[Address], address_id: str, data: AddressIn) -> list[Address]:
    """Overwrite ``address_id`` with ``data`` and make it the only default."""
    updated: list[Address] = []
    for address in addresses:
        if address.id == address_id:
            values = data.model_dump()
            values["is_default"] = True
            values["name"] = data.name or address.name
            updated.append(address.model_copy(update=values))
        else:
            updated.append(address.model_copy(update={"is_default": False}))
    return updated


def shipping_snapshot(address: Address, name: str, phone: str) -> ShippingAddress:
    line1, line2, line3 = address_lines(address)
    return ShippingAddress(
        name=name,
        phone=phone,
        address_line1=line1 or None,
        address_line2=line2,
        address_line3=line3,
        city=address.city,
        state=address.state,
        pincode=address.pincode,
        country=address.country,
        lat=address.lat,
        lng=address.lng,
    )


def dump_addresses(addresses: list[Address]) -> list[dict]:
    """Stored JSON form (camelCase keys, unset optionals omitted)."""
    return [a.model_dump(by_alias=True, exclude_none=True) for a in addresses]


def profile_needs_completion(profile: UserProfile) -> bool:
    """A profile is complete with a name, a phone and one address with a pincode."""
    has_name = bool((profile.name or "").strip())
    has_phone = bool((profile.phone or "").strip())
    has_pincode = any(a.pincode.strip() for a in profile.addresses)
    return not (has_name and has_phone and has_pincode)
