"""
Tests for shipping address rules.
"""

from __future__ import annotations

from storefront.backend.core.addresses import (
    add_address,
    address_lines,
    default_address,
    dump_addresses,
    find_address,
    new_address,
    profile_needs_completion,
    replace_address,
    shipping_snapshot,
    validate_address,
)
from storefront.backend.schemas.accounts import Address, AddressIn, UserProfile


def _address(address_id: str, default: bool = False, **fields) -> Address:
    return Address(id=address_id, address_line1="1 Main St", city="Pune", state="MH", pincode="411001", is_default=default, **fields)


class TestReading:
    def test_legacy_fields_fill_address_lines(self) -> None:
        legacy = Address.model_validate(
            {"id": "a", "houseNumber": "12", "street": "MG Road", "area": "Camp", "pincode": "411001"}
        )
        assert address_lines(legacy) == ("12", "MG Road", "Camp")

    def test_new_fields_win_over_legacy(self) -> None:
        address = Address(id="a", address_line1="Flat 4", house_number="12")
        assert address_lines(address)[0] == "Flat 4"

    def test_default_address_falls_back_to_first(self) -> None:
        a, b = _address("a"), _address("b")
        assert default_address([a, b]) is a
        assert default_address([a, _address("c", default=True)]).id == "c"
        assert default_address([]) is None

    def test_find_address(self) -> None:
        addresses = [_address("a"), _address("b")]
        assert find_address(addresses, "b").id == "b"
        assert find_address(addresses, "zzz") is None


class TestValidation:
    def test_missing_fields(self) -> None:
        errors = validate_address(AddressIn(city="Pune"), name="", phone=" ")
        assert errors == {
            "name": "Name is required",
            "primary_phone": "Phone is required",
            "address_line1": "Address Line 1 is required",
            "state": "State is required",
            "pincode": "Pincode is required",
        }

    def test_complete_address(self) -> None:
        data = AddressIn(address_line1="1 Main", city="Pune", state="MH", pincode="411001")
        assert validate_address(data, name="Asha", phone="9876543210") == {}


class TestWriting:
    def test_new_address_default_name(self) -> None:
        address = new_address(AddressIn(address_line1="1 Main", city="Pune"), address_id="n1")
        assert address.id == "n1"
        assert address.name == "1 Main, Pune"

    def test_add_default_clears_other_defaults(self) -> None:
        result = add_address([_address("a", default=True)], _address("b", default=True))
        assert [a.is_default for a in result] == [False, True]

    def test_first_address_becomes_default(self) -> None:
        result = add_address([], _address("a"))
        assert result[0].is_default

    def test_add_non_default_keeps_existing(self) -> None:
        result = add_address([_address("a", default=True)], _address("b"))
        assert [a.is_default for a in result] == [True, False]

    def test_replace_address_makes_it_the_only_default(self) -> None:
        addresses = [_address("a", default=True, name="Home"), _address("b", name="Work")]
        result = replace_address(addresses, "b", AddressIn(address_line1="2 New Rd", city="Mumbai", name=""))
        assert [a.is_default for a in result] == [False, True]
        assert result[1].address_line1 == "2 New Rd"
        assert result[1].name == "Work"
        assert result[1].id == "b"

    def test_dump_uses_camel_case(self) -> None:
        stored = dump_addresses([_address("a", default=True)])[0]
        assert stored["addressLine1"] == "1 Main St"
        assert stored["isDefault"] is True
        assert "addressLine2" not in stored


class TestSnapshotAndProfile:
    def test_shipping_snapshot(self) -> None:
        legacy = Address(id="a", house_number="12", street="MG Road", city="Pune", state="MH", pincode="411001")
        snap = shipping_snapshot(legacy, "Asha", "98")
        assert snap.address_line1 == "12"
        assert snap.address_line2 == "MG Road"
        assert snap.model_dump(by_alias=True)["addressLine1"] == "12"

    def test_profile_needs_completion(self) -> None:
        assert profile_needs_completion(UserProfile(id="u", name="A", phone="98"))
        assert not profile_needs_completion(
            UserProfile(id="u", name="A", phone="98", addresses=[_address("a")])
        )
        assert profile_needs_completion(UserProfile(id="u", name=" ", phone="98", addresses=[_address("a")]))
