"""
Tests for the add/edit product form rules.
"""

from __future__ import annotations

import pytest

from storefront.backend.clients import build_public_url
from storefront.backend.core.product_form import (
    MAX_VIDEO_BYTES,
    add_category,
    add_nutrient,
    ensure_valid,
    from_product_row,
    normalize_draft,
    to_product_row,
    to_update_row,
    validate_form,
)
from storefront.backend.errors import ValidationFailed
from storefront.backend.schemas import ProductFormData


class _Storage:
    def get_public_url(self, bucket: str, path: str) -> str:
        return build_public_url("https://project.example.co", bucket, path)


def valid_form(**overrides) -> ProductFormData:
    values = dict(
        product_name="Millet Flour",
        product_description="Stone ground",
        hsn_code="1102",
        tax_rate="5",
        original_price="200",
        discount_price="150",
        stock_quantity="25",
        weight="1",
        length="10",
        width="5",
        height="20",
    )
    values.update(overrides)
    return ProductFormData(**values)


class TestValidation:
    def test_valid_form_has_no_errors(self) -> None:
        assert validate_form(valid_form(), image_count=1) == {}

    def test_required_text_fields(self) -> None:
        errors = validate_form(valid_form(product_name=" ", product_description="", hsn_code=""), 1)
        assert set(errors) == {"product_name", "product_description", "hsn_code"}
        assert errors["hsn_code"] == "HSN Code is required for shipping"

    def test_numeric_fields(self) -> None:
        errors = validate_form(valid_form(weight="", length="abc", stock_quantity="-1", tax_rate="x"), 1)
        assert errors["weight"] == "Weight is required"
        assert errors["length"] == "Length must be a number"
        assert errors["stock_quantity"] == "Stock quantity cannot be negative"
        assert errors["tax_rate"] == "Tax rate must be a number"

    def test_infinite_and_nan_are_not_numbers(self) -> None:
        errors = validate_form(valid_form(stock_quantity="inf", original_price="nan", tax_rate="-inf"), 1)
        assert errors == {
            "stock_quantity": "Stock quantity must be a number",
            "original_price": "Original price must be a number",
            "tax_rate": "Tax rate must be a number",
        }

    def test_selling_price_cannot_exceed_original(self) -> None:
        errors = validate_form(valid_form(discount_price="250"), 1)
        assert errors == {"discount_price": "Selling price cannot exceed the original price"}

    def test_image_count_bounds(self) -> None:
        assert validate_form(valid_form(), 0)["images"] == "Please upload at least 1 product image."
        assert "maximum of 5" in validate_form(valid_form(), 6)["images"]
        assert "images" not in validate_form(valid_form(), 5)

    def test_video_size_limit(self) -> None:
        assert validate_form(valid_form(), 1, video_size=MAX_VIDEO_BYTES) == {}
        errors = validate_form(valid_form(), 1, video_size=MAX_VIDEO_BYTES + 1)
        assert errors["video"] == "Video file must be under 50MB."

    def test_ensure_valid_raises_with_field_errors(self) -> None:
        with pytest.raises(ValidationFailed) as excinfo:
            ensure_valid(valid_form(product_name=""), 1)
        assert "product_name" in excinfo.value.errors


class TestListEditing:
    def test_add_nutrient(self) -> None:
        form = add_nutrient(valid_form(), "Protein", "12g")
        assert [n.name for n in form.nutrients] == ["Protein"]

    def test_duplicate_or_unknown_nutrient(self) -> None:
        form = add_nutrient(valid_form(), "Protein", "12g")
        with pytest.raises(ValidationFailed, match="already added"):
            add_nutrient(form, "Protein", "3g")
        with pytest.raises(ValidationFailed, match="Unknown nutrient"):
            add_nutrient(form, "Unobtainium", "1g")
        with pytest.raises(ValidationFailed, match="Value required"):
            add_nutrient(form, "Fat", " ")

    def test_add_category(self) -> None:
        form = add_category(valid_form(), "Organic Pet Care", "Organic Pet Food")
        assert form.categories[0].sub == "Organic Pet Food"
        with pytest.raises(ValidationFailed):
            add_category(form, "Organic Pet Care", "Organic Pet Food")
        with pytest.raises(ValidationFailed):
            add_category(form, "Organic Pet Care", "Organic Staples & Grains")


class TestRowMapping:
    def test_new_product_awaits_approval(self) -> None:
        row = to_product_row(valid_form(weight_unit="g"), "co-a", ["images/co-a/a.png"], None)
        assert row["is_approved"] is False
        assert row["company_id"] == "co-a"
        assert row["weight_unit"] == "kg"
        assert row["dimension_unit"] == "cm"
        assert row["stock_quantity"] == 25
        assert row["original_price"] == 200.0
        assert row["tax_rate"] == 5.0

    def test_update_row_leaves_approval_alone(self) -> None:
        row = to_update_row(valid_form(tax_rate=""), ["a.png"], "videos/v.mp4")
        assert "is_approved" not in row
        assert row["tax_rate"] == 0.0
        assert row["product_video_url"] == "videos/v.mp4"

    def test_from_product_row_resolves_media(self) -> None:
        form = from_product_row(
            {
                "product_name": "Ghee",
                "original_price": 500.0,
                "discount_price": 450.5,
                "stock_quantity": 3,
                "weight_unit": "lb",
                "nutrients": [{"name": "Fat", "value": "99g"}],
                "product_photo_urls": ["images/co/a b.png"],
                "product_video_url": None,
            },
            _Storage(),
        )
        assert form.original_price == "500"
        assert form.discount_price == "450.5"
        assert form.stock_quantity == "3"
        assert form.weight_unit == "kg"
        assert form.existing_product_photo_urls[0].endswith("/images/co/a%20b.png")
        assert form.existing_product_video_url is None
        assert form.nutrients[0].value == "99g"

    def test_normalize_draft_forces_units(self) -> None:
        draft = normalize_draft({"productName": "Tea", "weightUnit": "g", "dimensionUnit": "in"})
        assert draft.product_name == "Tea"
        assert (draft.weight_unit, draft.dimension_unit) == ("kg", "cm")
        assert normalize_draft(None) is None
