"""Add/edit product form: choices, validation and row mapping.

Weights are always kilograms and dimensions always centimetres; whatever
unit an old draft or row carries is overwritten on the way in and out.
"""

from __future__ import annotations

import math
from typing import Any

from storefront.backend.core.media import PublicUrlResolver, resolve_media, public_url_from_path
from storefront.backend.errors import ValidationFailed
from storefront.backend.schemas.catalog import Category, Nutrient
from storefront.backend.schemas.dashboard import ProductFormData

MAX_IMAGES = 5
MAX_VIDEO_BYTES = 50 * 1024 * 1024
WEIGHT_UNIT = "kg"
DIMENSION_UNIT = "cm"

AVAILABLE_NUTRIENTS = ["Protein", "Fat", "Carbs", "Fiber", "Calcium", "Iron", "Vitamin C", "Vitamin D"]

CATEGORY_OPTIONS: dict[str, list[str]] = {
    "Organic Groceries & Superfoods": [
        "Organic Staples & Grains",
        "Cold-Pressed Oils & Ghee",
        "Organic Spices & Condiments",
        "Superfoods & Immunity Boosters",
        "Natural Sweeteners",
        "Organic Snacks & Beverages",
        "Dairy & Plant-Based Alternatives",
    ],
    "Herbal & Natural Personal Care": [
        "Organic Skincare",
        "Herbal Haircare",
        "Natural Oral Care",
        "Chemical-Free Cosmetics",
        "Organic Fragrances",
    ],
    "Health & Wellness Products": [
        "Ayurvedic & Herbal Supplements",
        "Nutritional Supplements",
        "Detox & Gut Health",
        "Immunity Boosters",
        "Essential Oils & Aromatherapy",
    ],
    "Sustainable Home & Eco-Friendly Living": [
        "Organic Cleaning Products",
        "Reusable & Biodegradable Kitchen Essentials",
        "Organic Gardening",
        "Sustainable Home Décor",
    ],
    "Sustainable Fashion & Accessories": [
        "Organic Cotton & Hemp Clothing",
        "Eco-Friendly Footwear",
        "Bamboo & Wooden Accessories",
        "Handmade & Sustainable Jewelry",
    ],
    "Organic Baby & Kids Care": [
        "Organic Baby Food",
        "Natural Baby Skincare",
        "Eco-Friendly Baby Clothing",
        "Non-Toxic Toys & Accessories",
    ],
    "Organic Pet Care": ["Organic Pet Food", "Herbal Grooming & Skincare", "Natural Pet Supplements"],
    "Special Dietary & Lifestyle Products": [
        "Gluten-Free Foods",
        "Vegan & Plant-Based Alternatives",
        "Keto & Low-Carb Products",
        "Diabetic-Friendly Foods",
    ],
}

# field → label
_NUMERIC_FIELDS: dict[str, str] = {
    "original_price": "Original price",
    "discount_price": "Selling price",
    "stock_quantity": "Stock quantity",
    "weight": "Weight",
    "length": "Length",
    "width": "Width",
    "height": "Height",
}


def _parse_number(raw: str) -> float | None:
    """Finite float value of ``raw``; ``None`` for text, ``inf`` and ``nan``."""
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    return value if math.isfinite(value) else None


def normalize_draft(data: dict[str, Any] | ProductFormData | None) -> ProductFormData | None:
    """Turn a stored draft (possibly from an older form) into current form data."""
    if data is None:
        return None
    form = data if isinstance(data, ProductFormData) else ProductFormData.model_validate(data)
    return form.model_copy(update={"weight_unit": WEIGHT_UNIT, "dimension_unit": DIMENSION_UNIT})


def validate_form(
    form: ProductFormData,
    image_count: int,
    video_size: int | None = None,
) -> dict[str, str]:
    """Field → message for every problem; empty when the form can be saved."""
    errors: dict[str, str] = {}
    if not form.product_name.strip():
        errors["product_name"] = "Product name is required"
    if not form.product_description.strip():
        errors["product_description"] = "Product description is required"
    if not form.hsn_code.strip():
        errors["hsn_code"] = "HSN Code is required for shipping"

    for field_name, label in _NUMERIC_FIELDS.items():
        raw = getattr(form, field_name)
        if not str(raw).strip():
            errors[field_name] = f"{label} is required"
            continue
        value = _parse_number(raw)
        if value is None:
            errors[field_name] = f"{label} must be a number"
        elif value < 0:
            errors[field_name] = f"{label} cannot be negative"

    if form.tax_rate.strip() and _parse_number(form.tax_rate) is None:
        errors["tax_rate"] = "Tax rate must be a number"

    original = _parse_number(form.original_price)
    selling = _parse_number(form.discount_price)
    if "original_price" not in errors and "discount_price" not in errors and selling > original:
        errors["discount_price"] = "Selling price cannot exceed the original price"

    if image_count < 1:
        errors["images"] = "Please upload at least 1 product image."
    elif image_count > MAX_IMAGES:
        errors["images"] = f"You can upload a maximum of {MAX_IMAGES} images (including existing ones)."

    if video_size is not None and video_size > MAX_VIDEO_BYTES:
        errors["video"] = "Video file must be under 50MB."

    return errors


def ensure_valid(form: ProductFormData, image_count: int, video_size: int | None = None) -> None:
    errors = validate_form(form, image_count, video_size)
    if errors:
        raise ValidationFailed("Please correct the highlighted fields.", errors)


def add_nutrient(form: ProductFormData, name: str, value: str) -> ProductFormData:
    if not value.strip():
        raise ValidationFailed("Value required", {"nutrients": "Please enter a value for the nutrient"})
    if name not in AVAILABLE_NUTRIENTS:
        raise ValidationFailed("Unknown nutrient", {"nutrients": f"{name} is not a supported nutrient"})
    if any(n.name == name for n in form.nutrients):
        raise ValidationFailed("Nutrient already added", {"nutrients": f"{name} is already in the list"})
    return form.model_copy(update={"nutrients": [*form.nutrients, Nutrient(name=name, value=value)]})


def add_category(form: ProductFormData, main: str, sub: str) -> ProductFormData:
    if sub not in CATEGORY_OPTIONS.get(main, []):
        raise ValidationFailed("Unknown category", {"categories": f"{main} > {sub} is not a valid category"})
    if any(c.main == main and c.sub == sub for c in form.categories):
        raise ValidationFailed(
            "Category already added", {"categories": f"{main} > {sub} is already in the list"}
        )
    return form.model_copy(update={"categories": [*form.categories, Category(main=main, sub=sub)]})


def _product_values(form: ProductFormData) -> dict[str, Any]:
    return {
        "product_name": form.product_name,
        "product_description": form.product_description,
        "sku": form.sku,
        "hsn_code": form.hsn_code,
        "tax_rate": float(form.tax_rate) if form.tax_rate.strip() else 0.0,
        "original_price": float(form.original_price),
        "discount_price": float(form.discount_price),
        "stock_quantity": int(float(form.stock_quantity)),
        "weight": float(form.weight),
        "weight_unit": WEIGHT_UNIT,
        "length": float(form.length),
        "width": float(form.width),
        "height": float(form.height),
        "dimension_unit": DIMENSION_UNIT,
        "nutrients": [n.model_dump() for n in form.nutrients],
        "categories": [c.model_dump() for c in form.categories],
    }


def to_product_row(
    form: ProductFormData,
    company_id: str,
    photo_paths: list[str],
    video_path: str | None,
) -> dict[str, Any]:
    """Insert payload for a new product; new products always await approval."""
    row = _product_values(form)
    row.update(
        company_id=company_id,
        product_photo_urls=photo_paths,
        product_video_url=video_path,
        is_approved=False,
    )
    return row


def to_update_row(form: ProductFormData, photo_paths: list[str], video_path: str | None) -> dict[str, Any]:
    row = _product_values(form)
    row.update(product_photo_urls=photo_paths, product_video_url=video_path)
    return row


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def from_product_row(row: dict[str, Any], storage: PublicUrlResolver) -> ProductFormData:
    """Prefill the edit form; stored media paths become public URLs."""
    video = row.get("product_video_url")
    return ProductFormData(
        product_name=row.get("product_name") or "",
        product_description=row.get("product_description") or "",
        sku=row.get("sku") or "",
        hsn_code=row.get("hsn_code") or "",
        tax_rate=_as_text(row.get("tax_rate")),
        original_price=_as_text(row.get("original_price")),
        discount_price=_as_text(row.get("discount_price")),
        stock_quantity=_as_text(row.get("stock_quantity")),
        weight=_as_text(row.get("weight")),
        weight_unit=WEIGHT_UNIT,
        length=_as_text(row.get("length")),
        width=_as_text(row.get("width")),
        height=_as_text(row.get("height")),
        dimension_unit=DIMENSION_UNIT,
        nutrients=row.get("nutrients") or [],
        categories=row.get("categories") or [],
        existing_product_photo_urls=resolve_media(storage, row.get("product_photo_urls")),
        existing_product_video_url=public_url_from_path(storage, video) if video else None,
    )
