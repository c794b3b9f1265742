"""Pydantic schemas for products, listings and reviews."""

from __future__ import annotations

from pydantic import BaseModel, Field


class Nutrient(BaseModel):
    name: str
    value: str


class Category(BaseModel):
    main: str
    sub: str


class Product(BaseModel):
    """A ``products`` row; media fields hold storage paths, not URLs."""

    id: str
    company_id: str | None = None
    product_name: str = ""
    product_description: str = ""
    sku: str | None = None
    hsn_code: str | None = None
    tax_rate: float | None = None
    original_price: float | None = None
    discount_price: float | None = None
    stock_quantity: int | None = None
    weight: float | None = None
    weight_unit: str = "kg"
    length: float | None = None
    width: float | None = None
    height: float | None = None
    dimension_unit: str = "cm"
    nutrients: list[Nutrient] = Field(default_factory=list)
    categories: list[Category] = Field(default_factory=list)
    product_photo_urls: list[str] = Field(default_factory=list)
    product_video_url: str | None = None
    is_approved: bool = False
    is_featured: bool = False
    is_best_seller: bool = False
    created_at: str | None = None


class ReviewSummary(BaseModel):
    count: int = 0
    average: float = 0.0


class ProductCard(BaseModel):
    """Home-page listing entry with resolved media and badges."""

    id: str
    product_name: str
    image_url: str
    price: float
    original_price: float | None = None
    discount_percent: int = 0
    stock_status: str
    stock_label: str
    company_name: str | None = None
    company_logo_url: str | None = None
    is_best_seller: bool = False
    categories: list[Category] = Field(default_factory=list)
    reviews: ReviewSummary = ReviewSummary()


class ProductDetail(BaseModel):
    id: str
    company_id: str | None = None
    product_name: str
    product_description: str = ""
    original_price: float | None = None
    discount_price: float | None = None
    display_price: float
    discount_percent: int = 0
    stock_status: str
    image_urls: list[str] = Field(default_factory=list)
    video_url: str | None = None
    company_name: str = "Unknown Company"
    company_logo_url: str
    nutrients: list[Nutrient] = Field(default_factory=list)


class Review(BaseModel):
    id: str | None = None
    user_id: str
    product_id: str | None = None
    rating: int = Field(..., ge=1, le=5)
    comment: str = ""
    created_at: str | None = None


class ReviewIn(BaseModel):
    rating: int = Field(5, ge=1, le=5)
    comment: str = ""


class DeliveryCheckOut(BaseModel):
    deliverable: bool
    pincode: str | None = None


class ProductUserState(BaseModel):
    """What the product page needs to know about the signed-in shopper."""

    in_cart: bool = False
    cart_quantity: int = 1
    is_favorite: bool = False
    has_reviewed: bool = False
    pincode: str | None = None
    deliverable: bool | None = None
