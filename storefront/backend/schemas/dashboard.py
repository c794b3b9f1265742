"""Pydantic schemas for the company dashboard.

``DashboardStats`` and ``ProductFormData`` serialise with camelCase keys so
the dashboard frontend and the persisted cache see the same names.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from storefront.backend.schemas.catalog import Category, Nutrient


class LowStockProduct(BaseModel):
    id: str
    product_name: str = ""
    stock_quantity: int = 0
    product_photo_urls: list[str] = Field(default_factory=list)


class SellingProduct(BaseModel):
    product_id: str
    product_name: str = "Unknown Product"
    units_sold: int = 0
    revenue_generated: float = 0.0
    product_photo_urls: list[str] = Field(default_factory=list)


class DashboardStats(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    company_name: str = ""
    total_products: int = 0
    total_sales_amount: float = 0.0
    total_orders: int = 0
    pending_orders: int = 0
    active_listings: int = 0
    out_of_stock_products: int = 0
    low_stock_products: list[LowStockProduct] = Field(default_factory=list)
    all_selling_products: list[SellingProduct] = Field(default_factory=list)
    chart_sales_data: list[int] = Field(default_factory=list)
    chart_sales_labels: list[str] = Field(default_factory=list)
    chart_x_axis_labels: list[str] = Field(default_factory=list)


class DashboardOut(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    stats: DashboardStats | None = None
    error: str | None = None
    last_fetched: float | None = None
    cached: bool = False


class ProductFormData(BaseModel):
    """Add/edit product form values, kept as typed (strings) until saved."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    product_name: str = ""
    product_description: str = ""
    sku: str = ""
    hsn_code: str = ""
    tax_rate: str = ""
    original_price: str = ""
    discount_price: str = ""
    stock_quantity: str = ""
    weight: str = ""
    weight_unit: str = "kg"
    length: str = ""
    width: str = ""
    height: str = ""
    dimension_unit: str = "cm"
    nutrients: list[Nutrient] = Field(default_factory=list)
    categories: list[Category] = Field(default_factory=list)
    existing_product_photo_urls: list[str] = Field(default_factory=list)
    existing_product_video_url: str | None = None
