"""Pydantic schemas for cart, favorites, orders and checkout."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field

from storefront.backend.schemas.accounts import AddressIn, ShippingAddress


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PAYMENT_ACCEPTED = "payment_accepted"
    PREPARING = "preparing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


# ── Cart & favorites ────────────────────────────────────────────────────────


class CartLine(BaseModel):
    id: str
    product_id: str
    quantity: int
    price_at_add: float
    product_name: str | None = None
    unit_price: float
    line_total: float
    image_url: str


class CartOut(BaseModel):
    items: list[CartLine] = Field(default_factory=list)
    subtotal: float = 0.0
    shipping_fee: float = 0.0
    total: float = 0.0


class CartAddIn(BaseModel):
    product_id: str
    quantity: int = Field(1, ge=1)


class QuantityIn(BaseModel):
    quantity: int


class FavoriteItem(BaseModel):
    id: str
    product_id: str
    product_name: str = "Unknown Product"
    price: float = 0.0
    original_price: float | None = None
    thumbnail: str
    is_in_cart: bool = False


# ── Orders ──────────────────────────────────────────────────────────────────


class OrderItem(BaseModel):
    id: str | None = None
    product_id: str
    quantity: int
    price_at_purchase: float
    created_at: str | None = None


class OrderItemProduct(BaseModel):
    id: str
    product_name: str
    image_url: str


class ResolvedOrderItem(OrderItem):
    product: OrderItemProduct | None = None


class OrderOut(BaseModel):
    id: str
    total_amount: float
    status: str
    purchase_time: str | None = None
    customer_name: str = ""
    phone: str = ""
    payment_id: str | None = None
    order_id: str | None = None
    shipping_address: ShippingAddress | None = None
    items: list[ResolvedOrderItem] = Field(default_factory=list)


# ── Checkout ────────────────────────────────────────────────────────────────


class CheckoutItem(BaseModel):
    product_id: str
    product_name: str = ""
    quantity: int = Field(1, ge=1)
    price_at_add: float = Field(..., ge=0)


class CheckoutIn(BaseModel):
    """Contact details plus either a saved address id or a new address.

    ``source="cart"`` checks out the shopper's cart (and clears it on
    success); ``source="direct"`` buys ``items`` straight from a product page.
    """

    source: str = Field("cart", pattern="^(cart|direct)$")
    items: list[CheckoutItem] = Field(default_factory=list)
    user_name: str = ""
    primary_phone: str = ""
    secondary_phone: str | None = None
    email: str = ""
    selected_address_id: str | None = None
    new_address: AddressIn | None = None
    lat: float | None = None
    lng: float | None = None


class CheckoutCompleteIn(CheckoutIn):
    payment_id: str


class PaymentOut(BaseModel):
    payment_id: str
    client_secret: str | None = None
    amount: float
    currency: str
    order_ref: str


class CheckoutTotals(BaseModel):
    subtotal: float
    shipping_fee: float
    total: float


class CheckoutResultOut(BaseModel):
    order_id: str | None = None
    payment_id: str | None = None
    status: str = OrderStatus.CONFIRMED.value
    total_amount: float
    redirect: str = "/orders"
