"""Shopper routes – catalog, product page, cart, favorites, orders and checkout.

Handlers are plain ``def`` so FastAPI runs the blocking backend calls in its
thread pool.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, Query, status

from storefront.backend.api.deps import get_db, get_gateway, get_session, get_settings, require_session
from storefront.backend.clients import BackendClient, Session, StripeGateway
from storefront.backend.schemas import (
    CartAddIn,
    CartOut,
    CheckoutCompleteIn,
    CheckoutIn,
    CheckoutResultOut,
    CheckoutTotals,
    DeliveryCheckOut,
    FavoriteItem,
    MessageOut,
    OrderOut,
    OrderStatus,
    PaymentOut,
    ProductCard,
    ProductDetail,
    ProductUserState,
    QuantityIn,
    Review,
    ReviewIn,
    ReviewSummary,
)
from storefront.backend.services import cart, catalog, checkout, favorites, orders, reviews

logger = logging.getLogger(__name__)

router = APIRouter(tags=["shop"])


def _shipping(settings: dict[str, Any]) -> dict[str, float]:
    return {
        "free_over": float(settings["shipping"]["free_over"]),
        "flat_fee": float(settings["shipping"]["flat_fee"]),
    }


def _threshold(settings: dict[str, Any]) -> int:
    return int(settings["catalog"]["low_stock_threshold"])


# ── Catalog ─────────────────────────────────────────────────────────────────


@router.get("/products", response_model=list[ProductCard])
def list_products(
    filter: str = Query("all", pattern="^(all|deals|bestsellers)$"),
    search: str | None = None,
    category: str | None = None,
    db: BackendClient = Depends(get_db),
    settings: dict = Depends(get_settings),
) -> list[ProductCard]:
    return catalog.list_products(db, filter, search, category, low_stock_threshold=_threshold(settings))


@router.get("/products/{product_id}", response_model=ProductDetail)
def get_product(
    product_id: str,
    db: BackendClient = Depends(get_db),
    settings: dict = Depends(get_settings),
) -> ProductDetail:
    return catalog.get_product(db, product_id, low_stock_threshold=_threshold(settings))


@router.get("/products/{product_id}/me", response_model=ProductUserState)
def product_user_state(
    product_id: str,
    db: BackendClient = Depends(get_db),
    session: Session | None = Depends(get_session),
) -> ProductUserState:
    return catalog.product_user_state(db, session, product_id)


@router.get("/delivery/{pincode}", response_model=DeliveryCheckOut)
def check_delivery(pincode: str, db: BackendClient = Depends(get_db)) -> DeliveryCheckOut:
    return catalog.check_delivery(db, pincode)


# ── Reviews ─────────────────────────────────────────────────────────────────


@router.get("/products/{product_id}/reviews", response_model=list[Review])
def list_reviews(product_id: str, db: BackendClient = Depends(get_db)) -> list[Review]:
    return reviews.list_reviews(db, product_id)


@router.get("/products/{product_id}/reviews/summary", response_model=ReviewSummary)
def review_summary(product_id: str, db: BackendClient = Depends(get_db)) -> ReviewSummary:
    return catalog.review_summary(db, product_id)


@router.post("/products/{product_id}/reviews", response_model=Review, status_code=status.HTTP_201_CREATED)
def submit_review(
    product_id: str,
    review: ReviewIn,
    db: BackendClient = Depends(get_db),
    session: Session = Depends(require_session),
) -> Review:
    return reviews.submit_review(db, session, product_id, review)


# ── Cart ────────────────────────────────────────────────────────────────────


@router.get("/cart", response_model=CartOut)
def get_cart(
    search: str | None = None,
    db: BackendClient = Depends(get_db),
    session: Session = Depends(require_session),
    settings: dict = Depends(get_settings),
) -> CartOut:
    return cart.list_cart(db, session, search, **_shipping(settings))


@router.post("/cart", response_model=MessageOut, status_code=status.HTTP_201_CREATED)
def add_to_cart(
    body: CartAddIn,
    db: BackendClient = Depends(get_db),
    session: Session = Depends(require_session),
) -> MessageOut:
    cart.add_to_cart(db, session, body.product_id, body.quantity)
    return MessageOut(title="Added to cart!", description="Product added to cart.")


@router.patch("/cart/{item_id}", response_model=MessageOut)
def update_cart_item(
    item_id: str,
    body: QuantityIn,
    db: BackendClient = Depends(get_db),
    session: Session = Depends(require_session),
) -> MessageOut:
    if not cart.update_quantity(db, session, item_id, body.quantity):
        return MessageOut(title="Quantity unchanged", description="Quantity must be at least 1.")
    return MessageOut(title="Cart updated", description="Quantity updated.")


@router.put("/cart/products/{product_id}", response_model=MessageOut)
def set_product_quantity(
    product_id: str,
    body: QuantityIn,
    db: BackendClient = Depends(get_db),
    session: Session = Depends(require_session),
) -> MessageOut:
    if not cart.set_product_quantity(db, session, product_id, body.quantity):
        return MessageOut(title="Quantity unchanged", description="Quantity must be at least 1.")
    return MessageOut(title="Cart updated", description="Quantity updated.")


@router.delete("/cart/products/{product_id}", response_model=MessageOut)
def remove_product_from_cart(
    product_id: str,
    db: BackendClient = Depends(get_db),
    session: Session = Depends(require_session),
) -> MessageOut:
    cart.remove_product(db, session, product_id)
    return MessageOut(title="Removed from cart", description="Product removed from cart.")


@router.delete("/cart/{item_id}", response_model=MessageOut)
def remove_cart_item(
    item_id: str,
    db: BackendClient = Depends(get_db),
    session: Session = Depends(require_session),
) -> MessageOut:
    cart.remove_item(db, session, item_id)
    return MessageOut(title="Item removed", description="The item has been removed from your cart.")


@router.delete("/cart", response_model=MessageOut)
def clear_cart(
    db: BackendClient = Depends(get_db),
    session: Session = Depends(require_session),
) -> MessageOut:
    cart.clear_cart(db, session.user.id)
    return MessageOut(title="Cart cleared", description="All items have been removed from your cart.")


# ── Favorites ───────────────────────────────────────────────────────────────


@router.get("/favorites", response_model=list[FavoriteItem])
def list_favorites(
    search: str | None = None,
    db: BackendClient = Depends(get_db),
    session: Session = Depends(require_session),
) -> list[FavoriteItem]:
    return favorites.list_favorites(db, session, search)


@router.post("/favorites/{product_id}/toggle")
def toggle_favorite(
    product_id: str,
    db: BackendClient = Depends(get_db),
    session: Session = Depends(require_session),
) -> dict[str, bool]:
    return {"is_favorite": favorites.toggle_favorite(db, session, product_id)}


@router.delete("/favorites/{favorite_id}", response_model=MessageOut)
def remove_favorite(
    favorite_id: str,
    db: BackendClient = Depends(get_db),
    session: Session = Depends(require_session),
) -> MessageOut:
    favorites.remove_favorite(db, session, favorite_id)
    return MessageOut(title="Removed from favorites", description="Removed from your wishlist.")


@router.post("/favorites/{product_id}/cart", response_model=MessageOut, status_code=status.HTTP_201_CREATED)
def add_favorite_to_cart(
    product_id: str,
    db: BackendClient = Depends(get_db),
    session: Session = Depends(require_session),
) -> MessageOut:
    favorites.add_favorite_to_cart(db, session, product_id)
    return MessageOut(title="Added to Cart!", description="The product has been added to your cart.")


# ── Orders & checkout ───────────────────────────────────────────────────────


@router.get("/orders", response_model=list[OrderOut])
def list_orders(
    search: str | None = None,
    db: BackendClient = Depends(get_db),
    session: Session = Depends(require_session),
) -> list[OrderOut]:
    return orders.list_orders(db, session, search)


@router.get("/orders/statuses")
def order_statuses() -> list[str]:
    """Order status vocabulary in lifecycle order."""
    return [s.value for s in OrderStatus]


@router.post("/checkout/totals", response_model=CheckoutTotals)
def checkout_totals(
    body: CheckoutIn,
    db: BackendClient = Depends(get_db),
    session: Session = Depends(require_session),
    settings: dict = Depends(get_settings),
) -> CheckoutTotals:
    items = checkout.checkout_items(db, session.user.id, body)
    return checkout.checkout_totals(items, **_shipping(settings))


@router.post("/checkout/payment", response_model=PaymentOut)
def start_payment(
    body: CheckoutIn,
    db: BackendClient = Depends(get_db),
    session: Session = Depends(require_session),
    gateway: StripeGateway = Depends(get_gateway),
    settings: dict = Depends(get_settings),
) -> PaymentOut:
    return checkout.start_payment(db, session, gateway, body, **_shipping(settings))


@router.post("/checkout/complete", response_model=CheckoutResultOut, status_code=status.HTTP_201_CREATED)
def complete_checkout(
    body: CheckoutCompleteIn,
    db: BackendClient = Depends(get_db),
    session: Session = Depends(require_session),
    gateway: StripeGateway = Depends(get_gateway),
    settings: dict = Depends(get_settings),
) -> CheckoutResultOut:
    return checkout.complete_checkout(db, session, gateway, body, **_shipping(settings))
