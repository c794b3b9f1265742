"""Cart service – one ``cart_items`` row per user and product."""

from __future__ import annotations

import logging

from storefront.backend.clients import BackendClient, Session
from storefront.backend.core.media import public_url_from_path
from storefront.backend.core.pricing import FLAT_SHIPPING_FEE, FREE_SHIPPING_OVER, cart_totals, effective_price
from storefront.backend.errors import Conflict, NotFound
from storefront.backend.schemas import CartLine, CartOut
from storefront.backend.services.auth import require_user
from storefront.backend.services.catalog import products_by_id

logger = logging.getLogger(__name__)

ALREADY_IN_CART = "This product is already in your cart!"


def cart_lines(db: BackendClient, user_id: str) -> list[CartLine]:
    """The user's cart with product names, images and current unit prices."""
    rows = (
        db.table("cart_items")
        .select("id, product_id, quantity, price_at_add")
        .eq("user_id", user_id)
        .execute()
    )
    products = products_by_id(db, [r["product_id"] for r in rows])
    storage = db.storage

    lines = []
    for row in rows:
        product = products.get(row["product_id"]) or {}
        photos = product.get("product_photo_urls") or []
        unit_price = effective_price(
            product.get("discount_price"), product.get("original_price"), row.get("price_at_add") or 0.0
        )
        lines.append(
            CartLine(
                id=row["id"],
                product_id=row["product_id"],
                quantity=row["quantity"],
                price_at_add=row.get("price_at_add") or 0.0,
                product_name=product.get("product_name"),
                unit_price=unit_price,
                line_total=round(unit_price * row["quantity"], 2),
                image_url=public_url_from_path(storage, photos[0] if photos else None),
            )
        )
    return lines


def list_cart(
    db: BackendClient,
    session: Session | None,
    search: str | None = None,
    free_over: float = FREE_SHIPPING_OVER,
    flat_fee: float = FLAT_SHIPPING_FEE,
) -> CartOut:
    """Cart lines matching ``search`` and the totals of exactly those lines."""
    user_id = require_user(session)
    lines = cart_lines(db, user_id)
    if search:
        needle = search.lower()
        lines = [line for line in lines if needle in (line.product_name or "").lower()]
    totals = cart_totals(((line.unit_price, line.quantity) for line in lines), free_over, flat_fee)
    return CartOut(items=lines, subtotal=totals.subtotal, shipping_fee=totals.shipping_fee, total=totals.total)


def add_to_cart(
    db: BackendClient,
    session: Session | None,
    product_id: str,
    quantity: int = 1,
    price: float | None = None,
) -> dict:
    """Insert a cart row; a second add of the same product is a conflict.

    ``price`` is recorded as ``price_at_add``; when omitted the product's
    current effective price is used.
    """
    user_id = require_user(session)
    existing = (
        db.table("cart_items").select("id")
        .eq("user_id", user_id).eq("product_id", product_id).maybe_single()
    )
    if existing is not None:
        raise Conflict(ALREADY_IN_CART)

    if price is None:
        product = products_by_id(db, [product_id]).get(product_id)
        if product is None:
            raise NotFound("Product not found.")
        price = effective_price(product.get("discount_price"), product.get("original_price"))

    rows = (
        db.table("cart_items")
        .insert({"user_id": user_id, "product_id": product_id, "quantity": quantity, "price_at_add": price})
        .execute()
    )
    logger.info("User %s added %s x%d to cart", user_id, product_id, quantity)
    return rows[0] if rows else {}


def update_quantity(db: BackendClient, session: Session | None, item_id: str, quantity: int) -> bool:
    """Set a line's quantity; values below 1 are ignored (returns ``False``)."""
    user_id = require_user(session)
    if quantity < 1:
        return False
    db.table("cart_items").update({"quantity": quantity}).eq("id", item_id).eq("user_id", user_id).execute()
    return True


def set_product_quantity(db: BackendClient, session: Session | None, product_id: str, quantity: int) -> bool:
    """Product-page variant of :func:`update_quantity`, keyed by product."""
    user_id = require_user(session)
    if quantity < 1:
        return False
    (
        db.table("cart_items").update({"quantity": quantity})
        .eq("user_id", user_id).eq("product_id", product_id).execute()
    )
    return True


def remove_item(db: BackendClient, session: Session | None, item_id: str) -> None:
    user_id = require_user(session)
    db.table("cart_items").delete().eq("id", item_id).eq("user_id", user_id).execute()


def remove_product(db: BackendClient, session: Session | None, product_id: str) -> None:
    user_id = require_user(session)
    db.table("cart_items").delete().eq("user_id", user_id).eq("product_id", product_id).execute()


def clear_cart(db: BackendClient, user_id: str) -> None:
    db.table("cart_items").delete().eq("user_id", user_id).execute()
    logger.info("Cleared cart for %s", user_id)
