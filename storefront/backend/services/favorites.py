"""Favorites (wishlist) service."""

from __future__ import annotations

import logging

from storefront.backend.clients import BackendClient, Session
from storefront.backend.core.media import public_url_from_path
from storefront.backend.core.pricing import effective_price
from storefront.backend.errors import NotFound
from storefront.backend.schemas import FavoriteItem
from storefront.backend.services import cart as cart_service
from storefront.backend.services.auth import require_user
from storefront.backend.services.catalog import products_by_id

logger = logging.getLogger(__name__)


def list_favorites(db: BackendClient, session: Session | None, search: str | None = None) -> list[FavoriteItem]:
    """Newest favorites first, each flagged with whether it is already in the cart."""
    user_id = require_user(session)
    in_cart = {
        row["product_id"]
        for row in db.table("cart_items").select("product_id").eq("user_id", user_id).execute()
    }
    rows = (
        db.table("favorites")
        .select("id, product_id")
        .eq("user_id", user_id)
        .order("created_at", desc=True)
        .execute()
    )
    products = products_by_id(db, [r["product_id"] for r in rows if r.get("product_id")])
    storage = db.storage

    items = []
    for row in rows:
        product_id = row.get("product_id") or ""
        product = products.get(product_id) or {}
        photos = product.get("product_photo_urls") or []
        items.append(
            FavoriteItem(
                id=row["id"],
                product_id=product_id,
                product_name=product.get("product_name") or "Unknown Product",
                price=effective_price(product.get("discount_price"), product.get("original_price")),
                original_price=product.get("original_price"),
                thumbnail=public_url_from_path(storage, photos[0] if photos else None),
                is_in_cart=product_id in in_cart,
            )
        )

    if search:
        needle = search.lower()
        items = [item for item in items if needle in item.product_name.lower()]
    return items


def is_favorite(db: BackendClient, user_id: str, product_id: str) -> bool:
    row = (
        db.table("favorites").select("id")
        .eq("user_id", user_id).eq("product_id", product_id).maybe_single()
    )
    return row is not None


def toggle_favorite(db: BackendClient, session: Session | None, product_id: str) -> bool:
    """Flip the favorite flag for ``product_id``; returns the new state."""
    user_id = require_user(session)
    if is_favorite(db, user_id, product_id):
        db.table("favorites").delete().eq("user_id", user_id).eq("product_id", product_id).execute()
        logger.info("User %s unfavorited %s", user_id, product_id)
        return False
    db.table("favorites").insert({"user_id": user_id, "product_id": product_id}).execute()
    logger.info("User %s favorited %s", user_id, product_id)
    return True


def remove_favorite(db: BackendClient, session: Session | None, favorite_id: str) -> None:
    user_id = require_user(session)
    db.table("favorites").delete().eq("id", favorite_id).eq("user_id", user_id).execute()


def add_favorite_to_cart(db: BackendClient, session: Session | None, product_id: str) -> dict:
    """Move a favorite into the cart with quantity 1 at its current price."""
    require_user(session)
    product = products_by_id(db, [product_id]).get(product_id)
    if product is None:
        raise NotFound("Product not found.")
    price = effective_price(product.get("discount_price"), product.get("original_price"))
    return cart_service.add_to_cart(db, session, product_id, quantity=1, price=price)
