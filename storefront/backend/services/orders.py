"""Order history service."""

from __future__ import annotations

import logging

from storefront.backend.clients import BackendClient, Session
from storefront.backend.core.media import public_url_from_path
from storefront.backend.schemas import OrderItemProduct, OrderOut, ResolvedOrderItem, ShippingAddress
from storefront.backend.services.auth import require_user
from storefront.backend.services.catalog import products_by_id

logger = logging.getLogger(__name__)

ORDER_COLUMNS = (
    "id, total_amount, status, purchase_time, customer_name, primary_phone, "
    "payment_id, order_id, shipping_address, order_items"
)


def _order_phone(row: dict, shipping: ShippingAddress | None) -> str:
    if shipping is not None and shipping.phone:
        return shipping.phone
    return row.get("primary_phone") or ""


def list_orders(db: BackendClient, session: Session | None, search: str | None = None) -> list[OrderOut]:
    """The user's orders, newest first, with item products resolved."""
    user_id = require_user(session)
    rows = (
        db.table("orders")
        .select(ORDER_COLUMNS)
        .eq("user_id", user_id)
        .order("purchase_time", desc=True)
        .execute()
    )

    product_ids = {
        item["product_id"]
        for row in rows
        if isinstance(row.get("order_items"), list)
        for item in row["order_items"]
        if item.get("product_id")
    }
    products = products_by_id(db, product_ids, columns="id, product_name, product_photo_urls")
    storage = db.storage

    orders = []
    for row in rows:
        items = []
        for item in row.get("order_items") or []:
            product = products.get(item.get("product_id"))
            resolved = None
            if product is not None:
                photos = product.get("product_photo_urls") or []
                resolved = OrderItemProduct(
                    id=product["id"],
                    product_name=product.get("product_name") or "Unknown Product",
                    image_url=public_url_from_path(storage, photos[0] if photos else None),
                )
            items.append(ResolvedOrderItem.model_validate({**item, "product": resolved}))

        shipping = ShippingAddress.model_validate(row["shipping_address"]) if row.get("shipping_address") else None
        orders.append(
            OrderOut(
                id=row["id"],
                total_amount=row.get("total_amount") or 0.0,
                status=row.get("status") or "pending",
                purchase_time=row.get("purchase_time"),
                customer_name=row.get("customer_name") or "",
                phone=_order_phone(row, shipping),
                payment_id=row.get("payment_id"),
                order_id=row.get("order_id"),
                shipping_address=shipping,
                items=items,
            )
        )

    if search:
        orders = filter_orders(orders, search)
    logger.debug("Loaded %d orders for %s", len(orders), user_id)
    return orders


def filter_orders(orders: list[OrderOut], search: str) -> list[OrderOut]:
    """Match by order id, customer name, phone or any item's product name."""
    needle = search.lower()

    def _matches(order: OrderOut) -> bool:
        return (
            needle in order.id.lower()
            or needle in order.customer_name.lower()
            or search in order.phone
            or any(item.product and needle in item.product.product_name.lower() for item in order.items)
        )

    return [order for order in orders if _matches(order)]
