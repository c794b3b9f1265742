"""Checkout service – payment, profile update and order creation.

Checkout runs in two requests:

1. :func:`start_payment` prices the items, validates the delivery address
   and creates a payment with the gateway.
2. :func:`complete_checkout` receives the payment id back, confirms it with
   the gateway and only then writes the profile and the order.

Nothing is written before the payment succeeds, and a successful payment is
never retried or refunded here; an order-insert failure after payment is
reported to the shopper as such.
"""

from __future__ import annotations

import logging
import random
import time
import uuid
from datetime import datetime, timezone

from storefront.backend.clients import BackendClient, PaymentPrefill, PaymentResult, Session, StripeGateway
from storefront.backend.clients.payments import to_minor_units
from storefront.backend.core.addresses import (
    add_address,
    dump_addresses,
    find_address,
    new_address,
    shipping_snapshot,
    validate_address,
)
from storefront.backend.core.pricing import FLAT_SHIPPING_FEE, FREE_SHIPPING_OVER, cart_totals, effective_price
from storefront.backend.errors import Conflict, NotFound, PaymentFailed, StorefrontError, ValidationFailed
from storefront.backend.schemas import (
    Address,
    CheckoutCompleteIn,
    CheckoutIn,
    CheckoutItem,
    CheckoutResultOut,
    CheckoutTotals,
    OrderStatus,
    PaymentOut,
)
from storefront.backend.services.auth import get_profile, require_user
from storefront.backend.services.cart import cart_lines, clear_cart
from storefront.backend.services.catalog import products_by_id

logger = logging.getLogger(__name__)

PAYMENT_DESCRIPTION = "Order from organicza"
MISSING_DETAILS = "Please fill in all mandatory fields (Name, Phone, Address Line 1, City, State, Pincode)."
NO_ADDRESS = "Please select or add a delivery address."
ORDER_CREATION_FAILED = "Payment successful, but order creation failed."
PAYMENT_ALREADY_USED = "This payment has already been used for an order."
PAYMENT_MISMATCH = "The payment does not match this order. Please start checkout again."


def new_order_ref() -> str:
    """Merchant-side reference attached to the payment, e.g. ``order_1729..._42``."""
    return f"order_{int(time.time() * 1000)}_{random.randint(0, 999)}"


def checkout_items(db: BackendClient, user_id: str, data: CheckoutIn) -> list[CheckoutItem]:
    """Items being bought, priced at the products' current effective price."""
    if data.source == "cart":
        items = [
            CheckoutItem(
                product_id=line.product_id,
                product_name=line.product_name or "",
                quantity=line.quantity,
                price_at_add=line.unit_price,
            )
            for line in cart_lines(db, user_id)
        ]
    else:
        products = products_by_id(db, [item.product_id for item in data.items])
        items = []
        for item in data.items:
            product = products.get(item.product_id)
            if product is None:
                raise NotFound(f"Product {item.product_id} not found.")
            price = effective_price(product.get("discount_price"), product.get("original_price"), item.price_at_add)
            items.append(
                item.model_copy(
                    update={"price_at_add": price, "product_name": product.get("product_name") or item.product_name}
                )
            )

    if not items:
        raise ValidationFailed("Your cart is empty.", {"items": "Nothing to check out"})
    return items


def checkout_totals(
    items: list[CheckoutItem],
    free_over: float = FREE_SHIPPING_OVER,
    flat_fee: float = FLAT_SHIPPING_FEE,
) -> CheckoutTotals:
    totals = cart_totals(((i.price_at_add, i.quantity) for i in items), free_over, flat_fee)
    return CheckoutTotals(subtotal=totals.subtotal, shipping_fee=totals.shipping_fee, total=totals.total)


def resolve_delivery_address(addresses: list[Address], data: CheckoutIn) -> tuple[Address, list[Address]]:
    """Pick (or create) the delivery address.

    Returns:
        The address to ship to and the profile's address list as it should
        be stored afterwards. A new address becomes the only default.

    Raises:
        ValidationFailed: Missing mandatory fields or no address chosen.
    """
    if data.new_address is not None and data.selected_address_id in (None, "new"):
        errors = validate_address(data.new_address, data.user_name, data.primary_phone)
        if errors:
            raise ValidationFailed(MISSING_DETAILS, errors)
        address = new_address(
            data.new_address.model_copy(
                update={
                    "name": "",
                    "is_default": True,
                    "primary_phone": data.primary_phone,
                    "secondary_phone": data.secondary_phone or None,
                    "lat": data.lat if data.lat is not None else data.new_address.lat,
                    "lng": data.lng if data.lng is not None else data.new_address.lng,
                }
            )
        )
        return address, add_address(addresses, address)

    if not data.selected_address_id or data.selected_address_id == "new":
        raise ValidationFailed(NO_ADDRESS, {"address": NO_ADDRESS})
    if not data.user_name.strip() or not data.primary_phone.strip():
        raise ValidationFailed(MISSING_DETAILS, {"name": "Name and phone are required"})

    address = find_address(addresses, data.selected_address_id)
    if address is None:
        raise ValidationFailed(NO_ADDRESS, {"address": "Selected address no longer exists"})
    if data.lat is not None and data.lng is not None:
        # freshly detected coordinates are kept on the saved address too
        address = address.model_copy(update={"lat": data.lat, "lng": data.lng})
        addresses = [address if a.id == address.id else a for a in addresses]
    return address, list(addresses)


def start_payment(
    db: BackendClient,
    session: Session | None,
    gateway: StripeGateway,
    data: CheckoutIn,
    free_over: float = FREE_SHIPPING_OVER,
    flat_fee: float = FLAT_SHIPPING_FEE,
) -> PaymentOut:
    """Validate the checkout form and open a payment for the order total."""
    user_id = require_user(session)
    items = checkout_items(db, user_id, data)
    profile = get_profile(db, user_id)
    resolve_delivery_address(profile.addresses if profile else [], data)
    totals = checkout_totals(items, free_over, flat_fee)

    handle = gateway.create_payment(
        amount=totals.total,
        description=PAYMENT_DESCRIPTION,
        prefill=PaymentPrefill(
            name=data.user_name or "Customer",
            email=data.email or (profile.email if profile and profile.email else ""),
            contact=data.primary_phone,
        ),
        order_ref=new_order_ref(),
        user_id=user_id,
    )
    return PaymentOut(
        payment_id=handle.payment_id,
        client_secret=handle.client_secret,
        amount=handle.amount,
        currency=handle.currency,
        order_ref=handle.order_ref,
    )


def check_payment_matches(result: PaymentResult, currency: str, user_id: str, total: float) -> None:
    """Reject a payment captured for another amount, currency or shopper."""
    problems = []
    if result.amount_minor != to_minor_units(total):
        problems.append(f"amount {result.amount_minor} != {to_minor_units(total)}")
    if (result.currency or "").lower() != currency.lower():
        problems.append(f"currency {result.currency!r} != {currency!r}")
    if result.user_id and result.user_id != user_id:
        problems.append("different user")
    if problems:
        logger.warning("Payment %s rejected: %s", result.payment_id, "; ".join(problems))
        raise PaymentFailed(PAYMENT_MISMATCH)


def build_order(
    user_id: str,
    data: CheckoutIn,
    items: list[CheckoutItem],
    totals: CheckoutTotals,
    address: Address,
    payment_id: str | None,
    order_ref: str | None,
) -> dict:
    """The ``orders`` row for a paid checkout."""
    now = datetime.now(timezone.utc).isoformat()
    snapshot = shipping_snapshot(address, data.user_name, data.primary_phone)
    return {
        "user_id": user_id,
        "total_amount": totals.total,
        "payment_id": payment_id,
        "order_id": order_ref,
        "status": OrderStatus.CONFIRMED.value,
        "purchase_time": now,
        "customer_name": data.user_name,
        "shipping_address": snapshot.model_dump(by_alias=True),
        "order_items": [
            {
                "id": str(uuid.uuid4()),
                "product_id": item.product_id,
                "quantity": item.quantity,
                "price_at_purchase": item.price_at_add,
                "created_at": now,
            }
            for item in items
        ],
    }


def complete_checkout(
    db: BackendClient,
    session: Session | None,
    gateway: StripeGateway,
    data: CheckoutCompleteIn,
    free_over: float = FREE_SHIPPING_OVER,
    flat_fee: float = FLAT_SHIPPING_FEE,
) -> CheckoutResultOut:
    """Confirm the payment, then persist the profile and the order.

    Raises:
        PaymentFailed: The gateway reports the payment as not successful
            (the message is the gateway's description), or the captured
            amount, currency or payer differs from this checkout.
        Conflict: An order already exists for the payment.
        StorefrontError: Payment went through but the profile or order
            write failed.
    """
    user_id = require_user(session)
    result = gateway.confirm(data.payment_id)
    if not result.success:
        logger.warning("Payment %s failed: %s", data.payment_id, result.description)
        raise PaymentFailed(result.description or "Unknown error")

    existing = db.table("orders").select("id").eq("payment_id", result.payment_id).limit(1).execute()
    if existing:
        logger.warning("Payment %s replayed by %s (order %s)", result.payment_id, user_id, existing[0].get("id"))
        raise Conflict(PAYMENT_ALREADY_USED)

    items = checkout_items(db, user_id, data)
    totals = checkout_totals(items, free_over, flat_fee)
    check_payment_matches(result, gateway.currency, user_id, totals.total)

    try:
        profile = get_profile(db, user_id)
        address, addresses = resolve_delivery_address(profile.addresses if profile else [], data)
        (
            db.table("user_profiles")
            .update({"name": data.user_name, "phone": data.primary_phone, "addresses": dump_addresses(addresses)})
            .eq("id", user_id)
            .execute()
        )
        order = build_order(user_id, data, items, totals, address, result.payment_id, result.order_id)
        rows = db.table("orders").insert([order]).execute()
    except StorefrontError as exc:
        logger.error("Error creating order after payment %s: %s", data.payment_id, exc)
        raise StorefrontError(ORDER_CREATION_FAILED) from exc

    if data.source == "cart":
        try:
            clear_cart(db, user_id)
        except StorefrontError as exc:
            logger.warning("Order placed but cart not cleared for %s: %s", user_id, exc)

    order_row = rows[0] if rows else order
    logger.info("Order %s placed by %s (%.2f)", order_row.get("id"), user_id, totals.total)
    return CheckoutResultOut(
        order_id=order_row.get("id"),
        payment_id=result.payment_id,
        total_amount=totals.total,
    )
