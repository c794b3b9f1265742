"""Catalog service – home-page listings, product page and delivery checks."""

from __future__ import annotations

import logging
from collections import defaultdict

from storefront.backend.clients import BackendClient, Session
from storefront.backend.core.addresses import default_address
from storefront.backend.core.media import (
    PLACEHOLDER_IMAGE,
    company_logo_url,
    public_url_from_path,
    resolve_media,
)
from storefront.backend.core.pricing import (
    LOW_STOCK_THRESHOLD,
    average_rating,
    discount_percent,
    effective_price,
    stock_status,
)
from storefront.backend.errors import NotFound, StorefrontError
from storefront.backend.schemas import (
    DeliveryCheckOut,
    Product,
    ProductCard,
    ProductDetail,
    ProductUserState,
    ReviewSummary,
    UserProfile,
)

logger = logging.getLogger(__name__)

LISTING_FILTERS = ("all", "deals", "bestsellers")


def _companies_by_id(db: BackendClient, company_ids: set[str]) -> dict[str, dict]:
    if not company_ids:
        return {}
    rows = (
        db.table("companies")
        .select("id, company_name, company_logo_url")
        .in_("id", sorted(company_ids))
        .execute()
    )
    return {row["id"]: row for row in rows}


def products_by_id(
    db: BackendClient,
    product_ids: list[str] | set[str],
    columns: str = "id, product_name, original_price, discount_price, product_photo_urls",
) -> dict[str, dict]:
    """Product rows for ``product_ids`` keyed by id (one query)."""
    ids = sorted(set(product_ids))
    if not ids:
        return {}
    return {row["id"]: row for row in db.table("products").select(columns).in_("id", ids).execute()}


def review_summaries(db: BackendClient, product_ids: list[str]) -> dict[str, ReviewSummary]:
    """Count and average rating per product in one query."""
    if not product_ids:
        return {}
    rows = db.table("reviews").select("product_id, rating").in_("product_id", product_ids).execute()
    ratings: dict[str, list[int]] = defaultdict(list)
    for row in rows:
        ratings[row["product_id"]].append(int(row["rating"]))
    return {
        pid: ReviewSummary(count=len(ratings[pid]), average=average_rating(ratings[pid]))
        for pid in product_ids
    }


def review_summary(db: BackendClient, product_id: str) -> ReviewSummary:
    return review_summaries(db, [product_id])[product_id]


def list_products(
    db: BackendClient,
    filter: str = "all",
    search: str | None = None,
    category: str | None = None,
    low_stock_threshold: int = LOW_STOCK_THRESHOLD,
) -> list[ProductCard]:
    """Approved products, newest first, narrowed by filter, search and category.

    Args:
        db: Backend client (anonymous access is enough).
        filter: ``all``, ``deals`` (original price above the discount
            price) or ``bestsellers``.
        search: Case-insensitive substring of the product name.
        category: Main category; matches if any of the product's categories
            has it.
        low_stock_threshold: Stock below this is flagged as "Only Few Left".
    """
    if filter not in LISTING_FILTERS:
        raise StorefrontError(f"Unknown filter {filter!r}")

    query = db.table("products").select("*").eq("is_approved", True).order("created_at", desc=True)
    if filter == "bestsellers":
        query = query.eq("is_best_seller", True)
    if search:
        query = query.ilike("product_name", f"%{search}%")

    products = [Product.model_validate(row) for row in query.execute()]

    if filter == "deals":
        products = [
            p for p in products
            if p.original_price and p.discount_price is not None and p.original_price > p.discount_price
        ]
    if category:
        products = [p for p in products if any(c.main == category for c in p.categories)]

    companies = _companies_by_id(db, {p.company_id for p in products if p.company_id})
    summaries = review_summaries(db, [p.id for p in products])
    storage = db.storage

    cards = []
    for product in products:
        company = companies.get(product.company_id or "", {})
        status = stock_status(product.stock_quantity, low_stock_threshold)
        photos = product.product_photo_urls
        cards.append(
            ProductCard(
                id=product.id,
                product_name=product.product_name,
                image_url=public_url_from_path(storage, photos[0] if photos else None),
                price=effective_price(product.discount_price, product.original_price),
                original_price=product.original_price,
                discount_percent=discount_percent(product.original_price, product.discount_price),
                stock_status=status.value,
                stock_label=status.label,
                company_name=company.get("company_name"),
                company_logo_url=company_logo_url(storage, company.get("company_logo_url")),
                is_best_seller=product.is_best_seller,
                categories=product.categories,
                reviews=summaries.get(product.id, ReviewSummary()),
            )
        )
    logger.debug("Listed %d products (filter=%s, search=%r, category=%r)", len(cards), filter, search, category)
    return cards


def get_product(
    db: BackendClient,
    product_id: str,
    low_stock_threshold: int = LOW_STOCK_THRESHOLD,
) -> ProductDetail:
    """Approved product with its company; anything else is not found."""
    row = db.table("products").select("*").eq("id", product_id).eq("is_approved", True).maybe_single()
    if row is None:
        raise NotFound("Product not found.")
    product = Product.model_validate(row)
    company = _companies_by_id(db, {product.company_id} if product.company_id else set()).get(
        product.company_id or "", {}
    )
    storage = db.storage
    images = [url for url in resolve_media(storage, product.product_photo_urls) if url != PLACEHOLDER_IMAGE]

    return ProductDetail(
        id=product.id,
        company_id=product.company_id,
        product_name=product.product_name,
        product_description=product.product_description,
        original_price=product.original_price,
        discount_price=product.discount_price,
        display_price=effective_price(product.discount_price, product.original_price),
        discount_percent=discount_percent(product.original_price, product.discount_price),
        stock_status=stock_status(product.stock_quantity, low_stock_threshold).value,
        image_urls=images,
        video_url=public_url_from_path(storage, product.product_video_url) if product.product_video_url else None,
        company_name=company.get("company_name") or "Unknown Company",
        company_logo_url=company_logo_url(storage, company.get("company_logo_url")),
        nutrients=product.nutrients,
    )


def check_delivery(db: BackendClient, pincode: str) -> DeliveryCheckOut:
    """Ask the backend whether ``pincode`` is serviceable.

    Any failure (transport, RPC error, malformed reply) means not
    deliverable.
    """
    pincode = (pincode or "").strip()
    if not pincode:
        return DeliveryCheckOut(deliverable=False, pincode=None)
    try:
        data = db.rpc("check_delivery_status", {"pincode_arg": pincode})
    except StorefrontError as exc:
        logger.warning("Delivery check failed for %s: %s", pincode, exc)
        return DeliveryCheckOut(deliverable=False, pincode=pincode)

    if isinstance(data, dict) and data.get("success"):
        return DeliveryCheckOut(deliverable=bool(data.get("deliverable")), pincode=data.get("pincode") or pincode)
    logger.warning("Delivery check for %s returned %r", pincode, data)
    return DeliveryCheckOut(deliverable=False, pincode=pincode)


def product_user_state(db: BackendClient, session: Session | None, product_id: str) -> ProductUserState:
    """Cart, favorite and review flags plus delivery status for the product page."""
    if session is None:
        return ProductUserState()
    user_id = session.user.id

    cart = (
        db.table("cart_items").select("id, quantity")
        .eq("user_id", user_id).eq("product_id", product_id).maybe_single()
    )
    favorite = (
        db.table("favorites").select("id")
        .eq("user_id", user_id).eq("product_id", product_id).maybe_single()
    )
    review = (
        db.table("reviews").select("id")
        .eq("user_id", user_id).eq("product_id", product_id).maybe_single()
    )
    profile_row = db.table("user_profiles").select("addresses").eq("id", user_id).maybe_single()

    state = ProductUserState(
        in_cart=cart is not None,
        cart_quantity=cart["quantity"] if cart else 1,
        is_favorite=favorite is not None,
        has_reviewed=review is not None,
    )
    if profile_row:
        address = default_address(UserProfile.model_validate({"id": user_id, **profile_row}).addresses)
        if address and address.pincode.strip():
            delivery = check_delivery(db, address.pincode)
            state.pincode = delivery.pincode
            state.deliverable = delivery.deliverable
    return state
