"""Product reviews – one per user and product."""

from __future__ import annotations

import logging

from storefront.backend.clients import BackendClient, Session
from storefront.backend.errors import Conflict
from storefront.backend.schemas import Review, ReviewIn
from storefront.backend.services.auth import require_user

logger = logging.getLogger(__name__)

ALREADY_REVIEWED = "You have already reviewed this product!"


def list_reviews(db: BackendClient, product_id: str) -> list[Review]:
    rows = (
        db.table("reviews")
        .select("user_id, rating, comment, created_at")
        .eq("product_id", product_id)
        .order("created_at", desc=True)
        .execute()
    )
    return [Review.model_validate({"product_id": product_id, **row}) for row in rows]


def has_reviewed(db: BackendClient, user_id: str, product_id: str) -> bool:
    row = (
        db.table("reviews").select("id")
        .eq("user_id", user_id).eq("product_id", product_id).maybe_single()
    )
    return row is not None


def submit_review(db: BackendClient, session: Session | None, product_id: str, review: ReviewIn) -> Review:
    """Store the shopper's review; a second review of the same product is refused."""
    user_id = require_user(session)
    if has_reviewed(db, user_id, product_id):
        raise Conflict(ALREADY_REVIEWED)

    rows = (
        db.table("reviews")
        .insert({"user_id": user_id, "product_id": product_id, "rating": review.rating, "comment": review.comment})
        .execute()
    )
    logger.info("User %s reviewed %s (%d stars)", user_id, product_id, review.rating)
    row = rows[0] if rows else {}
    return Review(
        id=row.get("id"),
        user_id=user_id,
        product_id=product_id,
        rating=review.rating,
        comment=review.comment,
        created_at=row.get("created_at"),
    )
