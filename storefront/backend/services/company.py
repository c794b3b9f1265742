"""Company dashboard service – approval gate, product CRUD and sales stats."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from urllib.parse import unquote

from storefront.backend.clients import BackendClient, Session
from storefront.backend.core.dashboard import DashboardStore
from storefront.backend.core.media import (
    PRODUCT_MEDIA_BUCKET,
    path_from_public_url,
    storage_object_name,
)
from storefront.backend.core.product_form import ensure_valid, from_product_row, to_product_row, to_update_row
from storefront.backend.errors import AuthenticationRequired, NotApproved, NotFound
from storefront.backend.schemas import CompanyStatus, DashboardOut, ProductFormData

logger = logging.getLogger(__name__)

IMAGE_FOLDER = "images"
VIDEO_FOLDER = "videos"


@dataclass
class MediaUpload:
    """A file received from the product form."""

    filename: str
    content: bytes
    content_type: str = "application/octet-stream"

    @property
    def size(self) -> int:
        return len(self.content)


def get_company_status(db: BackendClient, user_id: str) -> CompanyStatus | None:
    row = db.table("companies").select("id, is_approved").eq("user_id", user_id).maybe_single()
    return CompanyStatus.model_validate(row) if row else None


def require_approved_company(
    db: BackendClient,
    session: Session | None,
    store: DashboardStore | None = None,
) -> CompanyStatus:
    """The signed-in user's approved company.

    Raises:
        AuthenticationRequired: No session.
        NotApproved: No company row (redirect ``/``) or not yet approved
            (redirect ``/company/dashboard``).
    """
    if session is None:
        raise AuthenticationRequired("Please log in to manage products.")
    user_id = session.user.id

    cached = store.company_status(user_id) if store else None
    if cached is not None and cached.is_approved:
        return cached

    status = get_company_status(db, user_id)
    if status is None:
        raise NotApproved("Your company record could not be found or is not approved.", redirect="/")
    if store is not None:
        store.set_company_status(user_id, status)
    if not status.is_approved:
        raise NotApproved("Your company must be approved to manage products.")
    return status


def upload_media(db: BackendClient, company_id: str, upload: MediaUpload, folder: str) -> str:
    """Store one file under ``{folder}/{company_id}/`` and return its path."""
    path = storage_object_name(folder, company_id, upload.filename)
    return db.storage.upload(
        PRODUCT_MEDIA_BUCKET,
        path,
        upload.content,
        content_type=upload.content_type,
        cache_control="3600",
        upsert=False,
    )


def add_product(
    db: BackendClient,
    session: Session | None,
    form: ProductFormData,
    images: list[MediaUpload],
    video: MediaUpload | None = None,
    store: DashboardStore | None = None,
) -> dict:
    """Validate, upload media and insert a product awaiting approval."""
    company = require_approved_company(db, session, store)
    ensure_valid(form, len(images), video.size if video else None)

    photo_paths = [upload_media(db, company.id, image, IMAGE_FOLDER) for image in images]
    video_path = upload_media(db, company.id, video, VIDEO_FOLDER) if video else None

    row = to_product_row(form, company.id, photo_paths, video_path)
    inserted = db.table("products").insert([row]).execute()
    logger.info("Company %s added product %r (%d images)", company.id, form.product_name, len(photo_paths))

    if store is not None:
        store.clear_form_draft(session.user.id)
    return inserted[0] if inserted else row


def _owned_product(db: BackendClient, company_id: str, product_id: str) -> dict:
    row = db.table("products").select("*").eq("id", product_id).eq("company_id", company_id).maybe_single()
    if row is None:
        raise NotFound("Product not found or you don't have permission to edit it.")
    return row


def get_product_form(
    db: BackendClient,
    session: Session | None,
    product_id: str,
    store: DashboardStore | None = None,
) -> ProductFormData:
    """Edit-form values for one of the company's products."""
    company = require_approved_company(db, session, store)
    return from_product_row(_owned_product(db, company.id, product_id), db.storage)


def update_product(
    db: BackendClient,
    session: Session | None,
    product_id: str,
    form: ProductFormData,
    new_images: list[MediaUpload] | None = None,
    new_video: MediaUpload | None = None,
    removed_image_urls: list[str] | None = None,
    remove_video: bool = False,
    store: DashboardStore | None = None,
) -> dict:
    """Apply the edit form to a product.

    Removed images are deleted from storage, new files uploaded, and the
    remaining stored paths kept in their original order followed by the new
    ones. A new video replaces the old one; ``remove_video`` drops it.
    """
    company = require_approved_company(db, session, store)
    current = _owned_product(db, company.id, product_id)
    new_images = new_images or []

    removed = {p for p in (path_from_public_url(u) for u in removed_image_urls or []) if p}
    existing_paths = [p for p in current.get("product_photo_urls") or [] if p]
    kept = [p for p in existing_paths if unquote(p) not in removed]
    deleted = [p for p in existing_paths if unquote(p) in removed]

    ensure_valid(form, len(kept) + len(new_images), new_video.size if new_video else None)

    if deleted:
        db.storage.remove(PRODUCT_MEDIA_BUCKET, [unquote(p) for p in deleted])
    uploaded = [upload_media(db, company.id, image, IMAGE_FOLDER) for image in new_images]

    video_path = current.get("product_video_url") or None
    if new_video is not None:
        fresh = upload_media(db, company.id, new_video, VIDEO_FOLDER)
        if video_path:
            db.storage.remove(PRODUCT_MEDIA_BUCKET, [unquote(video_path)])
        video_path = fresh
    elif remove_video and video_path:
        db.storage.remove(PRODUCT_MEDIA_BUCKET, [unquote(video_path)])
        video_path = None

    values = to_update_row(form, kept + uploaded, video_path)
    rows = db.table("products").update(values).eq("id", product_id).eq("company_id", company.id).execute()
    logger.info(
        "Company %s updated product %s (-%d/+%d images)", company.id, product_id, len(deleted), len(uploaded)
    )
    return rows[0] if rows else {"id": product_id, **values}


def dashboard_stats(
    db: BackendClient,
    session: Session | None,
    store: DashboardStore,
    force: bool = False,
) -> DashboardOut:
    """Cached dashboard numbers for the signed-in company."""
    before = store.cache_for(session.user.id).last_fetched if session is not None else None
    cache = store.fetch_stats(db, session, force=force)
    return DashboardOut(
        stats=cache.get(),
        error=cache.error,
        last_fetched=cache.last_fetched,
        cached=cache.stats is not None and cache.last_fetched == before,
    )
