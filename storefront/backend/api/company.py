"""Company dashboard routes.

Product create/edit take ``multipart/form-data``: the form values as a JSON
string in ``data`` plus the image and video files.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from storefront.backend.api.deps import get_db, get_store, require_session
from storefront.backend.clients import BackendClient, Session
from storefront.backend.core import product_form as form_rules
from storefront.backend.core.dashboard import DashboardStore
from storefront.backend.core.product_form import AVAILABLE_NUTRIENTS, CATEGORY_OPTIONS, MAX_IMAGES, MAX_VIDEO_BYTES
from storefront.backend.errors import NotFound, ValidationFailed
from storefront.backend.schemas import CompanyStatus, DashboardOut, MessageOut, ProductFormData
from storefront.backend.services import company
from storefront.backend.services.company import MediaUpload

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/company", tags=["company"])


def _parse_form(data: str) -> ProductFormData:
    try:
        return ProductFormData.model_validate_json(data)
    except ValidationError as exc:
        errors = {".".join(str(p) for p in err["loc"]) or "data": err["msg"] for err in exc.errors()}
        raise ValidationFailed("Invalid product form data.", errors) from exc


def _media(upload: UploadFile | None, max_bytes: int | None = None) -> MediaUpload | None:
    """Read an uploaded file; with ``max_bytes`` at most one byte past the limit."""
    if upload is None or not upload.filename:
        return None
    return MediaUpload(
        filename=upload.filename,
        content=upload.file.read() if max_bytes is None else upload.file.read(max_bytes + 1),
        content_type=upload.content_type or "application/octet-stream",
    )


@router.get("/status", response_model=CompanyStatus)
def company_status(
    session: Session = Depends(require_session),
    db: BackendClient = Depends(get_db),
    store: DashboardStore = Depends(get_store),
) -> CompanyStatus:
    found = company.get_company_status(db, session.user.id)
    if found is None:
        raise NotFound("Company not found.")
    store.set_company_status(session.user.id, found)
    return found


@router.get("/dashboard", response_model=DashboardOut)
def dashboard(
    force: bool = False,
    session: Session = Depends(require_session),
    db: BackendClient = Depends(get_db),
    store: DashboardStore = Depends(get_store),
) -> JSONResponse:
    """Sales summary; served from cache for five minutes unless ``force``.

    Returns camelCase JSON, the shape the dashboard frontend persists.
    """
    out = company.dashboard_stats(db, session, store, force=force)
    return JSONResponse(content=out.model_dump(by_alias=True))


@router.get("/form/options")
def form_options() -> dict:
    return {
        "nutrients": AVAILABLE_NUTRIENTS,
        "categories": CATEGORY_OPTIONS,
        "maxImages": MAX_IMAGES,
        "maxVideoBytes": MAX_VIDEO_BYTES,
    }


@router.get("/products/draft", response_model=ProductFormData | None)
def get_draft(
    session: Session = Depends(require_session),
    store: DashboardStore = Depends(get_store),
) -> ProductFormData | None:
    return store.form_draft(session.user.id)


@router.put("/products/draft", response_model=ProductFormData)
def save_draft(
    draft: ProductFormData,
    session: Session = Depends(require_session),
    store: DashboardStore = Depends(get_store),
) -> ProductFormData:
    store.set_form_draft(session.user.id, draft)
    return store.form_draft(session.user.id)


@router.delete("/products/draft", response_model=MessageOut)
def clear_draft(
    session: Session = Depends(require_session),
    store: DashboardStore = Depends(get_store),
) -> MessageOut:
    store.clear_form_draft(session.user.id)
    return MessageOut(title="Draft cleared")


@router.post("/products", status_code=status.HTTP_201_CREATED)
def add_product(
    data: str = Form(...),
    images: list[UploadFile] = File(default=[]),
    video: UploadFile | None = File(default=None),
    session: Session = Depends(require_session),
    db: BackendClient = Depends(get_db),
    store: DashboardStore = Depends(get_store),
) -> dict:
    form = _parse_form(data)
    uploads = [m for m in (_media(f) for f in images) if m is not None]
    product = company.add_product(db, session, form, uploads, _media(video, form_rules.MAX_VIDEO_BYTES), store=store)
    return {
        "product": product,
        "message": MessageOut(
            title="Success!", description="Product added successfully. It is pending approval."
        ).model_dump(),
        "redirect": "/company/dashboard/my-products",
    }


@router.get("/products/{product_id}/form", response_model=ProductFormData)
def product_form(
    product_id: str,
    session: Session = Depends(require_session),
    db: BackendClient = Depends(get_db),
    store: DashboardStore = Depends(get_store),
) -> ProductFormData:
    return company.get_product_form(db, session, product_id, store=store)


@router.put("/products/{product_id}")
def update_product(
    product_id: str,
    data: str = Form(...),
    removed_image_urls: list[str] = Form(default=[]),
    remove_video: bool = Form(default=False),
    images: list[UploadFile] = File(default=[]),
    video: UploadFile | None = File(default=None),
    session: Session = Depends(require_session),
    db: BackendClient = Depends(get_db),
    store: DashboardStore = Depends(get_store),
) -> dict:
    form = _parse_form(data)
    uploads = [m for m in (_media(f) for f in images) if m is not None]
    product = company.update_product(
        db,
        session,
        product_id,
        form,
        new_images=uploads,
        new_video=_media(video, form_rules.MAX_VIDEO_BYTES),
        removed_image_urls=removed_image_urls,
        remove_video=remove_video,
        store=store,
    )
    return {
        "product": product,
        "message": MessageOut(title="Success!", description="Product updated successfully.").model_dump(),
        "redirect": "/company/dashboard/my-products",
    }
