"""Storage path ↔ public URL helpers.

Products and companies store *paths* into object storage
(``images/<company>/<file>``), never full URLs. Every place that shows media
resolves those paths here.
"""

from __future__ import annotations

import re
import uuid
from typing import Protocol
from urllib.parse import unquote

PRODUCT_MEDIA_BUCKET = "product-media"
COMPANY_DOCUMENTS_BUCKET = "company-documents"
PLACEHOLDER_IMAGE = "/placeholder.svg"

_UNSAFE_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9.-]")


class PublicUrlResolver(Protocol):
    def get_public_url(self, bucket: str, path: str) -> str: ...


def public_url_from_path(
    storage: PublicUrlResolver,
    path: str | None,
    bucket: str = PRODUCT_MEDIA_BUCKET,
    placeholder: str = PLACEHOLDER_IMAGE,
) -> str:
    """Resolve a stored path to its public URL.

    Stored paths may already be percent-encoded; they are decoded once here
    and encoded once by the storage client, so ``a%20b.png`` never becomes
    ``a%2520b.png``.
    """
    if not path:
        return placeholder
    return storage.get_public_url(bucket, unquote(path)) or placeholder


def company_logo_url(storage: PublicUrlResolver, path: str | None, placeholder: str = PLACEHOLDER_IMAGE) -> str:
    return public_url_from_path(storage, path, COMPANY_DOCUMENTS_BUCKET, placeholder)


def resolve_media(
    storage: PublicUrlResolver,
    paths: list[str] | None,
    bucket: str = PRODUCT_MEDIA_BUCKET,
) -> list[str]:
    """Public URLs for all non-empty ``paths``; missing entries are dropped."""
    return [public_url_from_path(storage, p, bucket) for p in paths or [] if p]


def path_from_public_url(url: str | None, bucket: str = PRODUCT_MEDIA_BUCKET) -> str | None:
    """Inverse of :func:`public_url_from_path` (decoded path, or ``None``)."""
    if not url:
        return None
    marker = f"/{bucket}/"
    if marker not in url:
        return None
    return unquote(url.split(marker, 1)[1]) or None


def sanitize_filename(filename: str) -> str:
    """Replace everything except ASCII letters, digits, ``.`` and ``-`` with ``_``."""
    return _UNSAFE_FILENAME_CHARS.sub("_", filename)


def storage_object_name(folder: str, owner_id: str, filename: str, unique: str | None = None) -> str:
    """``{folder}/{owner_id}/{sanitized}-{uuid}`` for a new upload."""
    unique = unique or str(uuid.uuid4())
    return f"{folder}/{owner_id}/{sanitize_filename(filename)}-{unique}"
