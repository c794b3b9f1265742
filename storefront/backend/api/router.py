"""API route table.

Health and the change-notification webhook live here; the page-family
routers are included below so ``app.py`` mounts a single router under
``/api``.
"""

from __future__ import annotations

import hmac
import logging

from fastapi import APIRouter, Header, Request

from storefront import __version__
from storefront.backend.api import account, company, shop
from storefront.backend.errors import AuthenticationRequired
from storefront.backend.schemas import ChangeEvent, HealthOut

logger = logging.getLogger(__name__)

router = APIRouter()

# ── Routes ─────────────────────────────────────────────────────────────────


@router.get("/health", response_model=HealthOut, include_in_schema=False)
async def health_check() -> HealthOut:
    """Liveness probe (suppressed from access log via log filter)."""
    return HealthOut(version=__version__)


@router.post("/realtime/webhook", status_code=202)
async def realtime_webhook(
    event: ChangeEvent,
    request: Request,
    x_webhook_secret: str | None = Header(default=None),
) -> dict[str, object]:
    """Receive a database-change webhook and queue it for the subscribers.

    Bursts of changes to one table are coalesced by the invalidation queue;
    the background flush task delivers them. Calls must carry the configured
    ``x-webhook-secret``; with no secret configured every call is refused.
    """
    secret = str(request.app.state.config["realtime"].get("webhook_secret") or "")
    if not secret:
        raise AuthenticationRequired("Webhook secret is not configured.")
    if not hmac.compare_digest(secret, x_webhook_secret or ""):
        raise AuthenticationRequired("Invalid webhook secret.")

    request.app.state.invalidations.notify(event.table, event)
    logger.debug("Queued %s change on %s", event.type, event.table)
    return {"status": "queued", "pending": request.app.state.invalidations.pending()}


router.include_router(account.router)
router.include_router(shop.router)
router.include_router(company.router)
