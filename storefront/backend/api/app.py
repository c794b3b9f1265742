"""FastAPI application factory.

Instantiate with:
    uvicorn storefront.backend.api.app:app --reload --port 8000
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from storefront import __version__
from storefront.backend.api.router import router
from storefront.backend.clients import BackendClient, StripeGateway
from storefront.backend.core.dashboard import DashboardStore
from storefront.backend.core.realtime import InvalidationQueue
from storefront.backend.core.utils.config import apply_env_overrides, get_default_config, load_config
from storefront.backend.errors import StorefrontError

logger = logging.getLogger(__name__)

# Configurable via environment; the default allows the storefront dev-server only.
# Override in production:  CORS_ORIGINS="https://your-domain.com"
_CORS_ORIGINS: list[str] = os.getenv(
    "CORS_ORIGINS", "http://localhost:3000,http://localhost:5173"
).split(",")

# Tables whose changes make cached dashboards stale.
_DASHBOARD_TABLES = ("orders", "products")


def _load_settings() -> dict[str, Any]:
    try:
        return load_config()
    except FileNotFoundError as exc:
        logger.warning("%s – using built-in defaults", exc)
        return apply_env_overrides(get_default_config())


async def _flush_invalidations(queue: InvalidationQueue, interval: float) -> None:
    """Deliver coalesced change notifications until cancelled."""
    while True:
        await asyncio.sleep(interval)
        queue.flush()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build clients, caches and the notification queue; tear them down on exit."""
    state = app.state
    if getattr(state, "config", None) is None:
        state.config = _load_settings()
    cfg = state.config

    owns_backend = getattr(state, "backend", None) is None
    if owns_backend:
        state.backend = BackendClient(
            cfg["backend"]["url"],
            cfg["backend"]["anon_key"],
            timeout=float(cfg["backend"]["timeout"]),
        )
    if getattr(state, "gateway", None) is None:
        state.gateway = StripeGateway(cfg["payments"]["stripe_secret_key"], currency=cfg["payments"]["currency"])
    if getattr(state, "dashboard", None) is None:
        state.dashboard = DashboardStore(
            ttl=float(cfg["dashboard"]["cache_ttl_seconds"]),
            persist_path=cfg["dashboard"]["persist_path"] or None,
            low_stock_threshold=int(cfg["catalog"]["low_stock_threshold"]),
        )
        state.dashboard.load()

    debounce = float(cfg["realtime"]["debounce_seconds"])
    state.invalidations = InvalidationQueue(debounce=debounce)
    unsubscribers = [state.invalidations.subscribe(t, state.dashboard.invalidate_all) for t in _DASHBOARD_TABLES]
    auth_subscription = state.dashboard.bind_auth(state.backend.auth)
    flusher = asyncio.create_task(_flush_invalidations(state.invalidations, max(debounce / 2, 0.05)))

    if not state.gateway.configured:
        logger.warning("STRIPE_SECRET_KEY not set – checkout payments are disabled")
    if not cfg["realtime"].get("webhook_secret"):
        logger.warning("REALTIME_WEBHOOK_SECRET not set – change webhooks are refused, dashboards refresh on TTL only")
    logger.info("Storefront API ready – backend %s", cfg["backend"]["url"] or "(unset)")
    try:
        yield
    finally:
        flusher.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await flusher
        state.invalidations.flush(force=True)
        for unsubscribe in unsubscribers:
            unsubscribe()
        auth_subscription.unsubscribe()
        state.dashboard.save()
        if owns_backend:
            state.backend.close()


async def _storefront_error_handler(request: Request, exc: StorefrontError) -> JSONResponse:
    """Render any :class:`StorefrontError` as ``{"detail", "redirect"?, "errors"?}``."""
    body: dict[str, Any] = {"detail": exc.message}
    if exc.redirect:
        body["redirect"] = exc.redirect
    errors = getattr(exc, "errors", None)
    if errors:
        body["errors"] = errors
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.info("%s %s -> %d %s", request.method, request.url.path, exc.status_code, exc.message)
    return JSONResponse(status_code=exc.status_code, content=body)


def create_app(
    config: dict[str, Any] | None = None,
    *,
    backend: BackendClient | None = None,
    gateway: StripeGateway | None = None,
    dashboard: DashboardStore | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Anything passed in is used as-is instead of being built from the
    configuration at startup (tests inject fakes this way).
    """
    application = FastAPI(
        title="Organic Storefront API",
        version=__version__,
        description="Storefront and company dashboard over a hosted backend",
        lifespan=lifespan,
    )
    application.state.config = config
    application.state.backend = backend
    application.state.gateway = gateway
    application.state.dashboard = dashboard

    # ── CORS ───────────────────────────────────────────────────────────────
    application.add_middleware(
        CORSMiddleware,
        allow_origins=_CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    application.add_exception_handler(StorefrontError, _storefront_error_handler)

    # ── Register all API routes under /api ─────────────────────────────────
    application.include_router(router, prefix="/api")

    # ── Suppress noisy access-log lines for health polls & webhooks ────────
    _install_access_log_filter()

    return application


class _QuietPollFilter(logging.Filter):
    """Drop uvicorn access-log records for /api/health and the change webhook."""

    _NOISY = ("/api/health", "/api/realtime/webhook")

    def filter(self, record: logging.LogRecord) -> bool:
        msg = record.getMessage()
        return not any(path in msg for path in self._NOISY)


def _install_access_log_filter() -> None:
    """Attach the filter to uvicorn's access logger (if it exists)."""
    uvicorn_access = logging.getLogger("uvicorn.access")
    uvicorn_access.addFilter(_QuietPollFilter())


# Module-level instance used by uvicorn and tests.
app = create_app()
