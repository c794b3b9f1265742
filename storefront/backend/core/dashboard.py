"""Company dashboard: sales aggregation and the per-user stats cache.

Aggregation is a pure function over product and order rows. The cache keeps
the last good :class:`DashboardStats` per user for ``ttl`` seconds; a failed
refresh never throws the previous value away, it only records an error
string next to it.
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
import tempfile
import threading
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any

from storefront.backend.core.pricing import LOW_STOCK_THRESHOLD
from storefront.backend.core.product_form import normalize_draft
from storefront.backend.errors import AuthenticationRequired, NotApproved, StorefrontError
from storefront.backend.schemas.accounts import CompanyStatus
from storefront.backend.schemas.dashboard import (
    DashboardStats,
    LowStockProduct,
    ProductFormData,
    SellingProduct,
)

if TYPE_CHECKING:
    from storefront.backend.clients import AuthClient, BackendClient, Session

logger = logging.getLogger(__name__)

CACHE_TTL_SECONDS = 5 * 60
STORAGE_KEY = "dashboard-storage"
CHART_DAYS = 7
PENDING_STATUSES = frozenset({"pending", "confirmed"})

PRODUCT_COLUMNS = (
    "id, product_name, discount_price, original_price, stock_quantity, is_approved, product_photo_urls"
)
ORDER_COLUMNS = "id, total_amount, status, order_items, purchase_time"


class DashboardUnavailable(StorefrontError):
    """A dashboard read failed; the message is shown as the dashboard error."""

    status_code = 502


# ── Aggregation ─────────────────────────────────────────────────────────────


def _order_day(purchase_time: Any) -> date | None:
    """UTC calendar day of an order timestamp, or ``None`` when unparseable."""
    if not purchase_time:
        return None
    if isinstance(purchase_time, datetime):
        moment = purchase_time
    else:
        try:
            moment = datetime.fromisoformat(str(purchase_time).replace("Z", "+00:00"))
        except ValueError:
            logger.debug("Ignoring order with unparseable purchase_time %r", purchase_time)
            return None
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return moment.date()


def chart_days(today: date, days: int = CHART_DAYS) -> list[date]:
    """The last ``days`` calendar days, oldest first, ending with ``today``."""
    return [today - timedelta(days=offset) for offset in range(days - 1, -1, -1)]


def chart_labels(days: list[date]) -> tuple[list[str], list[str]]:
    """Full labels (``Mon, October 19``) and short axis labels (``Mon``)."""
    full = [f"{d:%a}, {d:%B} {d.day}" for d in days]
    short = [f"{d:%a}" for d in days]
    return full, short


def aggregate_dashboard(
    company_name: str,
    products: list[dict],
    orders: Iterable[dict],
    today: date,
    low_stock_threshold: int = LOW_STOCK_THRESHOLD,
) -> DashboardStats:
    """Compute company stats from its products and the full order list.

    Only order items whose ``product_id`` belongs to the company count; an
    order without any such item contributes nothing (not even to the
    chart).

    Args:
        company_name: Shown in the dashboard header.
        products: The company's ``products`` rows.
        orders: ``orders`` rows of all customers, each with an
            ``order_items`` list.
        today: Last day of the seven-day chart.
        low_stock_threshold: Stock strictly below this (and above 0) is low.

    Returns:
        The aggregated :class:`DashboardStats`.
    """
    by_id = {p["id"]: p for p in products}

    low_stock = [
        LowStockProduct(
            id=p["id"],
            product_name=p.get("product_name") or "",
            stock_quantity=p["stock_quantity"],
            product_photo_urls=p.get("product_photo_urls") or [],
        )
        for p in products
        if p.get("stock_quantity") is not None and 0 < p["stock_quantity"] < low_stock_threshold
    ]

    days = chart_days(today)
    per_day = dict.fromkeys(days, 0)
    total_sales = 0.0
    total_orders = 0
    pending_orders = 0
    units: dict[str, int] = {}
    revenue: dict[str, float] = {}

    for order in orders:
        items = order.get("order_items")
        if not isinstance(items, list):
            continue
        company_items = [i for i in items if i.get("product_id") in by_id]
        if not company_items:
            continue

        for item in company_items:
            amount = float(item.get("price_at_purchase") or 0) * int(item.get("quantity") or 0)
            total_sales += amount
            pid = item["product_id"]
            units[pid] = units.get(pid, 0) + int(item.get("quantity") or 0)
            revenue[pid] = revenue.get(pid, 0.0) + amount

        total_orders += 1
        if order.get("status") in PENDING_STATUSES:
            pending_orders += 1
        day = _order_day(order.get("purchase_time"))
        if day in per_day:
            per_day[day] += 1

    selling = sorted(
        (
            SellingProduct(
                product_id=pid,
                product_name=by_id[pid].get("product_name") or "Unknown Product",
                units_sold=units[pid],
                revenue_generated=revenue[pid],
                product_photo_urls=by_id[pid].get("product_photo_urls") or [],
            )
            for pid in units
        ),
        key=lambda s: s.units_sold,
        reverse=True,
    )
    full_labels, axis_labels = chart_labels(days)

    return DashboardStats(
        company_name=company_name,
        total_products=len(products),
        total_sales_amount=total_sales,
        total_orders=total_orders,
        pending_orders=pending_orders,
        active_listings=sum(1 for p in products if p.get("is_approved")),
        out_of_stock_products=sum(1 for p in products if p.get("stock_quantity") == 0),
        low_stock_products=low_stock,
        all_selling_products=selling,
        chart_sales_data=[per_day[d] for d in days],
        chart_sales_labels=full_labels,
        chart_x_axis_labels=axis_labels,
    )


def load_dashboard_stats(
    db: BackendClient,
    session: Session | None,
    today: date | None = None,
    low_stock_threshold: int = LOW_STOCK_THRESHOLD,
) -> DashboardStats:
    """Read company, products and orders in sequence and aggregate them.

    Raises:
        AuthenticationRequired: No session.
        NotApproved: The user has no company row.
        DashboardUnavailable: The products or orders read failed.
    """
    if session is None:
        raise AuthenticationRequired("Authentication required.")

    company = db.table("companies").select("id, company_name").eq("user_id", session.user.id).maybe_single()
    if company is None:
        raise NotApproved("Company not found or not approved.", redirect=None)

    try:
        products = db.table("products").select(PRODUCT_COLUMNS).eq("company_id", company["id"]).execute()
    except StorefrontError as exc:
        logger.error("Error fetching products for dashboard: %s", exc)
        raise DashboardUnavailable("Failed to load product data.") from exc

    try:
        orders = db.table("orders").select(ORDER_COLUMNS).execute()
    except StorefrontError as exc:
        logger.error("Error fetching orders for dashboard: %s", exc)
        raise DashboardUnavailable("Failed to load order data.") from exc

    today = today or datetime.now(timezone.utc).date()
    return aggregate_dashboard(company.get("company_name") or "", products, orders, today, low_stock_threshold)


# ── Cache ───────────────────────────────────────────────────────────────────


@dataclass
class DashboardCache:
    """Last good stats plus when they were fetched and the last error."""

    ttl: float = CACHE_TTL_SECONDS
    clock: Callable[[], float] = field(default=time.time, repr=False)
    stats: DashboardStats | None = None
    last_fetched: float | None = None
    error: str | None = None

    def get(self) -> DashboardStats | None:
        return self.stats

    def is_fresh(self, now: float | None = None, ttl: float | None = None) -> bool:
        if self.stats is None or self.last_fetched is None:
            return False
        now = self.clock() if now is None else now
        return now - self.last_fetched < (self.ttl if ttl is None else ttl)

    def invalidate(self) -> None:
        """Mark the value stale; it is still served until a refresh succeeds."""
        self.last_fetched = None

    def refresh_if_stale(
        self,
        loader: Callable[[], DashboardStats],
        *,
        now: float | None = None,
        ttl: float | None = None,
        force: bool = False,
    ) -> DashboardStats | None:
        """Return the cached stats, calling ``loader`` first when stale or forced.

        A failing loader leaves ``stats`` and ``last_fetched`` untouched and
        stores its message in ``error``.
        """
        if not force and self.is_fresh(now, ttl):
            return self.stats

        try:
            stats = loader()
        except Exception as exc:
            logger.error("Dashboard refresh failed: %s", exc)
            self.error = str(exc) or "An unexpected error occurred"
            return self.stats

        self.stats = stats
        self.error = None
        self.last_fetched = self.clock() if now is None else now
        return stats

    def to_dict(self) -> dict:
        return {
            "stats": self.stats.model_dump(by_alias=True) if self.stats else None,
            "lastFetched": self.last_fetched,
            "error": self.error,
        }

    def load_dict(self, data: dict) -> None:
        stats = data.get("stats")
        self.stats = DashboardStats.model_validate(stats) if stats else None
        self.last_fetched = data.get("lastFetched")
        self.error = data.get("error")


class DashboardStore:
    """Per-user dashboard state: stats caches, company status and form drafts.

    Thread-safe for the sync FastAPI handlers that share one instance. The
    whole store is written to ``persist_path`` as JSON under a single
    ``dashboard-storage`` key so a restart keeps warm caches and drafts.
    """

    def __init__(
        self,
        ttl: float = CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
        persist_path: str | Path | None = None,
        low_stock_threshold: int = LOW_STOCK_THRESHOLD,
    ):
        self.ttl = ttl
        self.clock = clock
        self.persist_path = Path(persist_path) if persist_path else None
        self.low_stock_threshold = low_stock_threshold
        self._caches: dict[str, DashboardCache] = {}
        self._company_status: dict[str, CompanyStatus] = {}
        self._drafts: dict[str, ProductFormData] = {}
        self._lock = threading.Lock()
        # serializes snapshot + file replace so writes land in order
        self._save_lock = threading.Lock()

    # -- stats ---------------------------------------------------------------

    def cache_for(self, user_id: str) -> DashboardCache:
        with self._lock:
            cache = self._caches.get(user_id)
            if cache is None:
                cache = self._caches[user_id] = DashboardCache(ttl=self.ttl, clock=self.clock)
            return cache

    def fetch_stats(self, db: BackendClient, session: Session | None, force: bool = False) -> DashboardCache:
        """Serve or refresh the signed-in company's stats.

        Concurrent misses for the same user both hit the backend; the last
        one to finish wins.
        """
        if session is None:
            cache = DashboardCache(ttl=self.ttl, clock=self.clock)
            cache.error = "Authentication required."
            return cache

        cache = self.cache_for(session.user.id)
        cache.refresh_if_stale(
            lambda: load_dashboard_stats(db, session, low_stock_threshold=self.low_stock_threshold),
            force=force,
        )
        self.save()
        return cache

    def invalidate_all(self, *_: Any) -> None:
        """Mark every cached dashboard stale (change-notification callback)."""
        with self._lock:
            caches = list(self._caches.values())
        for cache in caches:
            cache.invalidate()
        logger.debug("Invalidated %d dashboard caches", len(caches))

    def forget(self, user_id: str) -> None:
        with self._lock:
            self._caches.pop(user_id, None)
            self._company_status.pop(user_id, None)
            self._drafts.pop(user_id, None)
        self.save()

    def bind_auth(self, auth: AuthClient):
        """Drop a user's state when their session signs out."""

        def _on_change(event: str, session: Session | None) -> None:
            if event == "SIGNED_OUT" and session is not None:
                self.forget(session.user.id)

        return auth.on_auth_state_change(_on_change)

    # -- company status & form draft ----------------------------------------

    def company_status(self, user_id: str) -> CompanyStatus | None:
        return self._company_status.get(user_id)

    def set_company_status(self, user_id: str, status: CompanyStatus) -> None:
        with self._lock:
            self._company_status[user_id] = status
        self.save()

    def form_draft(self, user_id: str) -> ProductFormData | None:
        return self._drafts.get(user_id)

    def set_form_draft(self, user_id: str, draft: ProductFormData) -> None:
        with self._lock:
            self._drafts[user_id] = normalize_draft(draft)
        self.save()

    def clear_form_draft(self, user_id: str) -> None:
        with self._lock:
            self._drafts.pop(user_id, None)
        self.save()

    # -- persistence ---------------------------------------------------------

    def to_dict(self) -> dict:
        with self._lock:
            return {
                STORAGE_KEY: {
                    "caches": {uid: c.to_dict() for uid, c in self._caches.items()},
                    "companyStatus": {uid: s.model_dump() for uid, s in self._company_status.items()},
                    "addProductFormState": {
                        uid: d.model_dump(by_alias=True) for uid, d in self._drafts.items()
                    },
                }
            }

    def save(self) -> None:
        """Write the state to ``persist_path`` atomically.

        The JSON goes to a temporary file next to the target which then
        replaces it, so readers see either the old or the new file.
        """
        if self.persist_path is None:
            return
        target = self.persist_path
        target.parent.mkdir(parents=True, exist_ok=True)
        with self._save_lock:
            text = json.dumps(self.to_dict(), indent=2)
            fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(text)
                os.replace(tmp_name, target)
            except BaseException:
                with contextlib.suppress(OSError):
                    os.unlink(tmp_name)
                raise

    def load(self) -> None:
        """Restore state written by :meth:`save`; a missing file is a no-op."""
        if self.persist_path is None or not self.persist_path.exists():
            return
        try:
            payload = json.loads(self.persist_path.read_text(encoding="utf-8")).get(STORAGE_KEY) or {}
        except (OSError, ValueError) as exc:
            logger.warning("Could not read dashboard storage %s: %s", self.persist_path, exc)
            return

        with self._lock:
            for uid, data in (payload.get("caches") or {}).items():
                cache = DashboardCache(ttl=self.ttl, clock=self.clock)
                cache.load_dict(data)
                self._caches[uid] = cache
            for uid, data in (payload.get("companyStatus") or {}).items():
                self._company_status[uid] = CompanyStatus.model_validate(data)
            for uid, data in (payload.get("addProductFormState") or {}).items():
                self._drafts[uid] = normalize_draft(data)
        logger.info("Loaded dashboard storage for %d users", len(self._caches))
