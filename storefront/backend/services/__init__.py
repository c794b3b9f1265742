"""Services package – one module per page family.

Import the modules themselves (``from storefront.backend.services import
cart``); their function names overlap on purpose (``list_*``, ``remove_*``).
"""

from __future__ import annotations

from storefront.backend.services import auth, cart, catalog, checkout, company, favorites, orders, reviews

__all__ = ["auth", "cart", "catalog", "checkout", "company", "favorites", "orders", "reviews"]
