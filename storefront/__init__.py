"""Top-level storefront package.

Sub-packages
------------
storefront.backend
    FastAPI server (api/), domain logic (core/), backend-as-a-service and
    payment clients (clients/), schemas/, services/, cli/
"""

from __future__ import annotations

__version__ = "0.1.0"
