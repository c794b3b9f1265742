"""HTTP surface: application factory and route modules."""

from __future__ import annotations
