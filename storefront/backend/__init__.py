"""Storefront backend: API, services and domain helpers."""

from __future__ import annotations
