"""Configuration and logging utilities."""

from __future__ import annotations
