"""Domain helpers shared by services and routes."""

from __future__ import annotations
