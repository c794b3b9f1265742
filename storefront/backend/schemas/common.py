"""Small shared response and event models."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class HealthOut(BaseModel):
    status: str = "ok"
    version: str = "0.1.0"


class MessageOut(BaseModel):
    """Outcome of a user action, shown by the frontend as a toast."""

    title: str
    description: str = ""
    variant: str = "default"


class ChangeEvent(BaseModel):
    """Database-webhook payload describing one row change."""

    type: str = Field(..., description="INSERT | UPDATE | DELETE")
    table: str
    schema_name: str = Field("public", alias="schema")
    record: dict[str, Any] | None = None
    old_record: dict[str, Any] | None = None
