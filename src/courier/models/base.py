"""Shared helpers and types for Courier models."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, TypeAlias
from uuid import uuid4

# A decoded JSON document: null, bool, number, string, list or object.
JsonValue: TypeAlias = Any


def generate_id(prefix: str) -> str:
    """Generate a unique ID with the given prefix.

    Examples:
        generate_id("evt") -> "evt_a1b2c3d4e5f6"
        generate_id("flt") -> "flt_a1b2c3d4e5f6"
    """
    return f"{prefix}_{uuid4().hex[:12]}"


def utcnow() -> datetime:
    """Timezone-aware current time in UTC."""
    return datetime.now(UTC)
