"""Provide identifier, timestamp and serialization helpers."""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Optional


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def iso_in(*, hours: float = 0.0, seconds: float = 0.0) -> str:
    """Return the ISO timestamp ``hours``/``seconds`` from now."""
    return (datetime.now(timezone.utc) + timedelta(hours=hours, seconds=seconds)).isoformat()


def generate_id(prefix: str) -> str:
    """Short human-friendly identifier: ``<prefix>-<10hex>``."""
    return f"{prefix}-{uuid.uuid4().hex[:10]}"


def parse_iso(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        if not isinstance(value, str):
            value = str(value)
        if value.endswith("Z"):
            value = value[:-1] + "+00:00"
        dt = datetime.fromisoformat(value)
        # If a naive timestamp slips in, assume UTC to avoid crashes.
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt
    except ValueError:
        return None


def plain(value: Any) -> Any:
    """Recursively convert enums/tuples/sets into JSON-friendly values."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {str(plain(k)): plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [plain(v) for v in value]
    return value


def coerce_enum(enum_cls: type[Enum], raw: Any) -> Any:
    """Coerce ``raw`` into ``enum_cls``; unknown values raise ``ValueError``."""
    if isinstance(raw, enum_cls):
        return raw
    try:
        return enum_cls(str(raw))
    except (ValueError, KeyError):
        valid = [e.value for e in enum_cls]
        raise ValueError(f"{enum_cls.__name__} must be one of {valid}, got {raw!r}") from None
