"""Shared Pydantic types and validators for the graph models.

Centralises timestamp coercion, count and threshold constraints so every
model parses and serialises the same way.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Any

from dateutil import parser as dateutil_parser
from pydantic import BeforeValidator, Field, PlainSerializer

# ---------------------------------------------------------------------------
# Timestamps
# ---------------------------------------------------------------------------


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def coerce_utc_datetime(v: Any) -> datetime:
    """Accept ``datetime | str | float`` and return an aware UTC datetime.

    * ``"2025-01-01T00:00:00Z"`` → ``datetime(2025, 1, 1, tzinfo=UTC)``
    * ``1735689600.0`` → same instant
    * naive datetimes are interpreted as UTC
    """
    if isinstance(v, datetime):
        dt = v
    elif isinstance(v, str):
        try:
            dt = dateutil_parser.isoparse(v)
        except (ValueError, OverflowError) as e:
            raise ValueError(f"invalid ISO-8601 timestamp: {v!r}") from e
    elif isinstance(v, (int, float)) and not isinstance(v, bool):
        dt = datetime.fromtimestamp(v, timezone.utc)
    else:
        raise ValueError(f"unsupported timestamp value: {v!r}")

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_iso(dt: datetime) -> str:
    """Serialise a UTC datetime as ISO-8601 with a ``Z`` suffix."""
    return dt.isoformat().replace("+00:00", "Z")


UtcDatetime = Annotated[
    datetime,
    BeforeValidator(coerce_utc_datetime),
    PlainSerializer(to_iso, return_type=str, when_used="json"),
]
"""Aware UTC datetime; parsed leniently, written as ISO-8601 in JSON mode."""


# ---------------------------------------------------------------------------
# Numeric types
# ---------------------------------------------------------------------------

NonNegativeInt = Annotated[int, Field(ge=0)]
"""Integer >= 0, for frequencies and counts."""

CompressionThreshold = Annotated[float, Field(gt=0.0, le=1.0)]
"""Context-usage fraction in (0, 1] that triggers compression."""


# ---------------------------------------------------------------------------
# String constraints
# ---------------------------------------------------------------------------

RecordId = Annotated[str, Field(min_length=1)]
"""Non-empty node or edge identifier."""
