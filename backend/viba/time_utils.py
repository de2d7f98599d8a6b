# Overview: UTC helpers shared by models, services and the JSON layer.

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


def _naive_utc(dt: datetime) -> datetime:
    # Stored datetimes are naive and always mean UTC
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def utcnow() -> datetime:
    return _naive_utc(datetime.now(timezone.utc))


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Read an ISO-8601 date or datetime as a naive UTC datetime.

    Blank input (None, "", whitespace) gives None. Values without an offset
    are taken as UTC; a trailing "Z" is accepted. Raises ValueError when the
    text is not ISO-8601.
    """
    text = (value or "").strip()
    if not text:
        return None
    if text[-1] in "zZ":
        text = text[:-1] + "+00:00"
    return _naive_utc(datetime.fromisoformat(text))


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """Whole-second ISO-8601 with a trailing Z, e.g. 2026-10-01T10:00:00Z."""
    if dt is None:
        return None
    return _naive_utc(dt).replace(microsecond=0).isoformat() + "Z"
