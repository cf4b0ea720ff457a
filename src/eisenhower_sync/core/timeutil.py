# src/eisenhower_sync/core/timeutil.py

"""
Instant helpers.

Canonical instant form is UTC ISO-8601 with millisecond precision and a "Z"
suffix (2026-01-10T10:00:00.000Z), matching what browser replicas write.
Numeric instants are epoch milliseconds.
"""

from __future__ import annotations

import math
from datetime import UTC, date, datetime, time, tzinfo
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


def utc_now() -> datetime:
    return datetime.now(UTC)


def to_iso(dt: datetime) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    dt = dt.astimezone(UTC)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def from_epoch_ms(value: float) -> str | None:
    """Epoch milliseconds as a canonical instant, or None when out of range."""
    dt = parse_instant(value)
    return None if dt is None else to_iso(dt)


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def parse_instant(value: Any) -> datetime | None:
    """
    Parse an instant into an aware UTC datetime.

    Accepts datetimes (naive = UTC), epoch milliseconds, ISO-8601 strings with
    "Z" or an offset, and date-only strings (midnight UTC). Returns None when
    the value cannot be interpreted.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.replace(tzinfo=UTC) if value.tzinfo is None else value.astimezone(UTC)
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=UTC)
    if is_number(value):
        try:
            return datetime.fromtimestamp(float(value) / 1000.0, tz=UTC)
        except (OverflowError, OSError, ValueError):
            return None
    if not isinstance(value, str):
        return None

    raw = value.strip()
    try:
        dt = datetime.fromisoformat(raw)
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def instant_or_epoch(value: Any) -> datetime:
    """Like parse_instant, but missing/invalid instants sort before everything else."""
    return parse_instant(value) or EPOCH


def resolve_zone(name: str | None) -> tzinfo:
    if not name or name.strip().upper() in {"UTC", "Z", "ETC/UTC"}:
        return UTC
    try:
        return ZoneInfo(name.strip())
    except (ZoneInfoNotFoundError, ValueError):
        return UTC
