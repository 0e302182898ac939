"""Datetime parsing helpers for values crossing the storage/wire boundary."""

from __future__ import annotations

import re
from datetime import date, datetime, timezone

_EPOCH_RE = re.compile(r"\d{10,13}")


def parse_timestamp(value: object) -> datetime | None:
    """
    Parse a stored or wire timestamp into an aware UTC datetime.

    Accepts datetimes (naive values are assumed to be UTC, which is how
    SQLite hands them back), ISO 8601 strings with or without a trailing
    "Z", epoch seconds/milliseconds and plain dates. Returns None for empty
    or unrecognised values.
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)

    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value, tz=timezone.utc)

    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None

    # Epoch timestamps (seconds or milliseconds)
    if _EPOCH_RE.fullmatch(text):
        ts = int(text)
        if len(text) == 13:
            ts = ts / 1000
        return datetime.fromtimestamp(ts, tz=timezone.utc)

    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def format_timestamp(value: datetime | None) -> str | None:
    """ISO 8601 string for wire payloads (UTC, "Z" suffix)."""
    parsed = parse_timestamp(value)
    if parsed is None:
        return None
    return parsed.isoformat().replace("+00:00", "Z")
