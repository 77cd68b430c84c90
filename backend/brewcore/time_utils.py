# Overview: UTC clock and ISO-8601 helpers for ledger cursors and API timestamps.

"""
All timestamps in brewcore are stored as UTC-naive datetimes.

- utcnow() is the only clock used by services and model defaults
- to_utc_z() is the only serializer used by to_dict()
- parse_iso_datetime() reads values produced by either of the above back
  (ledger history cursors)
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse ISO-8601 into a UTC-naive datetime.

    Empty input gives None. Offsets ("Z", "+04:00") are converted to UTC;
    naive input is taken as UTC already. Raises ValueError on garbage.
    """
    if value is None or not value.strip():
        return None

    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"

    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """Second-precision ISO-8601 with a trailing 'Z'; naive values are UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")
