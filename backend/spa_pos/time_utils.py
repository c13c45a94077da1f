from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


# Instants are stored as naive datetimes in UTC; business-local time only
# exists inside BusinessCalendar.


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """2025-11-24 20:30:00 -> "2025-11-24T20:30:00Z" (naive = UTC)."""
    if dt is None:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt.isoformat(timespec="seconds") + "Z"
