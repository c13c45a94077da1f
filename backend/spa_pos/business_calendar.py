# backend/spa_pos/business_calendar.py
"""
Business date computation.

The spa's operating day runs past midnight: anything that happens before
the cutoff hour (local time) belongs to the previous calendar day.

Time semantics:
- Stored instants are UTC-naive (see time_utils).
- Business dates are computed on the business-local wall clock.
- Date keys are plain "YYYY-MM-DD" strings so they sort and compare lexically.
"""
from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from .time_utils import utcnow


DEFAULT_CUTOFF_HOUR = 4
DEFAULT_TIMEZONE = "Asia/Manila"

_DATE_KEY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def business_date_key(timestamp: datetime, cutoff_hour: int = DEFAULT_CUTOFF_HOUR) -> str:
    """
    Date key for a wall-clock timestamp.

    The timestamp's own hour is used as-is (no zone conversion):
    2025-11-25T03:59 -> "2025-11-24", 2025-11-25T04:00 -> "2025-11-25".
    """
    day = timestamp.date()
    if timestamp.hour < cutoff_hour:
        day = day - timedelta(days=1)
    return day.isoformat()


def is_date_key(value) -> bool:
    if not isinstance(value, str) or not _DATE_KEY_RE.match(value):
        return False
    try:
        datetime.strptime(value, "%Y-%m-%d")
    except ValueError:
        return False
    return True


class BusinessCalendar:
    """
    Clock + time zone + cutoff hour for one location.

    The clock returns UTC-naive instants; tests inject a fixed one.
    """

    def __init__(
        self,
        cutoff_hour: int = DEFAULT_CUTOFF_HOUR,
        timezone_name: str = DEFAULT_TIMEZONE,
        clock: Callable[[], datetime] = utcnow,
    ):
        if not 0 <= cutoff_hour <= 23:
            raise ValueError("cutoff_hour must be between 0 and 23")
        self.cutoff_hour = cutoff_hour
        self.timezone_name = timezone_name
        self.tz = ZoneInfo(timezone_name)
        self._clock = clock

    def __repr__(self) -> str:
        return f"<BusinessCalendar tz={self.timezone_name!r} cutoff_hour={self.cutoff_hour}>"

    def now(self) -> datetime:
        return self._clock()

    def to_local(self, instant: datetime) -> datetime:
        """UTC instant (naive = UTC) -> business-local wall time."""
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=timezone.utc)
        return instant.astimezone(self.tz)

    def date_key(self, instant: datetime) -> str:
        return business_date_key(self.to_local(instant), self.cutoff_hour)

    def today(self) -> str:
        return self.date_key(self.now())

    def parse_local(self, value) -> Optional[datetime]:
        """
        Parse a client-supplied timestamp into a UTC-naive instant.

        Naive input is business-local wall time; offsets/Z are honoured.
        Returns None for anything that does not parse, and for instants too
        close to datetime.min/max to convert or to carry a business date.
        """
        if isinstance(value, datetime):
            dt = value
        elif isinstance(value, str) and value.strip():
            s = value.strip()
            if s.endswith("Z"):
                s = s[:-1] + "+00:00"
            try:
                dt = datetime.fromisoformat(s)
            except ValueError:
                return None
        else:
            return None

        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=self.tz)
        try:
            instant = dt.astimezone(timezone.utc).replace(tzinfo=None)
            self.date_key(instant)
        except (ValueError, OverflowError):
            return None
        return instant
