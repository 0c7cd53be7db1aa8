from __future__ import annotations

from datetime import date, datetime, time, timezone
from typing import Optional

# Day-first, as the suppliers read it in order messages
ORDER_DATE_FORMAT = "%d.%m.%Y"


def utcnow() -> datetime:
    """UTC wall clock without tzinfo; every stored timestamp uses this form."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_history_bound(value: Optional[str], *, end_of_day: bool = False) -> Optional[datetime]:
    """
    Turn a history filter value into a UTC-naive datetime.

    Accepts a full ISO-8601 timestamp ("...Z", offsets, or naive UTC) or a
    bare date. A bare date maps to the start of that day, or to its last
    microsecond when end_of_day is set, so ?to=2026-03-09 includes the whole
    day. Blank values mean "no bound". Raises ValueError on anything else.
    """
    if value is None or not value.strip():
        return None
    raw = value.strip()

    if len(raw) == 10:
        day = date.fromisoformat(raw)
        return datetime.combine(day, time.max if end_of_day else time.min)

    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    parsed = datetime.fromisoformat(raw)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """Serialize to second precision with a trailing 'Z'; naive values are UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def format_order_date(day: date) -> str:
    return day.strftime(ORDER_DATE_FORMAT)
