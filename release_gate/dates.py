"""Helpers for coercing stored date values into aware UTC datetimes."""
from __future__ import annotations

from datetime import date as _date, datetime as _dt, timezone as _timezone
from typing import Any, Optional, Tuple

from dateutil import parser as _dateparse

from .errors import MalformedDate


def ensure_utc(value: _dt) -> _dt:
    """Return ``value`` as an aware UTC datetime (naive values count as UTC)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=_timezone.utc)
    return value.astimezone(_timezone.utc)


def to_datetime_any(value: Any) -> Optional[_dt]:
    """Best-effort conversion of Firestore/JSON datetime payloads.

    Accepts ``datetime`` objects, Firestore timestamps (``to_datetime`` or
    ``seconds`` attributes), plain dates, epoch seconds and strings.  Returns
    ``None`` when nothing sensible can be extracted.
    """
    if value is None or isinstance(value, bool):
        return None

    dt_val: Optional[_dt] = None

    if isinstance(value, _dt):
        dt_val = value
    elif isinstance(value, _date):
        dt_val = _dt(value.year, value.month, value.day)
    elif isinstance(value, (int, float)):
        try:
            dt_val = _dt.fromtimestamp(float(value), _timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    else:
        try:
            if hasattr(value, "to_datetime"):
                dt_val = value.to_datetime()
        except Exception:
            dt_val = None

        if dt_val is None:
            try:
                if hasattr(value, "seconds"):
                    dt_val = _dt.fromtimestamp(int(value.seconds), _timezone.utc)
            except Exception:
                dt_val = None

        if dt_val is None and isinstance(value, str) and value.strip():
            try:
                dt_val = _dateparse.isoparse(value.strip())
            except (ValueError, OverflowError):
                try:
                    dt_val = _dateparse.parse(value.strip())
                except (ValueError, OverflowError):
                    dt_val = None

    if dt_val is None:
        return None
    return ensure_utc(dt_val)


def require_datetime(value: Any, field: str = "date") -> _dt:
    """Like :func:`to_datetime_any` but raise :class:`MalformedDate` on failure."""
    parsed = to_datetime_any(value)
    if parsed is None:
        raise MalformedDate(f"Cannot interpret {field} value {value!r}")
    return parsed


def parse_local_time(value: Any) -> Tuple[int, int]:
    """Return ``(hour, minute)`` for an ``"HH:MM"`` time-of-day string."""
    text = str(value or "").strip()
    parts = text.split(":")
    if len(parts) != 2:
        raise MalformedDate(f"Expected HH:MM time of day, got {value!r}")
    try:
        hour, minute = int(parts[0]), int(parts[1])
    except ValueError as exc:
        raise MalformedDate(f"Expected HH:MM time of day, got {value!r}") from exc
    check_time_of_day(hour, minute)
    return hour, minute


def check_time_of_day(hour: int, minute: int) -> None:
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise MalformedDate(f"Time of day out of range: {hour:02d}:{minute:02d}")


__all__ = [
    "ensure_utc",
    "to_datetime_any",
    "require_datetime",
    "parse_local_time",
    "check_time_of_day",
]
