"""Utilities for UTC timestamps and calendar due dates."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Optional, Union

UTC = timezone.utc


def utc_now() -> datetime:
    return datetime.now(UTC)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """SQLite drops tzinfo, so naive values read back are treated as UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def parse_due_date(value: Union[str, date, datetime, None]) -> Optional[date]:
    """Parse ``YYYY-MM-DD`` (or a full ISO timestamp) into a calendar date.

    Empty strings and unparsable values yield ``None``.
    """

    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = str(value).strip()
    if not text:
        return None
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None


def format_due_date(value: Optional[date]) -> str:
    return value.isoformat() if value else ""


def days_since(day: date, today: Optional[date] = None) -> int:
    """Whole calendar days between ``day`` and ``today`` (negative if in the future)."""
    reference = today or date.today()
    return (reference - day).days


def seconds_until_midnight(now: Optional[datetime] = None) -> float:
    current = now or datetime.now().astimezone()
    tomorrow = current.date() + timedelta(days=1)
    midnight = datetime.combine(tomorrow, datetime.min.time(), tzinfo=current.tzinfo)
    return max((midnight - current).total_seconds(), 1.0)


def week_around(center: date) -> list[date]:
    """Seven consecutive days with ``center`` in the middle."""
    return [center + timedelta(days=offset) for offset in range(-3, 4)]


__all__ = [
    "UTC",
    "days_since",
    "ensure_utc",
    "format_due_date",
    "parse_due_date",
    "seconds_until_midnight",
    "utc_now",
    "week_around",
]
