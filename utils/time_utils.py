# utils/time_utils.py
from datetime import datetime, timedelta, timezone
from typing import Optional

ANALYTICS_PERIODS = {
    "1d": timedelta(days=1),
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
}


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize a datetime to aware UTC.

    Naive values are treated as UTC (SQLite and MySQL DATETIME columns hand
    them back without tzinfo).
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_naive_utc(value: datetime) -> datetime:
    """Aware -> naive UTC, for comparisons inside SQL queries."""
    return as_utc(value).replace(tzinfo=None)


def start_of_utc_day(now: Optional[datetime] = None) -> datetime:
    now = as_utc(now) if now else utcnow()
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def period_start(period: str, now: Optional[datetime] = None) -> datetime:
    """
    Start of an analytics window ("1d", "7d", "30d").
    Unknown periods fall back to 7 days.

    Example:
        now: 2024-05-10 12:00 UTC, period: "1d" -> 2024-05-09 12:00 UTC
    """
    now = as_utc(now) if now else utcnow()
    return now - ANALYTICS_PERIODS.get(period, ANALYTICS_PERIODS["7d"])


def to_iso(value: datetime) -> str:
    """ISO-8601 with millisecond precision and a Z suffix, e.g. 2024-05-10T12:00:00.000Z"""
    value = as_utc(value)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"
