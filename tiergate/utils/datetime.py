"""Time utilities with timezone-aware defaults and monthly quota periods."""

from __future__ import annotations

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Return current UTC time with tzinfo."""

    return datetime.now(timezone.utc)


def naive_utc(value: datetime) -> datetime:
    """Normalise to naive UTC, the representation stored in the usage tables."""

    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def month_start(value: datetime) -> datetime:
    return value.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def next_month_start(value: datetime) -> datetime:
    """First instant of the calendar month after ``value``.

    This is the quota period boundary: every counter resets on the first of the
    month, UTC, regardless of when the account was created.
    """

    start = month_start(value)
    if start.month == 12:
        return start.replace(year=start.year + 1, month=1)
    return start.replace(month=start.month + 1)


__all__ = ["utc_now", "naive_utc", "month_start", "next_month_start"]
