"""Helpers for working with timezone-aware datetimes."""

from __future__ import annotations

from datetime import date, datetime, time, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def coerce_utc(value: datetime | None) -> datetime | None:
    """Return a UTC-normalized datetime, assuming naive values are already UTC."""

    if value is None:
        return None

    if value.tzinfo is None or value.utcoffset() is None:
        return value.replace(tzinfo=timezone.utc)

    return value.astimezone(timezone.utc)


def start_of_day_utc(value: date) -> datetime:
    """Return midnight UTC of ``value``.

    Calendar dates stored in settings (such as the challenge restriction
    date) take effect at the first instant of that day in UTC.
    """

    return datetime.combine(value, time.min, tzinfo=timezone.utc)
