from __future__ import annotations

from datetime import datetime, date, timezone


def iso_today() -> str:
    return date.today().isoformat()


def iso_now() -> str:
    # Use UTC ISO timestamps for consistency.
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


def to_date(value) -> date:
    """
    Accepts a date, datetime or ISO string ("2024-05-20" or a full timestamp)
    and returns a calendar date. Raises ValueError on anything else.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if value is None:
        raise ValueError("Date is required.")
    s = str(value).strip()
    try:
        return date.fromisoformat(s[:10])
    except ValueError:
        raise ValueError(f"Invalid date: {s!r}. Use YYYY-MM-DD.")


WEEKDAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")


def weekday_name(d: date) -> str:
    # Locale-independent, matches the names stored in customers.delivery_days
    return WEEKDAYS[d.weekday()]
