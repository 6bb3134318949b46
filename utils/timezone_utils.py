"""Timezone and date utilities for ledger records.

Ledger rows arrive from the collaborator with dates as ISO strings, dates or
datetimes. They are normalized here to timezone-aware datetimes so that
sorting and elapsed-time calculations never mix naive and aware values.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable, List, Optional, TypeVar, Union

import pandas as pd

DateInput = Union[str, date, datetime, pd.Timestamp]
T = TypeVar('T')


def get_ledger_timezone(offset_hours: Union[int, float] = 0) -> timezone:
    """Get the timezone used to interpret naive ledger dates.

    Args:
        offset_hours: UTC offset in hours (0 keeps ledger dates in UTC)

    Returns:
        timezone: Fixed-offset timezone
    """
    if offset_hours == 0:
        return timezone.utc
    return timezone(timedelta(hours=offset_hours))


def get_current_time(tz: Optional[timezone] = None) -> datetime:
    """Get the current time as a timezone-aware datetime."""
    return datetime.now(tz or timezone.utc)


def parse_ledger_date(value: DateInput, tz: Optional[timezone] = None) -> datetime:
    """Parse a ledger date into a timezone-aware datetime.

    Naive values are interpreted in ``tz`` (UTC by default); aware values
    keep their own offset.

    Args:
        value: ISO date/datetime string, ``date``, ``datetime`` or pandas Timestamp
        tz: Timezone for naive values

    Returns:
        datetime: Timezone-aware datetime

    Raises:
        ValueError: If the value is missing or cannot be parsed
    """
    tz = tz or timezone.utc

    if value is None:
        raise ValueError("Date is required")

    if isinstance(value, pd.Timestamp):
        if pd.isna(value):
            raise ValueError("Date is NaT")
        parsed = value.to_pydatetime()
    elif isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time.min)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            raise ValueError("Date string is empty")
        timestamp = pd.Timestamp(text)
        if pd.isna(timestamp):
            raise ValueError(f"Unparseable date: {value!r}")
        parsed = timestamp.to_pydatetime()
    else:
        raise ValueError(f"Unsupported date type {type(value).__name__}: {value!r}")

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=tz)
    return parsed


def month_key(value: datetime) -> str:
    """Get the calendar month key (``YYYY-MM``) for a datetime."""
    return value.strftime('%Y-%m')


def format_ledger_date(value: datetime) -> str:
    """Format a ledger datetime as an ISO date (``YYYY-MM-DD``)."""
    return value.strftime('%Y-%m-%d')


def filter_by_date_range(records: Iterable[T], start: Optional[DateInput] = None,
                         end: Optional[DateInput] = None, tz: Optional[timezone] = None) -> List[T]:
    """Keep the records whose ``date`` lies within ``start`` and ``end``.

    Both bounds are inclusive and optional; naive bounds are read in ``tz``
    (UTC by default).

    Raises:
        ValueError: If a bound cannot be parsed
    """
    start = parse_ledger_date(start, tz) if start is not None else None
    end = parse_ledger_date(end, tz) if end is not None else None
    return [
        record for record in records
        if (start is None or record.date >= start) and (end is None or record.date <= end)
    ]
