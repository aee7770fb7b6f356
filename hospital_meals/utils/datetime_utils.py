"""
Datetime helpers.

MongoDB stores datetimes as UTC milliseconds and PyMongo hands them back
naive, so every datetime the service stores or compares is naive UTC.
"""

from datetime import date, datetime, timezone
from typing import Optional, Union

from dateutil import parser as date_parser

DateTimeInput = Union[str, datetime, date]


class DateParseError(ValueError):
    """Raised when an input cannot be read as a date or datetime."""


def utc_now() -> datetime:
    """Current UTC time, naive, truncated to millisecond precision."""
    now = datetime.now(timezone.utc).replace(tzinfo=None)
    return now.replace(microsecond=(now.microsecond // 1000) * 1000)


def to_utc_naive(value: datetime) -> datetime:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.replace(microsecond=(value.microsecond // 1000) * 1000)


def parse_datetime(value: DateTimeInput) -> datetime:
    """
    Parse an ISO 8601 date or datetime into naive UTC.

    Date-only inputs (``2024-03-01``) become midnight UTC.
    """
    if isinstance(value, datetime):
        return to_utc_naive(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if not isinstance(value, str) or not value.strip():
        raise DateParseError("Not a valid datetime.")
    try:
        parsed = date_parser.isoparse(value.strip())
    except (ValueError, OverflowError) as exc:
        raise DateParseError("Not a valid datetime.") from exc
    return to_utc_naive(parsed)


def to_iso(value: Optional[datetime]) -> Optional[str]:
    """Render a stored naive UTC datetime as ISO 8601 with a ``Z`` suffix."""
    if value is None:
        return None
    value = to_utc_naive(value)
    return value.isoformat(timespec='milliseconds') + 'Z'
