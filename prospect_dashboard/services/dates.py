"""
Date utilities shared by the deduplicator, conversions and P&L.

Timestamps arrive from upstream exports in several shapes
('2026-01-29 21:00:35.000', '2026-01-14', ISO 8601 with offset). They are
parsed with pandas into naive UTC Timestamps so that events from different
sources compare correctly. Windows are measured in calendar months. A day that
does not exist in the target month rolls over into the next one, so
30 Nov + 3 months is 2 Mar (1 Mar in a leap year).
"""

import logging
from typing import Any, Optional

import pandas as pd


logger = logging.getLogger(__name__)


def parse_timestamp(value: Any) -> Optional[pd.Timestamp]:
    """
    Parse a timestamp into a naive UTC pd.Timestamp.

    Offset-aware values are converted to UTC; naive values are taken as UTC.

    Args:
        value: String, datetime, date or Timestamp. None and empty strings
            are accepted.

    Returns:
        The parsed Timestamp, or None when the value is missing or unparseable.

    Example:
        >>> parse_timestamp("2026-01-10 09:12:44.000")
        Timestamp('2026-01-10 09:12:44')
        >>> parse_timestamp("not a date") is None
        True
    """
    if value is None:
        return None
    if isinstance(value, str) and not value.strip():
        return None

    parsed = pd.to_datetime(value, errors='coerce', utc=True)
    if pd.isna(parsed):
        return None

    return parsed.tz_localize(None)


def to_iso(ts: pd.Timestamp) -> str:
    return ts.isoformat()


def to_date_str(ts: pd.Timestamp) -> str:
    """YYYY-MM-DD of a Timestamp."""
    return ts.strftime('%Y-%m-%d')


def month_key(ts: pd.Timestamp) -> str:
    """Calendar month bucket, e.g. '2026-01'."""
    return ts.strftime('%Y-%m')


def add_months(ts: pd.Timestamp, months: int) -> pd.Timestamp:
    """
    Add calendar months, rolling days past the end of a shorter month over.

    pd.DateOffset clamps 31 Jan + 1 month to 28 Feb; the days it dropped are
    added back, giving 3 Mar.
    """
    shifted = ts + pd.DateOffset(months=months)
    if shifted.day < ts.day:
        shifted += pd.Timedelta(days=ts.day - shifted.day)
    return shifted


def is_within_months(start: pd.Timestamp, candidate: pd.Timestamp, months: int) -> bool:
    """
    Whether two instants are less than `months` calendar months apart.

    The earlier instant is shifted forward by `months` calendar months and the
    later one must fall strictly before it. Events exactly `months` months
    apart therefore start a new window.

    Args:
        start: Start of a sale period.
        candidate: Timestamp of the event being tested.
        months: Window length in calendar months.
    """
    earlier, later = (start, candidate) if start <= candidate else (candidate, start)
    return later < add_months(earlier, months)


def is_within_three_months(first: Any, second: Any) -> bool:
    """
    Three-calendar-month predicate over raw timestamp values.

    Returns False when either value cannot be parsed.
    """
    first_ts = parse_timestamp(first)
    second_ts = parse_timestamp(second)
    if first_ts is None or second_ts is None:
        return False
    return is_within_months(first_ts, second_ts, 3)


def months_in_range(start: Any, end: Any) -> int:
    """
    Number of calendar months touched by an inclusive date range.

    2026-01-15..2026-03-02 spans 3 months. Returns 1 when either bound is
    missing, and 0 when the range is inverted.
    """
    start_ts = parse_timestamp(start)
    end_ts = parse_timestamp(end)
    if start_ts is None or end_ts is None:
        return 1
    if end_ts < start_ts:
        return 0
    return (end_ts.year - start_ts.year) * 12 + (end_ts.month - start_ts.month) + 1


def day_bounds(start: Any, end: Any) -> tuple:
    """
    Inclusive day bounds for a date range filter.

    Returns (start at 00:00, end at 23:59:59.999999); either side is None when
    missing or unparseable. A date-only end bound covers the whole day.
    """
    start_ts = parse_timestamp(start)
    end_ts = parse_timestamp(end)
    if start_ts is not None:
        start_ts = start_ts.normalize()
    if end_ts is not None:
        end_ts = end_ts.normalize() + pd.Timedelta(days=1) - pd.Timedelta(microseconds=1)
    return start_ts, end_ts


def in_range(ts: pd.Timestamp, start: Optional[pd.Timestamp], end: Optional[pd.Timestamp]) -> bool:
    if start is not None and ts < start:
        return False
    if end is not None and ts > end:
        return False
    return True
