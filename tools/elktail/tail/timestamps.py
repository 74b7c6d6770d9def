"""
Timestamp codec for Elasticsearch date strings.

Every other part of the tailing engine exchanges timestamps as strings.
This module turns them into datetimes and back, always producing one
canonical, fixed-width form:

    2024-01-15T12:00:00.123Z

Three fractional digits and a UTC "Z" suffix on every value means
lexicographic order equals chronological order, which is what the dedup
window relies on.

Design Decisions:
    - Parsing accepts any number of fractional digits (Elasticsearch
      date_nanos fields produce nine) and either "Z" or a numeric offset
    - Parsing never raises; malformed input becomes ZERO_TIME, which makes
      any window filter built from it mean "from the beginning"
"""

import datetime
import re

# Width of the backward looking slice re-queried on every follow-up poll.
TAILING_TIME_WINDOW_MS = 500

ZERO_TIME = datetime.datetime(1, 1, 1, tzinfo=datetime.timezone.utc)

_TIMESTAMP_PATTERN = re.compile(
    r"^(?P<date>\d{4}-\d{2}-\d{2})"
    r"[T ](?P<time>\d{2}:\d{2}:\d{2})"
    r"(?:\.(?P<fraction>\d+))?"
    r"(?P<zone>Z|z|[+-]\d{2}:?\d{2})$"
)


def parse_timestamp(value: str) -> datetime.datetime:
    """
    Parse an Elasticsearch timestamp into an aware UTC datetime.

    Args:
        value: Timestamp string such as "2024-01-15T12:00:00.123Z" or
               "2024-01-15T13:00:00+01:00".

    Returns:
        The parsed datetime converted to UTC, or ZERO_TIME when the
        string cannot be parsed.
    """
    match = _TIMESTAMP_PATTERN.match(value or "")
    if not match:
        return ZERO_TIME

    # Fraction is truncated to microseconds, the datetime resolution
    fraction = (match.group("fraction") or "")[:6].ljust(6, "0")
    zone = match.group("zone")
    if zone in ("Z", "z"):
        offset = "+0000"
    else:
        offset = zone.replace(":", "")

    text = f"{match.group('date')}T{match.group('time')}.{fraction}{offset}"
    try:
        parsed = datetime.datetime.strptime(text, "%Y-%m-%dT%H:%M:%S.%f%z")
        return parsed.astimezone(datetime.timezone.utc)
    except (ValueError, OverflowError):
        # Shape was right but a field was out of range (month 13 etc.)
        return ZERO_TIME


def format_timestamp(value: datetime.datetime) -> str:
    """
    Format a datetime in the canonical fixed-width form.

    Naive datetimes are taken to be UTC.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=datetime.timezone.utc)
    value = value.astimezone(datetime.timezone.utc)
    # Built by hand since strftime does not zero-pad years before 1000
    return (
        f"{value.year:04d}-{value.month:02d}-{value.day:02d}"
        f"T{value.hour:02d}:{value.minute:02d}:{value.second:02d}"
        f".{value.microsecond // 1000:03d}Z"
    )


def canonical(value: str) -> str:
    """Re-format a raw timestamp string in the canonical form."""
    return format_timestamp(parse_timestamp(value))


def window_cutoff(value: str, window_ms: int = TAILING_TIME_WINDOW_MS) -> str:
    """
    Return the canonical timestamp window_ms before the given one.

    Arithmetic that would fall before year 1 (only possible for
    ZERO_TIME) clamps to ZERO_TIME.
    """
    parsed = parse_timestamp(value)
    try:
        cutoff = parsed - datetime.timedelta(milliseconds=window_ms)
    except OverflowError:
        cutoff = ZERO_TIME
    return format_timestamp(cutoff)
