"""
Index selection for date-partitioned indices.

Log shippers usually write one index per day (logstash-2024.01.15). A
query without date bounds only needs the newest of those; a date
filtered query needs every index whose day falls inside the requested
range. This module picks them.

Design Decisions:
    - Index patterns are regular expressions matched anywhere in the name
    - The newest index is the lexicographically greatest match, which
      holds because the embedded date is zero-padded year-month-day
    - A date that cannot be extracted is a configuration error: guessing
      would mean searching the wrong indices without telling anyone
"""

import datetime
import re
from typing import List, Optional, Sequence

from ..errors import AuthenticationError, ConfigurationError, SearchError
from ..utils.log import TailLogger
from .model import QueryDefinition

# Separator used inside index names (logstash-2024.01.15)
INDEX_DATE_SEPARATOR = "."
# Separator used in --after/--before values (2024-01-15T10:00)
BOUND_DATE_SEPARATOR = "-"


def extract_ymd_date(value: str, separator: str) -> datetime.date:
    """
    Extract the first year-month-day date embedded in a string.

    Args:
        value: Index name or date bound, e.g. "logstash-2024.01.15".
        separator: Character between year, month and day.

    Returns:
        datetime.date: The extracted date.

    Raises:
        ConfigurationError: No such date in the string, or it is not a
            valid calendar date.
    """
    sep = re.escape(separator)
    match = re.search(rf"(\d{{4}}){sep}(\d{{2}}){sep}(\d{{2}})", value)
    if not match:
        raise ConfigurationError(f"Failed to extract date from: {value!r}")
    year, month, day = (int(part) for part in match.groups())
    try:
        return datetime.date(year, month, day)
    except ValueError as exc:
        raise ConfigurationError(f"Failed parsing date in {value!r}: {exc}") from exc


def matching_indices(indices: Sequence[str], pattern: str) -> List[str]:
    try:
        regex = re.compile(pattern)
    except re.error as exc:
        raise ConfigurationError(f"Invalid index pattern {pattern!r}: {exc}") from exc
    return [index for index in indices if regex.search(index)]


def find_last_index(indices: Sequence[str], pattern: str) -> Optional[str]:
    """Return the lexicographically greatest index matching pattern, if any."""
    matches = matching_indices(indices, pattern)
    return max(matches) if matches else None


def find_indices_for_date_range(
    indices: Sequence[str],
    pattern: str,
    start: datetime.date,
    end: datetime.date,
    index_date_separator: str = INDEX_DATE_SEPARATOR,
) -> List[str]:
    """Return matching indices whose embedded date lies in [start, end]."""
    result = []
    for index in matching_indices(indices, pattern):
        index_date = extract_ymd_date(index, index_date_separator)
        if start <= index_date <= end:
            result.append(index)
    return result


def select_indices(
    indices: Sequence[str],
    pattern: str,
    query_definition: QueryDefinition,
    today: Optional[datetime.date] = None,
    index_date_separator: str = INDEX_DATE_SEPARATOR,
) -> List[str]:
    """
    Pick the indices a run should search.

    Undated queries get the newest matching index. Dated queries get all
    matching indices between the bounds, where a missing end defaults to
    today and a missing start defaults to the earlier of the newest
    index's date and the end date.

    Args:
        indices: All index names known to the cluster.
        pattern: Regular expression index names must match.
        query_definition: Supplies the after/before bounds.
        today: Wall-clock date used when no end bound is given.
        index_date_separator: Separator of the date inside index names.

    Raises:
        ConfigurationError: No index matches, or a date cannot be
            extracted from a bound or a matching index name.
    """
    if not query_definition.is_date_time_filtered():
        last = find_last_index(indices, pattern)
        if last is None:
            raise ConfigurationError(f"No index matches pattern {pattern!r}")
        return [last]

    after = query_definition.after_datetime
    before = query_definition.before_datetime

    if before:
        end = extract_ymd_date(before, BOUND_DATE_SEPARATOR)
    else:
        end = today or datetime.date.today()

    if after:
        start = extract_ymd_date(after, BOUND_DATE_SEPARATOR)
    else:
        # Only an end date: don't reach back past the newest index
        last = find_last_index(indices, pattern)
        if last is None:
            raise ConfigurationError(f"No index matches pattern {pattern!r}")
        start = min(extract_ymd_date(last, index_date_separator), end)

    return find_indices_for_date_range(
        indices, pattern, start, end, index_date_separator
    )


def resolve_indices(
    client,
    pattern: str,
    query_definition: QueryDefinition,
    logger: TailLogger,
    today: Optional[datetime.date] = None,
    index_date_separator: str = INDEX_DATE_SEPARATOR,
) -> List[str]:
    """
    Ask the cluster for its indices and select the ones to search.

    When the index catalog is unavailable the pattern is used literally
    as the index name, which works for wildcard patterns such as
    "logstash-*" and for plain aliases.

    Raises:
        AuthenticationError: The gateway rejected the session.
        ConfigurationError: The pattern is invalid or selects nothing.
    """
    try:
        available = client.list_indices()
    except AuthenticationError:
        # Rejected gateway sessions are fatal
        raise
    except SearchError as exc:
        logger.warn(f"Could not fetch available indices, using pattern instead: {exc}")
        return [pattern]

    selected = select_indices(
        available, pattern, query_definition, today, index_date_separator
    )
    logger.info(f"Using indices: {', '.join(selected)}")
    return selected
