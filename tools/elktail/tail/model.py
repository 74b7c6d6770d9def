"""
Data models for the tailing engine.

This module defines the structures passed between the tailing engine and
its collaborators: the per-run query definition, the search result shape
returned by the search capability, and the entries kept in the dedup
window.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple


@dataclass(frozen=True)
class QueryDefinition:
    """
    Immutable description of what a run searches for and how it prints it.

    Attributes:
        terms: Free-text query terms, joined with spaces into a query
               string. Empty means "match everything".
        timestamp_field: Document field holding the event timestamp.
        after_datetime: Inclusive lower bound (e.g. "2016-06-17T15:00"),
                        empty when not set.
        before_datetime: Exclusive upper bound, empty when not set.
        format: Display template with %field / %field.subfield tokens.

    Note:
        after_datetime <= before_datetime is not checked here; that is
        up to whoever builds the definition.
    """
    terms: Tuple[str, ...] = ()
    timestamp_field: str = "@timestamp"
    after_datetime: str = ""
    before_datetime: str = ""
    format: str = "%@timestamp %message"

    def is_date_time_filtered(self) -> bool:
        return bool(self.after_datetime or self.before_datetime)


@dataclass(frozen=True, order=True)
class DisplayedEntry:
    """
    A document that has already been shown.

    The timestamp is in the canonical fixed-width format produced by
    timestamps.format_timestamp, which makes string comparison equal to
    chronological comparison.
    """
    timestamp: str
    id: str

    def is_before(self, timestamp: str) -> bool:
        return self.timestamp < timestamp


@dataclass
class SearchHit:
    """
    One matching document as returned by the search capability.

    Attributes:
        id: Unique document id.
        source: Decoded document body.
        timestamp: Raw value of the timestamp field ("" when missing).
    """
    id: str
    source: Dict[str, Any]
    timestamp: str = ""


@dataclass
class SearchResult:
    """A page of hits plus the total number of matches reported."""
    hits: List[SearchHit] = field(default_factory=list)
    total_hits: int = 0
