"""
Query construction for the tailing engine.

This module defines a small query expression algebra and the two query
builders the tailing loop needs. Each node knows how to render itself as
Elasticsearch query DSL; any engine that supports the same five building
blocks (match-all, query string, range, bool filter/must-not, ids) could
consume the tree instead.

Purpose:
    The initial search and the follow-up searches differ only in how the
    user's query is wrapped. Keeping that wrapping in pure functions makes
    it easy to test without a cluster.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from .model import QueryDefinition
from .timestamps import TAILING_TIME_WINDOW_MS, window_cutoff


class QueryExpr:
    """Base class for query expression nodes."""

    def to_dict(self) -> Dict[str, Any]:
        raise NotImplementedError


@dataclass(frozen=True)
class MatchAll(QueryExpr):
    def to_dict(self) -> Dict[str, Any]:
        return {"match_all": {}}


@dataclass(frozen=True)
class QueryString(QueryExpr):
    """Lucene query string, e.g. 'level:error AND service:api'."""
    text: str

    def to_dict(self) -> Dict[str, Any]:
        return {"query_string": {"query": self.text}}


@dataclass(frozen=True)
class Range(QueryExpr):
    """
    Range filter on one field.

    gte is the inclusive lower bound and lt the exclusive upper bound;
    either may be omitted.
    """
    field: str
    gte: Optional[str] = None
    lt: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        bounds: Dict[str, Any] = {}
        if self.gte is not None:
            bounds["gte"] = self.gte
        if self.lt is not None:
            bounds["lt"] = self.lt
        return {"range": {self.field: bounds}}


@dataclass(frozen=True)
class Ids(QueryExpr):
    values: Sequence[str] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {"ids": {"values": list(self.values)}}


@dataclass(frozen=True)
class Bool(QueryExpr):
    """
    Boolean combinator with filter (all must match, no scoring) and
    must_not (none may match) clauses.
    """
    filter: Sequence[QueryExpr] = field(default_factory=tuple)
    must_not: Sequence[QueryExpr] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {}
        if self.filter:
            body["filter"] = [clause.to_dict() for clause in self.filter]
        if self.must_not:
            body["must_not"] = [clause.to_dict() for clause in self.must_not]
        return {"bool": body}


def build_date_time_range_query(query_definition: QueryDefinition) -> Range:
    """
    Build the range filter for the configured date bounds.

    Only call this when the definition is date filtered. The lower bound
    is inclusive so an entry exactly at the after-boundary is shown once.
    """
    return Range(
        field=query_definition.timestamp_field,
        gte=query_definition.after_datetime or None,
        lt=query_definition.before_datetime or None,
    )


def build_search_query(query_definition: QueryDefinition) -> QueryExpr:
    """
    Build the base query for a run.

    Free-text terms become a query string query; no terms means match
    everything. Date bounds, when present, are added as a filter.
    """
    query: QueryExpr
    if query_definition.terms:
        query = QueryString(" ".join(query_definition.terms))
    else:
        query = MatchAll()

    if query_definition.is_date_time_filtered():
        query = Bool(filter=(query, build_date_time_range_query(query_definition)))
    return query


def build_timestamp_filtered_query(
    query_definition: QueryDefinition,
    last_timestamp: str,
    displayed_ids: List[str],
    window_ms: int = TAILING_TIME_WINDOW_MS,
) -> QueryExpr:
    """
    Build the follow-up query used once a first entry has been shown.

    Matches the base query, restricted to timestamps at or after
    last_timestamp minus the window, excluding ids already displayed.

    Args:
        query_definition: The run's query definition.
        last_timestamp: Newest timestamp displayed so far.
        displayed_ids: Ids held in the dedup window.
        window_ms: Width of the backward looking slice.
    """
    timestamp_filter = Range(
        field=query_definition.timestamp_field,
        gte=window_cutoff(last_timestamp, window_ms),
    )
    window_filter = Bool(
        filter=(timestamp_filter,),
        must_not=(Ids(tuple(displayed_ids)),),
    )
    return Bool(filter=(build_search_query(query_definition), window_filter))
