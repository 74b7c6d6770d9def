"""
The tailing loop.

This module drives everything else in the tail package. A Tail runs an
initial search, prints what it finds, then (when following) keeps polling
for documents newer than the last one it printed.

Purpose:
    Elasticsearch has no "give me what's new" cursor for a live index.
    Polling with a strict "timestamp > last seen" filter loses documents
    that are indexed late with a timestamp equal to or just before the
    last one seen. Instead every follow-up poll re-reads the last 500 ms
    and excludes, by id, the documents already printed from that slice.

States:
    INITIAL    no document seen yet; the initial search is repeated
    FOLLOWING  last_timestamp is set; follow-up searches are used
    STOPPED    the run is over (not following, or the loop exited)

Design Decisions:
    - One cooperative loop; the only blocking points are the search call
      and the sleep between polls
    - Search errors are not caught here. They end the run and the CLI
      reports them
    - Poll pacing only reacts to empty vs non-empty results
"""

import json
import time
from typing import Callable, List

from ..utils.log import TailLogger
from .formatter import format_entry
from .model import QueryDefinition, SearchHit, SearchResult
from .query import QueryExpr, build_search_query, build_timestamp_filtered_query
from .timestamps import (
    TAILING_TIME_WINDOW_MS,
    ZERO_TIME,
    format_timestamp,
    parse_timestamp,
    window_cutoff,
)
from .window import DedupWindow

INITIAL = "initial"
FOLLOWING = "following"
STOPPED = "stopped"

# Page size for follow-up searches. More new documents than this between
# two polls are not all returned.
# TODO: page through follow-up results with search_after so bursts over
# FOLLOW_UP_PAGE_SIZE per poll are not cut short.
FOLLOW_UP_PAGE_SIZE = 9000


class AdaptiveDelay:
    """
    Pause between polls, shortened while active and lengthened while idle.

    Starts at 500 ms. A poll that returned hits resets it to 500 ms; a
    poll that returned nothing adds 500 ms, up to 2000 ms.

    Example:
        >>> delay = AdaptiveDelay()
        >>> [delay.update(n) for n in (3, 0, 0, 0, 0, 1)]
        [500, 1000, 1500, 2000, 2000, 500]
    """

    MIN_MS = 500
    STEP_MS = 500
    MAX_MS = 2000

    def __init__(self) -> None:
        self.current_ms = self.MIN_MS

    def update(self, hit_count: int) -> int:
        """Adjust the delay after a poll and return the new value in ms."""
        if hit_count > 0:
            self.current_ms = self.MIN_MS
        else:
            self.current_ms = min(self.current_ms + self.STEP_MS, self.MAX_MS)
        return self.current_ms

    @property
    def seconds(self) -> float:
        return self.current_ms / 1000.0


class Tail:
    """
    Tailing controller: owns all mutable state of a run.

    Attributes:
        client: Search capability with a search(...) method.
        query_definition: What to search for and how to print it.
        indices: Indices to search, fixed for the whole run.
        order: True for ascending sort. Ascending is used when an after
               date is configured so the listing starts at that date.
        last_timestamp: Canonical timestamp of the newest displayed
                        document, "" until the first one.
        window: Recently displayed (timestamp, id) pairs.
        delay: Adaptive pause between polls.

    Example:
        >>> tail = Tail(client, query_definition, ["logstash-2024.01.15"], logger)
        >>> tail.start(follow=True, initial_entries=50)
    """

    def __init__(
        self,
        client,
        query_definition: QueryDefinition,
        indices: List[str],
        logger: TailLogger,
        output: Callable[[str], None] = print,
        raw: bool = False,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.client = client
        self.query_definition = query_definition
        self.indices = list(indices)
        self.logger = logger
        self.output = output
        self.raw = raw
        self.sleep = sleep

        self.order = bool(query_definition.after_datetime)
        self.last_timestamp = ""
        self.window = DedupWindow()
        self.delay = AdaptiveDelay()
        self.stopped = False

    @property
    def state(self) -> str:
        if self.stopped:
            return STOPPED
        return FOLLOWING if self.last_timestamp else INITIAL

    # ------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------

    def start(self, follow: bool, initial_entries: int) -> None:
        """
        Run the tail.

        Prints the initial page of results and, when follow is set, keeps
        polling until the process is interrupted or a search fails.

        Args:
            follow: Keep polling after the initial page.
            initial_entries: Size of the initial page.

        Raises:
            SearchError: Any failed search. Not retried.
        """
        try:
            self.poll(initial_entries)
            while follow:
                self.sleep(self.delay.seconds)
                self.poll(initial_entries)
        finally:
            self.stopped = True

    def poll(self, initial_entries: int) -> SearchResult:
        """
        Run one search and display its results.

        Uses the initial search until a first document has been seen,
        the follow-up search afterwards. Updates the adaptive delay.
        """
        if self.last_timestamp:
            result = self.follow_up_search()
            ascending = False
        else:
            result = self.initial_search(initial_entries)
            ascending = self.order

        self.process_results(result, ascending)
        self.delay.update(len(result.hits))
        return result

    # ------------------------------------------------------------
    # Searches
    # ------------------------------------------------------------

    def initial_search(self, initial_entries: int) -> SearchResult:
        """Fetch the first page in the run's sort order."""
        query = build_search_query(self.query_definition)
        self.logger.trace(f"Initial query: {self._describe(query)}")
        return self.client.search(
            indices=self.indices,
            sort_field=self.query_definition.timestamp_field,
            ascending=self.order,
            from_=0,
            size=initial_entries,
            query=query,
        )

    def follow_up_search(self) -> SearchResult:
        """
        Fetch documents from the last window that were not displayed yet.

        Always sorted newest first, whatever the run's order.
        """
        query = self.build_follow_up_query()
        self.logger.trace(f"Follow-up query: {self._describe(query)}")
        return self.client.search(
            indices=self.indices,
            sort_field=self.query_definition.timestamp_field,
            ascending=False,
            from_=0,
            size=FOLLOW_UP_PAGE_SIZE,
            query=query,
        )

    def build_follow_up_query(self) -> QueryExpr:
        return build_timestamp_filtered_query(
            self.query_definition,
            self.last_timestamp,
            self.window.ids(),
            TAILING_TIME_WINDOW_MS,
        )

    # ------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------

    def process_results(self, result: SearchResult, ascending: bool) -> None:
        """
        Display a page of hits and update tailing state.

        Hits are walked oldest first: forward for an ascending page,
        backwards for a descending one. Each displayed hit is recorded in
        the dedup window and advances last_timestamp. Afterwards window
        entries older than last_timestamp minus the window are evicted.

        Args:
            result: Page returned by the search capability.
            ascending: Sort direction the page was requested with.
        """
        hits = result.hits
        self.logger.trace(
            f"Fetched page of {len(hits)} results out of {result.total_hits} total."
        )

        ordered = hits if ascending else list(reversed(hits))
        for hit in ordered:
            if hit.id in self.window:
                self.logger.trace(f"Skipping already displayed document {hit.id}")
                continue

            timestamp = self._hit_timestamp(hit)
            self.display(hit)
            self.window.add(timestamp, hit.id)
            # A late arrival older than what we have shown does not move it back
            if timestamp > self.last_timestamp:
                self.last_timestamp = timestamp

        if self.last_timestamp:
            cutoff = window_cutoff(self.last_timestamp, TAILING_TIME_WINDOW_MS)
            evicted = self.window.evict_older_than(cutoff)
            if evicted:
                self.logger.trace(f"Evicted {evicted} ids older than {cutoff}")

    def display(self, hit: SearchHit) -> None:
        if self.raw:
            self.output(json.dumps(hit.source))
        else:
            self.output(format_entry(self.query_definition.format, hit.source))

    def _hit_timestamp(self, hit: SearchHit) -> str:
        parsed = parse_timestamp(hit.timestamp)
        if parsed == ZERO_TIME:
            self.logger.warn(
                f"Document {hit.id} has unparseable {self.query_definition.timestamp_field} "
                f"value {hit.timestamp!r}"
            )
        return format_timestamp(parsed)

    def _describe(self, query: QueryExpr) -> str:
        return json.dumps(query.to_dict(), sort_keys=True)
