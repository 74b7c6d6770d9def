"""
The tailing engine.

This subpackage turns repeated Elasticsearch searches into a continuous,
duplicate-free stream of log entries.

Modules:
    - timestamps: Parse/format timestamps in a fixed-width canonical form
    - indices: Pick the date-partitioned indices a query needs
    - query: Query expression tree and the initial/follow-up query builders
    - window: Recently displayed (timestamp, id) pairs used for dedup
    - formatter: Render a document through a %field display template
    - tailer: The polling loop that drives all of the above
    - model: Shared data structures

Architecture:
    1. indices.resolve_indices picks the target indices once at startup
    2. Tail.poll builds a query and calls the search client
    3. Tail.process_results prints hits oldest first and updates the window
    4. Tail.start sleeps with an adaptive delay and polls again
"""
