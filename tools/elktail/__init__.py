"""
elktail - tail -f for log entries stored in Elasticsearch.

This package polls a date-partitioned Elasticsearch index (the usual
logstash-YYYY.MM.DD layout) and prints new log entries as they arrive,
without losing or repeating entries between polls.

Package Structure:
    - cli.py: Command-line interface and entry point
    - config.py: Run configuration and the saved default
    - client.py: Elasticsearch REST client (search and index listing)
    - gateway.py: Kibana gateway session handling
    - sshtunnel.py: SSH port forwarding to reach the cluster
    - errors.py: Fatal error types
    - tail/: The tailing engine (queries, dedup window, polling loop)
    - utils/: Logging and state file locations

Usage:
    Run as a module: python -m elktail [options] [query terms...]

Example:
    python -m elktail --url es.internal -f 'level:error'
"""

__version__ = "0.4.0"
