#!/usr/bin/env python3
"""
elktail - tail log entries stored in Elasticsearch.

This module implements the command-line interface. It turns flags into a
Configuration, connects to the cluster (optionally through an SSH tunnel
and/or a Kibana gateway), picks the indices to search and hands over to
the tailing loop.

Responsibilities:
    - Parse flags and positional query terms
    - Merge with, and update, the saved default configuration
    - Start the SSH tunnel when asked to
    - Build the search client and resolve the target indices
    - Run the tail and turn fatal errors into exit codes

Usage:
    python -m elktail [options] [query terms...]

Examples:
    python -m elktail --url es.internal -f
    python -m elktail -i 'app-logs-.*' 'level:error'
    python -m elktail -a 2024-01-15T10:00 -b 2024-01-15T11:00 'service:api'
"""

import argparse
import json
import sys
import time
from typing import List, Optional
from urllib.parse import urlparse

from . import __version__
from .client import ElasticsearchClient, normalize_url
from .config import (
    DEFAULT_FORMAT,
    DEFAULT_INDEX_PATTERN,
    DEFAULT_INITIAL_ENTRIES,
    DEFAULT_TIMESTAMP_FIELD,
    DEFAULT_URL,
    Configuration,
    QuerySettings,
    SearchTarget,
    apply_query_terms,
    load_default,
    save_default,
)
from .errors import ElktailError
from .gateway import KibanaGateway
from .sshtunnel import SSHTunnel
from .tail.indices import resolve_indices
from .tail.tailer import Tail
from .utils.log import TailLogger

# Seconds to wait for ssh to set up the forward before the first request
TUNNEL_GRACE_SECONDS = 1.0

# Flags whose presence means "use what I typed, not the saved default".
# Keep in sync with Configuration.copy_config_relevant_settings_to.
CONFIG_RELEVANT_OPTIONS = ["url", "index_pattern", "timestamp_field", "user", "ssh"]

# ============================================================
# Command-Line Argument Parsing
# ============================================================


def build_parser() -> argparse.ArgumentParser:
    """
    Build the argument parser.

    Options marked (*) are saved between invocations. Connection options
    default to None so we can tell whether they were given at all.
    """
    parser = argparse.ArgumentParser(
        prog="elktail",
        description="Utility for tailing log entries stored in Elasticsearch",
        epilog=(
            "Options marked with (*) are saved between invocations. Specifying "
            "any of them replaces the previously stored settings."
        ),
    )
    parser.add_argument("terms", nargs="*", metavar="query-string",
                        help="Query string terms (Lucene syntax)")

    # --- connection ---
    parser.add_argument("--url", default=None,
                        help=f"(*) Elasticsearch URL (default: {DEFAULT_URL})")
    parser.add_argument("-H", "--header", action="append", default=[],
                        help="(*) Extra header passed to requests, curl-like format")
    parser.add_argument("--cert", default="",
                        help="(*) Client certificate to use when accessing via TLS")
    parser.add_argument("--key", default="",
                        help="(*) Client key to use when accessing via TLS")
    parser.add_argument("--kibana", action="store_true",
                        help="(*) Search through a Kibana gateway")
    parser.add_argument("-u", dest="user", default=None,
                        help="(*) Username and password, curl-like format (user:password)")
    parser.add_argument("--ssh", "--ssh-tunnel", dest="ssh", default=None,
                        help="(*) Connect through an ssh tunnel: [localport:][user@]sshhost[:sshport]")

    # --- query ---
    parser.add_argument("-i", "--index-pattern", dest="index_pattern", default=None,
                        help=f"(*) Index pattern; the latest matching index is tailed "
                             f"(default: {DEFAULT_INDEX_PATTERN})")
    parser.add_argument("-t", "--timestamp-field", dest="timestamp_field", default=None,
                        help=f"(*) Timestamp field used for tailing "
                             f"(default: {DEFAULT_TIMESTAMP_FIELD})")
    parser.add_argument("-a", "--after", default="",
                        help='List results after this date, e.g. -a "2016-06-17T15:00"')
    parser.add_argument("-b", "--before", default="",
                        help='List results before this date, e.g. -b "2016-06-17T15:00"')
    parser.add_argument("-s", dest="save_query", action="store_true",
                        help="Save the query terms; later runs AND extra terms onto them")

    # --- output ---
    parser.add_argument("-f", "--follow", action="store_true",
                        help="Follow results, like tail -f")
    parser.add_argument("-n", type=int, default=None,
                        help=f"Number of entries fetched initially (default: {DEFAULT_INITIAL_ENTRIES})")
    parser.add_argument("--format", default=None,
                        help=f'Output template with %%field tokens (default: "{DEFAULT_FORMAT}")')
    parser.add_argument("--raw", action="store_true",
                        help="Print raw JSON documents instead of the format")

    # --- diagnostics ---
    parser.add_argument("--v1", action="store_true", help="Verbose output")
    parser.add_argument("--v2", action="store_true", help="Even more verbose output")
    parser.add_argument("--v3", action="store_true",
                        help="Same as --v2 and also trace requests and responses")
    parser.add_argument("-V", "--version", action="version",
                        version=f"%(prog)s {__version__}")

    return parser


def config_relevant_flag_set(args: argparse.Namespace) -> bool:
    return any(getattr(args, name) is not None for name in CONFIG_RELEVANT_OPTIONS)


def config_from_args(args: argparse.Namespace) -> Configuration:
    """Build a Configuration from parsed flags, filling in defaults."""
    return Configuration(
        search_target=SearchTarget(
            url=args.url or DEFAULT_URL,
            index_pattern=args.index_pattern or DEFAULT_INDEX_PATTERN,
            cert=args.cert,
            key=args.key,
            extra_headers=[h for h in args.header if h],
            kibana=args.kibana,
        ),
        query=QuerySettings(
            timestamp_field=args.timestamp_field or DEFAULT_TIMESTAMP_FIELD,
            after_datetime=args.after,
            before_datetime=args.before,
            format=args.format or DEFAULT_FORMAT,
        ),
        initial_entries=args.n if args.n is not None else DEFAULT_INITIAL_ENTRIES,
        follow=args.follow,
        user=args.user or "",
        verbose=args.v1,
        more_verbose=args.v2,
        trace_requests=args.v3,
        ssh_tunnel_params=args.ssh or "",
        save_query=args.save_query,
        raw=args.raw,
    )


# ============================================================
# Wiring
# ============================================================


def merge_saved_default(config: Configuration, args: argparse.Namespace, logger: TailLogger) -> None:
    """
    Fill connection settings and query from default.json.

    Only done when no connection flag was given. A --format given on
    this command line still wins over the saved one.
    """
    if config_relevant_flag_set(args):
        return
    loaded = load_default(logger)
    if loaded is None:
        return
    logger.info(f"Loaded previous config and connecting to host {loaded.search_target.url}.")
    current_format = config.query.format
    loaded.copy_config_relevant_settings_to(config)
    if args.format:
        config.query.format = current_format
    logger.trace("Final (merged) config: " + json.dumps(config.to_saved_dict(), indent=2))


def start_tunnel(config: Configuration, logger: TailLogger) -> SSHTunnel:
    """Start the ssh tunnel and point the search target at it."""
    remote = urlparse(normalize_url(config.search_target.url)).netloc
    logger.trace(f"SSH tunnel remote host: {remote}")
    tunnel = SSHTunnel.from_params(config.ssh_tunnel_params, remote, logger)
    tunnel.start()
    config.search_target.tunnel_url = tunnel.local_url
    logger.trace("Sleeping for a second until tunnel is established...")
    time.sleep(TUNNEL_GRACE_SECONDS)
    return tunnel


def build_client(config: Configuration, logger: TailLogger) -> ElasticsearchClient:
    target = config.search_target
    url = target.tunnel_url or normalize_url(target.url, logger)

    gateway = None
    if target.kibana:
        gateway = KibanaGateway(url, config.user, config.password, logger)

    return ElasticsearchClient(
        url,
        logger,
        extra_headers=target.extra_headers,
        cert=target.cert,
        key=target.key,
        gateway=gateway,
    )


# ============================================================
# Entry Point
# ============================================================


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for the elktail CLI.

    Exit Codes:
        0: Success
        1: Fatal configuration, search or authentication error
        2: Invalid command line (raised by argparse)
        130: Interrupted with Ctrl+C
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    config = config_from_args(args)
    logger = TailLogger.from_verbosity(
        verbose=config.verbose,
        more_verbose=config.more_verbose,
        trace_requests=config.trace_requests,
    )

    tunnel = None
    try:
        merge_saved_default(config, args, logger)
        config.split_credentials()
        to_save = apply_query_terms(config, args.terms)
        logger.trace(f"Query terms: {config.query.terms}")

        if config.ssh_tunnel_params:
            tunnel = start_tunnel(config, logger)

        client = build_client(config, logger)
        query_definition = config.query.to_definition()
        indices = resolve_indices(
            client,
            config.search_target.index_pattern,
            query_definition,
            logger,
        )
        tail = Tail(client, query_definition, indices, logger, raw=config.raw)

        save_default(to_save, logger)

        tail.start(follow=not config.is_list_only(), initial_entries=config.initial_entries)
    except ElktailError as exc:
        logger.error(str(exc))
        return 1
    except KeyboardInterrupt:
        return 130
    finally:
        if tunnel is not None:
            tunnel.stop()

    return 0


if __name__ == "__main__":
    sys.exit(main())
