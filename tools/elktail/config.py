"""
Configuration for an elktail run.

A run is described by a Configuration built from the command line. The
connection settings and the query are also remembered in
~/.elktail/default.json, so that running `elktail` with no connection
flags reconnects to the same cluster with the same query.

Design Decisions:
    - Plain dataclasses, saved as JSON
    - Only settings worth repeating are saved (connection, credentials,
      query terms, format); per-run switches such as --follow, -n, date bounds
      and verbosity are not
    - A missing or unreadable saved file is never fatal
"""

from __future__ import annotations

import copy
import json
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from .tail.model import QueryDefinition
from .utils.log import TailLogger
from .utils.paths import default_config_path, ensure_config_dir

DEFAULT_URL = "http://127.0.0.1:9200"
DEFAULT_INDEX_PATTERN = "logstash-[0-9].*"
DEFAULT_TIMESTAMP_FIELD = "@timestamp"
DEFAULT_FORMAT = "%@timestamp %message"
DEFAULT_INITIAL_ENTRIES = 50


@dataclass
class SearchTarget:
    """
    Where to search.

    Attributes:
        url: Elasticsearch (or Kibana gateway) URL.
        index_pattern: Regular expression selecting the indices.
        cert: TLS client certificate file.
        key: TLS client key file.
        extra_headers: Extra "Name: value" headers for every request.
        kibana: Talk to a Kibana gateway instead of Elasticsearch.
        tunnel_url: Set at runtime when an SSH tunnel is used; never saved.
    """
    url: str = DEFAULT_URL
    index_pattern: str = DEFAULT_INDEX_PATTERN
    cert: str = ""
    key: str = ""
    extra_headers: List[str] = field(default_factory=list)
    kibana: bool = False
    tunnel_url: str = ""


@dataclass
class QuerySettings:
    """Mutable query settings; frozen into a QueryDefinition for the run."""
    terms: List[str] = field(default_factory=list)
    timestamp_field: str = DEFAULT_TIMESTAMP_FIELD
    after_datetime: str = ""
    before_datetime: str = ""
    format: str = DEFAULT_FORMAT

    def is_date_time_filtered(self) -> bool:
        return bool(self.after_datetime or self.before_datetime)

    def to_definition(self) -> QueryDefinition:
        return QueryDefinition(
            terms=tuple(self.terms),
            timestamp_field=self.timestamp_field,
            after_datetime=self.after_datetime,
            before_datetime=self.before_datetime,
            format=self.format,
        )


@dataclass
class Configuration:
    search_target: SearchTarget = field(default_factory=SearchTarget)
    query: QuerySettings = field(default_factory=QuerySettings)
    initial_entries: int = DEFAULT_INITIAL_ENTRIES
    follow: bool = False
    user: str = ""
    password: str = ""
    verbose: bool = False
    more_verbose: bool = False
    trace_requests: bool = False
    ssh_tunnel_params: str = ""
    save_query: bool = False
    raw: bool = False

    def is_list_only(self) -> bool:
        """
        Return True when the run prints one page and stops.

        That is the case without --follow, and always for date filtered
        queries since a bounded range has nothing new to follow.
        """
        return not self.follow or self.query.is_date_time_filtered()

    def copy(self) -> "Configuration":
        return copy.deepcopy(self)

    def split_credentials(self) -> None:
        """Split a curl style "user:password" value given with -u."""
        if ":" in self.user:
            self.user, self.password = self.user.split(":", 1)

    def copy_config_relevant_settings_to(self, dest: "Configuration") -> None:
        """Copy the settings that are remembered between runs into dest."""
        dest.search_target.url = self.search_target.url
        dest.search_target.index_pattern = self.search_target.index_pattern
        dest.search_target.cert = self.search_target.cert
        dest.search_target.key = self.search_target.key
        dest.search_target.extra_headers = list(self.search_target.extra_headers)
        dest.search_target.kibana = self.search_target.kibana
        dest.query.terms = list(self.query.terms)
        dest.query.timestamp_field = self.query.timestamp_field
        dest.query.format = self.query.format
        dest.user = self.user
        dest.password = self.password
        dest.ssh_tunnel_params = self.ssh_tunnel_params

    def to_saved_dict(self) -> Dict[str, Any]:
        """Return the JSON document written to default.json."""
        target = asdict(self.search_target)
        target.pop("tunnel_url")
        return {
            "search_target": target,
            "query": {
                "terms": list(self.query.terms),
                "timestamp_field": self.query.timestamp_field,
                "format": self.query.format,
            },
            "user": self.user,
            "password": self.password,
            "ssh_tunnel_params": self.ssh_tunnel_params,
        }

    @classmethod
    def from_saved_dict(cls, data: Dict[str, Any]) -> "Configuration":
        target = data.get("search_target", {})
        query = data.get("query", {})
        return cls(
            search_target=SearchTarget(
                url=target.get("url", DEFAULT_URL),
                index_pattern=target.get("index_pattern", DEFAULT_INDEX_PATTERN),
                cert=target.get("cert", ""),
                key=target.get("key", ""),
                extra_headers=list(target.get("extra_headers", [])),
                kibana=bool(target.get("kibana", False)),
            ),
            query=QuerySettings(
                terms=list(query.get("terms", [])),
                timestamp_field=query.get("timestamp_field", DEFAULT_TIMESTAMP_FIELD),
                format=query.get("format", DEFAULT_FORMAT),
            ),
            user=data.get("user", ""),
            password=data.get("password", ""),
            ssh_tunnel_params=data.get("ssh_tunnel_params", ""),
        )


def apply_query_terms(config: Configuration, terms: List[str]) -> Configuration:
    """
    Combine positional query terms with the stored query.

    With -s the given terms replace the stored query and are saved.
    Otherwise the stored query is saved unchanged, and the given terms
    are ANDed onto it for this run (or replace it when it holds a single
    term).

    Returns:
        Configuration: The copy that should be saved as the new default.
    """
    if config.save_query:
        config.query.terms = list(terms)
        return config.copy()

    to_save = config.copy()
    if terms:
        if len(config.query.terms) > 1:
            config.query.terms = config.query.terms + ["AND"] + list(terms)
        else:
            config.query.terms = list(terms)
    return to_save


def load_default(logger: TailLogger, path: Optional[Path] = None) -> Optional[Configuration]:
    """
    Load the saved default configuration.

    Returns:
        The saved configuration, or None if it is missing or unreadable.
    """
    path = path or default_config_path()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        logger.info(f"Failed to find or open previous default configuration: {exc}")
        return None
    except ValueError as exc:
        logger.warn(f"Ignoring malformed configuration {path}: {exc}")
        return None

    if not isinstance(data, dict):
        logger.warn(f"Ignoring malformed configuration {path}: not an object")
        return None
    try:
        return Configuration.from_saved_dict(data)
    except (AttributeError, TypeError, ValueError) as exc:
        logger.warn(f"Ignoring malformed configuration {path}: {exc}")
        return None


def save_default(config: Configuration, logger: TailLogger, path: Optional[Path] = None) -> None:
    """Write config as the new default. Failures are logged, not raised."""
    try:
        if path is None:
            ensure_config_dir()
            path = default_config_path()
        path.write_text(json.dumps(config.to_saved_dict(), indent=2), encoding="utf-8")
        # Holds credentials
        path.chmod(0o600)
    except OSError as exc:
        logger.error(f"Failed to save configuration to {path}: {exc}")
