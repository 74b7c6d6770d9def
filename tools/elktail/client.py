"""
Elasticsearch search client used by the tailing engine.

This module implements the two capabilities the engine needs from the
cluster: a sorted, filtered, paginated search across a set of indices,
and a listing of the available index names. It talks to the REST API
directly with requests.

Design Decisions:
    - Searches go through _msearch with a single request. Kibana only
      proxies _msearch, so the same code path works with and without a
      gateway
    - Every failure (network, HTTP status, per-response error) becomes a
      SearchError; the caller decides whether that is fatal
    - The timestamp of each hit is read from its source document. When it
      is missing or not an ISO timestamp, the sort value (epoch millis)
      the cluster returns is used instead
"""

from __future__ import annotations

import datetime
import json
import re
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import requests

from .errors import AuthenticationError, SearchError
from .gateway import KibanaGateway
from .tail.formatter import MISSING, evaluate_path
from .tail.model import SearchHit, SearchResult
from .tail.query import QueryExpr
from .tail.timestamps import ZERO_TIME, format_timestamp, parse_timestamp
from .utils.log import TailLogger

DEFAULT_PORT = 9200
DEFAULT_TIMEOUT = 30.0
EPOCH = datetime.datetime(1970, 1, 1, tzinfo=datetime.timezone.utc)


def normalize_url(url: str, logger: Optional[TailLogger] = None) -> str:
    """
    Fill in the scheme and port of a user supplied URL.

    "es.local" becomes "http://es.local:9200". A URL that already has a
    port or a path is left alone apart from the scheme.
    """
    if not url.startswith("http"):
        url = "http://" + url
        if logger:
            logger.trace(f"Adding http:// prefix to given url. Url: {url}")

    if not re.search(r":\d+", url) and re.fullmatch(r"https?://[^/]+", url):
        url += f":{DEFAULT_PORT}"
        if logger:
            logger.trace(f"No port was specified, adding default port {DEFAULT_PORT}. Url: {url}")
    return url


def parse_header(header: str) -> Optional[Tuple[str, str]]:
    """
    Split a curl style "Name: value" header.

    Returns None for an empty string.
    """
    if not header.strip():
        return None
    name, _, value = header.partition(":")
    return name.strip(), value.strip()


def _total_hits(hits: Dict[str, Any]) -> int:
    total = hits.get("total", 0)
    # Elasticsearch 7+ reports {"value": n, "relation": "eq"}
    if isinstance(total, dict):
        return int(total.get("value", 0))
    return int(total or 0)


class ElasticsearchClient:
    """
    Minimal Elasticsearch REST client.

    Attributes:
        url: Base URL, already normalized.
        logger: Receives request traces when trace_requests is enabled.
        headers: Extra headers sent with every request.
        gateway: Optional Kibana gateway session.
        session: requests.Session used for all calls.
        timeout: Per-request timeout in seconds.

    Example:
        >>> client = ElasticsearchClient("http://127.0.0.1:9200", logger)
        >>> client.list_indices()
        ['logstash-2024.01.14', 'logstash-2024.01.15']
    """

    def __init__(
        self,
        url: str,
        logger: TailLogger,
        extra_headers: Iterable[str] = (),
        cert: str = "",
        key: str = "",
        gateway: Optional[KibanaGateway] = None,
        session: Optional[requests.Session] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.url = url.rstrip("/")
        self.logger = logger
        self.gateway = gateway
        self.session = session if session is not None else requests.Session()
        self.timeout = timeout

        self.headers: Dict[str, str] = {}
        for header in extra_headers:
            parsed = parse_header(header)
            if parsed:
                self.headers[parsed[0]] = parsed[1]

        if cert and key:
            self.session.cert = (cert, key)

    # ------------------------------------------------------------
    # Capabilities
    # ------------------------------------------------------------

    def search(
        self,
        indices: Sequence[str],
        sort_field: str,
        ascending: bool,
        from_: int,
        size: int,
        query: QueryExpr,
    ) -> SearchResult:
        """
        Run one sorted, paginated search.

        Args:
            indices: Indices to search.
            sort_field: Field to sort on (the timestamp field).
            ascending: Sort direction.
            from_: Offset of the first hit.
            size: Maximum number of hits.
            query: Query expression tree.

        Returns:
            SearchResult: Hits in the requested order.

        Raises:
            SearchError: Transport failure, HTTP error or query error.
        """
        header = {"index": ",".join(indices)}
        body = {
            "query": query.to_dict(),
            "sort": [{sort_field: {"order": "asc" if ascending else "desc"}}],
            "from": from_,
            "size": size,
        }
        payload = json.dumps(header) + "\n" + json.dumps(body) + "\n"

        path = "/elasticsearch/_msearch" if self.gateway else "/_msearch"
        data = self._request(
            "POST",
            path,
            data=payload.encode("utf-8"),
            headers={"Content-Type": "application/x-ndjson"},
        )

        responses = data.get("responses") or []
        if not responses:
            raise SearchError("Search returned no response")
        response = responses[0]
        if "error" in response:
            raise SearchError(f"Search failed: {self._describe_error(response['error'])}")

        hits = response.get("hits", {})
        result = SearchResult(total_hits=_total_hits(hits))
        for hit in hits.get("hits", []):
            result.hits.append(self._to_hit(hit, sort_field))
        return result

    def list_indices(self) -> List[str]:
        """
        Return the names of all indices in the cluster.

        Raises:
            SearchError: The catalog could not be read.
        """
        data = self._request("GET", "/_cat/indices", params={"format": "json"})
        if not isinstance(data, list):
            raise SearchError("Unexpected index listing response")
        return [row["index"] for row in data if "index" in row]

    # ------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------

    def _request(self, method: str, path: str, **kwargs) -> Any:
        headers = dict(self.headers)
        headers.update(kwargs.pop("headers", {}))
        cookies = {}
        if self.gateway:
            headers.update(self.gateway.headers())
            cookies = self.gateway.cookies()

        url = self.url + path
        if self.logger.trace_requests:
            self.logger.trace(f"Request: {method} {url} {kwargs.get('data', b'')!r}")

        try:
            response = self.session.request(
                method,
                url,
                headers=headers,
                cookies=cookies,
                timeout=self.timeout,
                allow_redirects=False,
                **kwargs,
            )
        except requests.RequestException as exc:
            raise SearchError(f"Request to {url} failed: {exc}") from exc

        if self.logger.trace_requests:
            self.logger.trace(f"Response: {response.status_code} {response.text}")

        if self.gateway and KibanaGateway.is_login_redirect(response):
            self._handle_expired_session()

        if response.status_code >= 300:
            raise SearchError(
                f"{method} {url} returned HTTP {response.status_code}: {response.text[:500]}"
            )

        try:
            return response.json()
        except ValueError as exc:
            raise SearchError(f"Invalid JSON from {url}: {exc}") from exc

    def _handle_expired_session(self) -> None:
        """Refresh the cached session for the next run, then give up."""
        try:
            self.gateway.authenticate()
        except AuthenticationError as exc:
            self.logger.error(f"Gateway login failed: {exc}")
        raise AuthenticationError(
            "Failed to authenticate. Please run again. If the problem persists, "
            "pass valid credentials with -u user:password"
        )

    # ------------------------------------------------------------
    # Decoding
    # ------------------------------------------------------------

    def _to_hit(self, hit: Dict[str, Any], sort_field: str) -> SearchHit:
        source = hit.get("_source") or {}
        value = evaluate_path(source, sort_field)
        timestamp = "" if value is MISSING else str(value)
        # Epoch millis or other non-ISO source shapes: trust the engine's sort value
        if parse_timestamp(timestamp) == ZERO_TIME:
            timestamp = self._sort_timestamp(hit) or timestamp
        return SearchHit(id=str(hit.get("_id", "")), source=source, timestamp=timestamp)

    @staticmethod
    def _sort_timestamp(hit: Dict[str, Any]) -> str:
        sort = hit.get("sort") or []
        # Date fields sort on epoch milliseconds
        if sort and isinstance(sort[0], int) and not isinstance(sort[0], bool):
            moment = EPOCH + datetime.timedelta(milliseconds=sort[0])
            return format_timestamp(moment)
        return ""

    @staticmethod
    def _describe_error(error: Any) -> str:
        if isinstance(error, dict):
            reason = error.get("reason") or error.get("type") or ""
            causes = error.get("root_cause") or []
            if causes and isinstance(causes[0], dict) and causes[0].get("reason"):
                reason = causes[0]["reason"]
            return reason or json.dumps(error)
        return str(error)
