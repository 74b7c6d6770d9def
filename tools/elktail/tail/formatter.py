"""
Display formatting for tailed documents.

A display template is plain text with %field tokens, e.g.

    "%@timestamp [%log.level] %user.name did %action"

Each token is replaced by the document value found at that dot path.
Tokens that cannot be resolved become empty strings; a bad template never
stops a tail.
"""

import json
import re
from typing import Any, Dict

# Characters allowed in a field token after the leading %
FORMAT_TOKEN = re.compile(r"%[A-Za-z0-9@_.-]+")


class _Missing:
    """Marker returned when a path does not resolve."""

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING = _Missing()


def evaluate_path(document: Any, path: str) -> Any:
    """
    Resolve a dot path against a decoded JSON document.

    At each level the whole remaining path is tried as a literal key
    first, so flattened keys such as "host.name" resolve as well as
    nested objects. Otherwise the path is split at the first dot and the
    walk continues one level down.

    Args:
        document: Decoded JSON value (usually a dict).
        path: Dot path such as "user.name". An empty path returns the
              document itself.

    Returns:
        The value found, or MISSING.
    """
    current = document
    remaining = path
    while remaining:
        if not isinstance(current, dict):
            return MISSING
        if remaining in current and current[remaining] is not None:
            return current[remaining]
        head, _, tail = remaining.partition(".")
        value = current.get(head)
        if value is None:
            return MISSING
        current = value
        remaining = tail
    return current


def render_value(value: Any) -> str:
    """Turn a document value into display text."""
    if value is MISSING or value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"), sort_keys=True)
    return str(value)


def format_entry(template: str, document: Dict[str, Any]) -> str:
    """
    Substitute every %field token of template with values from document.

    Example:
        >>> format_entry("%user.name did %action",
        ...              {"user": {"name": "alice"}, "action": "login"})
        'alice did login'
    """
    return FORMAT_TOKEN.sub(
        lambda match: render_value(evaluate_path(document, match.group(0)[1:])),
        template,
    )
