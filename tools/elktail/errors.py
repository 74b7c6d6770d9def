"""
Error types raised by elktail.

Purpose:
    Failures fall into a small number of classes that the CLI treats
    differently. Configuration problems abort before any search is made,
    search and transport problems abort a running tail, and authentication
    problems abort with a hint on how to log in again. Everything else
    (catalog unavailable, one malformed timestamp) is logged and absorbed
    where it happens and never reaches this module.
"""


class ElktailError(RuntimeError):
    """Base class for all fatal elktail errors."""


class ConfigurationError(ElktailError):
    """
    Invalid configuration detected before polling starts.

    Examples are a date bound without a YYYY-MM-DD date in it, an index
    name matching the pattern that carries no date, or a pattern that
    matches none of the available indices.
    """


class SearchError(ElktailError):
    """A search or catalog request failed at the transport or query level."""


class AuthenticationError(SearchError):
    """The gateway in front of Elasticsearch rejected our session."""
