"""
Leveled logging for elktail.

This module provides the logger that is handed to every elktail
component. Nothing in elktail logs through module-level state: the CLI
builds one TailLogger from the verbosity flags and passes it explicitly
to the client, the index resolver, the tunnel and the tailing loop.

Purpose:
    Log output must never mix with tailed entries. Entries go to stdout,
    diagnostics go to stderr, and the amount of diagnostics is chosen with
    the --v1/--v2/--v3 flags.

Design Decisions:
    - One small class with a log() core and per-level wrappers
    - Human-readable format with UTC timestamps
    - A NullLogger with the same interface for tests and library use
"""

from __future__ import annotations

import datetime
import sys
from typing import Optional, TextIO

# Ordered severity levels. A logger emits a message when the message
# level is at least the logger threshold.
TRACE = 10
INFO = 20
WARN = 30
ERROR = 40

LEVEL_NAMES = {
    TRACE: "TRACE",
    INFO: "INFO",
    WARN: "WARN",
    ERROR: "ERROR",
}


class TailLogger:
    """
    Minimal leveled logger writing to a text stream.

    Attributes:
        stream: Where log lines are written (stderr by default).
        threshold: Lowest level that is written.
        trace_requests: When True the HTTP client also traces every
            request and response body.

    Log Line Format:
        <timestamp> <LEVEL> <message>

    Example:
        >>> logger = TailLogger(threshold=INFO)
        >>> logger.info("Using indices: logstash-2024.01.10")
        # Writes: 2024-01-15T12:00:00Z INFO Using indices: logstash-2024.01.10
    """

    def __init__(
        self,
        stream: Optional[TextIO] = None,
        threshold: int = ERROR,
        trace_requests: bool = False,
    ) -> None:
        self.stream = stream if stream is not None else sys.stderr
        self.threshold = threshold
        self.trace_requests = trace_requests

    @classmethod
    def from_verbosity(
        cls,
        verbose: bool = False,
        more_verbose: bool = False,
        trace_requests: bool = False,
        stream: Optional[TextIO] = None,
    ) -> "TailLogger":
        """
        Build a logger from the CLI verbosity flags.

        --v2 and --v3 both enable trace output; --v3 additionally traces
        HTTP traffic. --v1 enables info output. Without flags only errors
        are shown.
        """
        if more_verbose or trace_requests:
            threshold = TRACE
        elif verbose:
            threshold = INFO
        else:
            threshold = ERROR
        return cls(stream=stream, threshold=threshold, trace_requests=trace_requests)

    def _ts(self) -> str:
        """Return an ISO 8601 UTC timestamp with a compact Z suffix."""
        return (
            datetime.datetime.now(datetime.timezone.utc)
            .isoformat(timespec="seconds")
            .replace("+00:00", "Z")
        )

    def enabled(self, level: int) -> bool:
        return level >= self.threshold

    def log(self, level: int, message: str) -> None:
        """
        Write one log line if the level passes the threshold.

        Args:
            level: One of TRACE, INFO, WARN, ERROR.
            message: Human-readable message.
        """
        if not self.enabled(level):
            return
        name = LEVEL_NAMES.get(level, str(level))
        self.stream.write(f"{self._ts()} {name} {message}\n")
        self.stream.flush()

    def trace(self, message: str) -> None:
        """Log a debugging message (queries, page sizes, parsed config)."""
        self.log(TRACE, message)

    def info(self, message: str) -> None:
        """Log a normal operational message (selected indices, tunnel start)."""
        self.log(INFO, message)

    def warn(self, message: str) -> None:
        """Log a recoverable problem that was absorbed with a fallback."""
        self.log(WARN, message)

    def error(self, message: str) -> None:
        """Log a failure that ends the run."""
        self.log(ERROR, message)


class NullLogger(TailLogger):
    """A logger that discards everything."""

    def __init__(self) -> None:
        super().__init__(stream=sys.stderr, threshold=ERROR + 1)

    def log(self, level: int, message: str) -> None:
        pass
