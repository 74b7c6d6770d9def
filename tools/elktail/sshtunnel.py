"""
SSH port forwarding to reach a cluster behind a bastion host.

The tunnel is a plain `ssh -N -L` child process. It is started once
before the first search and left running in the background; the tailing
loop does not know it exists apart from connecting to localhost.

Note:
    There is no readiness handshake. The CLI waits a fixed grace period
    after starting ssh, which is usually, but not always, enough.
"""

import re
import subprocess
from dataclasses import dataclass
from typing import List, Optional

from .errors import ConfigurationError
from .utils.log import TailLogger

DEFAULT_LOCAL_PORT = 9199
DEFAULT_SSH_PORT = 22
DEFAULT_REMOTE_PORT = 9200

# [localport:][user@]sshhost[:sshport]
_TUNNEL_PARAMS = re.compile(
    r"^(?:(?P<local>\d+):)?(?:(?P<user>[^@:]+)@)?(?P<host>[^@:]+)(?::(?P<port>\d+))?$"
)


@dataclass
class Endpoint:
    host: str
    port: int


class SSHTunnel:
    """
    Forward a local port through an SSH server to the cluster.

    Attributes:
        local: Local end (always localhost).
        server: SSH server to connect to.
        remote: Cluster host and port as seen from the SSH server.
        user: SSH login name, "" for the ssh default.
        process: Running ssh process, None until started.
    """

    def __init__(
        self,
        local: Endpoint,
        server: Endpoint,
        remote: Endpoint,
        user: str,
        logger: TailLogger,
    ) -> None:
        self.local = local
        self.server = server
        self.remote = remote
        self.user = user
        self.logger = logger
        self.process: Optional[subprocess.Popen] = None

    @classmethod
    def from_params(cls, params: str, remote: str, logger: TailLogger) -> "SSHTunnel":
        """
        Build a tunnel from the --ssh argument and the cluster host.

        Args:
            params: "[localport:][user@]sshhost[:sshport]".
            remote: Cluster "host[:port]" as seen from the SSH server.

        Raises:
            ConfigurationError: params or remote cannot be parsed.
        """
        match = _TUNNEL_PARAMS.match(params.strip())
        if not match:
            raise ConfigurationError(
                f"Invalid ssh tunnel parameters {params!r}, "
                "expected [localport:][user@]sshhost[:sshport]"
            )

        remote_host, _, remote_port = remote.partition(":")
        if not remote_host or (remote_port and not remote_port.isdigit()):
            raise ConfigurationError(f"Invalid tunnel remote address {remote!r}")

        return cls(
            local=Endpoint("localhost", int(match.group("local") or DEFAULT_LOCAL_PORT)),
            server=Endpoint(match.group("host"), int(match.group("port") or DEFAULT_SSH_PORT)),
            remote=Endpoint(remote_host, int(remote_port or DEFAULT_REMOTE_PORT)),
            user=match.group("user") or "",
            logger=logger,
        )

    @property
    def local_url(self) -> str:
        return f"http://localhost:{self.local.port}"

    def command(self) -> List[str]:
        """Return the ssh command line for this tunnel."""
        destination = f"{self.user}@{self.server.host}" if self.user else self.server.host
        return [
            "ssh",
            "-N",
            "-o", "ExitOnForwardFailure=yes",
            "-L", f"{self.local.port}:{self.remote.host}:{self.remote.port}",
            "-p", str(self.server.port),
            destination,
        ]

    def start(self) -> subprocess.Popen:
        """Launch ssh in the background and return the process."""
        self.logger.info(
            f"Starting SSH tunnel {self.local.port}:{self.user or '-'}@"
            f"{self.server.host}:{self.server.port} to {self.remote.host}:{self.remote.port}"
        )
        try:
            self.process = subprocess.Popen(self.command(), stdin=subprocess.DEVNULL)
        except OSError as exc:
            raise ConfigurationError(f"Failed to start ssh: {exc}") from exc
        return self.process

    def stop(self) -> None:
        if self.process is None or self.process.poll() is not None:
            return
        self.logger.trace("Stopping SSH tunnel")
        self.process.terminate()
        try:
            self.process.wait(timeout=5)
        except subprocess.TimeoutExpired:
            self.process.kill()
