"""
Filesystem locations used by elktail.

elktail keeps a small amount of state between invocations: the last used
connection settings and query (default.json) and, when talking to a
Kibana gateway, the session cookie (auth.cookie). Both live in a single
per-user directory.

Design Decisions:
    - All functions return pathlib.Path objects
    - ELKTAIL_HOME overrides the directory (handy for tests and for
      keeping several profiles side by side)
"""

import os
from pathlib import Path

CONFIG_DIR_NAME = ".elktail"
DEFAULT_CONFIG_FILE = "default.json"
AUTH_COOKIE_FILE = "auth.cookie"


def config_dir() -> Path:
    """
    Return the directory holding elktail's saved state.

    Uses the ELKTAIL_HOME environment variable if set, otherwise
    ~/.elktail.

    Example:
        >>> os.environ["ELKTAIL_HOME"] = "/tmp/elktail"
        >>> config_dir()
        PosixPath('/tmp/elktail')
    """
    root = os.environ.get("ELKTAIL_HOME")
    if root:
        return Path(root)
    return Path.home() / CONFIG_DIR_NAME


def default_config_path() -> Path:
    """Return the path of the saved default configuration."""
    return config_dir() / DEFAULT_CONFIG_FILE


def auth_cookie_path() -> Path:
    """Return the path of the saved gateway session cookie."""
    return config_dir() / AUTH_COOKIE_FILE


def ensure_config_dir() -> Path:
    """
    Create the state directory if needed and return it.

    The directory is created with 0700 permissions since it may hold
    credentials and a session cookie.
    """
    path = config_dir()
    path.mkdir(mode=0o700, parents=True, exist_ok=True)
    return path
