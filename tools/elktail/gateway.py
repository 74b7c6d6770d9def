"""
Session handling for a Kibana gateway in front of Elasticsearch.

Some deployments only expose Elasticsearch through Kibana. Kibana proxies
multi-search requests at /elasticsearch/_msearch, but only for clients
carrying a logged-in session cookie ("sid-auth") and a kbn-version
header. This module obtains that cookie and keeps it between runs.

Design Decisions:
    - The cookie is cached in ~/.elktail/auth.cookie so that credentials
      are only sent when the cached session is missing or rejected
    - A missing cookie after login means the credentials were wrong
"""

from pathlib import Path
from typing import Dict, Optional

import requests

from .errors import AuthenticationError
from .utils.log import TailLogger
from .utils.paths import auth_cookie_path, ensure_config_dir

SESSION_COOKIE = "sid-auth"
KIBANA_VERSION = "6.2.4"
USER_AGENT = "elktail"


class KibanaGateway:
    """
    Holds the gateway session used to decorate search requests.

    Attributes:
        url: Base URL of the gateway.
        user: Login name, "" if no credentials were given.
        password: Login password.
        version: Value sent in the kbn-version header.
        token: Current session cookie value, "" until loaded.
    """

    def __init__(
        self,
        url: str,
        user: str,
        password: str,
        logger: TailLogger,
        session: Optional[requests.Session] = None,
        cookie_path: Optional[Path] = None,
        version: str = KIBANA_VERSION,
    ) -> None:
        self.url = url.rstrip("/")
        self.user = user
        self.password = password
        self.logger = logger
        self.session = session if session is not None else requests.Session()
        self.cookie_path = cookie_path
        self.version = version
        self.token = ""

    def _cookie_path(self) -> Path:
        return self.cookie_path if self.cookie_path is not None else auth_cookie_path()

    def load_token(self) -> str:
        """
        Return the session cookie, logging in if none is cached.

        Raises:
            AuthenticationError: No cached cookie and login failed.
        """
        if self.token:
            return self.token
        path = self._cookie_path()
        try:
            self.token = path.read_text(encoding="utf-8").strip()
        except OSError:
            self.logger.info(f"No cached gateway session at {path}, logging in")
            self.token = ""
        if not self.token:
            self.authenticate()
        return self.token

    def authenticate(self) -> str:
        """
        Log in to the gateway and cache the new session cookie.

        Raises:
            AuthenticationError: The request failed or no session cookie
                came back.
        """
        try:
            response = self.session.post(
                f"{self.url}/login",
                data={"username": self.user, "password": self.password},
                headers={"kbn-version": self.version, "User-Agent": USER_AGENT},
                allow_redirects=False,
            )
        except requests.RequestException as exc:
            raise AuthenticationError(f"Gateway login request failed: {exc}") from exc

        token = response.cookies.get(SESSION_COOKIE, "")
        if not token:
            raise AuthenticationError("Gateway login failed: bad credentials")

        self.token = token
        path = self._cookie_path()
        if self.cookie_path is None:
            ensure_config_dir()
        path.write_text(token, encoding="utf-8")
        path.chmod(0o600)
        self.logger.info("Logged in to gateway, session cached")
        return token

    def headers(self) -> Dict[str, str]:
        return {"kbn-version": self.version}

    def cookies(self) -> Dict[str, str]:
        token = self.load_token()
        return {SESSION_COOKIE: token} if token else {}

    @staticmethod
    def is_login_redirect(response: requests.Response) -> bool:
        """Kibana answers an expired session with a redirect to /login."""
        return response.status_code == 302 and response.headers.get("location") == "/login"
