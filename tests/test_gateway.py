import tempfile
import unittest
from pathlib import Path

import requests

from elktail.errors import AuthenticationError
from elktail.gateway import KibanaGateway
from elktail.utils.log import NullLogger

from tests.fakes import FakeResponse, FakeSession


class KibanaGatewayTests(unittest.TestCase):
    def setUp(self) -> None:
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        self.cookie_path = Path(self.tmp.name) / "auth.cookie"

    def make_gateway(self, session):
        return KibanaGateway(
            "http://kibana:5601/", "alice", "secret", NullLogger(),
            session=session, cookie_path=self.cookie_path,
        )

    def test_uses_cached_cookie(self) -> None:
        self.cookie_path.write_text("cached\n", encoding="utf-8")
        session = FakeSession()
        gateway = self.make_gateway(session)
        self.assertEqual(gateway.cookies(), {"sid-auth": "cached"})
        self.assertEqual(session.calls, [])

    def test_logs_in_without_cached_cookie(self) -> None:
        session = FakeSession([FakeResponse(status_code=302, cookies={"sid-auth": "new"}, text="")])
        gateway = self.make_gateway(session)

        self.assertEqual(gateway.load_token(), "new")

        call = session.calls[0]
        self.assertEqual(call["url"], "http://kibana:5601/login")
        self.assertEqual(call["data"], {"username": "alice", "password": "secret"})
        self.assertFalse(call["allow_redirects"])
        self.assertEqual(self.cookie_path.read_text(encoding="utf-8"), "new")

    def test_bad_credentials(self) -> None:
        session = FakeSession([FakeResponse(status_code=200, text="")])
        with self.assertRaisesRegex(AuthenticationError, "bad credentials"):
            self.make_gateway(session).authenticate()
        self.assertFalse(self.cookie_path.exists())

    def test_login_transport_failure(self) -> None:
        session = FakeSession([requests.Timeout("timed out")])
        with self.assertRaises(AuthenticationError):
            self.make_gateway(session).authenticate()

    def test_login_redirect_detection(self) -> None:
        self.assertTrue(KibanaGateway.is_login_redirect(
            FakeResponse(status_code=302, headers={"location": "/login"}, text="")))
        self.assertFalse(KibanaGateway.is_login_redirect(
            FakeResponse(status_code=302, headers={"location": "/app"}, text="")))


if __name__ == "__main__":
    unittest.main()
