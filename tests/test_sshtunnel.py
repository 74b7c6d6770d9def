import subprocess
import unittest
from unittest import mock

from elktail.errors import ConfigurationError
from elktail.sshtunnel import Endpoint, SSHTunnel
from elktail.utils.log import NullLogger


class FromParamsTests(unittest.TestCase):
    def test_host_only_uses_defaults(self) -> None:
        tunnel = SSHTunnel.from_params("bastion", "es.internal", NullLogger())
        self.assertEqual(tunnel.local, Endpoint("localhost", 9199))
        self.assertEqual(tunnel.server, Endpoint("bastion", 22))
        self.assertEqual(tunnel.remote, Endpoint("es.internal", 9200))
        self.assertEqual(tunnel.user, "")
        self.assertEqual(tunnel.local_url, "http://localhost:9199")

    def test_full_form(self) -> None:
        tunnel = SSHTunnel.from_params("9300:ops@bastion:2222", "10.0.0.5:9201", NullLogger())
        self.assertEqual(tunnel.local, Endpoint("localhost", 9300))
        self.assertEqual(tunnel.server, Endpoint("bastion", 2222))
        self.assertEqual(tunnel.remote, Endpoint("10.0.0.5", 9201))
        self.assertEqual(tunnel.user, "ops")

    def test_invalid_params(self) -> None:
        for params in ("", "a@b@c", "host:port", "user@"):
            with self.subTest(params=params):
                with self.assertRaises(ConfigurationError):
                    SSHTunnel.from_params(params, "es", NullLogger())

    def test_invalid_remote(self) -> None:
        with self.assertRaises(ConfigurationError):
            SSHTunnel.from_params("bastion", "es:http", NullLogger())


class ProcessTests(unittest.TestCase):
    def test_command(self) -> None:
        tunnel = SSHTunnel.from_params("ops@bastion", "es:9200", NullLogger())
        self.assertEqual(tunnel.command(), [
            "ssh", "-N", "-o", "ExitOnForwardFailure=yes",
            "-L", "9199:es:9200", "-p", "22", "ops@bastion",
        ])

    def test_start_and_stop(self) -> None:
        tunnel = SSHTunnel.from_params("bastion", "es", NullLogger())
        with mock.patch("elktail.sshtunnel.subprocess.Popen") as popen:
            process = popen.return_value
            process.poll.return_value = None
            tunnel.start()
            tunnel.stop()

        popen.assert_called_once_with(tunnel.command(), stdin=subprocess.DEVNULL)
        process.terminate.assert_called_once_with()
        process.kill.assert_not_called()

    def test_stop_kills_unresponsive_ssh(self) -> None:
        tunnel = SSHTunnel.from_params("bastion", "es", NullLogger())
        with mock.patch("elktail.sshtunnel.subprocess.Popen") as popen:
            process = popen.return_value
            process.poll.return_value = None
            process.wait.side_effect = subprocess.TimeoutExpired("ssh", 5)
            tunnel.start()
            tunnel.stop()
        process.kill.assert_called_once_with()

    def test_missing_ssh_binary(self) -> None:
        tunnel = SSHTunnel.from_params("bastion", "es", NullLogger())
        with mock.patch("elktail.sshtunnel.subprocess.Popen", side_effect=FileNotFoundError("ssh")):
            with self.assertRaises(ConfigurationError):
                tunnel.start()


if __name__ == "__main__":
    unittest.main()
