"""Test that network access is properly blocked in tests."""

import socket

import pytest
import requests

from resilient_http.infrastructure.decoders import of_string
from resilient_http.infrastructure.http import RequestsTransport, ResilientHttpClient
from resilient_http.types import HttpRequest
from tests.support.errors import NetworkIsolationError


class TestNetworkBlocking:
    """Verify that the network blocking fixture works."""

    def test_socket_connect_is_blocked(self) -> None:
        """Attempting to connect a socket should raise NetworkIsolationError."""
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            with pytest.raises(NetworkIsolationError) as exc_info:
                sock.connect(("127.0.0.1", 9))
            assert "Tests must not make network connections" in str(exc_info.value)
        finally:
            sock.close()

    def test_requests_would_fail_without_mock(self) -> None:
        """The socket blocking also stops requests."""
        with pytest.raises(NetworkIsolationError):
            requests.get("http://127.0.0.1:9/", timeout=1)

    def test_real_transport_is_blocked(self) -> None:
        """A client on the real transport cannot reach the network either."""
        with ResilientHttpClient(transport=RequestsTransport()) as client:
            with pytest.raises(NetworkIsolationError):
                client.send(HttpRequest.get("http://127.0.0.1:9/"), of_string)
