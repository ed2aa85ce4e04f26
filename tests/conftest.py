"""Pytest fixtures for the client test suite.

All tests are network-isolated - socket connections are blocked by default.
"""

from __future__ import annotations

import socket
from collections.abc import Iterator

import pytest

from tests.fakes import RecordingTelemetrySink, ScriptedTransport
from tests.support.errors import NetworkIsolationError

# =============================================================================
# Network Isolation - Block all socket connections in tests
# =============================================================================


def _blocked_socket_connect(self: socket.socket, *args: object, **kwargs: object) -> None:
    """Raise an error if any test tries to make a real network connection."""
    _ = (self, kwargs)
    raise NetworkIsolationError(str(args))


@pytest.fixture(autouse=True)
def block_network_access(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Block all network access in tests.

    Tests that need HTTP should use ScriptedTransport or MagicMock(spec=requests.Session).
    """
    monkeypatch.setattr(socket.socket, "connect", _blocked_socket_connect)
    yield


@pytest.fixture(autouse=True)
def clean_client_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep developer environment variables out of config-driven tests."""
    for name in (
        "HTTP_CONNECT_TIMEOUT_SECONDS",
        "HTTP_TIMEOUT_SECONDS",
        "HTTP_MAX_RETRIES",
        "HTTP_BACKOFF_SECONDS",
        "HTTP_BACKOFF_MAX_SECONDS",
        "HTTP_RETRY_ON",
        "HTTP_RECORD_EVENTS",
        "HTTP_LOG_EVENTS",
        "HTTP_MAX_WORKERS",
        "OAUTH_TOKEN_URL",
        "OAUTH_CLIENT_ID",
        "OAUTH_CLIENT_SECRET",
        "OAUTH_SCOPE",
        "OAUTH_AUTH_HEADER_NAME",
        "OAUTH_AUTH_HEADER_TEMPLATE",
        "OAUTH_REFRESH_STATUSES",
        "OAUTH_MAX_REFRESH_DEPTH",
        "RESILIENT_HTTP_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def transport() -> ScriptedTransport:
    """Provide a scripted transport for tests."""
    return ScriptedTransport()


@pytest.fixture
def telemetry() -> RecordingTelemetrySink:
    """Provide a recording telemetry sink for tests."""
    return RecordingTelemetrySink()
