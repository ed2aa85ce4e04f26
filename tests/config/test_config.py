"""Tests for HttpClientConfig behaviour."""

import pytest

import resilient_http.config as config_module
from resilient_http.config import (
    BooleanEnvVarError,
    FailureKindEnvVarError,
    HttpClientConfig,
    NonNegativeIntegerEnvVarError,
    PositiveIntegerEnvVarError,
    PositiveNumberEnvVarError,
)
from resilient_http.failures import FailureKind
from resilient_http.infrastructure.oauth import MAX_REFRESH_DEPTH


def _no_dotenv(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_load_dotenv(dotenv_path: str | None = None) -> bool:
        _ = dotenv_path
        return False

    monkeypatch.setattr(config_module, "load_dotenv", fake_load_dotenv)


def test_defaults() -> None:
    config = HttpClientConfig()

    assert config.connect_timeout_seconds == 10.0
    assert config.timeout_seconds == 30.0
    assert config.max_retries == 0
    assert config.retry_on == ()
    assert config.record_events is True
    assert config.log_events is False
    assert config.oauth_auth_header_name == "Authorization"
    assert config.oauth_auth_header_template == "Bearer {token}"
    assert config.oauth_refresh_statuses == (401,)
    assert config.oauth_max_refresh_depth == MAX_REFRESH_DEPTH
    assert not config.oauth_configured


def test_from_env_reads_all_fields(monkeypatch: pytest.MonkeyPatch) -> None:
    _no_dotenv(monkeypatch)
    monkeypatch.setenv("HTTP_CONNECT_TIMEOUT_SECONDS", "2.5")
    monkeypatch.setenv("HTTP_TIMEOUT_SECONDS", "12")
    monkeypatch.setenv("HTTP_MAX_RETRIES", "4")
    monkeypatch.setenv("HTTP_BACKOFF_SECONDS", "0.25")
    monkeypatch.setenv("HTTP_BACKOFF_MAX_SECONDS", "3")
    monkeypatch.setenv("HTTP_RETRY_ON", "connect_timeout, CONNECTION_REFUSED")
    monkeypatch.setenv("HTTP_RECORD_EVENTS", "off")
    monkeypatch.setenv("HTTP_LOG_EVENTS", "yes")
    monkeypatch.setenv("HTTP_MAX_WORKERS", "3")
    monkeypatch.setenv("OAUTH_TOKEN_URL", " https://auth.example.com/token ")
    monkeypatch.setenv("OAUTH_CLIENT_ID", "client")
    monkeypatch.setenv("OAUTH_CLIENT_SECRET", "secret")
    monkeypatch.setenv("OAUTH_SCOPE", "read")
    monkeypatch.setenv("OAUTH_AUTH_HEADER_NAME", "X-Token")
    monkeypatch.setenv("OAUTH_AUTH_HEADER_TEMPLATE", "Token {token}")
    monkeypatch.setenv("OAUTH_REFRESH_STATUSES", "401,403")
    monkeypatch.setenv("OAUTH_MAX_REFRESH_DEPTH", "5")

    config = HttpClientConfig.from_env()

    assert config.connect_timeout_seconds == 2.5
    assert config.timeout_seconds == 12.0
    assert config.max_retries == 4
    assert config.backoff_seconds == 0.25
    assert config.backoff_max_seconds == 3.0
    assert config.retry_on == (FailureKind.CONNECT_TIMEOUT, FailureKind.CONNECTION_REFUSED)
    assert config.record_events is False
    assert config.log_events is True
    assert config.max_workers == 3
    assert config.oauth_token_url == "https://auth.example.com/token"
    assert config.oauth_scope == "read"
    assert config.oauth_auth_header_name == "X-Token"
    assert config.oauth_auth_header_template == "Token {token}"
    assert config.oauth_refresh_statuses == (401, 403)
    assert config.oauth_max_refresh_depth == 5
    assert config.oauth_configured


def test_from_env_uses_defaults_when_unset(monkeypatch: pytest.MonkeyPatch) -> None:
    _no_dotenv(monkeypatch)

    assert HttpClientConfig.from_env() == HttpClientConfig()


@pytest.mark.parametrize(
    ("env_name", "value", "error"),
    [
        ("HTTP_MAX_WORKERS", "0", PositiveIntegerEnvVarError),
        ("HTTP_MAX_WORKERS", "many", PositiveIntegerEnvVarError),
        ("HTTP_MAX_RETRIES", "-1", NonNegativeIntegerEnvVarError),
        ("HTTP_TIMEOUT_SECONDS", "0", PositiveNumberEnvVarError),
        ("HTTP_CONNECT_TIMEOUT_SECONDS", "soon", PositiveNumberEnvVarError),
        ("HTTP_RECORD_EVENTS", "maybe", BooleanEnvVarError),
        ("HTTP_RETRY_ON", "connect_timeout,gremlins", FailureKindEnvVarError),
        ("OAUTH_MAX_REFRESH_DEPTH", "0", PositiveIntegerEnvVarError),
        ("OAUTH_REFRESH_STATUSES", ",", PositiveIntegerEnvVarError),
    ],
)
def test_from_env_rejects_invalid_values(
    monkeypatch: pytest.MonkeyPatch, env_name: str, value: str, error: type[ValueError]
) -> None:
    _no_dotenv(monkeypatch)
    monkeypatch.setenv(env_name, value)

    with pytest.raises(error, match=env_name):
        HttpClientConfig.from_env()


def test_with_overrides_preserves_fields() -> None:
    base = HttpClientConfig(
        connect_timeout_seconds=3.0,
        timeout_seconds=9.0,
        max_retries=2,
        backoff_seconds=0.1,
        oauth_token_url="https://auth.example.com/token",
        oauth_client_id="client",
        oauth_client_secret="secret",
    )

    updated = base.with_overrides(max_retries=5, log_events=True)

    assert updated.max_retries == 5
    assert updated.log_events is True
    assert updated.timeout_seconds == base.timeout_seconds
    assert updated.backoff_seconds == base.backoff_seconds
    assert updated.connect_timeout_seconds == base.connect_timeout_seconds
    assert updated.oauth_token_url == base.oauth_token_url
    assert base.max_retries == 2
