"""Tests for configuration precedence resolution."""

from __future__ import annotations

from resilient_http.config import HttpClientConfig
from resilient_http.config_file import ClientConfigFile
from resilient_http.failures import FailureKind


def test_with_file_overrides_applies_config_file_values() -> None:
    env_config = HttpClientConfig(
        timeout_seconds=30.0,
        max_retries=1,
        retry_on=(FailureKind.CONNECT_TIMEOUT,),
        oauth_client_id="env-client",
        oauth_refresh_statuses=(401,),
    )
    file_config = ClientConfigFile(
        timeout_seconds=5.0,
        max_retries=4,
        retry_on=(FailureKind.CONNECTION_REFUSED, FailureKind.REQUEST_TIMEOUT),
        record_events=False,
        oauth_client_id="file-client",
        oauth_refresh_statuses=(401, 403),
        oauth_max_refresh_depth=2,
    )

    resolved = env_config.with_file_overrides(file_config)

    assert resolved.timeout_seconds == 5.0
    assert resolved.max_retries == 4
    assert resolved.retry_on == (FailureKind.CONNECTION_REFUSED, FailureKind.REQUEST_TIMEOUT)
    assert resolved.record_events is False
    assert resolved.oauth_client_id == "file-client"
    assert resolved.oauth_refresh_statuses == (401, 403)
    assert resolved.oauth_max_refresh_depth == 2


def test_with_file_overrides_keeps_env_when_file_value_missing() -> None:
    env_config = HttpClientConfig(
        connect_timeout_seconds=4.0,
        backoff_seconds=0.3,
        oauth_token_url="https://auth.example.com/token",
    )

    resolved = env_config.with_file_overrides(ClientConfigFile())

    assert resolved == env_config


def test_cli_overrides_apply_after_file_values() -> None:
    resolved = (
        HttpClientConfig(max_retries=1)
        .with_file_overrides(ClientConfigFile(max_retries=2, timeout_seconds=8.0))
        .with_overrides(max_retries=3)
    )

    assert resolved.max_retries == 3
    assert resolved.timeout_seconds == 8.0
