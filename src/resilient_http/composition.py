"""Composition root for wiring clients from configuration."""

from __future__ import annotations

import requests

from .cli import CliDependencies, create_app
from .config import HttpClientConfig
from .failures import any_of, predicate_for
from .infrastructure import (
    ClientCredentialsClient,
    ResilientHttpClient,
    RetryPolicy,
    build_client_credentials_client,
    build_http_client,
    incremental_delay,
    limit_retries,
)
from .observability import LoggingTelemetrySink, NullTelemetrySink
from .protocols import RetryPredicate, TelemetrySink


def build_retry_policy(config: HttpClientConfig) -> RetryPolicy | None:
    """Linear backoff bounded by ``max_retries`` and capped at ``backoff_max_seconds``.

    Returns None when retries are disabled (``max_retries == 0``).
    """
    if config.max_retries == 0:
        return None
    return (
        limit_retries(config.max_retries)
        .append(incremental_delay(config.backoff_seconds))
        .cap_delay(config.backoff_max_seconds)
    )


def build_retry_predicate(config: HttpClientConfig) -> RetryPredicate | None:
    """Match the configured failure kinds; None means every error is retryable."""
    if not config.retry_on:
        return None
    return any_of(*(predicate_for(kind) for kind in config.retry_on))


def build_telemetry(config: HttpClientConfig) -> TelemetrySink:
    return LoggingTelemetrySink() if config.log_events else NullTelemetrySink()


def build_configured_http_client(
    config: HttpClientConfig, *, session: requests.Session | None = None
) -> ResilientHttpClient:
    return build_http_client(
        session=session,
        retry_policy=build_retry_policy(config),
        retry_predicate=build_retry_predicate(config),
        record_events=config.record_events,
        telemetry=build_telemetry(config),
        connect_timeout_seconds=config.connect_timeout_seconds,
        timeout_seconds=config.timeout_seconds,
        max_workers=config.max_workers,
    )


def build_configured_oauth_client(
    config: HttpClientConfig, *, http_client: ResilientHttpClient
) -> ClientCredentialsClient | None:
    """Build the client-credentials client, or None when OAuth is not configured."""
    if not config.oauth_configured:
        return None
    return build_client_credentials_client(
        http_client=http_client,
        token_url=config.oauth_token_url,
        client_id=config.oauth_client_id,
        client_secret=config.oauth_client_secret,
        scope=config.oauth_scope or None,
        refresh_statuses=config.oauth_refresh_statuses,
        auth_header_name=config.oauth_auth_header_name,
        auth_header_template=config.oauth_auth_header_template,
        max_refresh_depth=config.oauth_max_refresh_depth,
        max_workers=config.max_workers,
    )


def build_cli_dependencies(*, config: HttpClientConfig, build_clients: bool) -> CliDependencies:
    """Build concrete dependencies for CLI commands.

    Args:
        config: Client configuration.
        build_clients: Whether to construct the HTTP and OAuth clients (commands that
            only inspect configuration skip them).
    """
    retry_policy = build_retry_policy(config)
    if not build_clients:
        return CliDependencies(http_client=None, oauth_client=None, retry_policy=retry_policy)
    http_client = build_configured_http_client(config)
    oauth_client = build_configured_oauth_client(config, http_client=http_client)
    return CliDependencies(
        http_client=http_client, oauth_client=oauth_client, retry_policy=retry_policy
    )


app = create_app(build_cli_dependencies)
