"""Concrete infrastructure implementations and shared helpers."""

from .decoders import discarding, json_as, of_bytes, of_string
from .http import RequestsTransport, ResilientHttpClient, build_http_client
from .oauth import (
    MAX_REFRESH_DEPTH,
    AccessTokenRequest,
    AccessTokenStore,
    ClientCredentialsClient,
    build_client_credentials_client,
    extract_access_token,
    refresh_on_invalid_token,
    refresh_on_status,
)
from .resilience import (
    CancellationToken,
    RetryPolicy,
    constant_delay,
    exponential_backoff,
    incremental_delay,
    limit_retries,
)

__all__ = [
    "MAX_REFRESH_DEPTH",
    "AccessTokenRequest",
    "AccessTokenStore",
    "CancellationToken",
    "ClientCredentialsClient",
    "RequestsTransport",
    "ResilientHttpClient",
    "RetryPolicy",
    "build_client_credentials_client",
    "build_http_client",
    "constant_delay",
    "discarding",
    "exponential_backoff",
    "extract_access_token",
    "incremental_delay",
    "json_as",
    "limit_retries",
    "of_bytes",
    "of_string",
    "refresh_on_invalid_token",
    "refresh_on_status",
]
