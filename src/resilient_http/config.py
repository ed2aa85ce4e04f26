"""Centralised, injectable configuration for the HTTP and OAuth clients."""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Self

from dotenv import load_dotenv

from .config_file import ClientConfigFile
from .failures import FailureKind
from .infrastructure.oauth import (
    DEFAULT_AUTH_HEADER_NAME,
    DEFAULT_AUTH_HEADER_TEMPLATE,
    MAX_REFRESH_DEPTH,
)


class PositiveIntegerEnvVarError(ValueError):
    """Raised when an environment variable must be a positive integer."""

    def __init__(self, env_name: str) -> None:
        super().__init__(f"{env_name} must be a positive integer.")


class NonNegativeIntegerEnvVarError(ValueError):
    """Raised when an environment variable must be zero or a positive integer."""

    def __init__(self, env_name: str) -> None:
        super().__init__(f"{env_name} must be a non-negative integer.")


class NonNegativeNumberEnvVarError(ValueError):
    """Raised when an environment variable must be a non-negative number."""

    def __init__(self, env_name: str) -> None:
        super().__init__(f"{env_name} must be a non-negative number.")


class PositiveNumberEnvVarError(ValueError):
    """Raised when an environment variable must be a positive number."""

    def __init__(self, env_name: str) -> None:
        super().__init__(f"{env_name} must be a positive number.")


class BooleanEnvVarError(ValueError):
    """Raised when an environment variable must be a supported boolean."""

    def __init__(self, env_name: str) -> None:
        super().__init__(f"{env_name} must be a boolean value (true/false, 1/0, yes/no, on/off).")


class FailureKindEnvVarError(ValueError):
    """Raised when an environment variable lists an unknown failure kind."""

    def __init__(self, env_name: str, value: str) -> None:
        known = ", ".join(kind.value for kind in FailureKind)
        super().__init__(f"{env_name} contains unknown failure kind {value!r}; expected one of: {known}.")


@dataclass(frozen=True)
class HttpClientConfig:
    """Immutable configuration for the HTTP and OAuth clients.

    Load from environment with `HttpClientConfig.from_env()` or construct directly for testing.
    """

    # Transport
    connect_timeout_seconds: float = 10.0
    timeout_seconds: float = 30.0
    max_workers: int = 8

    # Retries (0 disables the retry policy)
    max_retries: int = 0
    backoff_seconds: float = 0.5
    backoff_max_seconds: float = 30.0
    retry_on: tuple[FailureKind, ...] = ()  # empty = retry every error

    # Telemetry
    record_events: bool = True
    log_events: bool = False

    # OAuth client credentials
    oauth_token_url: str = ""
    oauth_client_id: str = ""
    oauth_client_secret: str = ""
    oauth_scope: str = ""
    oauth_auth_header_name: str = DEFAULT_AUTH_HEADER_NAME
    oauth_auth_header_template: str = DEFAULT_AUTH_HEADER_TEMPLATE
    oauth_refresh_statuses: tuple[int, ...] = (401,)
    oauth_max_refresh_depth: int = MAX_REFRESH_DEPTH

    @property
    def oauth_configured(self) -> bool:
        return bool(self.oauth_token_url and self.oauth_client_id and self.oauth_client_secret)

    @classmethod
    def from_env(cls, dotenv_path: str | None = None) -> Self:
        """Load configuration from environment variables.

        Args:
            dotenv_path: Optional path to .env file. If None, uses default .env discovery.

        Returns:
            HttpClientConfig instance populated from environment.
        """
        load_dotenv(dotenv_path)

        return cls(
            connect_timeout_seconds=_parse_positive_float(
                os.getenv("HTTP_CONNECT_TIMEOUT_SECONDS", "10"),
                env_name="HTTP_CONNECT_TIMEOUT_SECONDS",
            ),
            timeout_seconds=_parse_positive_float(
                os.getenv("HTTP_TIMEOUT_SECONDS", "30"), env_name="HTTP_TIMEOUT_SECONDS"
            ),
            max_workers=_parse_positive_int(
                os.getenv("HTTP_MAX_WORKERS", "8"), env_name="HTTP_MAX_WORKERS"
            ),
            max_retries=_parse_non_negative_int(
                os.getenv("HTTP_MAX_RETRIES", "0"), env_name="HTTP_MAX_RETRIES"
            ),
            backoff_seconds=_parse_non_negative_float(
                os.getenv("HTTP_BACKOFF_SECONDS", "0.5"), env_name="HTTP_BACKOFF_SECONDS"
            ),
            backoff_max_seconds=_parse_non_negative_float(
                os.getenv("HTTP_BACKOFF_MAX_SECONDS", "30"), env_name="HTTP_BACKOFF_MAX_SECONDS"
            ),
            retry_on=_parse_failure_kinds(os.getenv("HTTP_RETRY_ON", ""), env_name="HTTP_RETRY_ON"),
            record_events=_parse_optional_bool(
                os.getenv("HTTP_RECORD_EVENTS", ""), env_name="HTTP_RECORD_EVENTS"
            )
            is not False,
            log_events=_parse_optional_bool(
                os.getenv("HTTP_LOG_EVENTS", ""), env_name="HTTP_LOG_EVENTS"
            )
            or False,
            oauth_token_url=os.getenv("OAUTH_TOKEN_URL", "").strip(),
            oauth_client_id=os.getenv("OAUTH_CLIENT_ID", "").strip(),
            oauth_client_secret=os.getenv("OAUTH_CLIENT_SECRET", "").strip(),
            oauth_scope=os.getenv("OAUTH_SCOPE", "").strip(),
            oauth_auth_header_name=os.getenv("OAUTH_AUTH_HEADER_NAME", "").strip()
            or DEFAULT_AUTH_HEADER_NAME,
            oauth_auth_header_template=os.getenv("OAUTH_AUTH_HEADER_TEMPLATE", "").strip()
            or DEFAULT_AUTH_HEADER_TEMPLATE,
            oauth_refresh_statuses=_parse_status_codes(
                os.getenv("OAUTH_REFRESH_STATUSES", "401"), env_name="OAUTH_REFRESH_STATUSES"
            ),
            oauth_max_refresh_depth=_parse_positive_int(
                os.getenv("OAUTH_MAX_REFRESH_DEPTH", str(MAX_REFRESH_DEPTH)),
                env_name="OAUTH_MAX_REFRESH_DEPTH",
            ),
        )

    def with_overrides(
        self,
        *,
        timeout_seconds: float | None = None,
        max_retries: int | None = None,
        backoff_seconds: float | None = None,
        backoff_max_seconds: float | None = None,
        log_events: bool | None = None,
    ) -> Self:
        """Return a new config with specified overrides (for CLI options)."""
        return replace(
            self,
            timeout_seconds=self.timeout_seconds if timeout_seconds is None else timeout_seconds,
            max_retries=self.max_retries if max_retries is None else max_retries,
            backoff_seconds=self.backoff_seconds if backoff_seconds is None else backoff_seconds,
            backoff_max_seconds=self.backoff_max_seconds
            if backoff_max_seconds is None
            else backoff_max_seconds,
            log_events=self.log_events if log_events is None else log_events,
        )

    def with_file_overrides(self, file_config: ClientConfigFile) -> Self:
        """Return a new config with config-file values overriding env/default values."""
        overrides = {
            name: value
            for name, value in (
                ("connect_timeout_seconds", file_config.connect_timeout_seconds),
                ("timeout_seconds", file_config.timeout_seconds),
                ("max_retries", file_config.max_retries),
                ("backoff_seconds", file_config.backoff_seconds),
                ("backoff_max_seconds", file_config.backoff_max_seconds),
                ("retry_on", file_config.retry_on),
                ("record_events", file_config.record_events),
                ("log_events", file_config.log_events),
                ("max_workers", file_config.max_workers),
                ("oauth_token_url", file_config.oauth_token_url),
                ("oauth_client_id", file_config.oauth_client_id),
                ("oauth_client_secret", file_config.oauth_client_secret),
                ("oauth_scope", file_config.oauth_scope),
                ("oauth_auth_header_name", file_config.oauth_auth_header_name),
                ("oauth_auth_header_template", file_config.oauth_auth_header_template),
                ("oauth_refresh_statuses", file_config.oauth_refresh_statuses),
                ("oauth_max_refresh_depth", file_config.oauth_max_refresh_depth),
            )
            if value is not None
        }
        return replace(self, **overrides)


def _parse_list(s: str) -> tuple[str, ...]:
    """Parse comma-separated string into tuple of stripped values."""
    items = [item.strip() for item in s.split(",") if item.strip()]
    return tuple(items)


def _parse_positive_int(value: str, *, env_name: str) -> int:
    try:
        parsed = int(value.strip())
    except ValueError as exc:
        raise PositiveIntegerEnvVarError(env_name) from exc
    if parsed < 1:
        raise PositiveIntegerEnvVarError(env_name)
    return parsed


def _parse_non_negative_int(value: str, *, env_name: str) -> int:
    try:
        parsed = int(value.strip())
    except ValueError as exc:
        raise NonNegativeIntegerEnvVarError(env_name) from exc
    if parsed < 0:
        raise NonNegativeIntegerEnvVarError(env_name)
    return parsed


def _parse_non_negative_float(value: str, *, env_name: str) -> float:
    try:
        parsed = float(value.strip())
    except ValueError as exc:
        raise NonNegativeNumberEnvVarError(env_name) from exc
    if parsed < 0 or parsed != parsed:
        raise NonNegativeNumberEnvVarError(env_name)
    return parsed


def _parse_positive_float(value: str, *, env_name: str) -> float:
    try:
        parsed = float(value.strip())
    except ValueError as exc:
        raise PositiveNumberEnvVarError(env_name) from exc
    if not parsed > 0:
        raise PositiveNumberEnvVarError(env_name)
    return parsed


def _parse_status_codes(value: str, *, env_name: str) -> tuple[int, ...]:
    codes = tuple(_parse_positive_int(item, env_name=env_name) for item in _parse_list(value))
    if not codes:
        raise PositiveIntegerEnvVarError(env_name)
    return codes


def _parse_failure_kinds(value: str, *, env_name: str) -> tuple[FailureKind, ...]:
    kinds: list[FailureKind] = []
    for item in _parse_list(value):
        try:
            kinds.append(FailureKind(item.lower()))
        except ValueError as exc:
            raise FailureKindEnvVarError(env_name, item) from exc
    return tuple(kinds)


def _parse_optional_bool(value: str, *, env_name: str) -> bool | None:
    """Parse an optional boolean from an environment variable."""
    text = value.strip().lower()
    if not text:
        return None
    if text in {"1", "true", "yes", "y", "on"}:
        return True
    if text in {"0", "false", "no", "n", "off"}:
        return False
    raise BooleanEnvVarError(env_name)
