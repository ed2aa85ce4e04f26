"""Typed parsing and validation for client config files.

Example file:

    schema_version = 1

    [http]
    timeout_seconds = 15
    max_retries = 3
    retry_on = ["connect_timeout", "connection_refused"]

    [oauth]
    token_url = "https://auth.example.com/token"
    client_id = "my-client"
    refresh_statuses = [401]
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass
from pathlib import Path

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from .exceptions import ConfigFileNotFoundError, ConfigFileParseError, ConfigFileValidationError
from .failures import FailureKind

_SCHEMA_VERSION = 1


@dataclass(frozen=True)
class ClientConfigFile:
    """Validated client config values loaded from a TOML file."""

    connect_timeout_seconds: float | None = None
    timeout_seconds: float | None = None
    max_retries: int | None = None
    backoff_seconds: float | None = None
    backoff_max_seconds: float | None = None
    retry_on: tuple[FailureKind, ...] | None = None
    record_events: bool | None = None
    log_events: bool | None = None
    max_workers: int | None = None
    oauth_token_url: str | None = None
    oauth_client_id: str | None = None
    oauth_client_secret: str | None = None
    oauth_scope: str | None = None
    oauth_auth_header_name: str | None = None
    oauth_auth_header_template: str | None = None
    oauth_refresh_statuses: tuple[int, ...] | None = None
    oauth_max_refresh_depth: int | None = None


class _HttpSectionModel(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    connect_timeout_seconds: float | None = None
    timeout_seconds: float | None = None
    max_retries: int | None = None
    backoff_seconds: float | None = None
    backoff_max_seconds: float | None = None
    retry_on: tuple[FailureKind, ...] | None = None
    record_events: bool | None = None
    log_events: bool | None = None
    max_workers: int | None = None

    @field_validator("connect_timeout_seconds", "timeout_seconds")
    @classmethod
    def _validate_positive_seconds(cls, value: float | None) -> float | None:
        if value is None:
            return None
        if value <= 0:
            raise ValueError
        return value

    @field_validator("backoff_seconds", "backoff_max_seconds")
    @classmethod
    def _validate_non_negative_seconds(cls, value: float | None) -> float | None:
        if value is None:
            return None
        if value < 0:
            raise ValueError
        return value

    @field_validator("max_retries")
    @classmethod
    def _validate_non_negative_int(cls, value: int | None) -> int | None:
        if value is None:
            return None
        if value < 0:
            raise ValueError
        return value

    @field_validator("max_workers")
    @classmethod
    def _validate_positive_int(cls, value: int | None) -> int | None:
        if value is None:
            return None
        if value < 1:
            raise ValueError
        return value


class _OAuthSectionModel(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    token_url: str | None = None
    client_id: str | None = None
    client_secret: str | None = None
    scope: str | None = None
    auth_header_name: str | None = None
    auth_header_template: str | None = None
    refresh_statuses: tuple[int, ...] | None = None
    max_refresh_depth: int | None = None

    @field_validator("token_url", "client_id", "client_secret", "auth_header_name")
    @classmethod
    def _validate_non_empty_text(cls, value: str | None) -> str | None:
        if value is None:
            return None
        text = value.strip()
        if not text:
            raise ValueError
        return text

    @field_validator("auth_header_template")
    @classmethod
    def _validate_template(cls, value: str | None) -> str | None:
        if value is None:
            return None
        if "{token}" not in value:
            raise ValueError("must contain {token}")
        return value

    @field_validator("refresh_statuses")
    @classmethod
    def _validate_statuses(cls, value: tuple[int, ...] | None) -> tuple[int, ...] | None:
        if value is None:
            return None
        if not value or any(code < 100 or code > 599 for code in value):
            raise ValueError
        return value

    @field_validator("max_refresh_depth")
    @classmethod
    def _validate_depth(cls, value: int | None) -> int | None:
        if value is None:
            return None
        if value < 1:
            raise ValueError
        return value


class _ConfigFileModel(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    schema_version: int
    http: _HttpSectionModel = _HttpSectionModel()
    oauth: _OAuthSectionModel = _OAuthSectionModel()

    @field_validator("schema_version")
    @classmethod
    def _validate_schema_version(cls, value: int) -> int:
        if value != _SCHEMA_VERSION:
            raise ValueError
        return value


def _format_validation_error(exc: ValidationError) -> str:
    first = exc.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ("<root>",)))
    message = str(first.get("msg", "invalid value"))
    return f"{location}: {message}"


def load_client_config_file(*, path: Path) -> ClientConfigFile:
    """Load and validate a client TOML config file."""
    if not path.is_file():
        raise ConfigFileNotFoundError(str(path))

    raw_payload = path.read_text(encoding="utf-8")
    try:
        payload: object = tomllib.loads(raw_payload)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigFileParseError(str(path), str(exc)) from exc

    try:
        model = _ConfigFileModel.model_validate(payload)
    except ValidationError as exc:
        raise ConfigFileValidationError(str(path), _format_validation_error(exc)) from exc

    http = model.http
    oauth = model.oauth
    return ClientConfigFile(
        connect_timeout_seconds=http.connect_timeout_seconds,
        timeout_seconds=http.timeout_seconds,
        max_retries=http.max_retries,
        backoff_seconds=http.backoff_seconds,
        backoff_max_seconds=http.backoff_max_seconds,
        retry_on=http.retry_on,
        record_events=http.record_events,
        log_events=http.log_events,
        max_workers=http.max_workers,
        oauth_token_url=oauth.token_url,
        oauth_client_id=oauth.client_id,
        oauth_client_secret=oauth.client_secret,
        oauth_scope=oauth.scope,
        oauth_auth_header_name=oauth.auth_header_name,
        oauth_auth_header_template=oauth.auth_header_template,
        oauth_refresh_statuses=oauth.refresh_statuses,
        oauth_max_refresh_depth=oauth.max_refresh_depth,
    )
