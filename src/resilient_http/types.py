"""Typed values exchanged between the client, its transport and its telemetry sink."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import StrEnum
from typing import Self
from urllib.parse import urlsplit

from .exceptions import ConfigurationError

type HeaderPairs = tuple[tuple[str, str], ...]

_SUPPORTED_SCHEMES = frozenset({"http", "https"})


def _as_header_pairs(headers: Mapping[str, str] | Iterable[tuple[str, str]] | None) -> HeaderPairs:
    if headers is None:
        return ()
    if isinstance(headers, Mapping):
        return tuple((str(name), str(value)) for name, value in headers.items())
    return tuple((str(name), str(value)) for name, value in headers)


@dataclass(frozen=True)
class HttpRequest:
    """Immutable description of one outgoing HTTP request.

    Headers are kept as an ordered multimap. ``with_header`` and ``add_header`` return
    new requests, so a request handed to a client is never modified behind the
    caller's back.
    """

    method: str
    url: str
    headers: HeaderPairs = ()
    body: bytes | str | None = None
    timeout_seconds: float | None = None

    def __post_init__(self) -> None:
        if not self.method or not self.method.strip():
            raise ConfigurationError("HTTP method must not be empty.")
        parts = urlsplit(self.url)
        if parts.scheme.lower() not in _SUPPORTED_SCHEMES or not parts.hostname:
            raise ConfigurationError(f"Expected an absolute http(s) URL, got: {self.url!r}")
        if self.timeout_seconds is not None and self.timeout_seconds <= 0:
            raise ConfigurationError("Request timeout must be a positive number of seconds.")

    @classmethod
    def build(
        cls,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str] | Iterable[tuple[str, str]] | None = None,
        body: bytes | str | None = None,
        timeout_seconds: float | None = None,
    ) -> Self:
        return cls(
            method=method.strip().upper(),
            url=url,
            headers=_as_header_pairs(headers),
            body=body,
            timeout_seconds=timeout_seconds,
        )

    @classmethod
    def get(
        cls,
        url: str,
        *,
        headers: Mapping[str, str] | Iterable[tuple[str, str]] | None = None,
        timeout_seconds: float | None = None,
    ) -> Self:
        return cls.build("GET", url, headers=headers, timeout_seconds=timeout_seconds)

    @classmethod
    def post(
        cls,
        url: str,
        *,
        body: bytes | str | None = None,
        headers: Mapping[str, str] | Iterable[tuple[str, str]] | None = None,
        timeout_seconds: float | None = None,
    ) -> Self:
        return cls.build("POST", url, headers=headers, body=body, timeout_seconds=timeout_seconds)

    @classmethod
    def put(
        cls,
        url: str,
        *,
        body: bytes | str | None = None,
        headers: Mapping[str, str] | Iterable[tuple[str, str]] | None = None,
        timeout_seconds: float | None = None,
    ) -> Self:
        return cls.build("PUT", url, headers=headers, body=body, timeout_seconds=timeout_seconds)

    @classmethod
    def delete(
        cls,
        url: str,
        *,
        headers: Mapping[str, str] | Iterable[tuple[str, str]] | None = None,
        timeout_seconds: float | None = None,
    ) -> Self:
        return cls.build("DELETE", url, headers=headers, timeout_seconds=timeout_seconds)

    @property
    def host(self) -> str:
        return urlsplit(self.url).hostname or ""

    @property
    def path(self) -> str:
        return urlsplit(self.url).path or "/"

    def header_values(self, name: str) -> list[str]:
        """Return every value of a header, matching the name case-insensitively."""
        wanted = name.lower()
        return [value for key, value in self.headers if key.lower() == wanted]

    def header(self, name: str) -> str | None:
        values = self.header_values(name)
        return values[0] if values else None

    def with_header(self, name: str, value: str) -> Self:
        """Return a copy where ``name`` has exactly one value."""
        wanted = name.lower()
        kept = tuple((key, val) for key, val in self.headers if key.lower() != wanted)
        return replace(self, headers=(*kept, (name, value)))

    def add_header(self, name: str, value: str) -> Self:
        """Return a copy with one more value for ``name``."""
        return replace(self, headers=(*self.headers, (name, value)))

    def header_dict(self) -> dict[str, str]:
        """Fold the multimap into a plain dict, joining repeated names with ", "."""
        folded: dict[str, str] = {}
        names: dict[str, str] = {}
        for key, value in self.headers:
            canonical = names.setdefault(key.lower(), key)
            if canonical in folded:
                folded[canonical] = f"{folded[canonical]}, {value}"
            else:
                folded[canonical] = value
        return folded


@dataclass(frozen=True)
class HttpResponse[BodyT]:
    """Immutable response with a body already decoded by the caller's decoder."""

    status_code: int
    body: BodyT
    request: HttpRequest
    headers: Mapping[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 400

    def header(self, name: str) -> str | None:
        wanted = name.lower()
        for key, value in self.headers.items():
            if key.lower() == wanted:
                return value
        return None


class RequestOutcome(StrEnum):
    """Result of one physical exchange as recorded by telemetry."""

    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"


@dataclass(frozen=True)
class EventHandle:
    """Token returned by ``TelemetrySink.begin_event`` and handed back on commit."""

    started_at: datetime
    started_monotonic: float


@dataclass(frozen=True)
class HttpRequestEvent:
    """Telemetry record for one physical attempt, including retries."""

    method: str
    host: str
    path: str
    outcome: RequestOutcome
    duration_seconds: float
    request_counter: int
    started_at: datetime
    status_code: int | None = None
    exception: str | None = None
