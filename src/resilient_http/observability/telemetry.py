"""Telemetry sinks for per-attempt request events.

Usage example:
    from resilient_http.observability.telemetry import LoggingTelemetrySink

    client = ResilientHttpClient(telemetry=LoggingTelemetrySink())
"""

from __future__ import annotations

import logging
import time
from datetime import UTC, datetime
from typing import override

from ..protocols import TelemetrySink
from ..types import EventHandle, HttpRequestEvent, RequestOutcome
from .logging import get_logger

_SUCCESS_FORMAT = (
    "event: http-req; method: {method}; host: {host}; path: {path}; result: {result}; "
    "status-code: {status_code}; duration: {duration}; req-counter: {counter}; "
    "start_time: {start}"
)
_FAILURE_FORMAT = (
    "event: http-req; method: {method}; host: {host}; path: {path}; result: {result}; "
    "exception: {exception}; duration: {duration}; req-counter: {counter}; "
    "start_time: {start}"
)


def format_duration(seconds: float) -> str:
    if seconds >= 1:
        return f"{seconds:.3f} s"
    if seconds >= 0.001:
        return f"{seconds * 1_000:.0f} ms"
    return f"{seconds * 1_000_000:.0f} µs"


def format_event(event: HttpRequestEvent) -> str:
    """Render an event as a single ``key: value`` line."""
    template = _SUCCESS_FORMAT if event.outcome is RequestOutcome.SUCCESS else _FAILURE_FORMAT
    return template.format(
        method=event.method,
        host=event.host,
        path=event.path,
        result=event.outcome.value,
        status_code=event.status_code,
        exception=event.exception,
        duration=format_duration(event.duration_seconds),
        counter=event.request_counter,
        start=event.started_at.isoformat(),
    )


def start_event() -> EventHandle:
    return EventHandle(started_at=datetime.now(UTC), started_monotonic=time.monotonic())


class NullTelemetrySink(TelemetrySink):
    """Sink that records nothing."""

    @override
    def begin_event(self) -> EventHandle:
        return start_event()

    @override
    def commit(self, handle: EventHandle, event: HttpRequestEvent) -> None:
        _ = (handle, event)


class LoggingTelemetrySink(TelemetrySink):
    """Sink that writes each event as one log line."""

    def __init__(self, logger: logging.Logger | None = None, *, level: int = logging.INFO) -> None:
        self._logger = logger or get_logger("resilient_http.telemetry")
        self._level = level

    @override
    def begin_event(self) -> EventHandle:
        return start_event()

    @override
    def commit(self, handle: EventHandle, event: HttpRequestEvent) -> None:
        _ = handle
        self._logger.log(self._level, format_event(event))
