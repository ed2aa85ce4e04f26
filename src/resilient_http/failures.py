"""Failure classification over exception cause chains.

The chain is walked from the outermost error to the innermost one, following
``__cause__`` and then ``__context__`` (unless the context was suppressed with
``raise ... from None``). Lookups return None when nothing matches; they never raise
and never modify the errors they inspect.

Usage example:
    from resilient_http.failures import any_of, is_connect_timeout, is_connection_refused

    retry_predicate = any_of(is_connect_timeout, is_connection_refused)
"""

from __future__ import annotations

import errno
import socket
from collections.abc import Callable, Iterator
from enum import StrEnum

import requests
from urllib3.exceptions import HTTPError as Urllib3Error
from urllib3.exceptions import NameResolutionError, ProtocolError

from .exceptions import (
    AccessTokenNotFound,
    ConnectTimeoutError,
    RefreshLoopDetected,
    RequestCancelledError,
    RequestTimeoutError,
)

type ErrorPredicate = Callable[[BaseException], bool]


class FailureKind(StrEnum):
    """Named failure kinds recognised in a cause chain."""

    CONNECT_TIMEOUT = "connect_timeout"
    REQUEST_TIMEOUT = "request_timeout"
    CONNECTION_REFUSED = "connection_refused"
    CONNECTION_RESET = "connection_reset"
    NAME_RESOLUTION = "name_resolution"
    END_OF_STREAM = "end_of_stream"
    CANCELLED = "cancelled"
    ACCESS_TOKEN_NOT_FOUND = "access_token_not_found"
    REFRESH_LOOP = "refresh_loop"


def _next_cause(error: BaseException) -> BaseException | None:
    if error.__cause__ is not None:
        return error.__cause__
    if error.__suppress_context__:
        return None
    return error.__context__


def iter_causes(error: BaseException) -> Iterator[BaseException]:
    """Yield ``error`` and its causes, outermost first. Cycles are cut."""
    seen: set[int] = set()
    current: BaseException | None = error
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        current = _next_cause(current)


def find_cause(error: BaseException, predicate: ErrorPredicate) -> BaseException | None:
    """Return the outermost error in the chain satisfying ``predicate``."""
    for cause in iter_causes(error):
        if predicate(cause):
            return cause
    return None


def find_cause_of_type[ErrorT: BaseException](
    error: BaseException, error_type: type[ErrorT]
) -> ErrorT | None:
    for cause in iter_causes(error):
        if isinstance(cause, error_type):
            return cause
    return None


def find_ultimate_cause(error: BaseException) -> BaseException:
    """Return the innermost error of the chain."""
    last = error
    for cause in iter_causes(error):
        last = cause
    return last


def describe(error: BaseException) -> str:
    """Render an error as ``TypeName: message``."""
    message = str(error)
    name = type(error).__name__
    return f"{name}: {message}" if message else name


def _matches_os_error(cause: BaseException, code: int, builtin: type[OSError], text: str) -> bool:
    if isinstance(cause, builtin):
        return True
    if isinstance(cause, OSError) and cause.errno == code:
        return True
    # Message text is matched on transport-layer errors only.
    if not isinstance(cause, (OSError, Urllib3Error)):
        return False
    return text in str(cause).lower()


def is_connect_timeout(error: BaseException) -> bool:
    return (
        find_cause(
            error,
            lambda cause: isinstance(cause, (ConnectTimeoutError, requests.ConnectTimeout)),
        )
        is not None
    )


def is_request_timeout(error: BaseException) -> bool:
    return (
        find_cause(
            error,
            lambda cause: isinstance(cause, (RequestTimeoutError, requests.ReadTimeout)),
        )
        is not None
    )


def is_connection_refused(error: BaseException) -> bool:
    return (
        find_cause(
            error,
            lambda cause: _matches_os_error(
                cause, errno.ECONNREFUSED, ConnectionRefusedError, "connection refused"
            ),
        )
        is not None
    )


def is_connection_reset(error: BaseException) -> bool:
    return (
        find_cause(
            error,
            lambda cause: _matches_os_error(
                cause, errno.ECONNRESET, ConnectionResetError, "connection reset"
            ),
        )
        is not None
    )


def is_name_resolution_failure(error: BaseException) -> bool:
    return (
        find_cause(
            error,
            lambda cause: isinstance(cause, (socket.gaierror, NameResolutionError)),
        )
        is not None
    )


def is_end_of_stream(error: BaseException) -> bool:
    return (
        find_cause(
            error,
            lambda cause: isinstance(cause, EOFError)
            or (isinstance(cause, ProtocolError) and "ended prematurely" in str(cause).lower()),
        )
        is not None
    )


def is_cancelled(error: BaseException) -> bool:
    return find_cause_of_type(error, RequestCancelledError) is not None


def is_access_token_not_found(error: BaseException) -> bool:
    return find_cause_of_type(error, AccessTokenNotFound) is not None


def is_refresh_loop(error: BaseException) -> bool:
    return find_cause_of_type(error, RefreshLoopDetected) is not None


_PREDICATES: dict[FailureKind, ErrorPredicate] = {
    FailureKind.CONNECT_TIMEOUT: is_connect_timeout,
    FailureKind.REQUEST_TIMEOUT: is_request_timeout,
    FailureKind.CONNECTION_REFUSED: is_connection_refused,
    FailureKind.CONNECTION_RESET: is_connection_reset,
    FailureKind.NAME_RESOLUTION: is_name_resolution_failure,
    FailureKind.END_OF_STREAM: is_end_of_stream,
    FailureKind.CANCELLED: is_cancelled,
    FailureKind.ACCESS_TOKEN_NOT_FOUND: is_access_token_not_found,
    FailureKind.REFRESH_LOOP: is_refresh_loop,
}


def predicate_for(kind: FailureKind) -> ErrorPredicate:
    return _PREDICATES[kind]


def classify(error: BaseException) -> frozenset[FailureKind]:
    """Return every failure kind found anywhere in the cause chain."""
    return frozenset(kind for kind, predicate in _PREDICATES.items() if predicate(error))


def any_of(*predicates: ErrorPredicate) -> ErrorPredicate:
    """Combine predicates into one that matches when any of them does."""

    def _any(error: BaseException) -> bool:
        return any(predicate(error) for predicate in predicates)

    return _any
