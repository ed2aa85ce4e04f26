"""Protocol definitions for dependency injection.

These protocols define the seams the request engine depends on, enabling isolated
unit testing with fake implementations.
"""

from __future__ import annotations

from collections.abc import Callable
from concurrent.futures import Future
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from .types import EventHandle, HttpRequest, HttpRequestEvent, HttpResponse

if TYPE_CHECKING:
    import requests

    from .infrastructure.resilience import CancellationToken

type BodyDecoder[BodyT] = Callable[[requests.Response], BodyT]
type RetryPredicate = Callable[[BaseException], bool]
type RefreshPredicate = Callable[[HttpResponse[Any]], bool]


@runtime_checkable
class Transport(Protocol):
    """Blocking HTTP transport: one request in, one raw response out."""

    def send(self, request: HttpRequest, *, timeout: tuple[float, float]) -> requests.Response:
        """Send the request and return the raw response.

        Args:
            request: The fully formed request, headers included.
            timeout: ``(connect, read)`` deadlines in seconds.

        Raises:
            requests.RequestException: On connect, send or receive failures.
        """
        ...

    def close(self) -> None:
        """Release pooled connections."""
        ...


@runtime_checkable
class TelemetrySink(Protocol):
    """Receiver of per-attempt request events."""

    def begin_event(self) -> EventHandle:
        """Mark the start of an attempt."""
        ...

    def commit(self, handle: EventHandle, event: HttpRequestEvent) -> None:
        """Record a finished attempt."""
        ...


@runtime_checkable
class RetryPolicy(Protocol):
    """Pure retry decision keyed on the attempt ordinal."""

    def decide(self, attempt: int) -> float | None:
        """Return the delay in seconds before retry number ``attempt`` (from 1), or None to stop."""
        ...


@runtime_checkable
class TokenStore(Protocol):
    """Holder of the cached access token shared by one client's requests."""

    def get(self) -> str | None:
        """Return the current token, or None when no token was obtained yet."""
        ...

    def set(self, token: str) -> None:
        """Replace the current token."""
        ...


@runtime_checkable
class HttpClient(Protocol):
    """Client able to execute requests synchronously or on its worker pool."""

    def send[BodyT](
        self,
        request: HttpRequest,
        decoder: BodyDecoder[BodyT],
        *,
        cancel_token: CancellationToken | None = None,
    ) -> HttpResponse[BodyT]:
        """Execute the request and decode the body."""
        ...

    def submit[BodyT](
        self,
        request: HttpRequest,
        decoder: BodyDecoder[BodyT],
        *,
        cancel_token: CancellationToken | None = None,
    ) -> Future[HttpResponse[BodyT]]:
        """Execute the request on the worker pool."""
        ...

    def shutdown(self) -> None:
        """Stop accepting work and let in-flight requests finish."""
        ...

    def shutdown_now(self) -> None:
        """Stop accepting work and cancel in-flight requests."""
        ...
