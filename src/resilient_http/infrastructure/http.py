"""HTTP client implementations for infrastructure.

Usage example:
    import requests

    from resilient_http.failures import any_of, is_connect_timeout, is_connection_refused
    from resilient_http.infrastructure.decoders import of_string
    from resilient_http.infrastructure.http import RequestsTransport, ResilientHttpClient
    from resilient_http.infrastructure.resilience import incremental_delay, limit_retries
    from resilient_http.types import HttpRequest

    client = ResilientHttpClient(
        transport=RequestsTransport(session=requests.Session()),
        retry_policy=limit_retries(3).append(incremental_delay(0.5)),
        retry_predicate=any_of(is_connect_timeout, is_connection_refused),
    )
    response = client.send(HttpRequest.get("https://api.example.com/status"), of_string)
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from typing import override

import requests

from ..exceptions import (
    ClientShutdownError,
    ConfigurationError,
    ConnectTimeoutError,
    HttpClientError,
    RequestCancelledError,
    RequestTimeoutError,
    ResponseDecodeError,
    TransportError,
)
from ..failures import describe, find_ultimate_cause
from ..observability.logging import get_logger
from ..observability.telemetry import NullTelemetrySink
from ..protocols import (
    BodyDecoder,
    HttpClient,
    RetryPredicate,
    RetryPolicy,
    TelemetrySink,
    Transport,
)
from ..types import EventHandle, HttpRequest, HttpRequestEvent, HttpResponse, RequestOutcome
from .resilience import CancellationToken

logger = get_logger("resilient_http.http")

DEFAULT_CONNECT_TIMEOUT_SECONDS = 10.0
DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_MAX_WORKERS = 8


def _retry_everything(error: BaseException) -> bool:
    _ = error
    return True


def translate_transport_error(request: HttpRequest, error: Exception) -> TransportError:
    """Map a transport-level exception onto the client's error taxonomy."""
    details = describe(error)
    if isinstance(error, requests.ConnectTimeout):
        return ConnectTimeoutError(request.method, request.url, details)
    if isinstance(error, requests.Timeout):
        return RequestTimeoutError(request.method, request.url, details)
    return TransportError(request.method, request.url, details)


class RequestsTransport(Transport):
    """Requests-backed transport sharing one connection pool."""

    def __init__(self, *, session: requests.Session | None = None) -> None:
        self._session = session or requests.Session()

    @override
    def send(self, request: HttpRequest, *, timeout: tuple[float, float]) -> requests.Response:
        return self._session.request(
            request.method,
            request.url,
            headers=request.header_dict(),
            data=request.body,
            timeout=timeout,
            allow_redirects=True,
        )

    @override
    def close(self) -> None:
        self._session.close()


class ResilientHttpClient(HttpClient):
    """HTTP client with failure-classified retries, telemetry and cooperative shutdown.

    - Every physical attempt, retries included, increments ``request_count``
    - With ``record_events`` each attempt is reported to the telemetry sink; sink
      failures are logged and ignored
    - With a retry policy, failures matching ``retry_predicate`` (every failure when no
      predicate is given) are retried after the delay the policy returns; once the
      policy stops, the last failure is raised unchanged
    """

    def __init__(
        self,
        *,
        transport: Transport | None = None,
        retry_policy: RetryPolicy | None = None,
        retry_predicate: RetryPredicate | None = None,
        record_events: bool = True,
        telemetry: TelemetrySink | None = None,
        connect_timeout_seconds: float = DEFAULT_CONNECT_TIMEOUT_SECONDS,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        max_workers: int = DEFAULT_MAX_WORKERS,
    ) -> None:
        if connect_timeout_seconds <= 0 or timeout_seconds <= 0:
            raise ConfigurationError("Timeouts must be positive numbers of seconds.")
        if max_workers < 1:
            raise ConfigurationError("max_workers must be at least 1.")
        self.transport = transport or RequestsTransport()
        self.retry_policy = retry_policy
        self.retry_predicate = retry_predicate or _retry_everything
        self.record_events = record_events
        self.telemetry = telemetry or NullTelemetrySink()
        self.connect_timeout_seconds = connect_timeout_seconds
        self.timeout_seconds = timeout_seconds
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="resilient-http"
        )
        self._root_token = CancellationToken()
        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._in_flight = 0
        self._counter = 0
        self._accepting = True
        self._cancelled = False
        self._transport_closed = False

    @property
    def request_count(self) -> int:
        """Number of physical attempts made so far."""
        with self._lock:
            return self._counter

    @property
    def is_shutdown(self) -> bool:
        with self._lock:
            return not self._accepting

    @override
    def send[BodyT](
        self,
        request: HttpRequest,
        decoder: BodyDecoder[BodyT],
        *,
        cancel_token: CancellationToken | None = None,
    ) -> HttpResponse[BodyT]:
        """Execute the request, retrying per the configured policy.

        Raises:
            TransportError: Network failure (ConnectTimeoutError / RequestTimeoutError
                for deadlines) on the last attempt.
            ResponseDecodeError: The decoder could not read the body.
            RequestCancelledError: The token or a forced shutdown cancelled the request.
            ClientShutdownError: The client no longer accepts requests.
        """
        self._enter(admitted=False)
        try:
            return self._execute(request, decoder, cancel_token)
        finally:
            self._leave()

    def _execute[BodyT](
        self,
        request: HttpRequest,
        decoder: BodyDecoder[BodyT],
        cancel_token: CancellationToken | None,
    ) -> HttpResponse[BodyT]:
        token = CancellationToken.linked(self._root_token, cancel_token)
        attempt = 0
        while True:
            token.raise_if_cancelled()
            try:
                return self._attempt(request, decoder)
            except RequestCancelledError:
                raise
            except HttpClientError as exc:
                attempt += 1
                delay = self._retry_delay(exc, attempt)
                if delay is None:
                    if attempt > 1:
                        logger.warning(
                            "Giving up on %s %s after %d attempts: %s",
                            request.method,
                            request.url,
                            attempt,
                            exc,
                        )
                    raise
                logger.info(
                    "Retrying %s %s (retry %d) in %.2fs after: %s",
                    request.method,
                    request.url,
                    attempt,
                    delay,
                    exc,
                )
                token.wait(delay)

    @override
    def submit[BodyT](
        self,
        request: HttpRequest,
        decoder: BodyDecoder[BodyT],
        *,
        cancel_token: CancellationToken | None = None,
    ) -> Future[HttpResponse[BodyT]]:
        return self.submit_task(self._send_submitted, request, decoder, cancel_token)

    def submit_task[ResultT](
        self, fn: Callable[..., ResultT], /, *args: object, **kwargs: object
    ) -> Future[ResultT]:
        """Run ``fn`` on the client's worker pool."""
        self._ensure_accepting()
        try:
            return self._executor.submit(fn, *args, **kwargs)
        except RuntimeError as exc:
            raise ClientShutdownError() from exc

    def new_cancel_token(self) -> CancellationToken:
        """Return a token cancelled by a forced shutdown of this client."""
        return CancellationToken(self._root_token)

    @override
    def shutdown(self) -> None:
        """Stop accepting requests, wait for in-flight ones, then release the transport."""
        with self._lock:
            first_call = self._accepting
            self._accepting = False
        if first_call:
            logger.info("Shutting down HTTP client")
        self._executor.shutdown(wait=True)
        with self._idle:
            self._idle.wait_for(lambda: self._in_flight == 0)
        self._close_transport()

    @override
    def shutdown_now(self) -> None:
        """Stop accepting requests, cancel queued and in-flight ones, release the transport."""
        with self._lock:
            self._accepting = False
            first_call = not self._cancelled
            self._cancelled = True
        if first_call:
            logger.info("Forcing HTTP client shutdown")
            self._root_token.cancel("HTTP client was shut down")
        self._executor.shutdown(wait=False, cancel_futures=True)
        self._close_transport()

    def close(self) -> None:
        self.shutdown()

    def __enter__(self) -> ResilientHttpClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.shutdown()

    def _ensure_accepting(self) -> None:
        with self._lock:
            if not self._accepting:
                raise ClientShutdownError()

    def _enter(self, *, admitted: bool) -> None:
        with self._lock:
            if not admitted and not self._accepting:
                raise ClientShutdownError()
            self._in_flight += 1

    def _leave(self) -> None:
        with self._idle:
            self._in_flight -= 1
            if self._in_flight == 0:
                self._idle.notify_all()

    def _send_submitted[BodyT](
        self,
        request: HttpRequest,
        decoder: BodyDecoder[BodyT],
        cancel_token: CancellationToken | None,
    ) -> HttpResponse[BodyT]:
        # Accepted when submitted, so it still runs while shutdown drains the pool.
        self._enter(admitted=True)
        try:
            return self._execute(request, decoder, cancel_token)
        finally:
            self._leave()

    def _close_transport(self) -> None:
        with self._lock:
            if self._transport_closed:
                return
            self._transport_closed = True
        self.transport.close()

    def _retry_delay(self, error: HttpClientError, attempt: int) -> float | None:
        if self.retry_policy is None or not self.retry_predicate(error):
            return None
        return self.retry_policy.decide(attempt)

    def _next_counter(self) -> int:
        with self._lock:
            self._counter += 1
            return self._counter

    def _timeout_for(self, request: HttpRequest) -> tuple[float, float]:
        read_timeout = request.timeout_seconds or self.timeout_seconds
        return (self.connect_timeout_seconds, read_timeout)

    def _attempt[BodyT](
        self, request: HttpRequest, decoder: BodyDecoder[BodyT]
    ) -> HttpResponse[BodyT]:
        counter = self._next_counter()
        if not self.record_events:
            return self._exchange(request, decoder)
        handle = self._begin_event()
        try:
            response = self._exchange(request, decoder)
        except HttpClientError as exc:
            self._commit_event(handle, request, counter, error=exc)
            raise
        self._commit_event(handle, request, counter, status_code=response.status_code)
        return response

    def _exchange[BodyT](
        self, request: HttpRequest, decoder: BodyDecoder[BodyT]
    ) -> HttpResponse[BodyT]:
        try:
            raw = self.transport.send(request, timeout=self._timeout_for(request))
        except (requests.RequestException, OSError) as exc:
            raise translate_transport_error(request, exc) from exc
        try:
            body = decoder(raw)
        except Exception as exc:
            raise ResponseDecodeError(request.method, request.url, raw.status_code) from exc
        return HttpResponse(
            status_code=raw.status_code,
            body=body,
            request=request,
            headers=dict(raw.headers),
        )

    def _begin_event(self) -> EventHandle | None:
        try:
            return self.telemetry.begin_event()
        except Exception:
            logger.debug("Telemetry sink failed to begin an event", exc_info=True)
            return None

    def _commit_event(
        self,
        handle: EventHandle | None,
        request: HttpRequest,
        counter: int,
        *,
        status_code: int | None = None,
        error: BaseException | None = None,
    ) -> None:
        if handle is None:
            return
        event = HttpRequestEvent(
            method=request.method,
            host=request.host,
            path=request.path,
            outcome=RequestOutcome.FAILURE if error is not None else RequestOutcome.SUCCESS,
            duration_seconds=max(0.0, time.monotonic() - handle.started_monotonic),
            request_counter=counter,
            started_at=handle.started_at,
            status_code=status_code,
            exception=describe(find_ultimate_cause(error)) if error is not None else None,
        )
        try:
            self.telemetry.commit(handle, event)
        except Exception:
            logger.debug("Telemetry sink failed to commit an event", exc_info=True)


def build_http_client(
    *,
    session: requests.Session | None = None,
    retry_policy: RetryPolicy | None = None,
    retry_predicate: RetryPredicate | None = None,
    record_events: bool = True,
    telemetry: TelemetrySink | None = None,
    connect_timeout_seconds: float = DEFAULT_CONNECT_TIMEOUT_SECONDS,
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    max_workers: int = DEFAULT_MAX_WORKERS,
) -> ResilientHttpClient:
    return ResilientHttpClient(
        transport=RequestsTransport(session=session),
        retry_policy=retry_policy,
        retry_predicate=retry_predicate,
        record_events=record_events,
        telemetry=telemetry,
        connect_timeout_seconds=connect_timeout_seconds,
        timeout_seconds=timeout_seconds,
        max_workers=max_workers,
    )
