"""OAuth2 client-credentials support for the request engine.

One logical request runs as a bounded loop:

1. Stop with ``RefreshLoopDetected`` once the refresh depth reaches ``max_refresh_depth``.
2. Fetch a token when the store is empty or a refresh is forced; otherwise reuse the
   stored one without a network call.
3. Attach the token to a copy of the request and send it.
4. If the refresh predicate matches the response, force a refresh and go again with
   ``depth + 1``; otherwise return the response.

The token store is shared by every request of one client and is last-writer-wins:
concurrent refreshes may each overwrite it, costing at most one extra token request
per logical request. Each request carries the token it read or fetched forward locally.

Usage example:
    from resilient_http.infrastructure.decoders import of_string
    from resilient_http.infrastructure.http import build_http_client
    from resilient_http.infrastructure.oauth import (
        AccessTokenRequest,
        ClientCredentialsClient,
        refresh_on_status,
    )

    client = ClientCredentialsClient(
        http_client=build_http_client(),
        access_token_request=AccessTokenRequest(
            token_url="https://auth.example.com/token",
            client_id="my-client",
            client_secret="my-secret",
        ),
        refresh_predicate=refresh_on_status(401),
    )
    response = client.send(HttpRequest.get("https://api.example.com/orders"), of_string)
"""

from __future__ import annotations

import base64
import threading
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, override
from urllib.parse import urlencode

from ..exceptions import (
    AccessTokenNotFound,
    ClientShutdownError,
    ConfigurationError,
    RefreshLoopDetected,
)
from ..io_validation import IncomingDataError, parse_access_token_response
from ..observability.logging import get_logger
from ..protocols import BodyDecoder, HttpClient, RefreshPredicate, TokenStore
from ..types import HttpRequest, HttpResponse
from .decoders import of_string
from .resilience import CancellationToken

logger = get_logger("resilient_http.oauth")

MAX_REFRESH_DEPTH = 3
DEFAULT_AUTH_HEADER_NAME = "Authorization"
DEFAULT_AUTH_HEADER_TEMPLATE = "Bearer {token}"
ACCESS_TOKEN_FIELD = "access_token"
_TOKEN_PLACEHOLDER = "{token}"

type AccessTokenExtractor = Callable[[HttpResponse[str]], str]
type HeaderValueFormatter = Callable[[str], str]


def bearer_header_value(token: str) -> str:
    return f"Bearer {token}"


def header_value_from_template(template: str) -> HeaderValueFormatter:
    """Build a formatter substituting the token for ``{token}`` in ``template``."""
    if _TOKEN_PLACEHOLDER not in template:
        raise ConfigurationError(f"Header template must contain {_TOKEN_PLACEHOLDER}: {template!r}")

    def _format(token: str) -> str:
        return template.replace(_TOKEN_PLACEHOLDER, token)

    return _format


class AccessTokenStore(TokenStore):
    """Cached access token. Plain reference swap, no lock: the last writer wins."""

    def __init__(self, token: str | None = None) -> None:
        self._token = token

    @override
    def get(self) -> str | None:
        return self._token

    @override
    def set(self, token: str) -> None:
        self._token = token


@dataclass(frozen=True)
class AccessTokenRequest:
    """Client-credentials grant sent to the token endpoint."""

    token_url: str
    client_id: str
    client_secret: str
    scope: str | None = None

    def __post_init__(self) -> None:
        if not self.client_id:
            raise ConfigurationError("OAuth client id must not be empty.")
        if not self.client_secret:
            raise ConfigurationError("OAuth client secret must not be empty.")

    def build(self) -> HttpRequest:
        form = {"grant_type": "client_credentials"}
        if self.scope:
            form["scope"] = self.scope
        credentials = f"{self.client_id}:{self.client_secret}".encode()
        return HttpRequest.post(
            self.token_url,
            body=urlencode(form),
            headers=(
                ("Accept", "application/json"),
                ("Authorization", f"Basic {base64.b64encode(credentials).decode('ascii')}"),
                ("Content-Type", "application/x-www-form-urlencoded"),
            ),
        )

    def __call__(self) -> HttpRequest:
        return self.build()

    def __repr__(self) -> str:
        return (
            f"AccessTokenRequest(token_url={self.token_url!r}, client_id={self.client_id!r}, "
            f"client_secret='***', scope={self.scope!r})"
        )


def extract_access_token(response: HttpResponse[str]) -> str:
    """Read ``access_token`` from a token endpoint JSON body.

    Raises:
        AccessTokenNotFound: The body is not a JSON object, or the field is missing,
            null, empty or blank.
    """
    body = response.body if response.body is not None else ""
    try:
        payload = parse_access_token_response(body)
    except IncomingDataError as exc:
        raise AccessTokenNotFound.for_malformed_body(body) from exc
    token = payload.get(ACCESS_TOKEN_FIELD)
    if token is None or not token.strip():
        raise AccessTokenNotFound.for_missing_field(body, ACCESS_TOKEN_FIELD)
    return token


def refresh_on_status(*status_codes: int) -> RefreshPredicate:
    """Refresh when the response status is one of ``status_codes``."""
    if not status_codes:
        raise ConfigurationError("At least one status code is required.")
    wanted = frozenset(status_codes)

    def _matches(response: HttpResponse[Any]) -> bool:
        return response.status_code in wanted

    return _matches


def refresh_on_invalid_token() -> RefreshPredicate:
    """Refresh on a 401 whose ``WWW-Authenticate`` header reports ``invalid_token``."""

    def _matches(response: HttpResponse[Any]) -> bool:
        if response.status_code != 401:
            return False
        challenge = (response.header("WWW-Authenticate") or "").lower()
        return 'error="invalid_token"' in challenge or "error=invalid_token" in challenge

    return _matches


class ClientCredentialsClient(HttpClient):
    """HTTP client that authorises requests with a cached client-credentials token.

    ``token_client`` sends the token requests; it defaults to ``http_client`` so both
    share one transport, retry policy and telemetry sink.
    """

    def __init__(
        self,
        *,
        http_client: HttpClient,
        access_token_request: Callable[[], HttpRequest],
        refresh_predicate: RefreshPredicate,
        access_token_extractor: AccessTokenExtractor = extract_access_token,
        auth_header_name: str = DEFAULT_AUTH_HEADER_NAME,
        auth_header_value: HeaderValueFormatter = bearer_header_value,
        token_store: TokenStore | None = None,
        max_refresh_depth: int = MAX_REFRESH_DEPTH,
        token_client: HttpClient | None = None,
        max_workers: int = 8,
    ) -> None:
        if http_client is None:
            raise ConfigurationError("http_client is required.")
        if access_token_request is None or refresh_predicate is None:
            raise ConfigurationError("access_token_request and refresh_predicate are required.")
        if not auth_header_name or not auth_header_name.strip():
            raise ConfigurationError("Authorization header name must not be empty.")
        if max_refresh_depth < 1:
            raise ConfigurationError("max_refresh_depth must be at least 1.")
        if max_workers < 1:
            raise ConfigurationError("max_workers must be at least 1.")
        self.http_client = http_client
        self.token_client = token_client or http_client
        self.access_token_request = access_token_request
        self.refresh_predicate = refresh_predicate
        self.access_token_extractor = access_token_extractor
        self.auth_header_name = auth_header_name
        self.auth_header_value = auth_header_value
        self.token_store = token_store or AccessTokenStore()
        self.max_refresh_depth = max_refresh_depth
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="resilient-oauth"
        )
        self._root_token = CancellationToken()
        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._in_flight = 0
        self._accepting = True

    @override
    def send[BodyT](
        self,
        request: HttpRequest,
        decoder: BodyDecoder[BodyT],
        *,
        cancel_token: CancellationToken | None = None,
        force_refresh: bool = False,
    ) -> HttpResponse[BodyT]:
        """Send ``request`` with an access token, refreshing it when the predicate asks.

        Raises:
            RefreshLoopDetected: The refresh predicate matched ``max_refresh_depth``
                responses in a row.
            AccessTokenNotFound: The token response carried no usable token.
            TransportError: Any failure from the underlying client, unchanged.
        """
        self._enter(admitted=False)
        try:
            return self._send_with_refresh(request, decoder, cancel_token, force_refresh)
        finally:
            self._leave()

    def _send_with_refresh[BodyT](
        self,
        request: HttpRequest,
        decoder: BodyDecoder[BodyT],
        cancel_token: CancellationToken | None,
        force_refresh: bool,
    ) -> HttpResponse[BodyT]:
        token = CancellationToken.linked(self._root_token, cancel_token)
        depth = 0
        refresh = force_refresh
        while True:
            if depth >= self.max_refresh_depth:
                logger.warning(
                    "Refresh predicate matched %d times in a row for %s %s",
                    depth,
                    request.method,
                    request.url,
                )
                raise RefreshLoopDetected(depth)
            access_token = self.token_store.get()
            if refresh or access_token is None:
                access_token = self._fetch_token(token)
            authorised = request.with_header(
                self.auth_header_name, self.auth_header_value(access_token)
            )
            response = self.http_client.send(authorised, decoder, cancel_token=token)
            if not self.refresh_predicate(response):
                return response
            depth += 1
            refresh = True
            logger.info(
                "Refreshing access token for %s %s (depth %d, status %d)",
                request.method,
                request.url,
                depth,
                response.status_code,
            )

    @override
    def submit[BodyT](
        self,
        request: HttpRequest,
        decoder: BodyDecoder[BodyT],
        *,
        cancel_token: CancellationToken | None = None,
        force_refresh: bool = False,
    ) -> Future[HttpResponse[BodyT]]:
        self._ensure_accepting()
        try:
            return self._executor.submit(
                self._send_submitted, request, decoder, cancel_token, force_refresh
            )
        except RuntimeError as exc:
            raise ClientShutdownError() from exc

    def send_unauthorised[BodyT](
        self,
        request: HttpRequest,
        decoder: BodyDecoder[BodyT],
        *,
        cancel_token: CancellationToken | None = None,
    ) -> HttpResponse[BodyT]:
        """Send ``request`` as is, without a token or refresh handling."""
        self._enter(admitted=False)
        try:
            token = CancellationToken.linked(self._root_token, cancel_token)
            return self.http_client.send(request, decoder, cancel_token=token)
        finally:
            self._leave()

    def request_token(self, *, cancel_token: CancellationToken | None = None) -> str:
        """Fetch a new token, store it and return it."""
        self._enter(admitted=False)
        try:
            return self._fetch_token(CancellationToken.linked(self._root_token, cancel_token))
        finally:
            self._leave()

    @override
    def shutdown(self) -> None:
        with self._lock:
            self._accepting = False
        self._executor.shutdown(wait=True)
        with self._idle:
            self._idle.wait_for(lambda: self._in_flight == 0)
        self._shutdown_clients(lambda client: client.shutdown())

    @override
    def shutdown_now(self) -> None:
        with self._lock:
            self._accepting = False
        self._root_token.cancel("OAuth client was shut down")
        self._executor.shutdown(wait=False, cancel_futures=True)
        self._shutdown_clients(lambda client: client.shutdown_now())

    def close(self) -> None:
        self.shutdown()

    def __enter__(self) -> ClientCredentialsClient:
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
        force_refresh: bool,
    ) -> HttpResponse[BodyT]:
        self._enter(admitted=True)
        try:
            return self._send_with_refresh(request, decoder, cancel_token, force_refresh)
        finally:
            self._leave()

    def _shutdown_clients(self, stop: Callable[[HttpClient], None]) -> None:
        stop(self.http_client)
        if self.token_client is not self.http_client:
            stop(self.token_client)

    def _fetch_token(self, cancel_token: CancellationToken) -> str:
        response = self.token_client.send(
            self.access_token_request(), of_string, cancel_token=cancel_token
        )
        access_token = self.access_token_extractor(response)
        self.token_store.set(access_token)
        logger.info("Obtained a new access token (status %d)", response.status_code)
        return access_token


def build_client_credentials_client(
    *,
    http_client: HttpClient,
    token_url: str,
    client_id: str,
    client_secret: str,
    scope: str | None = None,
    refresh_statuses: tuple[int, ...] = (401,),
    auth_header_name: str = DEFAULT_AUTH_HEADER_NAME,
    auth_header_template: str = DEFAULT_AUTH_HEADER_TEMPLATE,
    max_refresh_depth: int = MAX_REFRESH_DEPTH,
    token_store: TokenStore | None = None,
    max_workers: int = 8,
) -> ClientCredentialsClient:
    return ClientCredentialsClient(
        http_client=http_client,
        access_token_request=AccessTokenRequest(
            token_url=token_url,
            client_id=client_id,
            client_secret=client_secret,
            scope=scope or None,
        ),
        refresh_predicate=refresh_on_status(*refresh_statuses),
        auth_header_name=auth_header_name,
        auth_header_value=header_value_from_template(auth_header_template),
        token_store=token_store,
        max_refresh_depth=max_refresh_depth,
        max_workers=max_workers,
    )
