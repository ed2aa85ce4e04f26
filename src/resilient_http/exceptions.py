"""Custom exceptions for resilient_http.

Every failure a caller can observe is one of these types. Wrapping always chains the
original error (``raise ... from exc``) so the cause chain stays inspectable with
``resilient_http.failures``.
"""

from __future__ import annotations


class HttpClientError(Exception):
    """Base exception for all client errors."""

    pass


class ConfigurationError(HttpClientError, ValueError):
    """Raised when construction-time arguments or configuration values are invalid."""

    pass


class ConfigFileNotFoundError(ConfigurationError):
    """Raised when a config file path does not exist."""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"Config file not found: {path}")


class ConfigFileParseError(ConfigurationError):
    """Raised when a config file is not valid TOML."""

    def __init__(self, path: str, details: str) -> None:
        self.path = path
        super().__init__(f"Config file {path} is not valid TOML: {details}")


class ConfigFileValidationError(ConfigurationError):
    """Raised when a config file does not match the expected schema."""

    def __init__(self, path: str, details: str) -> None:
        self.path = path
        super().__init__(f"Config file {path} failed validation: {details}")


class TransportError(HttpClientError):
    """Raised when the network exchange fails (connect, send or receive).

    Potentially retryable, depending on the configured retry predicate.
    """

    def __init__(self, method: str, url: str, details: str) -> None:
        self.method = method
        self.url = url
        super().__init__(f"{method} {url} failed: {details}")


class HttpTimeoutError(TransportError):
    """Raised when the exchange exceeds a configured deadline."""

    pass


class ConnectTimeoutError(HttpTimeoutError):
    """Raised when the connection could not be established in time."""

    pass


class RequestTimeoutError(HttpTimeoutError):
    """Raised when a connected server does not answer in time."""

    pass


class ResponseDecodeError(HttpClientError):
    """Raised when a body decoder cannot turn the raw response into its target type."""

    def __init__(self, method: str, url: str, status_code: int) -> None:
        self.method = method
        self.url = url
        self.status_code = status_code
        super().__init__(f"Could not decode response body of {method} {url} (status={status_code})")


class RequestCancelledError(HttpClientError):
    """Raised when a logical request is cancelled, explicitly or by a forced shutdown."""

    def __init__(self, message: str = "Request was cancelled") -> None:
        super().__init__(message)


class ClientShutdownError(HttpClientError):
    """Raised when a request is issued after the client was shut down."""

    def __init__(self) -> None:
        super().__init__("HTTP client has been shut down and no longer accepts requests.")


class AccessTokenNotFound(HttpClientError):
    """Raised when the token response does not yield a usable access token.

    This is a configuration or protocol error: it is never retried and does not count
    against the refresh loop depth.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)

    @classmethod
    def for_malformed_body(cls, body: str) -> AccessTokenNotFound:
        return cls(f"A JSON object body was expected in the access token response. Received: {body}")

    @classmethod
    def for_missing_field(cls, body: str, field: str) -> AccessTokenNotFound:
        return cls(f"Response: {body}. Expected a non-blank string at the field: {field}.")


class RefreshLoopDetected(HttpClientError):
    """Raised when the refresh predicate fires too many times in a row for one request.

    Usually a refresh predicate that is too broad, e.g. it matches a 401 returned by
    the protected backend instead of the one returned by the authentication gateway.
    """

    def __init__(self, depth: int) -> None:
        self.depth = depth
        super().__init__(
            f"The refresh predicate has been evaluated to true {depth} times in a row. "
            "It is probably asking for a new access token when it should not; check that it "
            "only matches responses from the component that validates tokens."
        )
