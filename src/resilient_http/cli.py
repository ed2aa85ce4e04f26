"""CLI for the resilient OAuth HTTP client.

Commands:
- fetch: Send one request, optionally authorised with a client-credentials token
- token: Request an access token and print it masked
- retry-schedule: Print the delays the configured retry policy produces
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Annotated, Protocol

import typer
from rich import print as rprint
from rich.markup import escape

from .config import HttpClientConfig
from .config_file import load_client_config_file
from .exceptions import ConfigurationError, HttpClientError
from .failures import classify
from .infrastructure.decoders import of_string
from .infrastructure.oauth import ClientCredentialsClient
from .infrastructure.resilience import RetryPolicy
from .observability.logging import mask_secret
from .protocols import HttpClient
from .types import HttpRequest, HttpResponse


class DependenciesBuilder(Protocol):
    """Protocol for constructing CLI dependencies."""

    def __call__(self, *, config: HttpClientConfig, build_clients: bool) -> CliDependencies:
        """Build dependencies for CLI commands."""
        ...


@dataclass(frozen=True)
class CliDependencies:
    """Concrete dependencies required by the CLI."""

    http_client: HttpClient | None
    oauth_client: ClientCredentialsClient | None
    retry_policy: RetryPolicy | None

    def shutdown(self) -> None:
        if self.oauth_client is not None:
            self.oauth_client.shutdown()
        if self.http_client is not None:
            self.http_client.shutdown()


@dataclass(frozen=True)
class CliContext:
    """Runtime CLI context for a single command invocation."""

    config: HttpClientConfig
    deps_builder: DependenciesBuilder

    def build_dependencies(
        self, *, build_clients: bool, config: HttpClientConfig | None = None
    ) -> CliDependencies:
        """Return dependencies using the configured builder."""
        return self.deps_builder(config=config or self.config, build_clients=build_clients)


class CliContextNotInitialisedError(typer.BadParameter):
    """Raised when CLI context is missing."""

    def __init__(self) -> None:
        super().__init__("CLI context is not initialised. Use the resilient-http entry point.")


class InvalidConfigError(typer.BadParameter):
    """Raised when the environment or the --config file is invalid."""

    def __init__(self, details: str) -> None:
        super().__init__(f"Invalid configuration: {details}")


class OAuthNotConfiguredError(typer.BadParameter):
    """Raised when an OAuth command runs without client credentials."""

    def __init__(self) -> None:
        super().__init__(
            "OAuth is not configured. Set OAUTH_TOKEN_URL, OAUTH_CLIENT_ID and "
            "OAUTH_CLIENT_SECRET or the [oauth] section of the config file."
        )


class HeaderOptionError(typer.BadParameter):
    """Raised when a --header value is not NAME:VALUE."""

    def __init__(self, value: str) -> None:
        super().__init__(f"Headers must be given as NAME:VALUE, got {value!r}.")


def _get_context(ctx: typer.Context) -> CliContext:
    if not isinstance(ctx.obj, CliContext):
        raise CliContextNotInitialisedError()
    return ctx.obj


def _parse_headers(values: list[str] | None) -> list[tuple[str, str]]:
    headers: list[tuple[str, str]] = []
    for value in values or []:
        name, separator, header_value = value.partition(":")
        if not separator or not name.strip():
            raise HeaderOptionError(value)
        headers.append((name.strip(), header_value.strip()))
    return headers


def _require_oauth(deps: CliDependencies) -> ClientCredentialsClient:
    if deps.oauth_client is None:
        deps.shutdown()
        raise OAuthNotConfiguredError()
    return deps.oauth_client


def _report_failure(exc: HttpClientError) -> None:
    rprint(f"[red]✗ Request failed:[/red] {escape(str(exc))}")
    kinds = classify(exc)
    if kinds:
        rprint(f"  Failure kinds: {', '.join(sorted(kinds))}")


def _print_response(response: HttpResponse[str], *, show_headers: bool) -> None:
    colour = "green" if response.ok else "yellow"
    request = response.request
    rprint(f"[{colour}]{response.status_code}[/{colour}] {request.method} {escape(request.url)}")
    if show_headers:
        for name, value in response.headers.items():
            rprint(f"  {name}: {escape(value)}")
    if response.body:
        rprint(escape(response.body))


def create_app(deps_builder: DependenciesBuilder) -> typer.Typer:
    """Create a Typer app wired with the provided dependencies builder."""
    app = typer.Typer(
        add_completion=False,
        help="HTTP client with classified retries and OAuth2 client-credentials support",
    )

    @app.callback()
    def main(
        ctx: typer.Context,
        config_path: Annotated[
            Path | None,
            typer.Option("--config", "-c", help="TOML config file overriding the environment"),
        ] = None,
    ) -> None:
        """Initialise CLI context."""
        try:
            config = HttpClientConfig.from_env()
            if config_path is not None:
                config = config.with_file_overrides(load_client_config_file(path=config_path))
        except ValueError as exc:
            raise InvalidConfigError(str(exc)) from exc
        ctx.obj = CliContext(config=config, deps_builder=deps_builder)

    @app.command()
    def fetch(
        ctx: typer.Context,
        url: Annotated[str, typer.Argument(help="Absolute http(s) URL")],
        method: Annotated[str, typer.Option("--method", "-X", help="HTTP method")] = "GET",
        header: Annotated[
            list[str] | None,
            typer.Option("--header", "-H", help="Request header as NAME:VALUE (repeatable)"),
        ] = None,
        data: Annotated[str | None, typer.Option("--data", "-d", help="Request body")] = None,
        oauth: Annotated[
            bool, typer.Option("--oauth", help="Authorise with a client-credentials token")
        ] = False,
        force_refresh: Annotated[
            bool, typer.Option("--force-refresh", help="Fetch a new token before sending")
        ] = False,
        retries: Annotated[
            int | None, typer.Option("--retries", min=0, help="Maximum number of retries")
        ] = None,
        timeout: Annotated[
            float | None, typer.Option("--timeout", min=0.001, help="Read timeout in seconds")
        ] = None,
        log_events: Annotated[
            bool, typer.Option("--log-events", help="Log one telemetry line per attempt")
        ] = False,
        show_headers: Annotated[
            bool, typer.Option("--show-headers", "-i", help="Print response headers")
        ] = False,
    ) -> None:
        """Send one HTTP request and print the response."""
        state = _get_context(ctx)
        config = state.config.with_overrides(
            timeout_seconds=timeout,
            max_retries=retries,
            log_events=True if log_events else None,
        )
        headers = _parse_headers(header)
        deps = state.build_dependencies(build_clients=True, config=config)
        try:
            oauth_client = _require_oauth(deps) if oauth or force_refresh else None
            request = HttpRequest.build(method, url, headers=headers, body=data)
            if oauth_client is not None:
                response = oauth_client.send(request, of_string, force_refresh=force_refresh)
            elif deps.http_client is not None:
                response = deps.http_client.send(request, of_string)
            else:
                raise ConfigurationError("No HTTP client was configured.")
        except HttpClientError as exc:
            _report_failure(exc)
            raise typer.Exit(code=1) from exc
        finally:
            deps.shutdown()
        _print_response(response, show_headers=show_headers)

    @app.command()
    def token(ctx: typer.Context) -> None:
        """Request a client-credentials access token and print it masked."""
        state = _get_context(ctx)
        deps = state.build_dependencies(build_clients=True)
        oauth_client = _require_oauth(deps)
        try:
            access_token = oauth_client.request_token()
        except HttpClientError as exc:
            _report_failure(exc)
            raise typer.Exit(code=1) from exc
        finally:
            deps.shutdown()
        rprint(f"[green]✓ Access token:[/green] {mask_secret(access_token)}")

    @app.command(name="retry-schedule")
    def retry_schedule(
        ctx: typer.Context,
        retries: Annotated[
            int | None, typer.Option("--retries", min=0, help="Maximum number of retries")
        ] = None,
        backoff: Annotated[
            float | None, typer.Option("--backoff", min=0.0, help="Incremental backoff base")
        ] = None,
        cap: Annotated[
            float | None, typer.Option("--cap", min=0.0, help="Maximum delay in seconds")
        ] = None,
    ) -> None:
        """Print the delay before each retry under the configured policy."""
        state = _get_context(ctx)
        config = state.config.with_overrides(
            max_retries=retries, backoff_seconds=backoff, backoff_max_seconds=cap
        )
        deps = state.build_dependencies(build_clients=False, config=config)
        if deps.retry_policy is None:
            rprint("[yellow]Retries are disabled (max retries is 0).[/yellow]")
            return
        schedule = deps.retry_policy.simulate(config.max_retries + 1)
        for decision in schedule:
            rprint(
                f"  retry {decision.attempt}: wait {decision.delay_seconds:.2f}s "
                f"(total {decision.cumulative_delay_seconds:.2f}s)"
            )
        rprint(f"[green]✓ {len(schedule)} retries, {len(schedule) + 1} attempts at most[/green]")

    return app
