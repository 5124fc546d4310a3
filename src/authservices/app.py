"""Typer application and CLI entry point for authservices.

Commands:

* ``clients`` -- list the named clients found in the configuration.
* ``token NAME`` -- acquire a token for a named client and print its metadata.
* ``get NAME PATH`` -- authenticated GET as a named client.
* ``bootstrap BASE_URL`` -- provision an administrative API client on a
  fresh identity-provider instance.

:func:`main` is the console-script entry point declared in
``pyproject.toml``.  Errors from the library are reported on stderr and
mapped to the exit codes in :mod:`authservices.exit_codes`; anything
unexpected is written to a crash log under the data directory.
"""

from __future__ import annotations

import asyncio
import signal
import sys
import traceback
from collections.abc import Callable, Coroutine
from datetime import datetime, timezone
from typing import Any, Optional, TypeVar

import httpx
import typer

from authservices import __version__
from authservices.config import build_registry, create_token_cache, load_settings
from authservices.exceptions import AuthServicesError, InvalidUsageError
from authservices.exit_codes import EXIT_GENERIC_FAILURE
from authservices.models import Settings
from authservices.output import (
    OutputFormat,
    OutputManager,
    error,
    format_response,
    info,
    print_table,
    set_output,
    success,
    suggest,
)

T = TypeVar("T")

app = typer.Typer(
    name="authservices",
    help="Named client-credentials tokens for identity-provider APIs.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"authservices {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    config: Optional[str] = typer.Option(
        None, "--config", "-c", help="Path to the settings file."
    ),
    json_output: bool = typer.Option(False, "--json", help="JSON output format."),
    plain_output: bool = typer.Option(False, "--plain", help="Plain text output."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable color output."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress non-essential output."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug output."),
) -> None:
    """Install the output manager and remember shared options in ``ctx.obj``."""
    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    set_output(OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose))

    ctx.ensure_object(dict)
    ctx.obj["config"] = config


# ------------------------------------------------------------------ #
# Commands
# ------------------------------------------------------------------ #


@app.command("clients")
def clients_command(ctx: typer.Context) -> None:
    """List the configured named clients (secrets are never shown)."""
    settings = _guarded(lambda: load_settings(ctx.obj["config"]))
    registry = _guarded(lambda: build_registry(settings))
    rows = [
        [name, config.client_id, config.token_endpoint]
        for name, config in sorted(registry.items())
    ]
    print_table(["name", "client_id", "token_endpoint"], rows, title="Clients")


@app.command("token")
def token_command(
    ctx: typer.Context,
    name: str = typer.Argument(help="Named client to acquire a token for."),
    show_token: bool = typer.Option(
        False, "--show-token", help="Include the access token itself in the output."
    ),
) -> None:
    """Acquire a client-credentials token and print its metadata."""
    settings = _guarded(lambda: load_settings(ctx.obj["config"]))
    registry = _guarded(lambda: build_registry(settings))

    async def _acquire() -> Any:
        async with create_token_cache(settings, registry) as cache:
            return await cache.get_token(name)

    token = _run(_acquire())
    data: dict[str, Any] = {
        "client": name,
        "issued_at": _iso(token.issued_at),
        "expires_at": _iso(token.expires_at),
        "expires_in": int(token.lifetime),
    }
    if show_token:
        data["access_token"] = token.access_token
    format_response(data)


@app.command("get")
def get_command(
    ctx: typer.Context,
    name: str = typer.Argument(help="Named client to authenticate as."),
    path: str = typer.Argument(help="Request path, e.g. /admin/realms/Test."),
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        help="Identity provider address (defaults to the client's auth-server-url).",
    ),
) -> None:
    """Send an authenticated GET request and print the response body."""
    from authservices.client import create_authenticated_client
    from authservices.sdk import raise_for_api_error

    settings = _guarded(lambda: load_settings(ctx.obj["config"]))
    registry = _guarded(lambda: build_registry(settings))
    resolved_base = _guarded(lambda: _resolve_base_url(settings, name, base_url))

    async def _get() -> httpx.Response:
        async with create_token_cache(settings, registry) as cache:
            async with create_authenticated_client(
                name, cache, resolved_base, settings.request
            ) as http:
                response = await http.get(path)
                raise_for_api_error(response)
                return response

    response = _run(_get())
    body: Any = response.text
    if "json" in response.headers.get("content-type", ""):
        try:
            body = response.json()
        except ValueError:
            pass
    format_response(body)


@app.command("bootstrap")
def bootstrap_command(
    ctx: typer.Context,
    base_url: str = typer.Argument(help="Root address of the identity-provider instance."),
    client_name: str = typer.Option(
        "admin", "--name", help="Name to give the provisioned client in the printed entry."
    ),
    wait: bool = typer.Option(True, "--wait/--no-wait", help="Wait for the instance first."),
    attempts: int = typer.Option(30, "--attempts", min=1, help="Readiness polls before giving up."),
) -> None:
    """Provision an administrative API client on a fresh instance."""
    from authservices.provisioning import ProvisioningOrchestrator

    settings = _guarded(lambda: load_settings(ctx.obj["config"]))

    async def _bootstrap() -> dict[str, Any]:
        async with httpx.AsyncClient(base_url=base_url, timeout=settings.request.timeout) as http:
            orchestrator = ProvisioningOrchestrator(http, settings.bootstrap)
            if wait:
                info(f"Waiting for instance at {base_url}")
                await orchestrator.wait_for_instance(attempts=attempts)
            info(f"Provisioning client '{settings.bootstrap.client_id}'")
            context = await orchestrator.run()
            return {
                "client_internal_id": context.created_client_internal_id,
                "service_account_user_id": context.service_account_user_id,
                "role_id": context.admin_role_id,
                "completed_steps": [step.value for step in context.completed_steps],
                "client": orchestrator.client_config(client_name).model_dump(),
            }

    result = _run(_bootstrap())
    success(f"Provisioned client '{settings.bootstrap.client_id}' at {base_url}")
    format_response(result)
    suggest("Add the 'client' entry to the 'clients' section of your config.")


# ------------------------------------------------------------------ #
# Helpers
# ------------------------------------------------------------------ #


def _resolve_base_url(settings: Settings, name: str, base_url: Optional[str]) -> str:
    if base_url:
        return base_url
    options = settings.keycloak.get(name)
    if options is not None:
        return options.auth_server_url
    raise InvalidUsageError(
        f"Client '{name}' has no auth-server-url in the config; pass --base-url"
    )


def _guarded(func: Callable[[], T]) -> T:
    """Call *func*, converting library errors into a clean exit."""
    try:
        return func()
    except AuthServicesError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None


def _run(coro: Coroutine[Any, Any, T]) -> T:
    """Run *coro* on a fresh event loop, converting library errors into a clean exit."""
    try:
        return asyncio.run(coro)
    except AuthServicesError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None


def _iso(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat()


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log() -> str:
    """Write the current traceback to the data directory and return its path."""
    from authservices.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(traceback.format_exc())
    return str(log_path)


def main() -> None:
    """CLI entry point invoked by the ``authservices`` console script."""
    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except Exception as exc:
        if isinstance(exc, AuthServicesError):
            error(str(exc))
            sys.exit(exc.exit_code)
        log_path = _write_crash_log()
        error(f"Unexpected error. Debug log: {log_path}")
        sys.exit(EXIT_GENERIC_FAILURE)
