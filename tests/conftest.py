"""Shared test fixtures for authservices.

Provides a controllable clock, token endpoint handlers for
:class:`httpx.MockTransport`, isolated config environments, and output
state management.  These fixtures are automatically discovered by pytest
and available to all test modules without explicit imports.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path
from typing import Any, Optional
from urllib.parse import parse_qs

import httpx
import pytest

from authservices.models import ClientCredentialsConfig
from authservices.output import OutputFormat, OutputManager, reset_output, set_output
from authservices.registry import ClientRegistry

TOKEN_ENDPOINT = "https://idp.example.com/realms/Test/protocol/openid-connect/token"


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time; CliRunner swaps those streams per invocation.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Time
# ---------------------------------------------------------------------------


class FakeClock:
    """Manually advanced clock; call it to read the current time."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


async def no_sleep(delay: float) -> None:
    """Stand-in for asyncio.sleep that records nothing and returns at once."""
    return None


# ---------------------------------------------------------------------------
# Clients and token endpoint
# ---------------------------------------------------------------------------


def make_client_config(
    name: str = "admin",
    client_id: str = "admin-api",
    client_secret: str = "s3cret",
    token_endpoint: str = TOKEN_ENDPOINT,
    scope: Optional[str] = None,
) -> ClientCredentialsConfig:
    return ClientCredentialsConfig(
        name=name,
        client_id=client_id,
        client_secret=client_secret,
        token_endpoint=token_endpoint,
        scope=scope,
    )


@pytest.fixture
def registry() -> ClientRegistry:
    """Two named clients sharing one token endpoint."""
    return ClientRegistry(
        [
            make_client_config("admin", "admin-api", "admin-secret"),
            make_client_config("protection", "resource-server", "protection-secret"),
        ]
    )


class TokenEndpoint:
    """Scripted token endpoint for :class:`httpx.MockTransport`.

    Each grant answers with ``T<n>`` (``n`` counting from 1) and the
    configured ``expires_in``.  ``responses`` may queue explicit answers
    (an :class:`httpx.Response` or an exception to raise) that are used
    before falling back to the default.

    Attributes:
        requests: Parsed form bodies of every request received.
    """

    def __init__(self, expires_in: Optional[float] = 300) -> None:
        self.expires_in = expires_in
        self.requests: list[dict[str, str]] = []
        self.responses: list[Any] = []
        self._issued = 0

    @property
    def calls(self) -> int:
        return len(self.requests)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        form = {k: v[0] for k, v in parse_qs(request.content.decode()).items()}
        self.requests.append(form)
        if self.responses:
            queued = self.responses.pop(0)
            if isinstance(queued, Exception):
                raise queued
            return queued
        self._issued += 1
        body: dict[str, Any] = {"access_token": f"T{self._issued}", "token_type": "Bearer"}
        if self.expires_in is not None:
            body["expires_in"] = self.expires_in
        return httpx.Response(200, json=body)


@pytest.fixture
def token_endpoint() -> TokenEndpoint:
    return TokenEndpoint()


def mock_client(handler: Callable[[httpx.Request], Any]) -> httpx.AsyncClient:
    """An AsyncClient whose requests are answered by *handler*."""
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Points the XDG directories at subdirectories of tmp_path, clears
    ``AUTHSERVICES_CONFIG``, and changes the working directory to tmp_path.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setattr("authservices.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "cache"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.delenv("AUTHSERVICES_CONFIG", raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


def write_settings(path: Path, data: dict[str, Any]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")
    return path


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True, no_color=True)
    set_output(output)
    yield output
    reset_output()


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()
