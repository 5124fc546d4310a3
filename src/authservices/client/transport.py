"""Bearer-token injecting transport for :mod:`httpx`.

:class:`AuthenticatingTransport` wraps another async transport and binds it
to one named client:

* Before each request it asks the :class:`~authservices.tokens.TokenCache`
  for a token and sets ``Authorization: Bearer <token>``.
* A 401 answer invalidates that token, a fresh one is acquired, and the
  request is sent once more.  A second 401 raises
  :class:`~authservices.exceptions.AuthenticationFailure`.
* Every other status, 403 and 404 included, is returned untouched for the
  caller to interpret.

Connection failures are retried with bounded backoff: for every method when
the connection could not be established, and additionally on read errors
and timeouts for idempotent methods.  Failures that persist surface as
:class:`~authservices.exceptions.TransientNetworkError`.

Example::

    async with create_authenticated_client("admin", cache, "http://localhost:8080") as http:
        response = await http.get("/admin/realms/Test")
"""

from __future__ import annotations

import asyncio
from typing import Optional

import httpx

from authservices.exceptions import AuthenticationFailure, TransientNetworkError
from authservices.models import CachedToken, RequestConfig
from authservices.output import debug
from authservices.retry import CONNECT_ERRORS, TRANSIENT_ERRORS, Sleep, send_with_retry
from authservices.tokens.cache import TokenCache

IDEMPOTENT_METHODS = frozenset({"GET", "HEAD", "OPTIONS", "PUT", "DELETE"})


class AuthenticatingTransport(httpx.AsyncBaseTransport):
    """Async transport that authenticates every request as one named client.

    Args:
        name: The named client whose token is attached.
        cache: Token cache shared with other transports and callers.
        transport: The transport that actually performs I/O.  Defaults to
            :class:`httpx.AsyncHTTPTransport`.
        request: Retry settings for transport-level failures.
        sleep: Awaitable sleep used between retries.
    """

    def __init__(
        self,
        name: str,
        cache: TokenCache,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        request: Optional[RequestConfig] = None,
        *,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._name = name
        self._cache = cache
        self._transport = transport or httpx.AsyncHTTPTransport()
        self._request = request or RequestConfig()
        self._sleep = sleep

    @property
    def client_name(self) -> str:
        return self._name

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        # Buffer the body so the request can be replayed after a 401.
        await request.aread()

        token = await self._cache.get_token(self._name)
        response = await self._send(request, token)
        if response.status_code != 401:
            return response

        await response.aclose()
        debug(
            f"{request.method} {request.url} rejected with 401 for client "
            f"'{self._name}', refreshing token"
        )
        self._cache.invalidate(self._name, token.access_token)
        token = await self._cache.get_token(self._name)

        response = await self._send(request, token)
        if response.status_code == 401:
            await response.aclose()
            raise AuthenticationFailure(
                f"{request.method} {request.url} was rejected with 401 for client "
                f"'{self._name}' after refreshing the token",
                client_name=self._name,
                status_code=401,
            )
        return response

    async def aclose(self) -> None:
        await self._transport.aclose()

    async def _send(self, request: httpx.Request, token: CachedToken) -> httpx.Response:
        request.headers["Authorization"] = f"Bearer {token.access_token}"
        retry_on = TRANSIENT_ERRORS if request.method in IDEMPOTENT_METHODS else CONNECT_ERRORS
        description = f"{request.method} {request.url}"
        try:
            return await send_with_retry(
                lambda: self._transport.handle_async_request(request),
                self._request,
                description=description,
                retry_on=retry_on,
                sleep=self._sleep,
            )
        except TRANSIENT_ERRORS as exc:
            # Not retried for this method, but still a transient failure.
            raise TransientNetworkError(
                f"{description} failed: {type(exc).__name__}: {exc}"
            ) from exc


def create_authenticated_client(
    name: str,
    cache: TokenCache,
    base_url: str = "",
    request: Optional[RequestConfig] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """Build an :class:`httpx.AsyncClient` that authenticates as *name*.

    Args:
        name: Named client registered in the cache's registry.
        cache: Token cache to draw tokens from.
        base_url: Base URL for relative request paths.
        request: Timeout and retry settings.
        transport: Inner transport; defaults to a real HTTP transport.

    Returns:
        A client to be used as an async context manager or closed with
        ``aclose()``.
    """
    request = request or RequestConfig()
    return httpx.AsyncClient(
        base_url=base_url,
        timeout=request.timeout,
        transport=AuthenticatingTransport(name, cache, transport, request),
    )
