"""Client-credentials token acquisition.

:class:`TokenAcquirer` performs the OAuth2 client-credentials grant
(:rfc:`6749` section 4.4) for a named client: it POSTs the client id and
secret, form-encoded, to the client's token endpoint and turns the JSON
answer into a :class:`~authservices.models.CachedToken`.

Connection failures, timeouts, and 5xx answers are retried with bounded
exponential backoff.  A 4xx answer is final and surfaces immediately as
:class:`~authservices.exceptions.AuthenticationFailure`.

The acquirer never touches the cache; deduplication of concurrent requests
and storage are the job of :class:`~authservices.tokens.cache.TokenCache`.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from typing import Any, Optional

import httpx

from authservices.exceptions import AuthenticationFailure
from authservices.models import CachedToken, RequestConfig, TokenResponse
from authservices.output import debug
from authservices.registry import ClientRegistry
from authservices.retry import Sleep, send_with_retry

Clock = Callable[[], float]


def parse_token_response(
    response: httpx.Response,
    client_name: Optional[str] = None,
) -> TokenResponse:
    """Validate a token endpoint response and return its parsed body.

    Args:
        response: The HTTP response from the token endpoint.
        client_name: Named client the request was made for, recorded on the
            raised error.

    Returns:
        The parsed :class:`~authservices.models.TokenResponse`.

    Raises:
        AuthenticationFailure: On a non-2xx status, a body that is not JSON,
            or JSON without a usable ``access_token``.
    """
    label = f"'{client_name}'" if client_name else "password grant"
    status = response.status_code
    if not response.is_success:
        raise AuthenticationFailure(
            f"Token request for {label} failed with status {status}: {_error_detail(response)}",
            client_name=client_name,
            status_code=status,
        )
    try:
        payload: Any = response.json()
        return TokenResponse.model_validate(payload)
    except ValueError as exc:
        raise AuthenticationFailure(
            f"Token response for {label} is malformed: {exc}",
            client_name=client_name,
            status_code=status,
        ) from exc


def _error_detail(response: httpx.Response) -> str:
    """Extract the OAuth2 ``error_description`` / ``error`` or a text excerpt."""
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict):
        return str(body.get("error_description") or body.get("error") or body)[:200]
    return str(body)[:200]


class TokenAcquirer:
    """Performs client-credentials grants for the clients in a registry.

    Args:
        registry: Source of per-name client configuration.
        request: Timeout and retry settings.
        http_client: Client used for token requests.  When omitted, one is
            created on first use and closed by :meth:`aclose`.
        clock: Returns the current time in seconds; ``issued_at`` and
            ``expires_at`` are measured on it.
        sleep: Awaitable sleep used between retries.

    Example::

        acquirer = TokenAcquirer(registry)
        token = await acquirer.acquire("admin")
        await acquirer.aclose()
    """

    def __init__(
        self,
        registry: ClientRegistry,
        request: Optional[RequestConfig] = None,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        clock: Clock = time.time,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._registry = registry
        self._request = request or RequestConfig()
        self._client = http_client
        self._owns_client = http_client is None
        self._clock = clock
        self._sleep = sleep

    @property
    def registry(self) -> ClientRegistry:
        return self._registry

    @property
    def clock(self) -> Clock:
        return self._clock

    async def acquire(self, name: str) -> CachedToken:
        """Request a new access token for the client registered as *name*.

        Returns:
            A fresh :class:`~authservices.models.CachedToken`.  When the
            endpoint omits ``expires_in`` the token is returned already
            expired (``expires_at == issued_at``) so it is never served from
            a cache.

        Raises:
            ConfigError: If *name* is not registered.
            AuthenticationFailure: If the endpoint rejects the request or
                answers with a malformed body.
            TransientNetworkError: If network failures persist after all
                retries.
        """
        config = self._registry.resolve(name)
        data: dict[str, str] = {
            "grant_type": "client_credentials",
            "client_id": config.client_id,
            "client_secret": config.client_secret,
        }
        if config.scope:
            data["scope"] = config.scope

        client = self._get_client()
        debug(f"Requesting token for client '{name}' from {config.token_endpoint}")

        response = await send_with_retry(
            lambda: client.post(
                config.token_endpoint,
                data=data,
                headers={"Accept": "application/json"},
            ),
            self._request,
            description=f"Token request for '{name}'",
            retry_server_errors=True,
            sleep=self._sleep,
        )
        issued_at = self._clock()
        parsed = parse_token_response(response, name)

        if parsed.expires_in is None:
            debug(f"Token for client '{name}' has no expires_in; it will not be cached")
            expires_at = issued_at
        else:
            expires_at = issued_at + parsed.expires_in

        return CachedToken(
            access_token=parsed.access_token,
            issued_at=issued_at,
            expires_at=expires_at,
        )

    async def aclose(self) -> None:
        """Close the HTTP client if this acquirer created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._request.timeout)
        return self._client
