"""Bounded exponential-backoff retry for HTTP exchanges.

Shared by :class:`~authservices.tokens.acquirer.TokenAcquirer` and
:class:`~authservices.client.transport.AuthenticatingTransport`.  Transient
failures (connect errors, timeouts, dropped connections) are retried up to
``RequestConfig.max_retries`` times; when they persist they surface as
:class:`~authservices.exceptions.TransientNetworkError`.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

import httpx

from authservices.exceptions import TransientNetworkError
from authservices.models import RequestConfig
from authservices.output import debug

TRANSIENT_ERRORS: tuple[type[Exception], ...] = (
    httpx.TimeoutException,
    httpx.NetworkError,
    httpx.RemoteProtocolError,
)
"""Failures that may succeed on a later attempt."""

CONNECT_ERRORS: tuple[type[Exception], ...] = (httpx.ConnectError, httpx.ConnectTimeout)
"""Failures that happen before any byte of the request reached the server."""

Sleep = Callable[[float], Awaitable[None]]


def backoff_delay(config: RequestConfig, attempt: int) -> float:
    """Delay before retry number ``attempt + 1``: ``base * 2**attempt``, capped."""
    return min(config.backoff_max, config.backoff_base * (2 ** attempt))


async def send_with_retry(
    send: Callable[[], Awaitable[httpx.Response]],
    config: RequestConfig,
    *,
    description: str,
    retry_on: tuple[type[Exception], ...] = TRANSIENT_ERRORS,
    retry_server_errors: bool = False,
    sleep: Sleep = asyncio.sleep,
) -> httpx.Response:
    """Call *send* until it returns a response or the retry budget is spent.

    Args:
        send: Zero-argument coroutine factory performing one attempt.
        config: Supplies ``max_retries`` and the backoff parameters.
        description: Short label used in diagnostics and error messages.
        retry_on: Exception types that trigger a retry.
        retry_server_errors: Also retry 5xx responses.  The last 5xx
            response is returned once retries are exhausted.
        sleep: Awaitable sleep, injectable for tests.

    Returns:
        The first response that is not retried.

    Raises:
        TransientNetworkError: If every attempt raised one of *retry_on*.
    """
    max_retries = config.max_retries

    for attempt in range(max_retries + 1):
        try:
            response = await send()
        except retry_on as exc:
            if attempt >= max_retries:
                raise TransientNetworkError(
                    f"{description} failed after {max_retries + 1} attempts: "
                    f"{type(exc).__name__}: {exc}"
                ) from exc
            delay = backoff_delay(config, attempt)
            debug(
                f"{description}: {type(exc).__name__}, retrying in {delay}s "
                f"(attempt {attempt + 1}/{max_retries})"
            )
            await sleep(delay)
            continue

        if retry_server_errors and response.status_code >= 500 and attempt < max_retries:
            await response.aclose()
            delay = backoff_delay(config, attempt)
            debug(
                f"{description}: server error {response.status_code}, retrying in {delay}s "
                f"(attempt {attempt + 1}/{max_retries})"
            )
            await sleep(delay)
            continue

        return response

    raise AssertionError("unreachable")  # pragma: no cover
