"""Shared plumbing for the admin and protection API clients.

Both SDK clients sit on top of an :class:`httpx.AsyncClient` built by
:func:`~authservices.client.create_authenticated_client`, so authentication
and token refresh are already handled.  What remains here is turning
non-success statuses into typed errors, which the transport deliberately
leaves to this layer.
"""

from __future__ import annotations

from typing import Any

import httpx

from authservices.exceptions import ApiError, NotFoundError, ServerError


class KeycloakApiClient:
    """Base class for SDK clients bound to an authenticated HTTP client.

    Args:
        http: Authenticated client whose ``base_url`` is the identity
            provider's root address.
    """

    def __init__(self, http: httpx.AsyncClient) -> None:
        self._http = http

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        response = await self._http.request(method, path, **kwargs)
        raise_for_api_error(response)
        return response


def raise_for_api_error(response: httpx.Response) -> None:
    """Raise a typed :class:`~authservices.exceptions.ApiError` for error statuses.

    Raises:
        NotFoundError: On 404.
        ServerError: On 5xx.
        ApiError: On any other status >= 400.
    """
    status = response.status_code
    if status < 400:
        return

    try:
        detail = response.json()
        if isinstance(detail, dict):
            msg = (
                detail.get("errorMessage")
                or detail.get("error_description")
                or detail.get("error")
                or ""
            )
        else:
            msg = str(detail)
    except ValueError:
        msg = response.text[:200] if response.text else ""

    request = response.request
    prefix = f"{request.method} {request.url.path}: HTTP {status}"
    full_msg = f"{prefix}: {msg}" if msg else prefix

    if status == 404:
        raise NotFoundError(full_msg, status_code=status)
    if status >= 500:
        raise ServerError(full_msg, status_code=status)
    raise ApiError(full_msg, status_code=status)
