"""Typed wrappers around the identity provider's admin and protection APIs.

- :class:`KeycloakAdminClient` -- realms and groups.
- :class:`KeycloakProtectionClient` -- authorization-services resources.

Both expect an :class:`httpx.AsyncClient` from
:func:`~authservices.client.create_authenticated_client` and raise
:class:`~authservices.exceptions.ApiError` subclasses for error statuses.
"""

from authservices.sdk.admin import KeycloakAdminClient
from authservices.sdk.base import KeycloakApiClient, raise_for_api_error
from authservices.sdk.protection import KeycloakProtectionClient

__all__ = [
    "KeycloakAdminClient",
    "KeycloakApiClient",
    "KeycloakProtectionClient",
    "raise_for_api_error",
]
