"""Keycloak protection API client (authorization-services resource sets)."""

from __future__ import annotations

from authservices.models import ResourceRepresentation
from authservices.sdk.base import KeycloakApiClient


class KeycloakProtectionClient(KeycloakApiClient):
    """Reads the resources a resource server has registered in a realm.

    The HTTP client must authenticate as the resource server itself (the
    ``protection`` named client in a typical configuration).
    """

    async def get_resource_ids(self, realm: str) -> list[str]:
        response = await self._request("GET", self._resource_set_path(realm))
        return [str(item) for item in response.json()]

    async def get_resources(self, realm: str) -> list[ResourceRepresentation]:
        """List every resource with its details (``deep=true``)."""
        response = await self._request(
            "GET", self._resource_set_path(realm), params={"deep": "true"}
        )
        return [ResourceRepresentation.model_validate(item) for item in response.json()]

    @staticmethod
    def _resource_set_path(realm: str) -> str:
        return f"/realms/{realm}/authz/protection/resource_set"
