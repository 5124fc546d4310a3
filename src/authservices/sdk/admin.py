"""Keycloak admin REST API client (realms and groups).

Example::

    async with create_authenticated_client("admin", cache, base_url) as http:
        admin = KeycloakAdminClient(http)
        realm = await admin.get_realm("Test")
        group_id = await admin.create_group("Test", GroupRepresentation(name="ops"))
"""

from __future__ import annotations

from typing import Any, Optional

from authservices.models import GroupRepresentation, RealmRepresentation
from authservices.sdk.base import KeycloakApiClient


class KeycloakAdminClient(KeycloakApiClient):
    """Typed access to ``/admin/realms/...`` endpoints."""

    async def get_realm(self, realm: str) -> RealmRepresentation:
        """Fetch a realm.

        Raises:
            NotFoundError: If the realm does not exist.
        """
        response = await self._request("GET", f"/admin/realms/{realm}")
        return RealmRepresentation.model_validate(response.json())

    async def get_groups(
        self,
        realm: str,
        search: Optional[str] = None,
        first: Optional[int] = None,
        max_results: Optional[int] = None,
        brief: Optional[bool] = None,
    ) -> list[GroupRepresentation]:
        """List top-level groups, optionally filtered by a name search."""
        params: dict[str, Any] = {}
        if search is not None:
            params["search"] = search
        if first is not None:
            params["first"] = first
        if max_results is not None:
            params["max"] = max_results
        if brief is not None:
            params["briefRepresentation"] = str(brief).lower()

        response = await self._request("GET", f"/admin/realms/{realm}/groups", params=params)
        return [GroupRepresentation.model_validate(item) for item in response.json()]

    async def get_group(self, realm: str, group_id: str) -> GroupRepresentation:
        response = await self._request("GET", f"/admin/realms/{realm}/groups/{group_id}")
        return GroupRepresentation.model_validate(response.json())

    async def create_group(self, realm: str, group: GroupRepresentation) -> Optional[str]:
        """Create a top-level group.

        Returns:
            The new group's id taken from the ``Location`` header, or
            ``None`` when the server did not send one.
        """
        body = group.model_dump(by_alias=True, exclude_none=True, exclude={"id"})
        response = await self._request("POST", f"/admin/realms/{realm}/groups", json=body)
        location = response.headers.get("Location")
        if not location:
            return None
        return location.rstrip("/").rsplit("/", 1)[-1]
