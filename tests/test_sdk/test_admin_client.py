"""Tests for the admin REST API client and API error mapping."""

from __future__ import annotations

import asyncio
import json
from typing import Any

import httpx
import pytest

from authservices.exceptions import ApiError, NotFoundError, ServerError
from authservices.models import GroupRepresentation
from authservices.sdk import KeycloakAdminClient, raise_for_api_error

BASE_URL = "http://localhost:8080"


def _admin(handler: Any) -> KeycloakAdminClient:
    return KeycloakAdminClient(
        httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(handler))
    )


def _response(status: int, **kwargs: Any) -> httpx.Response:
    return httpx.Response(
        status, request=httpx.Request("GET", f"{BASE_URL}/admin/realms/Test"), **kwargs
    )


class TestRaiseForApiError:
    def test_success_passes(self) -> None:
        raise_for_api_error(_response(204))

    def test_not_found(self) -> None:
        with pytest.raises(NotFoundError, match="Realm not found") as exc_info:
            raise_for_api_error(_response(404, json={"error": "Realm not found."}))
        assert exc_info.value.status_code == 404
        assert "GET /admin/realms/Test" in str(exc_info.value)

    def test_server_error(self) -> None:
        with pytest.raises(ServerError) as exc_info:
            raise_for_api_error(_response(502, text="bad gateway"))
        assert exc_info.value.status_code == 502
        assert "bad gateway" in str(exc_info.value)

    def test_conflict_prefers_error_message(self) -> None:
        body = {"errorMessage": "Top level group named 'ops' already exists.", "error": "x"}
        with pytest.raises(ApiError, match="already exists") as exc_info:
            raise_for_api_error(_response(409, json=body))
        assert type(exc_info.value) is ApiError
        assert exc_info.value.status_code == 409

    def test_empty_body(self) -> None:
        with pytest.raises(ApiError, match=r"HTTP 403$"):
            raise_for_api_error(_response(403))


class TestRealms:
    def test_get_realm(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/admin/realms/Test"
            return httpx.Response(
                200,
                json={"id": "r-1", "realm": "Test", "displayName": "Test realm", "enabled": True,
                      "sslRequired": "external"},
            )

        realm = asyncio.run(_admin(handler).get_realm("Test"))
        assert realm.realm == "Test"
        assert realm.display_name == "Test realm"
        assert realm.model_extra == {"sslRequired": "external"}

    def test_missing_realm(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404, json={"error": "Realm not found."})

        with pytest.raises(NotFoundError):
            asyncio.run(_admin(handler).get_realm("Nope"))


class TestGroups:
    def test_get_groups_with_filters(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200,
                json=[
                    {"id": "g-1", "name": "ops", "path": "/ops",
                     "subGroups": [{"id": "g-2", "name": "oncall", "path": "/ops/oncall"}]},
                ],
            )

        groups = asyncio.run(
            _admin(handler).get_groups("Test", search="ops", first=0, max_results=10, brief=False)
        )
        params = dict(seen[0].url.params)
        assert seen[0].url.path == "/admin/realms/Test/groups"
        assert params == {"search": "ops", "first": "0", "max": "10", "briefRepresentation": "false"}
        assert groups[0].name == "ops"
        assert groups[0].sub_groups[0].path == "/ops/oncall"

    def test_get_groups_without_filters(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert not request.url.params
            return httpx.Response(200, json=[])

        assert asyncio.run(_admin(handler).get_groups("Test")) == []

    def test_get_group(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/admin/realms/Test/groups/g-1"
            return httpx.Response(200, json={"id": "g-1", "name": "ops", "attributes": {"tier": ["1"]}})

        group = asyncio.run(_admin(handler).get_group("Test", "g-1"))
        assert group.attributes == {"tier": ["1"]}

    def test_create_group_returns_location_id(self) -> None:
        bodies: list[Any] = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(json.loads(request.content))
            return httpx.Response(
                201, headers={"Location": f"{BASE_URL}/admin/realms/Test/groups/new-id"}
            )

        group = GroupRepresentation(name="ops", attributes={"tier": ["1"]})
        group_id = asyncio.run(_admin(handler).create_group("Test", group))
        assert group_id == "new-id"
        assert bodies == [{"name": "ops", "attributes": {"tier": ["1"]}, "subGroups": []}]

    def test_create_group_without_location(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(201)

        assert asyncio.run(_admin(handler).create_group("Test", GroupRepresentation(name="x"))) is None

    def test_create_group_conflict(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(409, json={"errorMessage": "exists"})

        with pytest.raises(ApiError) as exc_info:
            asyncio.run(_admin(handler).create_group("Test", GroupRepresentation(name="x")))
        assert exc_info.value.status_code == 409
