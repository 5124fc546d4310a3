"""Tests for the immutable client registry and client configuration models."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from conftest import make_client_config

from authservices.exceptions import ConfigError
from authservices.models import ClientCredentialsConfig, KeycloakClientOptions
from authservices.registry import ClientRegistry


class TestClientRegistry:
    def test_resolve(self) -> None:
        admin = make_client_config("admin")
        registry = ClientRegistry([admin, make_client_config("protection")])
        assert registry.resolve("admin") is admin
        assert len(registry) == 2
        assert sorted(registry) == ["admin", "protection"]

    def test_unknown_name_lists_available(self) -> None:
        registry = ClientRegistry([make_client_config("admin")])
        with pytest.raises(ConfigError, match="Available clients: admin"):
            registry.resolve("protection")

    def test_empty_registry(self) -> None:
        with pytest.raises(ConfigError, match=r"\(none\)"):
            ClientRegistry().resolve("admin")

    def test_duplicate_names_rejected(self) -> None:
        with pytest.raises(ConfigError, match="more than once"):
            ClientRegistry([make_client_config("admin"), make_client_config("admin")])

    def test_is_read_only(self) -> None:
        registry = ClientRegistry([make_client_config("admin")])
        with pytest.raises(TypeError):
            registry._entries["other"] = make_client_config("other")  # type: ignore[index]

    def test_repr_has_no_secrets(self) -> None:
        registry = ClientRegistry([make_client_config("admin", client_secret="hunter2")])
        assert "hunter2" not in repr(registry)
        assert "hunter2" not in repr(registry.resolve("admin"))


class TestClientConfigModels:
    def test_config_is_frozen(self) -> None:
        config = make_client_config()
        with pytest.raises(ValidationError):
            config.client_id = "other"  # type: ignore[misc]

    def test_relative_token_endpoint_rejected(self) -> None:
        with pytest.raises(ValidationError, match="absolute"):
            make_client_config(token_endpoint="/realms/master/protocol/openid-connect/token")

    def test_keycloak_options_derive_token_endpoint(self) -> None:
        options = KeycloakClientOptions.model_validate(
            {
                "auth-server-url": "http://localhost:8080/",
                "realm": "Test",
                "resource": "resource-server",
                "credentials": {"secret": "pw"},
            }
        )
        config = options.to_client_config("protection")
        assert config == ClientCredentialsConfig(
            name="protection",
            client_id="resource-server",
            client_secret="pw",
            token_endpoint="http://localhost:8080/realms/Test/protocol/openid-connect/token",
        )

    def test_keycloak_options_accept_field_names(self) -> None:
        options = KeycloakClientOptions(
            auth_server_url="https://idp", realm="r", resource="c", scope="openid"
        )
        assert options.to_client_config("x").scope == "openid"
