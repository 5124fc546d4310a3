"""Canonical Pydantic models shared across all authservices modules.

The models fall into four groups:

**Client configuration** -- what a named client needs to authenticate:
    :class:`ClientCredentialsConfig` and the Keycloak adapter-style
    :class:`KeycloakClientOptions` that converts into it.

**Token models** -- :class:`TokenResponse` (the token endpoint's JSON) and
    :class:`CachedToken` (what the token cache stores).

**Settings** -- :class:`RequestConfig`, :class:`TokenCacheConfig`,
    :class:`BootstrapSettings`, and the top-level :class:`Settings` read
    from the JSON configuration file.

**API representations** -- :class:`RealmRepresentation`,
    :class:`GroupRepresentation`, and :class:`ResourceRepresentation`
    returned by the SDK clients.

Secrets and access tokens are declared with ``repr=False`` so they never
appear in tracebacks or debug output.
"""

from __future__ import annotations

import secrets
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# --- Client configuration ---


class ClientCredentialsConfig(BaseModel):
    """Immutable client-credentials configuration for one named client.

    Example::

        ClientCredentialsConfig(
            name="admin",
            client_id="admin-api",
            client_secret="s3cret",
            token_endpoint="http://localhost:8080/realms/master/protocol/openid-connect/token",
        )
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1, description="Logical client name, e.g. admin")
    client_id: str = Field(min_length=1)
    client_secret: str = Field(repr=False)
    token_endpoint: str
    scope: Optional[str] = Field(
        default=None, description="Space-separated scopes sent with the grant"
    )

    @field_validator("token_endpoint")
    @classmethod
    def _require_absolute_url(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            raise ValueError(f"token_endpoint must be an absolute http(s) URL, got {value!r}")
        return value


class KeycloakCredentials(BaseModel):
    """The ``credentials`` block of a Keycloak adapter configuration."""

    secret: str = Field(default="", repr=False)


class KeycloakClientOptions(BaseModel):
    """Keycloak adapter-style client section.

    Accepts both ``auth_server_url`` and the adapter spelling
    ``auth-server-url``.  The token endpoint is derived from the server URL
    and realm.
    """

    model_config = ConfigDict(populate_by_name=True)

    auth_server_url: str = Field(alias="auth-server-url")
    realm: str
    resource: str = Field(description="The client id")
    credentials: KeycloakCredentials = Field(default_factory=KeycloakCredentials)
    scope: Optional[str] = None

    @property
    def token_endpoint(self) -> str:
        base = self.auth_server_url.rstrip("/")
        return f"{base}/realms/{self.realm}/protocol/openid-connect/token"

    def to_client_config(self, name: str) -> ClientCredentialsConfig:
        """Build the :class:`ClientCredentialsConfig` registered under *name*."""
        return ClientCredentialsConfig(
            name=name,
            client_id=self.resource,
            client_secret=self.credentials.secret,
            token_endpoint=self.token_endpoint,
            scope=self.scope,
        )


# --- Tokens ---


class TokenResponse(BaseModel):
    """JSON body returned by an OAuth2 token endpoint.

    Only ``access_token`` is required.  Unknown keys (``refresh_token``,
    ``scope``, ...) are preserved in ``model_extra``.
    """

    model_config = ConfigDict(extra="allow")

    access_token: str = Field(min_length=1, repr=False)
    expires_in: Optional[float] = None
    token_type: Optional[str] = None

    @field_validator("expires_in")
    @classmethod
    def _clamp_negative(cls, value: Optional[float]) -> Optional[float]:
        if value is not None and value < 0:
            return 0.0
        return value


class CachedToken(BaseModel):
    """An access token together with its issue and expiry timestamps.

    Timestamps are seconds on the clock the token cache runs on (wall-clock
    epoch seconds by default).  Instances are frozen; a refresh replaces the
    whole object.
    """

    model_config = ConfigDict(frozen=True)

    access_token: str = Field(repr=False)
    issued_at: float
    expires_at: float

    @property
    def lifetime(self) -> float:
        return self.expires_at - self.issued_at

    def is_fresh(self, now: float, skew: float = 0.0) -> bool:
        """Return ``True`` while *now* is before ``expires_at - skew``."""
        return now < self.expires_at - skew


# --- Settings ---


class RequestConfig(BaseModel):
    """HTTP request settings shared by the acquirer and the transport.

    Retries use exponential backoff: ``backoff_base * 2 ** attempt``, capped
    at ``backoff_max`` seconds.
    """

    timeout: float = Field(default=30.0, gt=0, description="Per-request deadline in seconds")
    max_retries: int = Field(default=3, ge=0)
    backoff_base: float = Field(default=0.5, ge=0)
    backoff_max: float = Field(default=8.0, ge=0)


class TokenCacheConfig(BaseModel):
    """Token cache settings."""

    skew_seconds: float = Field(
        default=30.0, ge=0, description="Tokens are not served within this margin of expiry"
    )
    backend: Literal["memory", "disk"] = "memory"
    directory: Optional[str] = Field(
        default=None, description="Directory for the disk backend (defaults to the cache dir)"
    )


def _generate_secret() -> str:
    return secrets.token_urlsafe(24)


class BootstrapSettings(BaseModel):
    """Values used to provision an administrative API client on a fresh instance."""

    realm: str = "master"
    admin_username: str = "admin"
    admin_password: str = Field(default="admin", repr=False)
    admin_cli_client_id: str = "admin-cli"
    client_id: str = "admin-api"
    client_secret: str = Field(default_factory=_generate_secret, repr=False)
    client_display_name: str = "Admin API Client"
    role_name: str = "admin"


class Settings(BaseModel):
    """Top-level configuration file.

    Named clients come from two sections: ``clients`` lists fully specified
    :class:`ClientCredentialsConfig` entries and ``keycloak`` maps a client
    name to a :class:`KeycloakClientOptions` block.
    """

    clients: list[ClientCredentialsConfig] = Field(default_factory=list)
    keycloak: dict[str, KeycloakClientOptions] = Field(default_factory=dict)
    request: RequestConfig = Field(default_factory=RequestConfig)
    cache: TokenCacheConfig = Field(default_factory=TokenCacheConfig)
    bootstrap: BootstrapSettings = Field(default_factory=BootstrapSettings)


# --- Admin and protection API representations ---


class RealmRepresentation(BaseModel):
    """Subset of Keycloak's realm representation; other keys kept in ``model_extra``."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: Optional[str] = None
    realm: str
    display_name: Optional[str] = Field(default=None, alias="displayName")
    enabled: Optional[bool] = None


class GroupRepresentation(BaseModel):
    """A realm group.  ``id`` is assigned by the server on creation."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: Optional[str] = None
    name: str
    path: Optional[str] = None
    attributes: dict[str, list[str]] = Field(default_factory=dict)
    sub_groups: list[GroupRepresentation] = Field(default_factory=list, alias="subGroups")


class ResourceRepresentation(BaseModel):
    """A protected resource registered with the authorization services."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: Optional[str] = Field(default=None, alias="_id")
    name: str
    type: Optional[str] = None
    uris: list[str] = Field(default_factory=list)
    owner_managed_access: Optional[bool] = Field(default=None, alias="ownerManagedAccess")
