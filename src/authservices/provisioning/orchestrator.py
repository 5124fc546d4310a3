"""Sequential bootstrap of a freshly started identity-provider instance.

:class:`ProvisioningOrchestrator` prepares a disposable instance (typically a
test container) so that the client-credentials machinery can be used
against it.  It runs five steps strictly in order, each one a single HTTP
call whose result feeds the next through a :class:`ProvisioningContext`:

1. ``acquire-admin-token`` -- password grant as the bootstrap admin user.
2. ``create-client`` -- register a confidential client with service
   accounts enabled; its internal id comes from the ``Location`` header.
3. ``resolve-service-account`` -- look up the client's service-account user.
4. ``resolve-role`` -- look up the realm role to grant.
5. ``assign-role`` -- map that role onto the service-account user.

The first failing step raises
:class:`~authservices.exceptions.ProvisioningStepFailure` carrying the step
and HTTP status; no later step is attempted and nothing is rolled back.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

import httpx

from authservices.exceptions import ProvisioningStepFailure, TransientNetworkError
from authservices.models import BootstrapSettings, ClientCredentialsConfig, RequestConfig
from authservices.output import debug
from authservices.retry import Sleep, send_with_retry


class ProvisioningStep(str, Enum):
    """The bootstrap steps, in execution order."""

    ACQUIRE_ADMIN_TOKEN = "acquire-admin-token"
    CREATE_CLIENT = "create-client"
    RESOLVE_SERVICE_ACCOUNT = "resolve-service-account"
    RESOLVE_ROLE = "resolve-role"
    ASSIGN_ROLE = "assign-role"


@dataclass
class ProvisioningContext:
    """Values produced step by step during one bootstrap run.

    Attributes:
        admin_token: Bearer token from ``acquire-admin-token``.
        created_client_internal_id: Internal id from ``create-client``.
        service_account_user_id: User id from ``resolve-service-account``.
        admin_role_id: Role id from ``resolve-role``.
        completed_steps: Steps that finished successfully, in order.
    """

    admin_token: Optional[str] = field(default=None, repr=False)
    created_client_internal_id: Optional[str] = None
    service_account_user_id: Optional[str] = None
    admin_role_id: Optional[str] = None
    completed_steps: list[ProvisioningStep] = field(default_factory=list)


class ProvisioningOrchestrator:
    """Provisions an administrative API client on an identity-provider instance.

    Args:
        http: Unauthenticated client whose ``base_url`` is the instance's
            root address.  The orchestrator sends the admin token itself.
        settings: Credentials and names used by the bootstrap.

    Example::

        async with httpx.AsyncClient(base_url=base_address) as http:
            orchestrator = ProvisioningOrchestrator(http, BootstrapSettings())
            await orchestrator.wait_for_instance()
            context = await orchestrator.run()
            admin_config = orchestrator.client_config("admin")
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        settings: Optional[BootstrapSettings] = None,
    ) -> None:
        self._http = http
        self._settings = settings or BootstrapSettings()

    @property
    def settings(self) -> BootstrapSettings:
        return self._settings

    async def wait_for_instance(
        self,
        attempts: int = 30,
        delay: float = 1.0,
        *,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        """Poll the realm endpoint until the instance answers without a 5xx.

        Raises:
            TransientNetworkError: If the instance is still unreachable or
                failing after *attempts* polls.
        """
        path = f"/realms/{self._settings.realm}"
        polling = RequestConfig(max_retries=max(attempts - 1, 0), backoff_base=delay, backoff_max=delay)
        response = await send_with_retry(
            lambda: self._http.get(path),
            polling,
            description=f"Waiting for {self._http.base_url}",
            retry_server_errors=True,
            sleep=sleep,
        )
        if response.status_code >= 500:
            raise TransientNetworkError(
                f"Instance at {self._http.base_url} still answers HTTP {response.status_code} "
                f"after {attempts} attempts"
            )
        debug(f"Instance at {self._http.base_url} is ready")

    async def run(self) -> ProvisioningContext:
        """Execute the five steps in order.

        Returns:
            The fully populated :class:`ProvisioningContext`.

        Raises:
            ProvisioningStepFailure: On the first step that fails.
        """
        context = ProvisioningContext()

        context.admin_token = await self._acquire_admin_token()
        self._complete(context, ProvisioningStep.ACQUIRE_ADMIN_TOKEN)

        context.created_client_internal_id = await self._create_client(context.admin_token)
        self._complete(context, ProvisioningStep.CREATE_CLIENT)

        context.service_account_user_id = await self._resolve_service_account(
            context.admin_token, context.created_client_internal_id
        )
        self._complete(context, ProvisioningStep.RESOLVE_SERVICE_ACCOUNT)

        context.admin_role_id = await self._resolve_role(context.admin_token)
        self._complete(context, ProvisioningStep.RESOLVE_ROLE)

        await self._assign_role(
            context.admin_token, context.service_account_user_id, context.admin_role_id
        )
        self._complete(context, ProvisioningStep.ASSIGN_ROLE)

        return context

    def client_config(self, name: str = "admin") -> ClientCredentialsConfig:
        """Client-credentials configuration for the client this run provisions."""
        base = str(self._http.base_url).rstrip("/")
        return ClientCredentialsConfig(
            name=name,
            client_id=self._settings.client_id,
            client_secret=self._settings.client_secret,
            token_endpoint=f"{base}/realms/{self._settings.realm}/protocol/openid-connect/token",
        )

    def client_representation(self) -> dict[str, Any]:
        """Body of the ``create-client`` request."""
        s = self._settings
        return {
            "clientId": s.client_id,
            "name": s.client_display_name,
            "enabled": True,
            "clientAuthenticatorType": "client-secret",
            "secret": s.client_secret,
            "publicClient": False,
            "serviceAccountsEnabled": True,
            "standardFlowEnabled": False,
            "directAccessGrantsEnabled": True,
            "protocol": "openid-connect",
        }

    # ------------------------------------------------------------------ #
    # Steps
    # ------------------------------------------------------------------ #

    async def _acquire_admin_token(self) -> str:
        step = ProvisioningStep.ACQUIRE_ADMIN_TOKEN
        s = self._settings
        response = await self._call(
            step,
            "POST",
            f"/realms/{s.realm}/protocol/openid-connect/token",
            data={
                "grant_type": "password",
                "client_id": s.admin_cli_client_id,
                "username": s.admin_username,
                "password": s.admin_password,
            },
        )
        return self._json_field(step, response, "access_token")

    async def _create_client(self, token: str) -> str:
        step = ProvisioningStep.CREATE_CLIENT
        response = await self._call(
            step,
            "POST",
            self._admin_path("clients"),
            token=token,
            json=self.client_representation(),
        )
        location = response.headers.get("Location", "").rstrip("/")
        internal_id = location.rsplit("/", 1)[-1] if location else ""
        if not internal_id:
            raise ProvisioningStepFailure(
                step, response.status_code, "response has no Location header with the client id"
            )
        return internal_id

    async def _resolve_service_account(self, token: str, client_internal_id: str) -> str:
        step = ProvisioningStep.RESOLVE_SERVICE_ACCOUNT
        response = await self._call(
            step,
            "GET",
            self._admin_path(f"clients/{client_internal_id}/service-account-user"),
            token=token,
        )
        return self._json_field(step, response, "id")

    async def _resolve_role(self, token: str) -> str:
        step = ProvisioningStep.RESOLVE_ROLE
        response = await self._call(
            step, "GET", self._admin_path(f"roles/{self._settings.role_name}"), token=token
        )
        return self._json_field(step, response, "id")

    async def _assign_role(self, token: str, user_id: str, role_id: str) -> None:
        await self._call(
            ProvisioningStep.ASSIGN_ROLE,
            "POST",
            self._admin_path(f"users/{user_id}/role-mappings/realm"),
            token=token,
            json=[{"id": role_id, "name": self._settings.role_name}],
        )

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def _admin_path(self, suffix: str) -> str:
        return f"/admin/realms/{self._settings.realm}/{suffix}"

    async def _call(
        self,
        step: ProvisioningStep,
        method: str,
        path: str,
        token: Optional[str] = None,
        **kwargs: Any,
    ) -> httpx.Response:
        headers = {"Accept": "application/json"}
        if token is not None:
            headers["Authorization"] = f"Bearer {token}"

        debug(f"Provisioning step '{step.value}': {method} {path}")
        try:
            response = await self._http.request(method, path, headers=headers, **kwargs)
        except httpx.TransportError as exc:
            raise ProvisioningStepFailure(step, None, f"{type(exc).__name__}: {exc}") from exc

        if not response.is_success:
            raise ProvisioningStepFailure(step, response.status_code, response.text[:200])
        return response

    @staticmethod
    def _json_field(step: ProvisioningStep, response: httpx.Response, key: str) -> str:
        try:
            body = response.json()
        except ValueError as exc:
            raise ProvisioningStepFailure(
                step, response.status_code, "response body is not JSON"
            ) from exc
        value = body.get(key) if isinstance(body, dict) else None
        if not value:
            raise ProvisioningStepFailure(
                step, response.status_code, f"response has no '{key}' field"
            )
        return str(value)

    @staticmethod
    def _complete(context: ProvisioningContext, step: ProvisioningStep) -> None:
        context.completed_steps.append(step)
        debug(f"Provisioning step '{step.value}' completed")
