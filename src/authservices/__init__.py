"""authservices -- named client-credentials tokens for identity-provider APIs.

This package authenticates outbound calls to a Keycloak-style identity
provider's admin and protection REST APIs.  Each logical consumer (``admin``,
``protection``, ...) is a *named client* with its own credentials and token
endpoint, cached independently and refreshed on demand.

Typical usage::

    from authservices.config import build_registry, create_token_cache, load_settings
    from authservices.client import create_authenticated_client

    settings = load_settings()
    registry = build_registry(settings)
    async with create_token_cache(settings, registry) as cache:
        async with create_authenticated_client("admin", cache, base_url) as http:
            response = await http.get("/admin/realms/Test")

Modules:
    app: Typer application and CLI entry point.
    models: Pydantic models shared across the package.
    config: XDG-aware settings loading and component factories.
    registry: Immutable name -> client-credentials mapping.
    tokens: Token store, acquirer, and single-flight cache.
    client: Authenticating ``httpx`` transport.
    sdk: Admin and protection API wrappers.
    provisioning: Sequential bootstrap of a fresh identity-provider instance.
    exceptions: Exception hierarchy with exit-code mapping.
    output: stdout/stderr formatting system with Rich support.
"""

__version__ = "0.3.0"
