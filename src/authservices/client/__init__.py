"""Authenticated HTTP access for named clients.

:class:`AuthenticatingTransport` plugs into :class:`httpx.AsyncClient` and
attaches bearer tokens from a :class:`~authservices.tokens.TokenCache`;
:func:`create_authenticated_client` builds such a client in one call.
"""

from authservices.client.transport import AuthenticatingTransport, create_authenticated_client

__all__ = ["AuthenticatingTransport", "create_authenticated_client"]
