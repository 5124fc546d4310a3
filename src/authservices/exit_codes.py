"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~authservices.exceptions.AuthServicesError` subclass.
Shell wrappers and CI scripts can inspect the exit code to determine the
failure class without parsing stderr.

Example::

    $ authservices token admin
    $ echo $?
    3   # EXIT_AUTH_FAILURE -- the token endpoint rejected the credentials
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or missing required parameters."""

EXIT_AUTH_FAILURE = 3
"""A token could not be acquired or was rejected twice."""

EXIT_NOT_FOUND = 4
"""The requested resource was not found (HTTP 404)."""

EXIT_SERVER_ERROR = 5
"""The remote API returned an unexpected error status."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error persisted after all retries (timeout, connection refused)."""

EXIT_PROVISIONING_FAILURE = 7
"""A bootstrap step against the identity provider failed."""
