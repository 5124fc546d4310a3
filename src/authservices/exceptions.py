"""Exception hierarchy for authservices.

All exceptions inherit from :class:`AuthServicesError`, which carries an
``exit_code`` attribute mapped to a constant from
:mod:`authservices.exit_codes` and a ``retryable`` flag.  Callers that
implement their own retry policy check ``exc.retryable`` instead of matching
on concrete types: only :class:`TransientNetworkError` is retryable, every
other failure is final.

Subclass hierarchy::

    AuthServicesError           (exit 1)
    +-- InvalidUsageError       (exit 2)
    +-- ConfigError             (exit 1)
    +-- TransientNetworkError   (exit 6, retryable)
    +-- AuthenticationFailure   (exit 3)
    +-- ProvisioningStepFailure (exit 7)
    +-- ApiError                (exit 5)
        +-- NotFoundError       (exit 4)
        +-- ServerError         (exit 5)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from authservices.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_NOT_FOUND,
    EXIT_PROVISIONING_FAILURE,
    EXIT_SERVER_ERROR,
)

if TYPE_CHECKING:
    from authservices.provisioning.orchestrator import ProvisioningStep


class AuthServicesError(Exception):
    """Base exception for all authservices errors.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE
    retryable: bool = False

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(AuthServicesError):
    """Raised for invalid CLI arguments or missing required parameters."""

    exit_code = EXIT_INVALID_USAGE


class ConfigError(AuthServicesError):
    """Raised for configuration problems (invalid JSON, duplicate or unknown client names)."""

    exit_code = EXIT_GENERIC_FAILURE


class TransientNetworkError(AuthServicesError):
    """Raised when a connection or timeout failure persists after bounded retries.

    This is the only retryable error: a later attempt may succeed once the
    remote side is reachable again.
    """

    exit_code = EXIT_CONNECTION_ERROR
    retryable = True


class AuthenticationFailure(AuthServicesError):
    """Raised when a token cannot be acquired or is rejected after one refresh.

    Args:
        message: Error description.
        client_name: The named client the failure belongs to.
        status_code: HTTP status returned by the token endpoint or the
            protected API, when there was one.
    """

    exit_code = EXIT_AUTH_FAILURE

    def __init__(
        self,
        message: str,
        client_name: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.client_name = client_name
        self.status_code = status_code


class ProvisioningStepFailure(AuthServicesError):
    """Raised when a bootstrap step fails; the remaining steps are not executed.

    Args:
        step: The step that failed.
        status_code: HTTP status of the failing response, or ``None`` when
            the request never produced one (network error).
        detail: Short description of what went wrong.
    """

    exit_code = EXIT_PROVISIONING_FAILURE

    def __init__(
        self,
        step: ProvisioningStep,
        status_code: Optional[int] = None,
        detail: str = "",
    ):
        status = f"HTTP {status_code}" if status_code is not None else "no response"
        message = f"Provisioning step '{step.value}' failed ({status})"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.step = step
        self.status_code = status_code
        self.detail = detail


class ApiError(AuthServicesError):
    """Raised by the SDK clients when an API call returns a non-success status."""

    exit_code = EXIT_SERVER_ERROR

    def __init__(self, message: str, status_code: int):
        super().__init__(message)
        self.status_code = status_code


class NotFoundError(ApiError):
    """Raised when the API returns HTTP 404 (realm, group or resource missing)."""

    exit_code = EXIT_NOT_FOUND


class ServerError(ApiError):
    """Raised when the API returns an HTTP 5xx server error."""

    exit_code = EXIT_SERVER_ERROR
