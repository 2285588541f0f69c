"""Custom exceptions for the cellsync backend."""

import logging
from typing import Any

logger = logging.getLogger(__name__)

# Exception type → safe user-facing message mapping
_SAFE_MESSAGES: dict[str, str] = {
    "NotFoundError": "The requested resource was not found.",
    "AuthenticationError": "Authentication failed. Please log in again.",
    "ValidationError": "The provided input is invalid. Please check and try again.",
    "DatabaseError": "A database error occurred. Please try again.",
    "ExternalServiceError": "An external service is temporarily unavailable.",
    "CircuitBreakerOpen": "A service dependency is temporarily unavailable. Please try again in a moment.",
    "IntegrationNotConnectedError": "This CRM is not connected. Please connect it first.",
    "CRMReauthRequiredError": "The CRM connection expired. Please reconnect.",
    "CRMFetchError": "Failed to fetch contacts from the CRM.",
    "CRMSyncError": "Failed to sync contacts.",
    "ValueError": "The provided value is invalid.",
}

_DEFAULT_MESSAGE = "An error occurred. Please try again."


def sanitize_error(e: Exception) -> str:
    """Map an exception to a safe, user-facing error message.

    Logs stay server-side; the returned string never contains stack
    traces, SQL, or upstream payloads.

    Args:
        e: The exception to sanitize.

    Returns:
        A safe, generic error message string.
    """
    # Walk the MRO to find the most specific matching type
    for cls in type(e).__mro__:
        safe_msg = _SAFE_MESSAGES.get(cls.__name__)
        if safe_msg:
            return safe_msg

    return _DEFAULT_MESSAGE


class CellSyncException(Exception):
    """Base exception for all cellsync-specific errors."""

    def __init__(
        self,
        message: str,
        code: str,
        status_code: int = 400,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error message.
            code: Machine-readable error code.
            status_code: HTTP status code.
            details: Additional error details.
        """
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}


class NotFoundError(CellSyncException):
    """Resource not found error (404)."""

    def __init__(self, resource: str, resource_id: str | None = None) -> None:
        """Initialize not found error.

        Args:
            resource: Name of the resource that was not found.
            resource_id: Optional ID of the resource.
        """
        message = f"{resource} not found"
        if resource_id:
            message = f"{resource} with ID '{resource_id}' not found"
        super().__init__(
            message=message,
            code="NOT_FOUND",
            status_code=404,
            details={"resource": resource, "resource_id": resource_id},
        )


class AuthenticationError(CellSyncException):
    """Authentication failed error (401)."""

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(
            message=message,
            code="AUTHENTICATION_ERROR",
            status_code=401,
        )


class ValidationError(CellSyncException):
    """Input validation error (400)."""

    def __init__(
        self, message: str, field: str | None = None, details: dict[str, Any] | None = None
    ) -> None:
        """Initialize validation error.

        Args:
            message: Error message.
            field: Name of the invalid field.
            details: Additional validation details.
        """
        error_details = details or {}
        if field:
            error_details["field"] = field
        super().__init__(
            message=message,
            code="VALIDATION_ERROR",
            status_code=400,
            details=error_details,
        )


class DatabaseError(CellSyncException):
    """Database operation error (500)."""

    def __init__(self, message: str = "A database error occurred") -> None:
        super().__init__(
            message=message,
            code="DATABASE_ERROR",
            status_code=500,
        )


class ExternalServiceError(CellSyncException):
    """External service error (502)."""

    def __init__(self, service: str, message: str | None = None) -> None:
        """Initialize external service error.

        Args:
            service: Name of the failing service.
            message: Optional error message.
        """
        super().__init__(
            message=message or f"External service '{service}' is unavailable",
            code="EXTERNAL_SERVICE_ERROR",
            status_code=502,
            details={"service": service},
        )


class IntegrationNotConnectedError(CellSyncException):
    """CRM integration missing or unusable (400).

    Raised for setup problems: no connection at the broker, an inactive
    connection, or a legacy integration row without a connection ID.
    Never retried.
    """

    def __init__(self, provider: str, message: str | None = None) -> None:
        """Initialize integration-not-connected error.

        Args:
            provider: CRM display name.
            message: Optional error message.
        """
        super().__init__(
            message=message or f"{provider} integration not connected. Please connect {provider} first.",
            code="INTEGRATION_NOT_CONNECTED",
            status_code=400,
            details={"provider": provider},
        )


class CRMReauthRequiredError(CellSyncException):
    """CRM connection expired or was revoked (401).

    The caller should prompt the user to reconnect the CRM.
    """

    def __init__(self, provider: str, upstream_message: str | None = None) -> None:
        """Initialize reauthentication-required error.

        Args:
            provider: CRM display name.
            upstream_message: Message reported by the CRM or broker.
        """
        super().__init__(
            message=f"Connection expired. Please reconnect to {provider}.",
            code="CRM_REAUTH_REQUIRED",
            status_code=401,
            details={"provider": provider, "upstream": upstream_message},
        )


class CRMFetchError(CellSyncException):
    """Fetching raw records from the CRM failed (500)."""

    def __init__(self, provider: str, upstream_message: str | None = None) -> None:
        """Initialize CRM fetch error.

        Args:
            provider: CRM display name.
            upstream_message: Message reported by the CRM or broker.
        """
        super().__init__(
            message=f"Failed to fetch contacts from {provider}",
            code="CRM_FETCH_ERROR",
            status_code=500,
            details={"provider": provider, "upstream": upstream_message},
        )


class CRMSyncError(CellSyncException):
    """CRM synchronization error (500).

    Used for failures during reconciliation that are not storage errors.
    """

    def __init__(
        self,
        message: str = "Unknown error",
        provider: str | None = None,
    ) -> None:
        """Initialize CRM sync error.

        Args:
            message: Error details.
            provider: Optional CRM provider name.
        """
        details = {}
        if provider:
            details["provider"] = provider
        super().__init__(
            message=f"Failed to sync contacts: {message}",
            code="CRM_SYNC_ERROR",
            status_code=500,
            details=details,
        )
