"""
Typed Errors for the Sprint Engine

Every failure the engine surfaces to a caller is a ServiceError subclass
carrying an HTTP-style status code, a machine-readable error code and an
optional details payload. An outer HTTP layer can render any of them with
``to_dict()`` without knowing the concrete type.

Error taxonomy:
    - ValidationError: malformed or insufficient caller input
    - NotFoundError: sprint or objective absent
    - AuthorizationError: caller does not own the resource
    - ConflictError: operation clashes with current state (already completed)
    - ProviderError: provider_error / client_timeout / invalid_json
    - SchemaValidationError: well-formed provider JSON that fails the schema

Propagation policy:
    ValidationError, NotFoundError, AuthorizationError and ConflictError
    always reach the caller. ProviderError and SchemaValidationError are
    recovered locally wherever a deterministic fallback exists (review,
    recalibration) and propagate only from the planner.

Usage:
    from sprint_engine.errors import NotFoundError

    raise NotFoundError("Sprint not found", error_code="SPRINT_NOT_FOUND")
"""

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Optional
from uuid import uuid4

if TYPE_CHECKING:
    from sprint_engine.services.providers.telemetry import ProviderTelemetry


class ServiceError(Exception):
    """
    Base exception for service errors.

    Provides consistent error handling with:
    - HTTP status code
    - Error code for categorization
    - Optional details for debugging

    Example:
        raise ServiceError("Store unavailable", status_code=503)
    """

    status_code: int = 500
    error_code: str = "service_error"

    def __init__(
        self,
        message: str,
        status_code: int = None,
        error_code: str = None,
        details: dict = None,
    ):
        super().__init__(message)
        self.message = message
        if status_code:
            self.status_code = status_code
        if error_code:
            self.error_code = error_code
        self.details = details
        self.error_id = str(uuid4())[:8]

    def to_dict(self) -> dict[str, Any]:
        """Render the standard error envelope."""
        return {
            "error": self.error_code,
            "message": self.message,
            "error_id": self.error_id,
            "details": self.details,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }


class ValidationError(ServiceError):
    """
    Data validation error.

    Raised when caller input fails validation, e.g. a completion
    rate below the threshold or an out-of-range batch size.
    """

    status_code = 422
    error_code = "validation_error"


class NotFoundError(ServiceError):
    """
    Resource not found error.

    Raised when a requested sprint or objective doesn't exist.
    """

    status_code = 404
    error_code = "not_found"


class AuthorizationError(ServiceError):
    """Raised when the caller does not own the objective."""

    status_code = 403
    error_code = "UNAUTHORIZED"


class ConflictError(ServiceError):
    """Raised when an operation conflicts with the resource's state."""

    status_code = 409
    error_code = "conflict"


class ProviderError(ServiceError):
    """
    Provider call failure.

    Attributes:
        reason: One of "provider_error", "client_timeout", "invalid_json"
        telemetry: The telemetry record for the failed call, if any
    """

    status_code = 502
    error_code = "provider_error"

    PROVIDER_ERROR = "provider_error"
    CLIENT_TIMEOUT = "client_timeout"
    INVALID_JSON = "invalid_json"

    def __init__(
        self,
        message: str,
        reason: str = PROVIDER_ERROR,
        telemetry: Optional["ProviderTelemetry"] = None,
        details: dict = None,
    ):
        super().__init__(message, error_code=reason, details=details)
        self.reason = reason
        self.telemetry = telemetry


class SchemaValidationError(ServiceError):
    """
    Provider output that parsed as JSON but failed the canonical schema.

    Attributes:
        errors: Pydantic error list describing the mismatch
    """

    status_code = 502
    error_code = "validation_failed"

    def __init__(
        self,
        message: str,
        errors: Optional[list[dict[str, Any]]] = None,
        telemetry: Optional["ProviderTelemetry"] = None,
    ):
        super().__init__(message, details={"errors": errors or []})
        self.errors = errors or []
        self.telemetry = telemetry
