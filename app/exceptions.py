"""
Error taxonomy for tenancy and authorization operations.

Services raise these; the exception handler registered in ``main.py`` turns
them into HTTP responses.
"""
from fastapi import status


class TenancyError(Exception):
    """Base exception for all tenancy errors."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "tenancy_error"

    def __init__(self, message: str, error_code: str = None, details: dict = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.default_code
        self.details = details or {}


class AuthenticationError(TenancyError):
    """Raised when the request carries no valid identity."""
    status_code = status.HTTP_401_UNAUTHORIZED
    default_code = "authentication_required"


class NotFoundError(TenancyError):
    """Raised when a referenced row does not exist or is outside the caller's scope."""
    status_code = status.HTTP_404_NOT_FOUND
    default_code = "not_found"


class PermissionDeniedError(TenancyError):
    """Raised when the actor's role or scope does not allow the operation."""
    status_code = status.HTTP_403_FORBIDDEN
    default_code = "permission_denied"


class CapacityExceededError(TenancyError):
    """Raised when a subsidiary or user limit would be exceeded."""
    status_code = status.HTTP_409_CONFLICT
    default_code = "capacity_exceeded"


class ConflictError(TenancyError):
    """Raised on duplicates and on invitations that are no longer pending."""
    status_code = status.HTTP_409_CONFLICT
    default_code = "conflict"


class ValidationError(TenancyError):
    """Raised when input is missing or malformed."""
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_code = "validation_error"
