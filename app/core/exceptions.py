"""
Base exception classes for application-wide error handling.

Every domain error carries a human-readable message, a machine-readable
error code and an optional details dict, so API views can render them
uniformly.

Exception Hierarchy:
    BaseApplicationError (base)
    ├── ValidationError - Input validation failures
    ├── NotFoundError - Resource not found
    ├── PermissionDeniedError - Authorization failures
    ├── ConflictError - State conflicts (duplicates, invalid transitions)
    └── ExternalServiceError - Upstream/store failures

Usage:
    from core.exceptions import ValidationError, NotFoundError

    raise ValidationError("Amount cannot be zero", error_code="INVALID_AMOUNT")

    try:
        ...
    except BaseApplicationError as e:
        return Response(e.to_dict(), status=400)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class BaseApplicationError(Exception):
    """
    Base exception for all application-specific errors.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable code for client-side handling
        details: Additional error context (amounts, ids, etc.)

    Example:
        try:
            BalanceService.apply_delta(...)
        except BaseApplicationError as e:
            logger.warning("Balance change rejected: %s", e.error_code)
            return Response(e.to_dict(), status=400)
    """

    default_error_code: str = "APPLICATION_ERROR"

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        """
        Initialize the exception.

        Args:
            message: Human-readable error description
            error_code: Machine-readable error code (defaults to class default)
            details: Additional error context
        """
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to dictionary for API response.

        Returns:
            Dict with error, error_code, and (when present) details keys

        Example:
            {
                "error": "Amount cannot be zero",
                "error_code": "INVALID_AMOUNT",
                "details": {"amount": "0"}
            }
        """
        result: dict[str, Any] = {
            "error": self.message,
            "error_code": self.error_code,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        """Return string representation with error code."""
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        """Return detailed representation for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


class ValidationError(BaseApplicationError):
    """
    Raised when input validation fails in the service layer.

    Note:
        DRF serializers handle request-shape validation. Use this for
        business rules the serializer cannot know about.
    """

    default_error_code: str = "VALIDATION_ERROR"


class NotFoundError(BaseApplicationError):
    """Raised when a requested resource is not found."""

    default_error_code: str = "NOT_FOUND"


class PermissionDeniedError(BaseApplicationError):
    """
    Raised when the acting user lacks permission for an operation.

    Note:
        Authentication failures (missing/invalid token) are DRF's job.
        Use this for authorization failures inside services.
    """

    default_error_code: str = "PERMISSION_DENIED"


class ConflictError(BaseApplicationError):
    """
    Raised when an operation conflicts with current resource state.

    Use for duplicate keys carrying different payloads and for invalid
    state transitions. HTTP 409 is the appropriate status.
    """

    default_error_code: str = "CONFLICT"


class ExternalServiceError(BaseApplicationError):
    """
    Raised when a backing service or store cannot be reached.

    Log the original error for debugging but don't expose internal
    details to clients.
    """

    default_error_code: str = "EXTERNAL_SERVICE_ERROR"
