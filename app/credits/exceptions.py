"""
Credits-specific exceptions.

Each exception also derives from the matching core category so that
views can map errors to HTTP status codes without knowing every class.

Exception Hierarchy:
    CreditsError (base)
    ├── InsufficientBalance - Debit larger than the balance
    ├── InvalidAmount - Zero, malformed or wrongly signed amounts
    ├── InvalidPlan - Unknown plan type
    ├── Unauthorized - Operator lacks a credits permission
    ├── HolderNotFound - No balance holder for the user
    ├── DuplicateTransaction - Correlation id reused for a different change
    ├── PlanAlreadySelected - Plan selection after a plan is set
    ├── ConcurrentBalanceUpdate - Balance kept changing under the writer
    └── UpstreamUnavailable - Pricing store unreachable

Usage:
    from credits.exceptions import InsufficientBalance

    if after < 0:
        raise InsufficientBalance(user.pk, required=-amount, available=before)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import (
    BaseApplicationError,
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)

if TYPE_CHECKING:
    from decimal import Decimal
    from typing import Any


class CreditsError(BaseApplicationError):
    """Base exception for all credits operations."""

    default_error_code: str = "CREDITS_ERROR"


class InsufficientBalance(CreditsError):
    """
    Raised when a debit would take a balance below zero.

    Attributes:
        user_id: The user whose balance was too low
        required: The amount that was required
        available: The balance at the time of the attempt

    Example:
        raise InsufficientBalance(user.pk, required=Decimal("5.00"), available=Decimal("2.00"))
    """

    default_error_code: str = "INSUFFICIENT_BALANCE"

    def __init__(
        self,
        user_id: Any,
        required: Decimal,
        available: Decimal,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.user_id = user_id
        self.required = required
        self.available = available

        message = (
            f"Insufficient balance for user {user_id}: "
            f"required ${required}, available ${available}"
        )

        full_details = {
            "user_id": str(user_id),
            "required": str(required),
            "available": str(available),
        }
        if details:
            full_details.update(details)

        super().__init__(
            message=message,
            error_code=error_code,
            details=full_details,
        )


class InvalidAmount(CreditsError, ValidationError):
    """Raised for zero, malformed, negative or wrongly signed amounts."""

    default_error_code: str = "INVALID_AMOUNT"


class InvalidPlan(CreditsError, ValidationError):
    """Raised when a plan type is not one a user can select."""

    default_error_code: str = "INVALID_PLAN"


class Unauthorized(CreditsError, PermissionDeniedError):
    """
    Raised when an operator lacks the permission an action requires.

    Attributes:
        permission: The missing permission (e.g. "credits.add_credits")
    """

    default_error_code: str = "UNAUTHORIZED"

    def __init__(self, permission: str, message: str | None = None):
        self.permission = permission
        super().__init__(
            message=message or f"Missing permission: {permission}",
            details={"permission": permission},
        )


class HolderNotFound(CreditsError, NotFoundError):
    """Raised when a user has no balance holder where one is required."""

    default_error_code: str = "HOLDER_NOT_FOUND"


class DuplicateTransaction(CreditsError, ConflictError):
    """
    Raised when a correlation id is replayed with different parameters.

    A replay with identical parameters is not an error; it returns the
    recorded change marked as a duplicate.
    """

    default_error_code: str = "DUPLICATE_TRANSACTION"

    def __init__(self, correlation_id: str, details: dict[str, Any] | None = None):
        self.correlation_id = correlation_id
        full_details = {"correlation_id": correlation_id}
        if details:
            full_details.update(details)
        super().__init__(
            message=f"Correlation id {correlation_id!r} was already used for a different change",
            details=full_details,
        )


class PlanAlreadySelected(CreditsError, ConflictError):
    """Raised when a user who already has a plan tries to pick one."""

    default_error_code: str = "PLAN_ALREADY_SELECTED"


class ConcurrentBalanceUpdate(CreditsError, ConflictError):
    """Raised when a balance swap keeps losing to concurrent writers."""

    default_error_code: str = "CONCURRENT_BALANCE_UPDATE"


class UpstreamUnavailable(CreditsError, ExternalServiceError):
    """Raised (and logged) when the pricing store cannot be read."""

    default_error_code: str = "UPSTREAM_UNAVAILABLE"
