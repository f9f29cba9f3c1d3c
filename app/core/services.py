"""
Base service layer patterns for business logic encapsulation.

This module provides foundational patterns for the service layer:
- ServiceResult: Standard result wrapper for consistent success/failure handling
- BaseService: Base class with common service utilities

Pattern Comparison:
    - ServiceResult: Use where a caller must keep going after a failure
      (webhook handlers report per-event outcomes)
    - Exceptions: Use for failures the immediate caller must see
      (insufficient balance, missing permission)

Usage:
    from core.services import BaseService, ServiceResult

    class RefundService(BaseService):
        @classmethod
        def refund(cls, user, amount) -> ServiceResult[BalanceChange]:
            with cls.atomic():
                change = BalanceService.apply_delta(...)
            cls.get_logger().info("Refunded %s", amount)
            return ServiceResult.success(change)
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Generic, TypeVar

from django.db import transaction

if TYPE_CHECKING:
    from collections.abc import Generator


T = TypeVar("T")


@dataclass
class ServiceResult(Generic[T]):
    """
    Standard result wrapper for service operations.

    Attributes:
        success: Whether the operation succeeded
        data: Result data if successful (None if failed)
        error: Error message if failed (None if successful)
        error_code: Machine-readable error code for client handling
        errors: Field-level errors for validation failures

    Usage:
        result = dispatch_webhook(event)
        if result.success:
            event.mark_processed()
        else:
            event.mark_failed(result.error)
    """

    success: bool
    data: T | None = None
    error: str | None = None
    error_code: str | None = None
    errors: dict[str, list[str]] | None = field(default=None)

    @classmethod
    def success(cls, data: T) -> ServiceResult[T]:
        """
        Create a successful result.

        Args:
            data: The result data

        Returns:
            ServiceResult with success=True and data set
        """
        return cls(success=True, data=data)

    @classmethod
    def failure(
        cls,
        error: str,
        error_code: str | None = None,
        errors: dict[str, list[str]] | None = None,
    ) -> ServiceResult[T]:
        """
        Create a failed result.

        Args:
            error: Human-readable error message
            error_code: Machine-readable error code for client handling
            errors: Field-level errors (for validation failures)

        Returns:
            ServiceResult with success=False and error details
        """
        return cls(
            success=False,
            error=error,
            error_code=error_code,
            errors=errors,
        )

    @classmethod
    def from_exception(cls, exc: Exception, error_code: str | None = None) -> ServiceResult[T]:
        """
        Create a failed result from an exception.

        Application errors keep their own error code; anything else falls
        back to the upper-cased class name.

        Args:
            exc: The caught exception
            error_code: Optional error code override

        Returns:
            ServiceResult with error details from exception
        """
        message = getattr(exc, "message", None) or str(exc)
        code = error_code or getattr(exc, "error_code", None) or exc.__class__.__name__.upper()
        return cls(success=False, error=message, error_code=code)

    def __bool__(self) -> bool:
        """Allow using result in boolean context."""
        return self.success


class BaseService:
    """
    Base class for service layer classes.

    Provides:
    - Logging setup per service
    - Database transaction management

    Design Notes:
        - Use @staticmethod or @classmethod (no instance state)
        - Raise application errors for failures the caller must handle
    """

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """
        Get logger for this service.

        Returns a logger named after the service class for easy
        filtering in logs.
        """
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    @contextmanager
    def atomic(cls) -> Generator[None, None, None]:
        """
        Context manager for database transactions.

        Thin wrapper around Django's transaction.atomic(). Nested use
        creates a savepoint, so an inner failure rolls back only the
        inner block.

        Example:
            with cls.atomic():
                holder.save()
                LedgerEntry.objects.create(...)
        """
        with transaction.atomic():
            yield

