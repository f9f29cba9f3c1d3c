"""
Balance service: the single point through which a balance changes.

Every mutation locks the holder row, computes the new balance in
Decimal, swaps it in with a conditional UPDATE and appends one ledger
entry, all inside one transaction. A correlation id that was already
applied returns the recorded change instead of mutating again.

Usage:
    from credits.models import EntryType
    from credits.services.balance import BalanceService

    change = BalanceService.apply_delta(
        user,
        Decimal("-3.50"),
        EntryType.USAGE,
        description="Call charge",
        correlation_id="call:abc123",
        related_call_id="abc123",
    )
    change.new_balance
"""

from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any

from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone

from core.services import BaseService
from credits.exceptions import (
    ConcurrentBalanceUpdate,
    DuplicateTransaction,
    HolderNotFound,
    InsufficientBalance,
    InvalidAmount,
)
from credits.models import (
    CREDIT_ENTRY_TYPES,
    BalanceHolder,
    EntryType,
    LedgerEntry,
    PlanType,
)
from credits.periods import add_months
from credits.types import CENTS, MAX_AMOUNT, BalanceChange

if TYPE_CHECKING:
    from django.contrib.auth.models import AbstractBaseUser

logger = logging.getLogger(__name__)

# Swap attempts before giving up on a row that keeps changing underneath.
# With select_for_update the first attempt always wins.
MAX_SWAP_ATTEMPTS = 3


def coerce_amount(value: Any) -> Decimal:
    """
    Parse an amount and make sure it has at most two decimal places.

    Raises:
        InvalidAmount: If the value is not a finite number, is larger
            than MAX_AMOUNT or has sub-cent precision
    """
    if isinstance(value, float):
        value = str(value)
    try:
        amount = Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidAmount(f"Not a valid amount: {value!r}", details={"amount": str(value)})
    if not amount.is_finite():
        raise InvalidAmount(f"Not a valid amount: {value!r}", details={"amount": str(value)})
    if abs(amount) > MAX_AMOUNT:
        raise InvalidAmount(
            f"Amount exceeds the largest supported amount of {MAX_AMOUNT}",
            details={"amount": str(value), "max_amount": str(MAX_AMOUNT)},
        )
    if amount != amount.quantize(CENTS):
        raise InvalidAmount(
            f"Amount must have at most two decimal places: {value!r}",
            details={"amount": str(value)},
        )
    return amount.quantize(CENTS)


class BalanceService(BaseService):
    """
    Service class for balance mutations.

    Key features:
    - Row lock plus compare-and-swap, so concurrent debits never
      overdraw a balance
    - Idempotency via the unique correlation id (safe to retry)
    - Exactly one ledger entry per applied change

    All methods are static - no instance state is maintained.
    """

    @staticmethod
    def get_or_create_holder(user: AbstractBaseUser) -> BalanceHolder:
        """
        Get the user's holder, creating an inactive one without a plan.

        Args:
            user: The balance owner

        Returns:
            The existing or newly created BalanceHolder
        """
        holder, created = BalanceHolder.objects.get_or_create(
            user=user,
            defaults={"minimum_balance": _default_minimum_balance()},
        )
        if created:
            logger.info("Balance holder created", extra={"user_id": str(user.pk)})
        return holder

    @staticmethod
    def get_holder(user: AbstractBaseUser) -> BalanceHolder:
        """
        Get the user's holder.

        Raises:
            HolderNotFound: If the user has none
        """
        try:
            return BalanceHolder.objects.get(user=user)
        except BalanceHolder.DoesNotExist:
            raise HolderNotFound(
                f"No balance holder for user {user.pk}",
                details={"user_id": str(user.pk)},
            )

    @staticmethod
    def get_balance(user: AbstractBaseUser) -> Decimal:
        """Current balance, 0.00 when the user has no holder."""
        balance = (
            BalanceHolder.objects.filter(user=user)
            .values_list("credit_balance", flat=True)
            .first()
        )
        return balance if balance is not None else Decimal("0.00")

    @staticmethod
    def apply_delta(
        user: AbstractBaseUser,
        amount: Decimal | int | str,
        kind: EntryType | str,
        description: str = "",
        correlation_id: str = "",
        *,
        related_order_id: str = "",
        related_call_id: str = "",
        related_assistant_id: str = "",
        metadata: dict[str, Any] | None = None,
    ) -> BalanceChange:
        """
        Apply a signed change to a user's balance and record it.

        Idempotent - a correlation id that was already applied returns the
        recorded change with duplicate=True.

        Args:
            user: Balance owner
            amount: Signed amount, positive for credit kinds and negative
                for debit kinds
            kind: Entry type of the change
            description: Human-readable description for the ledger
            correlation_id: Idempotency key of the causing event
            related_order_id / related_call_id / related_assistant_id:
                Identifiers copied onto the ledger entry
            metadata: Arbitrary JSON data for the ledger entry

        Returns:
            BalanceChange with the before/after balance and the entry

        Raises:
            InvalidAmount: Zero, malformed, oversized or wrongly signed
                amount, a resulting balance above MAX_AMOUNT, unknown kind,
                or missing correlation id
            InsufficientBalance: The debit would take the balance below zero
            DuplicateTransaction: The correlation id was used for a
                different user, kind or amount
        """
        amount = coerce_amount(amount)
        kind = _validate_kind(kind, amount)
        if not correlation_id:
            raise InvalidAmount("A correlation id is required for every balance change")

        with transaction.atomic():
            # Check idempotency FIRST, before touching the balance
            existing = LedgerEntry.objects.filter(correlation_id=correlation_id).first()
            if existing is not None:
                return _replayed(existing, user, kind, amount)

            holder = _lock_holder(user, amount)

            for _ in range(MAX_SWAP_ATTEMPTS):
                before = holder.credit_balance
                after = before + amount
                if after < 0:
                    logger.info(
                        "Debit rejected: insufficient balance",
                        extra={
                            "user_id": str(user.pk),
                            "amount": str(amount),
                            "balance": str(before),
                            "correlation_id": correlation_id,
                        },
                    )
                    raise InsufficientBalance(user.pk, required=-amount, available=before)
                if after > MAX_AMOUNT:
                    raise InvalidAmount(
                        f"Balance would exceed the largest supported amount of {MAX_AMOUNT}",
                        details={"balance": str(before), "amount": str(amount)},
                    )

                entry = None
                try:
                    with transaction.atomic():
                        swapped = BalanceHolder.objects.filter(
                            pk=holder.pk,
                            credit_balance=before,
                        ).update(credit_balance=after, updated_at=timezone.now())
                        if swapped:
                            entry = LedgerEntry.objects.create(
                                user=user,
                                entry_type=kind,
                                amount=amount,
                                description=description,
                                balance_before=before,
                                balance_after=after,
                                correlation_id=correlation_id,
                                related_order_id=related_order_id,
                                related_call_id=related_call_id,
                                related_assistant_id=related_assistant_id,
                                metadata=metadata or {},
                            )
                except IntegrityError:
                    # Another writer recorded the same correlation id between
                    # our check and insert; the savepoint undid our swap
                    existing = LedgerEntry.objects.filter(correlation_id=correlation_id).first()
                    if existing is None:
                        raise
                    return _replayed(existing, user, kind, amount)

                if entry is not None:
                    logger.info(
                        "Balance changed",
                        extra={
                            "user_id": str(user.pk),
                            "entry_type": kind,
                            "amount": str(amount),
                            "balance_before": str(before),
                            "balance_after": str(after),
                            "correlation_id": correlation_id,
                        },
                    )
                    return BalanceChange(
                        previous_balance=before,
                        new_balance=after,
                        entry=entry,
                    )

                holder.refresh_from_db(fields=["credit_balance"])

        raise ConcurrentBalanceUpdate(
            f"Balance of user {user.pk} kept changing, giving up",
            details={"user_id": str(user.pk), "correlation_id": correlation_id},
        )


def _default_minimum_balance() -> Decimal:
    return Decimal(str(getattr(settings, "CREDITS_DEFAULT_MINIMUM_BALANCE", "5.00")))


def _validate_kind(kind: EntryType | str, amount: Decimal) -> EntryType:
    try:
        kind = EntryType(kind)
    except ValueError:
        raise InvalidAmount(f"Unknown entry type: {kind!r}", details={"entry_type": str(kind)})

    if amount == 0:
        raise InvalidAmount("Amount cannot be zero", details={"amount": str(amount)})
    is_credit = kind in CREDIT_ENTRY_TYPES
    if is_credit != (amount > 0):
        raise InvalidAmount(
            f"Amount {amount} has the wrong sign for {kind.value}",
            details={"amount": str(amount), "entry_type": kind.value},
        )
    return kind


def _replayed(
    existing: LedgerEntry,
    user: AbstractBaseUser,
    kind: EntryType,
    amount: Decimal,
) -> BalanceChange:
    if existing.user_id != user.pk or existing.entry_type != kind or existing.amount != amount:
        raise DuplicateTransaction(
            existing.correlation_id,
            details={
                "recorded_entry_type": existing.entry_type,
                "recorded_amount": str(existing.amount),
            },
        )
    logger.info(
        "Duplicate balance change ignored",
        extra={"user_id": str(user.pk), "correlation_id": existing.correlation_id},
    )
    return BalanceChange(
        previous_balance=existing.balance_before,
        new_balance=existing.balance_after,
        entry=existing,
        duplicate=True,
    )


def _lock_holder(user: AbstractBaseUser, amount: Decimal) -> BalanceHolder:
    """
    Lock and return the user's holder.

    A credit for a user without a holder opens an active pay-as-you-go
    holder; a debit for such a user is rejected.
    """
    holder = BalanceHolder.objects.select_for_update().filter(user=user).first()
    if holder is not None:
        return holder

    if amount < 0:
        raise InsufficientBalance(user.pk, required=-amount, available=Decimal("0.00"))

    now = timezone.now()
    try:
        with transaction.atomic():
            BalanceHolder.objects.create(
                user=user,
                plan_type=PlanType.PAYG,
                plan_name=PlanType.PAYG.label,
                is_active=True,
                minimum_balance=_default_minimum_balance(),
                current_period_start=now,
                current_period_end=add_months(now),
            )
    except IntegrityError:
        # Created concurrently; lock the winner's row below
        pass
    logger.info("Balance holder opened by first credit", extra={"user_id": str(user.pk)})
    return BalanceHolder.objects.select_for_update().get(user=user)
