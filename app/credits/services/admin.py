"""
Admin adjustment gate: permission-checked manual balance changes.

Adding credits needs credits.add_credits; removing them needs
credits.remove_credits as well. The ledger entry and the
AdminCreditAction audit row are written in one transaction.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.services import BaseService
from credits.exceptions import InvalidAmount
from credits.models import AdminCreditAction, EntryType
from credits.permissions import require_permission
from credits.services.accounts import lock_holder, switch_to_payg
from credits.services.balance import BalanceService, coerce_amount

if TYPE_CHECKING:
    from decimal import Decimal

    from django.contrib.auth.models import AbstractBaseUser

    from credits.types import BalanceChange


class AdminAdjustmentGate(BaseService):
    """Entry point for operator credit adjustments."""

    @classmethod
    def adjust(
        cls,
        acting_admin: AbstractBaseUser,
        target_user: AbstractBaseUser,
        amount: Decimal | int | str,
        reason: str,
        correlation_id: str,
    ) -> BalanceChange:
        """
        Add (positive amount) or remove (negative amount) credits.

        A target without an active account is moved onto active
        pay-as-you-go first. Removals are never clamped: one larger than
        the balance is rejected as a whole.

        Args:
            acting_admin: Operator performing the change
            target_user: Owner of the balance
            amount: Signed adjustment
            reason: Why the adjustment was made (required)
            correlation_id: Idempotency key of the admin request

        Returns:
            The BalanceChange; duplicate=True for a replayed request

        Raises:
            Unauthorized: Missing credits.add_credits, or
                credits.remove_credits for a removal
            InvalidAmount: Zero or malformed amount, or blank reason
            InsufficientBalance: Removal larger than the balance

        Example:
            AdminAdjustmentGate.adjust(
                admin, user, Decimal("-5.00"),
                reason="Duplicate top-up",
                correlation_id=f"admin:{request_id}",
            )
        """
        amount = coerce_amount(amount)
        require_permission(acting_admin, "credits.add_credits")
        if amount < 0:
            require_permission(acting_admin, "credits.remove_credits")

        if amount == 0:
            raise InvalidAmount("Adjustment amount cannot be zero")
        if not reason or not reason.strip():
            raise InvalidAmount("An adjustment needs a reason")

        kind = EntryType.ADMIN_ADD if amount > 0 else EntryType.ADMIN_REMOVE
        admin_name = acting_admin.get_full_name() or acting_admin.get_username()

        with cls.atomic():
            holder = lock_holder(target_user)
            if not holder.is_active:
                switch_to_payg(holder)

            change = BalanceService.apply_delta(
                target_user,
                amount,
                kind,
                description=f"Admin adjustment: {reason}",
                correlation_id=correlation_id,
                metadata={"admin_id": str(acting_admin.pk), "reason": reason},
            )
            if not change.duplicate:
                AdminCreditAction.objects.create(
                    admin=acting_admin,
                    admin_name=admin_name,
                    user=target_user,
                    action_type=kind,
                    amount=amount,
                    reason=reason,
                    previous_balance=change.previous_balance,
                    new_balance=change.new_balance,
                    ledger_entry=change.entry,
                )

        cls.get_logger().info(
            "Admin credit adjustment",
            extra={
                "admin_id": str(acting_admin.pk),
                "user_id": str(target_user.pk),
                "amount": str(amount),
                "duplicate": change.duplicate,
            },
        )
        return change
