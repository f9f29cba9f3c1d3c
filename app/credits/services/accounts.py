"""
Account lifecycle: plan selection, top-ups, activation, assistant
purchases, refunds and the pre-call allowance check.

Every balance change goes through BalanceService.apply_delta; this
module only decides the amount, the entry type and the plan state
around it.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from decimal import Decimal
from typing import TYPE_CHECKING

from django.conf import settings
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from core.services import BaseService
from credits.exceptions import (
    DuplicateTransaction,
    InvalidAmount,
    InvalidPlan,
    PlanAlreadySelected,
)
from credits.models import (
    UNLIMITED,
    BalanceHolder,
    EntryType,
    PlanType,
    PurchasedAssistant,
)
from credits.periods import add_months
from credits.permissions import require_permission
from credits.services.balance import BalanceService, coerce_amount
from credits.services.pricing import pricing
from credits.types import AssistantPurchase, BalanceChange, CallAllowance, to_money

if TYPE_CHECKING:
    from django.contrib.auth.models import AbstractBaseUser

logger = logging.getLogger(__name__)

SELECTABLE_PLANS = (PlanType.TRIAL, PlanType.PAYG)


def lock_holder(user: AbstractBaseUser) -> BalanceHolder:
    """Get or create the user's holder and lock its row for this transaction."""
    BalanceService.get_or_create_holder(user)
    return BalanceHolder.objects.select_for_update().get(user=user)


def switch_to_payg(holder: BalanceHolder, *, activate: bool = True) -> None:
    """
    Put a holder on pay-as-you-go with unlimited caps.

    Only plan fields are saved; the balance is left to BalanceService.
    """
    now = timezone.now()
    holder.plan_type = PlanType.PAYG
    holder.plan_name = PlanType.PAYG.label
    holder.is_active = activate
    holder.is_trial = False
    holder.trial_ends_at = None
    holder.monthly_minute_limit = UNLIMITED
    holder.monthly_call_limit = UNLIMITED
    holder.assistant_limit = UNLIMITED
    holder.current_period_start = now
    holder.current_period_end = add_months(now)
    holder.save(
        update_fields=[
            "plan_type",
            "plan_name",
            "is_active",
            "is_trial",
            "trial_ends_at",
            "monthly_minute_limit",
            "monthly_call_limit",
            "assistant_limit",
            "current_period_start",
            "current_period_end",
            "updated_at",
        ]
    )


class AccountService(BaseService):
    """
    Plan and payment operations on a user's account.

    All methods are static - no instance state is maintained.
    """

    @staticmethod
    def select_plan(user: AbstractBaseUser, plan_type: PlanType | str) -> BalanceHolder:
        """
        Pick the first plan for a user who has none.

        Trial accounts are active at once with call and assistant quotas.
        Pay-as-you-go accounts stay inactive until the first payment.

        Raises:
            InvalidPlan: If plan_type is not trial or payg
            PlanAlreadySelected: If the user already has a plan
        """
        if plan_type not in SELECTABLE_PLANS:
            raise InvalidPlan(
                f"Cannot select plan {plan_type!r}",
                details={"plan_type": str(plan_type), "allowed": [p.value for p in SELECTABLE_PLANS]},
            )

        with transaction.atomic():
            holder = lock_holder(user)
            if holder.plan_type != PlanType.NONE:
                raise PlanAlreadySelected(
                    f"User already has plan {holder.plan_type}",
                    details={"plan_type": holder.plan_type},
                )

            if plan_type == PlanType.TRIAL:
                now = timezone.now()
                trial_ends_at = now + timedelta(days=settings.CREDITS_TRIAL_DAYS)
                holder.plan_type = PlanType.TRIAL
                holder.plan_name = PlanType.TRIAL.label
                holder.is_active = True
                holder.is_trial = True
                holder.trial_ends_at = trial_ends_at
                holder.monthly_minute_limit = UNLIMITED
                holder.monthly_call_limit = settings.CREDITS_TRIAL_CALL_LIMIT
                holder.assistant_limit = settings.CREDITS_TRIAL_ASSISTANT_LIMIT
                holder.current_period_start = now
                holder.current_period_end = trial_ends_at
                holder.save()
            else:
                switch_to_payg(holder, activate=False)

        logger.info(
            "Plan selected",
            extra={"user_id": str(user.pk), "plan_type": str(plan_type)},
        )
        return holder

    @staticmethod
    def top_up(
        user: AbstractBaseUser,
        amount: Decimal | int | str,
        order_id: str,
        description: str = "",
    ) -> BalanceChange:
        """
        Credit a captured payment and move the account onto pay-as-you-go.

        Idempotent on order_id.

        Plan transitions (first application only):
            none -> active payg
            trial -> active payg (trial limits cleared)
            inactive payg -> active

        Raises:
            InvalidAmount: Below minimum_topup_amount, or no order id
        """
        amount = coerce_amount(amount)
        minimum = to_money(pricing.get().minimum_topup_amount)
        if amount < minimum:
            raise InvalidAmount(
                f"Top-up must be at least ${minimum}",
                details={"amount": str(amount), "minimum": str(minimum)},
            )
        if not order_id:
            raise InvalidAmount("A top-up needs the payment order id")

        with transaction.atomic():
            holder = lock_holder(user)
            change = BalanceService.apply_delta(
                user,
                amount,
                EntryType.TOPUP,
                description=description or f"Credit top-up (order {order_id})",
                correlation_id=f"order:{order_id}",
                related_order_id=order_id,
            )
            if not change.duplicate:
                if holder.plan_type in (PlanType.NONE, PlanType.TRIAL):
                    switch_to_payg(holder)
                elif not holder.is_active and holder.plan_type == PlanType.PAYG:
                    holder.is_active = True
                    holder.save(update_fields=["is_active", "updated_at"])
        return change

    @staticmethod
    def activate_account(
        acting_admin: AbstractBaseUser,
        user: AbstractBaseUser,
        amount: Decimal | int | str,
        correlation_id: str,
        description: str = "",
    ) -> BalanceChange:
        """
        Activate an account by hand and credit its first payment.

        An account that is already active just receives the credit.

        Raises:
            Unauthorized: If the admin lacks credits.activate_account
            InvalidAmount: If amount is not positive
        """
        require_permission(acting_admin, "credits.activate_account")
        amount = coerce_amount(amount)
        if amount <= 0:
            raise InvalidAmount("Activation amount must be positive", details={"amount": str(amount)})

        with transaction.atomic():
            holder = lock_holder(user)
            was_active = holder.is_active
            if not was_active:
                switch_to_payg(holder)
            change = BalanceService.apply_delta(
                user,
                amount,
                EntryType.TOPUP,
                description=description or "Account activated by admin",
                correlation_id=correlation_id,
                metadata={"activated_by": str(acting_admin.pk)},
            )

        logger.info(
            "Account activated",
            extra={
                "admin_id": str(acting_admin.pk),
                "user_id": str(user.pk),
                "amount": str(amount),
                "was_active": was_active,
                "duplicate": change.duplicate,
            },
        )
        return change

    @staticmethod
    def purchase_assistant(
        user: AbstractBaseUser,
        assistant_id: str,
        assistant_name: str,
        correlation_id: str,
    ) -> AssistantPurchase:
        """
        Pay for a new assistant, or use the plan's quota.

        A non-payg plan with assistants left pays nothing. Otherwise
        assistant_base_cost is debited. Repeating a purchase of the same
        assistant id changes nothing and reports the original charge.

        Raises:
            HolderNotFound: If the user has no holder
            InsufficientBalance: If the fee exceeds the balance
            DuplicateTransaction: If correlation_id already paid for a
                different assistant
        """
        if not assistant_id:
            raise InvalidAmount("An assistant id is required")

        with transaction.atomic():
            BalanceService.get_holder(user)
            holder = BalanceHolder.objects.select_for_update().get(user=user)

            recorded = (
                PurchasedAssistant.objects.select_related("ledger_entry")
                .filter(user=user, assistant_id=assistant_id)
                .first()
            )
            if recorded is not None:
                return _recorded_purchase(recorded)

            change = None
            cost = Decimal("0.00")
            covered = holder.plan_type != PlanType.PAYG and holder.assistants_remaining != 0
            if not covered:
                cost = to_money(pricing.get().assistant_base_cost)
            if cost > 0:
                change = BalanceService.apply_delta(
                    user,
                    -cost,
                    EntryType.ASSISTANT_PURCHASE,
                    description=f"Assistant purchase: {assistant_name or assistant_id}",
                    correlation_id=correlation_id,
                    related_assistant_id=assistant_id,
                )

            if change is not None and change.entry.related_assistant_id != assistant_id:
                # The correlation id already paid for another assistant
                raise DuplicateTransaction(
                    correlation_id,
                    details={"recorded_assistant_id": change.entry.related_assistant_id},
                )
            PurchasedAssistant.objects.create(
                user=user,
                assistant_id=assistant_id,
                assistant_name=assistant_name or "",
                cost=cost,
                ledger_entry=change.entry if change is not None else None,
            )
            BalanceHolder.objects.filter(pk=holder.pk).update(
                assistants_created=F("assistants_created") + 1,
                updated_at=timezone.now(),
            )

        logger.info(
            "Assistant purchased",
            extra={
                "user_id": str(user.pk),
                "assistant_id": assistant_id,
                "cost": str(cost),
            },
        )
        return AssistantPurchase(
            assistant_id=assistant_id,
            charged=change is not None,
            cost=cost,
            change=change,
        )

    @staticmethod
    def refund(
        acting_admin: AbstractBaseUser,
        user: AbstractBaseUser,
        amount: Decimal | int | str,
        reason: str,
        correlation_id: str,
    ) -> BalanceChange:
        """
        Return credits to a user.

        Raises:
            Unauthorized: If the admin lacks credits.add_credits
            InvalidAmount: If amount is not positive or reason is blank
        """
        require_permission(acting_admin, "credits.add_credits")
        amount = coerce_amount(amount)
        if amount <= 0:
            raise InvalidAmount("Refund amount must be positive", details={"amount": str(amount)})
        if not reason or not reason.strip():
            raise InvalidAmount("A refund needs a reason")

        change = BalanceService.apply_delta(
            user,
            amount,
            EntryType.REFUND,
            description=f"Refund: {reason}",
            correlation_id=correlation_id,
            metadata={"refunded_by": str(acting_admin.pk), "reason": reason},
        )
        logger.info(
            "Refund issued",
            extra={
                "admin_id": str(acting_admin.pk),
                "user_id": str(user.pk),
                "amount": str(amount),
                "duplicate": change.duplicate,
            },
        )
        return change

    @staticmethod
    def check_call_allowance(user: AbstractBaseUser, estimated_minutes: int) -> CallAllowance:
        """
        Decide whether the user may start a call of the estimated length.

        Args:
            user: Caller's account owner
            estimated_minutes: Expected call length in minutes

        Returns:
            CallAllowance; upgrade_required is set when only a plan change
            (not a top-up) can unblock the call

        Example:
            allowance = AccountService.check_call_allowance(user, 10)
            if not allowance.can_call:
                return Response({"detail": allowance.reason}, status=402)
        """
        if estimated_minutes < 0:
            raise InvalidAmount("Estimated minutes cannot be negative")

        holder = BalanceHolder.objects.filter(user=user).first()
        if holder is None or not holder.is_active:
            return CallAllowance(
                can_call=False,
                reason="Account is not active",
                upgrade_required=True,
            )

        rates = pricing.get()

        if holder.plan_type == PlanType.TRIAL:
            if holder.trial_ends_at and holder.trial_ends_at <= timezone.now():
                return CallAllowance(can_call=False, reason="Trial has expired", upgrade_required=True)
            if holder.calls_remaining == 0:
                return CallAllowance(
                    can_call=False,
                    reason="Trial call limit reached",
                    upgrade_required=True,
                )
            return CallAllowance(can_call=True)

        if holder.plan_type == PlanType.PAYG:
            cost = to_money(estimated_minutes * rates.cost_per_minute_payg)
            if holder.credit_balance < cost:
                return CallAllowance(
                    can_call=False,
                    reason="Insufficient credits",
                    estimated_cost=cost,
                )
            return CallAllowance(can_call=True, estimated_cost=cost)

        if holder.calls_remaining == 0:
            return CallAllowance(
                can_call=False,
                reason="Monthly call limit reached",
                upgrade_required=True,
            )
        remaining = holder.minutes_remaining
        if remaining == UNLIMITED or remaining >= estimated_minutes:
            return CallAllowance(can_call=True)

        cost = to_money((estimated_minutes - remaining) * rates.cost_per_minute_overage)
        if holder.credit_balance < cost:
            return CallAllowance(
                can_call=False,
                reason="Insufficient credits for overage minutes",
                estimated_cost=cost,
            )
        return CallAllowance(can_call=True, estimated_cost=cost)


def _recorded_purchase(recorded: PurchasedAssistant) -> AssistantPurchase:
    entry = recorded.ledger_entry
    change = None
    if entry is not None:
        change = BalanceChange(
            previous_balance=entry.balance_before,
            new_balance=entry.balance_after,
            entry=entry,
            duplicate=True,
        )
    logger.info(
        "Assistant already purchased",
        extra={"user_id": str(recorded.user_id), "assistant_id": recorded.assistant_id},
    )
    return AssistantPurchase(
        assistant_id=recorded.assistant_id,
        charged=entry is not None,
        cost=recorded.cost,
        change=change,
        duplicate=True,
    )
