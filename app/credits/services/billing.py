"""
Call billing: turns a completed call into a charge and a usage record.

Usage:
    from credits.services.billing import CallBillingService

    charge = CallBillingService.bill_completed_call(
        user, call_id="call_123", assistant_id="asst_1", duration_seconds=125,
    )
    charge.minutes  # 3
"""

from __future__ import annotations

import logging
import math
from decimal import Decimal
from typing import TYPE_CHECKING

from django.db import transaction
from django.db.models import F
from django.utils import timezone

from core.services import BaseService
from credits.exceptions import HolderNotFound, InvalidAmount
from credits.models import UNLIMITED, BalanceHolder, CallUsage, EntryType, LedgerEntry, PlanType
from credits.services.balance import BalanceService, coerce_amount
from credits.services.pricing import pricing
from credits.services.usage import UsageAggregator
from credits.types import BalanceChange, CallCharge, to_money

if TYPE_CHECKING:
    from datetime import datetime

    from django.contrib.auth.models import AbstractBaseUser

logger = logging.getLogger(__name__)


def call_correlation_id(call_id: str) -> str:
    return f"call:{call_id}"


class CallBillingService(BaseService):
    """
    Billing of completed calls.

    All methods are static - no instance state is maintained.
    """

    @staticmethod
    def debit_for_call(
        user: AbstractBaseUser,
        call_id: str,
        assistant_id: str,
        minutes: int,
        cost: Decimal | int | str,
        *,
        assistant_name: str = "",
        overage: bool = False,
        when: datetime | None = None,
    ) -> CallCharge:
        """
        Charge a completed call and record its usage in one transaction.

        Steps:
            1. Return the recorded charge if the call was already billed
            2. Debit the cost (skipped for zero-cost calls)
            3. Record usage (monthly, per-assistant, per-day)
            4. Bump the holder's period counters

        Args:
            user: Account owner
            call_id: Unique call identifier (idempotency key)
            assistant_id: Assistant that handled the call
            minutes: Billed minutes
            cost: Amount to debit, >= 0
            assistant_name: Display name for usage reports
            overage: Whether the cost is plan overage
            when: When the call ended (default: now)

        Raises:
            InvalidAmount: Negative cost or minutes, or no call id
            InsufficientBalance: Cost exceeds the balance; nothing is recorded
        """
        if not call_id:
            raise InvalidAmount("A call id is required")
        cost = coerce_amount(cost)
        if cost < 0 or minutes < 0:
            raise InvalidAmount(
                "Call cost and minutes cannot be negative",
                details={"cost": str(cost), "minutes": minutes},
            )

        with transaction.atomic():
            # Serializes billing per user so the replay check below is safe
            BalanceHolder.objects.select_for_update().filter(user=user).first()

            recorded = CallUsage.objects.filter(call_id=call_id).first()
            if recorded is not None:
                return _recorded_charge(recorded)

            change = None
            if cost > 0:
                change = BalanceService.apply_delta(
                    user,
                    -cost,
                    EntryType.USAGE,
                    description=f"Call {call_id}: {minutes} min",
                    correlation_id=call_correlation_id(call_id),
                    related_call_id=call_id,
                    related_assistant_id=assistant_id,
                    metadata={"minutes": minutes, "overage": overage},
                )

            UsageAggregator.record_usage(
                user,
                assistant_id,
                minutes,
                cost,
                assistant_name=assistant_name,
                call_id=call_id,
                overage_cost=cost if overage else 0,
                when=when,
            )
            BalanceHolder.objects.filter(user=user).update(
                minutes_used=F("minutes_used") + minutes,
                calls_used=F("calls_used") + 1,
                updated_at=timezone.now(),
            )

        logger.info(
            "Call billed",
            extra={
                "user_id": str(user.pk),
                "call_id": call_id,
                "minutes": minutes,
                "cost": str(cost),
                "overage": overage,
            },
        )
        return CallCharge(
            call_id=call_id,
            minutes=minutes,
            cost=cost,
            is_overage=overage,
            change=change,
        )

    @staticmethod
    def bill_completed_call(
        user: AbstractBaseUser,
        call_id: str,
        assistant_id: str,
        duration_seconds: float,
        *,
        assistant_name: str = "",
        when: datetime | None = None,
    ) -> CallCharge | None:
        """
        Price a completed call under the user's plan and charge it.

        Minutes are rounded up. Pay-as-you-go pays every minute at
        cost_per_minute_payg; other plans pay only minutes beyond their
        monthly limit, at cost_per_minute_overage.

        Returns:
            The CallCharge, or None for calls shorter than one second

        Raises:
            InvalidAmount: If the duration is not finite
            HolderNotFound: If the user has no holder
            InsufficientBalance: If the cost exceeds the balance
        """
        if not math.isfinite(duration_seconds):
            raise InvalidAmount(
                "Call duration must be a finite number of seconds",
                details={"duration_seconds": str(duration_seconds)},
            )
        if duration_seconds < 1:
            logger.info(
                "Ignoring call shorter than a second",
                extra={"call_id": call_id, "duration_seconds": duration_seconds},
            )
            return None

        minutes = math.ceil(duration_seconds / 60)

        with transaction.atomic():
            # Included minutes are read under the row lock so calls billed
            # at the same time cannot both spend the same allowance
            holder = BalanceHolder.objects.select_for_update().filter(user=user).first()
            if holder is None:
                raise HolderNotFound(
                    f"No balance holder for user {user.pk}",
                    details={"user_id": str(user.pk)},
                )
            cost, overage = _price_call(holder, minutes)

            return CallBillingService.debit_for_call(
                user,
                call_id,
                assistant_id,
                minutes,
                cost,
                assistant_name=assistant_name,
                overage=overage,
                when=when,
            )


def _price_call(holder: BalanceHolder, minutes: int) -> tuple[Decimal, bool]:
    """Return (cost, is_overage) of a call under the holder's plan."""
    rates = pricing.get()
    if holder.plan_type == PlanType.PAYG:
        return to_money(minutes * rates.cost_per_minute_payg), False
    if holder.monthly_minute_limit == UNLIMITED:
        return Decimal("0.00"), False
    included_left = max(0, holder.monthly_minute_limit - holder.minutes_used)
    overage_minutes = max(0, minutes - included_left)
    return to_money(overage_minutes * rates.cost_per_minute_overage), overage_minutes > 0


def _recorded_charge(recorded: CallUsage) -> CallCharge:
    entry = LedgerEntry.objects.filter(
        correlation_id=call_correlation_id(recorded.call_id)
    ).first()
    change = None
    if entry is not None:
        change = BalanceChange(
            previous_balance=entry.balance_before,
            new_balance=entry.balance_after,
            entry=entry,
            duplicate=True,
        )
    logger.info("Call already billed", extra={"call_id": recorded.call_id})
    return CallCharge(
        call_id=recorded.call_id,
        minutes=recorded.minutes,
        cost=recorded.cost,
        is_overage=recorded.is_overage,
        change=change,
        duplicate=True,
    )
