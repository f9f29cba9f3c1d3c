"""
Usage aggregator: monthly rollups of call minutes, calls and cost.

Totals are bumped with F() expressions so concurrent calls for the same
user never lose an increment. When a call id is given, a CallUsage row
is claimed first and a replay of the same call is not counted again.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import TYPE_CHECKING

from django.db import transaction
from django.db.models import F
from django.utils import timezone

from core.services import BaseService
from credits.exceptions import InvalidAmount
from credits.models import AssistantUsage, CallUsage, DailyUsage, UsageAggregate
from credits.periods import month_key
from credits.types import to_money

if TYPE_CHECKING:
    from datetime import datetime

    from django.contrib.auth.models import AbstractBaseUser

logger = logging.getLogger(__name__)


class UsageAggregator(BaseService):
    """
    Records usage into UsageAggregate and its breakdown rows.

    Not gated by balance: callers that charge for usage do the debit and
    the recording in one transaction.
    """

    @staticmethod
    def record_usage(
        user: AbstractBaseUser,
        assistant_id: str,
        minutes: int,
        cost: Decimal | int | str,
        *,
        assistant_name: str = "",
        call_id: str | None = None,
        overage_cost: Decimal | int | str = 0,
        when: datetime | None = None,
    ) -> UsageAggregate:
        """
        Add one call's usage to the month it happened in.

        Args:
            user: Owner of the usage
            assistant_id: Assistant that handled the call
            minutes: Billed minutes
            cost: Credits charged for the call
            assistant_name: Display name, stored on the assistant row
            call_id: Call identifier; makes the recording idempotent
            overage_cost: Portion of cost billed as overage
            when: When the call happened (default: now)

        Returns:
            The refreshed UsageAggregate for that month

        Raises:
            InvalidAmount: If minutes or cost is negative
        """
        if minutes < 0:
            raise InvalidAmount("Minutes cannot be negative", details={"minutes": minutes})
        try:
            cost = to_money(cost)
            overage_cost = to_money(overage_cost)
        except ValueError as exc:
            raise InvalidAmount(str(exc))
        if cost < 0 or overage_cost < 0:
            raise InvalidAmount("Usage cost cannot be negative", details={"cost": str(cost)})

        when = when or timezone.now()
        local = timezone.localtime(when) if timezone.is_aware(when) else when
        month = month_key(local)

        with transaction.atomic():
            aggregate, _ = UsageAggregate.objects.get_or_create(
                user=user,
                month=month,
                defaults={"year": local.year},
            )

            if call_id:
                _, created = CallUsage.objects.get_or_create(
                    call_id=call_id,
                    defaults={
                        "user": user,
                        "assistant_id": assistant_id,
                        "minutes": minutes,
                        "cost": cost,
                        "is_overage": overage_cost > 0,
                        "occurred_at": when,
                    },
                )
                if not created:
                    logger.info(
                        "Usage for call already recorded",
                        extra={"user_id": str(user.pk), "call_id": call_id},
                    )
                    return aggregate

            UsageAggregate.objects.filter(pk=aggregate.pk).update(
                total_minutes_used=F("total_minutes_used") + minutes,
                total_calls=F("total_calls") + 1,
                total_cost=F("total_cost") + cost,
                overage_cost=F("overage_cost") + overage_cost,
                updated_at=timezone.now(),
            )

            assistant, _ = AssistantUsage.objects.get_or_create(
                aggregate=aggregate,
                assistant_id=assistant_id,
                defaults={"assistant_name": assistant_name},
            )
            assistant_updates = {
                "minutes_used": F("minutes_used") + minutes,
                "calls_made": F("calls_made") + 1,
                "last_used_at": when,
                "updated_at": timezone.now(),
            }
            if assistant_name:
                assistant_updates["assistant_name"] = assistant_name
            AssistantUsage.objects.filter(pk=assistant.pk).update(**assistant_updates)

            daily, _ = DailyUsage.objects.get_or_create(aggregate=aggregate, date=local.date())
            DailyUsage.objects.filter(pk=daily.pk).update(
                minutes=F("minutes") + minutes,
                calls=F("calls") + 1,
                cost=F("cost") + cost,
                updated_at=timezone.now(),
            )

        logger.info(
            "Usage recorded",
            extra={
                "user_id": str(user.pk),
                "month": month,
                "assistant_id": assistant_id,
                "minutes": minutes,
                "cost": str(cost),
                "call_id": call_id,
            },
        )
        aggregate.refresh_from_db()
        return aggregate
