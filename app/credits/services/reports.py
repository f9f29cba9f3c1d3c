"""
Read-side credit reports: balance summary, monthly usage and ledger
listings.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from django.utils import timezone

from core.exceptions import ValidationError
from core.services import BaseService
from credits.models import EntryType, LedgerEntry, UsageAggregate
from credits.periods import month_key, parse_month_key
from credits.services.balance import BalanceService
from credits.types import BalanceSummary, MonthlyUsageSummary

if TYPE_CHECKING:
    from django.contrib.auth.models import AbstractBaseUser
    from django.db.models import QuerySet

RECENT_TRANSACTIONS_LIMIT = 10
TOP_ASSISTANTS_LIMIT = 5


class CreditReportService(BaseService):
    """Queries behind the dashboard and the admin reporting screens."""

    @staticmethod
    def get_balance_summary(user: AbstractBaseUser) -> BalanceSummary:
        """Current balance, plan state and the newest transactions."""
        holder = BalanceService.get_or_create_holder(user)
        recent = list(
            LedgerEntry.objects.filter(user=user).order_by("-created_at")[
                :RECENT_TRANSACTIONS_LIMIT
            ]
        )
        return BalanceSummary(
            balance=holder.credit_balance,
            plan_type=holder.plan_type,
            plan_name=holder.plan_name,
            needs_topup=holder.needs_topup,
            minimum_balance=holder.minimum_balance,
            is_active=holder.is_active,
            recent_transactions=recent,
        )

    @staticmethod
    def get_monthly_usage(user: AbstractBaseUser, month: str | None = None) -> MonthlyUsageSummary:
        """
        Usage totals, breakdowns and plan headroom for one month.

        Args:
            user: Account owner
            month: "YYYY-MM" (default: the current month)

        Raises:
            ValidationError: If month is malformed
        """
        if month is None:
            month = month_key(timezone.localtime())
        else:
            try:
                year, month_number = parse_month_key(month)
            except ValueError:
                raise ValidationError(
                    f"Month must look like YYYY-MM, got {month!r}",
                    error_code="INVALID_MONTH",
                )
            month = f"{year:04d}-{month_number:02d}"

        holder = BalanceService.get_or_create_holder(user)
        aggregate = UsageAggregate.objects.filter(user=user, month=month).first()

        summary = MonthlyUsageSummary(
            month=month,
            total_minutes=0,
            total_calls=0,
            total_cost=Decimal("0.00"),
            overage_cost=Decimal("0.00"),
            daily_average=0,
            plan_type=holder.plan_type,
            minute_limit=holder.monthly_minute_limit,
            call_limit=holder.monthly_call_limit,
            assistant_limit=holder.assistant_limit,
            minutes_remaining=holder.minutes_remaining,
            calls_remaining=holder.calls_remaining,
            assistants_remaining=holder.assistants_remaining,
        )
        if aggregate is not None:
            summary.total_minutes = aggregate.total_minutes_used
            summary.total_calls = aggregate.total_calls
            summary.total_cost = aggregate.total_cost
            summary.overage_cost = aggregate.overage_cost
            summary.daily_average = aggregate.get_daily_average()
            summary.top_assistants = aggregate.get_top_assistants(limit=TOP_ASSISTANTS_LIMIT)
            summary.daily = list(aggregate.daily.order_by("date"))
        return summary

    @staticmethod
    def list_entries(
        user: AbstractBaseUser | None = None,
        entry_type: str | None = None,
        start: date | datetime | None = None,
        end: date | datetime | None = None,
    ) -> QuerySet[LedgerEntry]:
        """
        Ledger entries, newest first.

        Args:
            user: Restrict to one user (None for every user)
            entry_type: Restrict to one EntryType value
            start / end: Inclusive bounds; a date covers the whole day

        Raises:
            ValidationError: If entry_type is unknown
        """
        queryset = LedgerEntry.objects.select_related("user").order_by("-created_at")
        if user is not None:
            queryset = queryset.filter(user=user)
        if entry_type:
            if entry_type not in EntryType.values:
                raise ValidationError(
                    f"Unknown entry type {entry_type!r}",
                    error_code="INVALID_ENTRY_TYPE",
                    details={"allowed": EntryType.values},
                )
            queryset = queryset.filter(entry_type=entry_type)
        if start is not None:
            if isinstance(start, datetime):
                queryset = queryset.filter(created_at__gte=start)
            else:
                queryset = queryset.filter(created_at__date__gte=start)
        if end is not None:
            if isinstance(end, datetime):
                queryset = queryset.filter(created_at__lte=end)
            else:
                queryset = queryset.filter(created_at__date__lte=end)
        return queryset
