"""
Usage rollup models.

UsageAggregate holds per-user monthly totals, with per-assistant and
per-day breakdowns in AssistantUsage and DailyUsage. CallUsage records
each billed call once so that replayed call events are never counted
twice.

Usage:
    from credits.models import UsageAggregate

    aggregate = UsageAggregate.objects.get(user=user, month="2024-01")
    aggregate.get_top_assistants(limit=3)
    aggregate.get_daily_average()
"""

from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.db import models

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel


class UsageAggregate(UUIDPrimaryKeyMixin, BaseModel):
    """
    Monthly usage totals for one user.

    Fields:
        user: Owner of the usage
        month: Calendar month as "YYYY-MM"
        year: Calendar year, kept separately for yearly reports
        total_minutes_used / total_calls: Sums over the month
        total_cost: Credits charged for calls in the month
        overage_cost: Portion of total_cost billed as plan overage

    Constraints:
        - One aggregate per (user, month)
        - total_minutes_used == sum(daily.minutes)
        - total_calls == sum(daily.calls)
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="usage_aggregates",
    )
    month = models.CharField(max_length=7, help_text="Calendar month (YYYY-MM)")
    year = models.PositiveIntegerField()

    total_minutes_used = models.PositiveIntegerField(default=0)
    total_calls = models.PositiveIntegerField(default=0)
    total_cost = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
    )
    overage_cost = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
    )

    class Meta:
        ordering = ["-month"]
        verbose_name = "Usage Aggregate"
        verbose_name_plural = "Usage Aggregates"
        constraints = [
            models.UniqueConstraint(
                fields=["user", "month"],
                name="usage_aggregate_unique_user_month",
            ),
        ]

    def __str__(self) -> str:
        """Return string representation."""
        return f"{self.user} {self.month}: {self.total_minutes_used} min"

    def get_top_assistants(self, limit: int = 5) -> list[AssistantUsage]:
        """Return the most used assistants, by minutes descending."""
        return list(self.assistants.order_by("-minutes_used", "assistant_id")[:limit])

    def get_daily_average(self) -> float:
        """
        Average minutes per day with usage.

        Returns:
            total_minutes_used divided by the number of days that have a
            DailyUsage row, or 0 when there are none.
        """
        days = self.daily.count()
        if not days:
            return 0
        return self.total_minutes_used / days


class AssistantUsage(UUIDPrimaryKeyMixin, BaseModel):
    """Per-assistant breakdown of a monthly aggregate."""

    aggregate = models.ForeignKey(
        UsageAggregate,
        on_delete=models.CASCADE,
        related_name="assistants",
    )
    assistant_id = models.CharField(max_length=255)
    assistant_name = models.CharField(max_length=255, blank=True, default="")
    minutes_used = models.PositiveIntegerField(default=0)
    calls_made = models.PositiveIntegerField(default=0)
    last_used_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-minutes_used"]
        verbose_name = "Assistant Usage"
        verbose_name_plural = "Assistant Usage"
        constraints = [
            models.UniqueConstraint(
                fields=["aggregate", "assistant_id"],
                name="assistant_usage_unique_aggregate_assistant",
            ),
        ]

    def __str__(self) -> str:
        """Return string representation."""
        return f"{self.assistant_name or self.assistant_id}: {self.minutes_used} min"


class DailyUsage(UUIDPrimaryKeyMixin, BaseModel):
    """Per-day breakdown of a monthly aggregate."""

    aggregate = models.ForeignKey(
        UsageAggregate,
        on_delete=models.CASCADE,
        related_name="daily",
    )
    date = models.DateField()
    minutes = models.PositiveIntegerField(default=0)
    calls = models.PositiveIntegerField(default=0)
    cost = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
    )

    class Meta:
        ordering = ["date"]
        verbose_name = "Daily Usage"
        verbose_name_plural = "Daily Usage"
        constraints = [
            models.UniqueConstraint(
                fields=["aggregate", "date"],
                name="daily_usage_unique_aggregate_date",
            ),
        ]

    def __str__(self) -> str:
        """Return string representation."""
        return f"{self.date}: {self.minutes} min, {self.calls} calls"


class CallUsage(UUIDPrimaryKeyMixin, models.Model):
    """
    One billed call.

    The unique call_id makes usage recording idempotent, including for
    zero-cost calls that leave no ledger entry behind.
    """

    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    call_id = models.CharField(max_length=255, unique=True)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="call_usages",
    )
    assistant_id = models.CharField(max_length=255)
    minutes = models.PositiveIntegerField()
    cost = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
    )
    is_overage = models.BooleanField(default=False)
    occurred_at = models.DateTimeField()

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Call Usage"
        verbose_name_plural = "Call Usage"

    def __str__(self) -> str:
        """Return string representation."""
        return f"Call {self.call_id}: {self.minutes} min (${self.cost})"
