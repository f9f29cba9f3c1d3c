"""
Balance holder model.

One BalanceHolder exists per user. It carries the current prepaid credit
balance together with plan metadata (limits, counters, billing period).
The balance is only ever changed through BalanceService so that every
change is mirrored by exactly one LedgerEntry.

Usage:
    from credits.models import BalanceHolder, PlanType

    holder = BalanceHolder.objects.get(user=user)
    holder.needs_topup        # balance at or below the minimum balance
    holder.minutes_remaining  # -1 when unlimited
"""

from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.db import models
from django.db.models import Q

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel

# Sentinel for "no limit" on minute/call/assistant caps
UNLIMITED = -1


class PlanType(models.TextChoices):
    """
    Billing plans a holder can be on.

    Values:
        NONE: Placeholder until the user picks a plan
        TRIAL: Free trial with call and assistant quotas
        PAYG: Pay-as-you-go, usage debited from prepaid credits
        SUBSCRIPTION: Fixed monthly quota, overage debited from credits
    """

    NONE = "none", "No Plan"
    TRIAL = "trial", "Free Trial"
    PAYG = "payg", "Pay-as-you-go"
    SUBSCRIPTION = "subscription", "Subscription"


class BalanceHolder(UUIDPrimaryKeyMixin, BaseModel):
    """
    Per-user credit balance and plan state.

    Fields:
        user: Owner of the balance (one holder per user)
        plan_type / plan_name: Current billing plan
        credit_balance: Prepaid credit in USD, never negative
        minimum_balance: Threshold at or below which a top-up is suggested
        is_active: Whether the account may place calls
        is_trial / trial_ends_at: Trial bookkeeping
        monthly_minute_limit / monthly_call_limit / assistant_limit:
            Plan caps, -1 for unlimited
        minutes_used / calls_used / assistants_created: Usage counters for
            the current billing period (assistants persist across periods)
        current_period_start / current_period_end: Billing period bounds
        metadata: Arbitrary JSON data

    Constraints:
        - credit_balance >= 0
    """

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="balance_holder",
        help_text="User that owns this balance",
    )

    plan_type = models.CharField(
        max_length=20,
        choices=PlanType.choices,
        default=PlanType.NONE,
        db_index=True,
        help_text="Current billing plan",
    )
    plan_name = models.CharField(
        max_length=100,
        default="No Plan",
        help_text="Display name of the current plan",
    )

    credit_balance = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text="Prepaid credit balance in USD",
    )
    minimum_balance = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("5.00"),
        help_text="Balance at or below which a top-up is needed",
    )

    is_active = models.BooleanField(
        default=False,
        db_index=True,
        help_text="Whether the account may place calls",
    )
    is_trial = models.BooleanField(default=False)
    trial_ends_at = models.DateTimeField(null=True, blank=True)

    monthly_minute_limit = models.IntegerField(
        default=UNLIMITED,
        help_text="Included minutes per period, -1 for unlimited",
    )
    monthly_call_limit = models.IntegerField(
        default=UNLIMITED,
        help_text="Included calls per period, -1 for unlimited",
    )
    assistant_limit = models.IntegerField(
        default=UNLIMITED,
        help_text="Included assistants, -1 for unlimited",
    )

    minutes_used = models.PositiveIntegerField(default=0)
    calls_used = models.PositiveIntegerField(default=0)
    assistants_created = models.PositiveIntegerField(default=0)

    current_period_start = models.DateTimeField(null=True, blank=True)
    current_period_end = models.DateTimeField(null=True, blank=True, db_index=True)

    metadata = models.JSONField(default=dict, blank=True)

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Balance Holder"
        verbose_name_plural = "Balance Holders"
        constraints = [
            models.CheckConstraint(
                condition=Q(credit_balance__gte=0),
                name="balance_holder_credit_balance_non_negative",
            ),
        ]
        permissions = [
            ("add_credits", "Can add credits to a user balance"),
            ("remove_credits", "Can remove credits from a user balance"),
            ("activate_account", "Can activate a user account"),
            ("view_pricing", "Can view pricing settings"),
            ("manage_pricing", "Can change pricing settings"),
            ("view_all_ledger", "Can view ledger entries of every user"),
        ]

    def __str__(self) -> str:
        """Return string representation."""
        return f"{self.user} ({self.plan_type}, ${self.credit_balance})"

    @property
    def needs_topup(self) -> bool:
        """True when the balance is at or below the minimum balance."""
        return self.credit_balance <= self.minimum_balance

    @property
    def is_payg(self) -> bool:
        return self.plan_type == PlanType.PAYG

    @property
    def minutes_remaining(self) -> int:
        """Minutes left in the current period, -1 when unlimited."""
        return _remaining(self.monthly_minute_limit, self.minutes_used)

    @property
    def minutes_overage(self) -> int:
        """Minutes used beyond the period limit."""
        if self.monthly_minute_limit == UNLIMITED:
            return 0
        return max(0, self.minutes_used - self.monthly_minute_limit)

    @property
    def calls_remaining(self) -> int:
        """Calls left in the current period, -1 when unlimited."""
        return _remaining(self.monthly_call_limit, self.calls_used)

    @property
    def assistants_remaining(self) -> int:
        """Assistants still covered by the plan, -1 when unlimited."""
        return _remaining(self.assistant_limit, self.assistants_created)


def _remaining(limit: int, used: int) -> int:
    if limit == UNLIMITED:
        return UNLIMITED
    return max(0, limit - used)
