"""
Ledger entry model.

Every balance-affecting transaction is recorded as one immutable
LedgerEntry that captures the balance before and after the change.
Entries are never edited or deleted; corrections are new entries.

Usage:
    from credits.models import LedgerEntry, EntryType

    LedgerEntry.objects.filter(user=user, entry_type=EntryType.USAGE)
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.db.models import Q

from core.model_mixins import UUIDPrimaryKeyMixin


class EntryType(models.TextChoices):
    """
    Kinds of balance-affecting transactions.

    Values:
        TOPUP: Credits bought through the payment gateway (positive)
        USAGE: Call minutes charged (negative)
        ASSISTANT_PURCHASE: Assistant fee charged (negative)
        REFUND: Credits returned to the user (positive)
        ADMIN_ADD: Operator credit adjustment (positive)
        ADMIN_REMOVE: Operator debit adjustment (negative)
    """

    TOPUP = "topup", "Top-up"
    USAGE = "usage", "Usage"
    ASSISTANT_PURCHASE = "assistant_purchase", "Assistant Purchase"
    REFUND = "refund", "Refund"
    ADMIN_ADD = "admin_add", "Admin Credit"
    ADMIN_REMOVE = "admin_remove", "Admin Debit"


CREDIT_ENTRY_TYPES = (
    EntryType.TOPUP,
    EntryType.REFUND,
    EntryType.ADMIN_ADD,
)
DEBIT_ENTRY_TYPES = (
    EntryType.USAGE,
    EntryType.ASSISTANT_PURCHASE,
    EntryType.ADMIN_REMOVE,
)


class LedgerEntry(UUIDPrimaryKeyMixin, models.Model):
    """
    An immutable record of one balance change.

    Fields:
        user: Owner of the balance that changed
        entry_type: Kind of transaction (see EntryType)
        amount: Signed amount, positive for credits and negative for debits
        description: Human-readable description
        balance_before / balance_after: Balance around the change
        correlation_id: Caller-supplied idempotency key (unique)
        related_order_id / related_call_id / related_assistant_id:
            Identifiers of the external event that caused the change
        metadata: Arbitrary JSON data
        created_at: When the entry was recorded

    Constraints:
        - balance_after == balance_before + amount (enforced by BalanceService)
        - amount sign matches entry_type
        - correlation_id is unique
    """

    created_at = models.DateTimeField(
        auto_now_add=True,
        db_index=True,
        help_text="Timestamp when this entry was recorded",
    )

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="ledger_entries",
    )
    entry_type = models.CharField(
        max_length=30,
        choices=EntryType.choices,
        help_text="Kind of transaction",
    )
    amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        help_text="Signed amount in USD (negative for debits)",
    )
    description = models.CharField(max_length=500, blank=True, default="")

    balance_before = models.DecimalField(max_digits=12, decimal_places=2)
    balance_after = models.DecimalField(max_digits=12, decimal_places=2)

    correlation_id = models.CharField(
        max_length=255,
        unique=True,
        help_text="Idempotency key of the event that caused this entry",
    )
    related_order_id = models.CharField(max_length=255, blank=True, default="")
    related_call_id = models.CharField(max_length=255, blank=True, default="")
    related_assistant_id = models.CharField(max_length=255, blank=True, default="")

    metadata = models.JSONField(default=dict, blank=True)

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Ledger Entry"
        verbose_name_plural = "Ledger Entries"
        indexes = [
            models.Index(fields=["user", "-created_at"], name="ledger_user_created_idx"),
            models.Index(fields=["user", "entry_type"], name="ledger_user_type_idx"),
            models.Index(fields=["related_order_id"], name="ledger_order_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=(
                    Q(entry_type__in=[t.value for t in CREDIT_ENTRY_TYPES], amount__gt=0)
                    | Q(entry_type__in=[t.value for t in DEBIT_ENTRY_TYPES], amount__lt=0)
                ),
                name="ledger_entry_amount_sign_matches_type",
            ),
        ]

    def __str__(self) -> str:
        """Return string representation."""
        return f"{self.get_entry_type_display()}: {self.amount} ({self.correlation_id})"

    @property
    def is_credit(self) -> bool:
        return self.amount > 0
