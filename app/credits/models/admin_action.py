"""
Audit trail for operator credit adjustments.
"""

from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.db import models

from core.model_mixins import UUIDPrimaryKeyMixin

from credits.models.ledger import EntryType, LedgerEntry


class AdminCreditAction(UUIDPrimaryKeyMixin, models.Model):
    """
    One manual balance adjustment made by an operator.

    Written in the same transaction as the ledger entry it explains.
    admin_name is a snapshot so the trail survives account deletion.
    """

    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    admin = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="credit_actions_performed",
    )
    admin_name = models.CharField(max_length=255)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="credit_actions_received",
    )
    action_type = models.CharField(
        max_length=30,
        choices=[
            (EntryType.ADMIN_ADD.value, EntryType.ADMIN_ADD.label),
            (EntryType.ADMIN_REMOVE.value, EntryType.ADMIN_REMOVE.label),
        ],
    )
    amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        help_text="Signed adjustment in USD",
    )
    reason = models.TextField()
    previous_balance = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
    )
    new_balance = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
    )
    ledger_entry = models.OneToOneField(
        LedgerEntry,
        on_delete=models.PROTECT,
        related_name="admin_action",
    )
    metadata = models.JSONField(default=dict, blank=True)

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Admin Credit Action"
        verbose_name_plural = "Admin Credit Actions"

    def __str__(self) -> str:
        """Return string representation."""
        return f"{self.admin_name}: {self.amount} for {self.user}"
