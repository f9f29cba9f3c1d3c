"""
Assistants a user has paid for (or covered with plan quota).
"""

from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.db import models

from core.model_mixins import UUIDPrimaryKeyMixin

from credits.models.ledger import LedgerEntry


class PurchasedAssistant(UUIDPrimaryKeyMixin, models.Model):
    """
    One assistant purchase per user and assistant id.

    Makes repeat purchases of the same assistant free regardless of the
    correlation id used. ledger_entry is the charge, empty when the plan's
    assistant quota covered it.
    """

    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="purchased_assistants",
    )
    assistant_id = models.CharField(max_length=255)
    assistant_name = models.CharField(max_length=255, blank=True, default="")
    cost = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
    )
    ledger_entry = models.OneToOneField(
        LedgerEntry,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="purchased_assistant",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Purchased Assistant"
        verbose_name_plural = "Purchased Assistants"
        constraints = [
            models.UniqueConstraint(
                fields=["user", "assistant_id"],
                name="purchased_assistant_unique_user_assistant",
            ),
        ]

    def __str__(self) -> str:
        """Return string representation."""
        return f"{self.assistant_id} (${self.cost})"
