"""
Admin-editable pricing settings.

Each row is one named rate. The resolver in credits.services.pricing
reads the whole table into a PricingConfig and caches it.
"""

from __future__ import annotations

from django.conf import settings
from django.db import models

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel


class PricingSetting(UUIDPrimaryKeyMixin, BaseModel):
    """
    A single pricing rate.

    Fields:
        key: Rate name, matching a PricingConfig field
        value: Rate value in USD
        category: Grouping for the admin listing
        description: What the rate is charged for
        is_public: Whether the rate may be shown to end users
        updated_by: Operator who last changed the value
    """

    key = models.CharField(max_length=100, unique=True)
    value = models.DecimalField(max_digits=12, decimal_places=4)
    category = models.CharField(max_length=50, default="pricing")
    description = models.CharField(max_length=255, blank=True, default="")
    is_public = models.BooleanField(default=True)
    updated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )

    class Meta:
        ordering = ["category", "key"]
        verbose_name = "Pricing Setting"
        verbose_name_plural = "Pricing Settings"

    def __str__(self) -> str:
        """Return string representation."""
        return f"{self.key} = {self.value}"
