"""
Pricing resolver and admin pricing updates.

PricingResolver caches the PricingSetting table as a PricingConfig for
one TTL window. A store failure never propagates: the resolver logs it
and serves the last config it loaded, or the defaults.

Usage:
    from credits.services.pricing import pricing

    rate = pricing.get().cost_per_minute_payg

    # After an admin edit
    pricing.invalidate()
"""

from __future__ import annotations

import logging
import threading
import time
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any

from django.conf import settings
from django.db import DatabaseError, transaction

from core.exceptions import ValidationError
from core.services import BaseService
from credits.exceptions import InvalidAmount, UpstreamUnavailable
from credits.models import PricingSetting
from credits.permissions import require_permission
from credits.types import DEFAULT_PRICING, PricingConfig

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from django.contrib.auth.models import AbstractBaseUser

logger = logging.getLogger(__name__)

DEFAULT_CACHE_TTL_SECONDS = 300

# Largest rate PricingSetting.value (12 digits, 4 decimal places) can hold
MAX_RATE = Decimal("99999999.9999")

PRICING_DESCRIPTIONS = {
    "assistant_base_cost": "Fee per assistant beyond the plan quota",
    "cost_per_minute_payg": "Per-minute rate on pay-as-you-go",
    "cost_per_minute_overage": "Per-minute rate beyond the plan's included minutes",
    "minimum_topup_amount": "Smallest accepted top-up",
    "initial_payg_charge": "First payment when switching to pay-as-you-go",
    "payg_initial_credits": "Credits granted with the first pay-as-you-go payment",
}


def load_pricing_from_store() -> PricingConfig:
    """Read every known rate from PricingSetting; absent keys keep defaults."""
    rows = PricingSetting.objects.filter(key__in=PricingConfig.keys()).values_list(
        "key", "value"
    )
    return PricingConfig.from_mapping(dict(rows))


class PricingResolver:
    """
    Time-bounded cache of the pricing table.

    Args:
        loader: Callable returning a fresh PricingConfig
            (default: read PricingSetting)
        ttl_seconds: Cache lifetime (default: settings.CREDITS_PRICING_CACHE_TTL)
        clock: Monotonic time source, injectable for tests

    Example:
        resolver = PricingResolver(ttl_seconds=60, clock=fake_clock)
        resolver.get()
    """

    def __init__(
        self,
        loader: Callable[[], PricingConfig] | None = None,
        ttl_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._loader = loader or load_pricing_from_store
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._config: PricingConfig | None = None
        self._loaded_at: float | None = None

    @property
    def ttl_seconds(self) -> float:
        if self._ttl_seconds is not None:
            return self._ttl_seconds
        return getattr(settings, "CREDITS_PRICING_CACHE_TTL", DEFAULT_CACHE_TTL_SECONDS)

    def get(self) -> PricingConfig:
        """
        Return the current pricing.

        Serves the cached config while it is younger than the TTL, else
        reloads. On a store failure returns the last loaded config, or the
        defaults if nothing was ever loaded.
        """
        with self._lock:
            now = self._clock()
            if (
                self._config is not None
                and self._loaded_at is not None
                and now - self._loaded_at < self.ttl_seconds
            ):
                return self._config

            try:
                config = self._loader()
            except DatabaseError as exc:
                error = UpstreamUnavailable(
                    "Pricing store unavailable, serving cached pricing",
                    details={"error": str(exc), "has_cached": self._config is not None},
                )
                logger.warning(str(error), extra=error.details, exc_info=True)
                return self._config or DEFAULT_PRICING

            self._config = config
            self._loaded_at = now
            return config

    def invalidate(self) -> None:
        """Force the next get() to reload. The last config stays as fallback."""
        with self._lock:
            self._loaded_at = None


class PricingService(BaseService):
    """Admin reads and writes of the pricing table."""

    @staticmethod
    def get_pricing_settings(admin: AbstractBaseUser) -> list[PricingSetting]:
        """
        List every pricing row.

        Raises:
            Unauthorized: If the admin lacks credits.view_pricing
        """
        require_permission(admin, "credits.view_pricing")
        return list(PricingSetting.objects.select_related("updated_by"))

    @staticmethod
    def update_pricing(admin: AbstractBaseUser, values: Mapping[str, Any]) -> PricingConfig:
        """
        Upsert pricing rates and invalidate the resolver.

        Args:
            admin: Acting operator
            values: Rate name to new value

        Returns:
            The pricing in effect after the update

        Raises:
            Unauthorized: If the admin lacks credits.manage_pricing
            ValidationError: If a key is not a known rate
            InvalidAmount: If a value is not a number >= 0
        """
        require_permission(admin, "credits.manage_pricing")

        known = set(PricingConfig.keys())
        unknown = sorted(set(values) - known)
        if unknown:
            raise ValidationError(
                f"Unknown pricing keys: {', '.join(unknown)}",
                error_code="UNKNOWN_PRICING_KEY",
                details={"keys": unknown},
            )

        parsed: dict[str, Decimal] = {}
        for key, raw in values.items():
            try:
                value = Decimal(str(raw))
            except InvalidOperation:
                raise InvalidAmount(f"{key} must be a number", details={"key": key})
            if not value.is_finite() or value < 0:
                raise InvalidAmount(f"{key} must be zero or greater", details={"key": key})
            if value > MAX_RATE:
                raise InvalidAmount(f"{key} must be at most {MAX_RATE}", details={"key": key})
            parsed[key] = value

        with transaction.atomic():
            for key, value in parsed.items():
                PricingSetting.objects.update_or_create(
                    key=key,
                    defaults={
                        "value": value,
                        "updated_by": admin,
                        "description": PRICING_DESCRIPTIONS.get(key, ""),
                    },
                )
            transaction.on_commit(pricing.invalidate)
        pricing.invalidate()

        logger.info(
            "Pricing updated",
            extra={
                "admin_id": str(admin.pk),
                "values": {key: str(value) for key, value in parsed.items()},
            },
        )
        return pricing.get()


# Singleton instance for convenience
# Usage: from credits.services.pricing import pricing
pricing = PricingResolver()
